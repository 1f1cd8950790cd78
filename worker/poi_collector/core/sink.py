"""Bulk persistence of discovered places."""

import logging
from typing import Any, Dict, List, Sequence, Tuple

import psycopg2
from psycopg2 import extras

from poi_collector.core.db import get_connection

logger = logging.getLogger(__name__)

_COLUMNS = (
    "place_id",
    "region",
    "keyword",
    "place_name",
    "road_address",
    "lot_address",
    "lat",
    "lng",
    "phone",
    "category",
    "category_group_code",
    "category_group_name",
    "place_url",
    "distance",
)

_INSERT_PLACES = f"""
INSERT INTO places ({", ".join(_COLUMNS)})
VALUES %s
ON CONFLICT (place_id) DO NOTHING
RETURNING place_id;
"""


def _prepare_values(row: Dict[str, Any]) -> Tuple[Any, ...]:
    return tuple(row.get(column) for column in _COLUMNS)


def _chunks(rows: Sequence[Dict[str, Any]], size: int):
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class PlaceSink:
    """Insert-only writer for the ``places`` table.

    Rows that collide on ``place_id`` are skipped by the database. If a batch
    still violates a constraint, that batch is rolled back and dropped while
    later batches continue.
    """

    def __init__(self, batch_size: int = 100):
        self.batch_size = batch_size

    def save_places(self, rows: Sequence[Dict[str, Any]]) -> int:
        rows = [row for row in rows if row.get("place_id")]
        if not rows:
            return 0

        inserted = 0
        with get_connection() as conn:
            for batch in _chunks(rows, self.batch_size):
                values: List[Tuple[Any, ...]] = [_prepare_values(row) for row in batch]
                try:
                    with conn.cursor() as cur:
                        returned = extras.execute_values(cur, _INSERT_PLACES, values, fetch=True)
                    conn.commit()
                except psycopg2.IntegrityError as exc:
                    conn.rollback()
                    logger.warning("Dropped batch of %d places after integrity error: %s", len(batch), exc)
                    continue
                except Exception:
                    conn.rollback()
                    raise
                inserted += len(returned or [])
        logger.debug("Inserted %d of %d places", inserted, len(rows))
        return inserted
