"""Persistent record of which grid cells have been scanned.

A key is ``(region, keyword, center_lat, center_lng, radius)``. The first write
for a key wins; the ledger never updates or deletes rows.
"""

import logging
from typing import Dict, Optional

from poi_collector.core.db import get_connection
from poi_collector.models import CellCenter, ScanStatus

logger = logging.getLogger(__name__)

_LOOKUP = """
SELECT status
FROM scanned_grid
WHERE region_name = %(region)s
  AND keyword = %(keyword)s
  AND grid_center_lat = %(lat)s
  AND grid_center_lng = %(lng)s
  AND grid_radius = %(radius)s
LIMIT 1;
"""

_INSERT = """
INSERT INTO scanned_grid (
    region_name,
    keyword,
    grid_center_lat,
    grid_center_lng,
    grid_radius,
    status,
    created_at
) VALUES (
    %(region)s,
    %(keyword)s,
    %(lat)s,
    %(lng)s,
    %(radius)s,
    %(status)s,
    NOW()
)
ON CONFLICT (region_name, keyword, grid_center_lat, grid_center_lng, grid_radius) DO NOTHING;
"""

_STATUS_COUNTS = """
SELECT status, COUNT(*)
FROM scanned_grid
WHERE region_name = %(region)s AND keyword = %(keyword)s
GROUP BY status;
"""


def _key_params(region: str, keyword: str, center: CellCenter, radius_m: int) -> Dict[str, object]:
    return {
        "region": region,
        "keyword": keyword,
        "lat": center.lat,
        "lng": center.lng,
        "radius": int(radius_m),
    }


class ScanLedger:
    """Postgres-backed scan ledger."""

    def lookup(self, region: str, keyword: str, center: CellCenter, radius_m: int) -> Optional[ScanStatus]:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_LOOKUP, _key_params(region, keyword, center, radius_m))
                row = cur.fetchone()
            conn.commit()
        if not row:
            return None
        return ScanStatus(row[0])

    def record_completed(self, region: str, keyword: str, center: CellCenter, radius_m: int) -> bool:
        return self._record(region, keyword, center, radius_m, ScanStatus.COMPLETED)

    def record_subdivided(self, region: str, keyword: str, center: CellCenter, radius_m: int) -> bool:
        return self._record(region, keyword, center, radius_m, ScanStatus.SUBDIVIDED)

    def status_counts(self, region: str, keyword: str) -> Dict[str, int]:
        counts = {status.value: 0 for status in ScanStatus}
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_STATUS_COUNTS, {"region": region, "keyword": keyword})
                for status, count in cur.fetchall():
                    counts[status] = int(count)
            conn.commit()
        return counts

    def _record(self, region: str, keyword: str, center: CellCenter, radius_m: int, status: ScanStatus) -> bool:
        """Insert the key if absent; returns False when another writer got there first."""
        params = _key_params(region, keyword, center, radius_m)
        params["status"] = status.value
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(_INSERT, params)
                inserted = cur.rowcount == 1
            conn.commit()
        if not inserted:
            logger.debug("Ledger key already present for %s/%s at %s r=%s", region, keyword, center, radius_m)
        return inserted
