"""Scan one polygon at one radius against the keyword search API."""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from poi_collector.core.geometry import bounding_box, cell_polygon, generate_grid, point_in_polygon
from poi_collector.core.ledger import ScanLedger
from poi_collector.core.sink import PlaceSink
from poi_collector.etl.transform import to_place_row
from poi_collector.models import CellCenter, Polygon, ScanResult, ScanStatus, SearchPage

logger = logging.getLogger(__name__)

# search(keyword, center, radius_m, page) -> SearchPage
SearchFn = Callable[[str, CellCenter, int, int], SearchPage]


class CellScanner:
    """Resolve every grid cell of a polygon as completed, subdivided or failed.

    Cells are checked against the ledger first so a rerun only calls the API
    for keys that were never resolved. Each call to :meth:`scan` works on local
    state only; the ledger and sink are the shared resources.
    """

    def __init__(
        self,
        search: SearchFn,
        ledger: ScanLedger,
        sink: PlaceSink,
        *,
        dense_threshold: int = 45,
        max_pages: int = 45,
    ):
        self.search = search
        self.ledger = ledger
        self.sink = sink
        self.dense_threshold = dense_threshold
        self.max_pages = max_pages

    def scan(
        self,
        region: str,
        keyword: str,
        polygon: Polygon,
        radius_m: int,
        depth: int = 0,
        boundary: Optional[Polygon] = None,
    ) -> ScanResult:
        """Scan ``polygon`` and return the dense cells to rescan at half the radius."""
        result = ScanResult()
        for center in self._centers(polygon, radius_m):
            result.cells_visited += 1
            try:
                status = self.ledger.lookup(region, keyword, center, radius_m)
                if status is ScanStatus.COMPLETED:
                    result.cells_skipped += 1
                    continue
                if status is ScanStatus.SUBDIVIDED:
                    result.cells_skipped += 1
                    result.sub_polygons.append(cell_polygon(center.lat, center.lng, radius_m))
                    continue

                first_page = self.search(keyword, center, radius_m, 1)
                if first_page.total_count > self.dense_threshold:
                    self.ledger.record_subdivided(region, keyword, center, radius_m)
                    result.sub_polygons.append(cell_polygon(center.lat, center.lng, radius_m))
                    result.cells_subdivided += 1
                    logger.debug(
                        "Dense cell (%d results) at %.6f,%.6f r=%dm depth=%d",
                        first_page.total_count,
                        center.lat,
                        center.lng,
                        radius_m,
                        depth,
                    )
                    continue

                saved = self._collect_cell(region, keyword, polygon, boundary, center, radius_m, first_page)
                self.ledger.record_completed(region, keyword, center, radius_m)
                result.cells_completed += 1
                result.places_saved += saved
                if saved:
                    logger.info(
                        "Sparse cell (%d results) at %.6f,%.6f r=%dm: saved %d new places",
                        first_page.total_count,
                        center.lat,
                        center.lng,
                        radius_m,
                        saved,
                    )
            except Exception as exc:  # noqa: BLE001
                result.cells_failed += 1
                logger.error(
                    "Cell scan failed at %.6f,%.6f r=%dm for %s/%s: %s",
                    center.lat,
                    center.lng,
                    radius_m,
                    region,
                    keyword,
                    exc,
                )
        return result

    def force_collect(
        self,
        region: str,
        keyword: str,
        polygon: Polygon,
        radius_m: int,
        depth: int = 0,
        boundary: Optional[Polygon] = None,
    ) -> ScanResult:
        """Paginate every cell of ``polygon`` regardless of density.

        Used once the maximum depth is reached; never subdivides, so results
        beyond the page cap of a very dense cell are not collected.
        """
        result = ScanResult()
        for center in self._centers(polygon, radius_m):
            result.cells_visited += 1
            try:
                if self.ledger.lookup(region, keyword, center, radius_m) is ScanStatus.COMPLETED:
                    result.cells_skipped += 1
                    continue
                saved = self._collect_cell(region, keyword, polygon, boundary, center, radius_m, None)
                self.ledger.record_completed(region, keyword, center, radius_m)
                result.cells_completed += 1
                result.places_saved += saved
            except Exception as exc:  # noqa: BLE001
                result.cells_failed += 1
                logger.error(
                    "Forced collection failed at %.6f,%.6f r=%dm depth=%d: %s",
                    center.lat,
                    center.lng,
                    radius_m,
                    depth,
                    exc,
                )
        return result

    def _centers(self, polygon: Polygon, radius_m: int) -> List[CellCenter]:
        bbox = bounding_box(polygon)
        centers = generate_grid(bbox.lat_min, bbox.lat_max, bbox.lng_min, bbox.lng_max, radius_m)
        return [center for center in centers if point_in_polygon(center.lat, center.lng, polygon)]

    def _collect_cell(
        self,
        region: str,
        keyword: str,
        polygon: Polygon,
        boundary: Optional[Polygon],
        center: CellCenter,
        radius_m: int,
        first_page: Optional[SearchPage],
    ) -> int:
        """Fetch pages in order and persist in-polygon places; returns rows inserted."""
        page_number = 1
        page = first_page if first_page is not None else self.search(keyword, center, radius_m, page_number)
        saved = 0
        while True:
            if not page.items:
                break
            rows = self._rows_inside(page.items, region, keyword, polygon, boundary)
            if rows:
                saved += self.sink.save_places(rows)
            if page.is_last_page or page_number >= self.max_pages:
                break
            page_number += 1
            page = self.search(keyword, center, radius_m, page_number)
        return saved

    @staticmethod
    def _rows_inside(
        items: Sequence[Dict[str, Any]],
        region: str,
        keyword: str,
        polygon: Polygon,
        boundary: Optional[Polygon],
    ) -> List[Dict[str, Any]]:
        # A circular search around the cell center reaches past the polygon edge.
        rows = []
        for item in items:
            row = to_place_row(item, region, keyword)
            if row is None:
                continue
            if not point_in_polygon(row["lat"], row["lng"], polygon):
                continue
            if boundary is not None and not point_in_polygon(row["lat"], row["lng"], boundary):
                continue
            rows.append(row)
        return rows
