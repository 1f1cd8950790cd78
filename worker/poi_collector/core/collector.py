"""Level-by-level adaptive collection of one region/keyword pair."""

from __future__ import annotations

import logging
import uuid
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, List, Optional, Tuple

from poi_collector.core.config import ConfigError, Settings, check_radius_schedule, get_settings
from poi_collector.core.db import init_pool
from poi_collector.core.ledger import ScanLedger
from poi_collector.core.scanner import CellScanner
from poi_collector.core.sink import PlaceSink
from poi_collector.models import CellCenter, CollectionSummary, Polygon, RegionArea, ScanResult, SearchPage
from poi_collector.vendors import kakao_local

logger = logging.getLogger(__name__)

# (polygon to scan, region ring it was carved from; None when it is the ring itself)
_Task = Tuple[Polygon, Optional[Polygon]]


class CollectionAbortedError(RuntimeError):
    """Raised when a level's batch of scans could not be submitted or awaited."""


class RegionCollector:
    """Drive a :class:`CellScanner` over shrinking radii on a bounded thread pool.

    Each level is a barrier: the next level's polygons are the dense cells
    returned by every scan of the current level. The radius halves per level;
    at ``max_depth`` whatever is left is force-collected without subdivision.
    """

    def __init__(
        self,
        scanner: CellScanner,
        *,
        max_workers: int = 4,
        initial_radius_m: int = 512,
        max_depth: int = 7,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        check_radius_schedule(initial_radius_m, max_depth)
        self.scanner = scanner
        self.initial_radius_m = initial_radius_m
        self.max_depth = max_depth
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cell-scan")

    def __enter__(self) -> "RegionCollector":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        if self._owns_executor:
            logger.info("Shutting down scan executor")
            self._executor.shutdown(wait=True)

    def collect(self, region: RegionArea, keyword: str) -> CollectionSummary:
        keyword = (keyword or "").strip()
        _validate(region, keyword)

        summary = CollectionSummary(run_id=str(uuid.uuid4()), region=region.name, keyword=keyword)
        logger.info(
            "Starting collection run_id=%s region=%s keyword=%s polygons=%d",
            summary.run_id,
            region.name,
            keyword,
            len(region.polygons),
        )

        level: List[_Task] = [(polygon, None) for polygon in region.polygons if polygon]
        radius = self.initial_radius_m
        depth = 0

        while level and depth < self.max_depth:
            logger.info("Depth %d, radius %dm: scanning %d polygons", depth, radius, len(level))
            results = self._run_level(self.scanner.scan, region.name, keyword, level, radius, depth)

            next_level: List[_Task] = []
            for (polygon, boundary), result in zip(level, results):
                summary.absorb(result)
                ring = boundary if boundary is not None else polygon
                next_level.extend((sub_polygon, ring) for sub_polygon in result.sub_polygons)

            level = next_level
            radius //= 2
            depth += 1

        summary.levels = depth
        summary.final_radius_m = radius

        if level:
            logger.warning(
                "Reached max depth %d with %d dense polygons left; force-collecting at %dm",
                depth,
                len(level),
                radius,
            )
            results = self._run_level(self.scanner.force_collect, region.name, keyword, level, radius, depth)
            for result in results:
                summary.absorb(result)
            summary.force_collected_polygons = len(level)

        logger.info(
            "Finished collection run_id=%s region=%s keyword=%s: %d places saved, %d cells completed, "
            "%d subdivided, %d skipped, %d failed",
            summary.run_id,
            region.name,
            keyword,
            summary.places_saved,
            summary.cells_completed,
            summary.cells_subdivided,
            summary.cells_skipped,
            summary.cells_failed,
        )
        return summary

    def collect_regions(
        self,
        regions: Iterable[RegionArea],
        keyword: str,
        on_complete: Optional[Callable[[CollectionSummary], None]] = None,
    ) -> List[CollectionSummary]:
        summaries: List[CollectionSummary] = []
        for region in regions:
            try:
                summary = self.collect(region, keyword)
            except ConfigError as exc:
                logger.warning("Skipping region %s: %s", region.name or "<unnamed>", exc)
                continue
            except CollectionAbortedError as exc:
                logger.error("Collection of region %s aborted, moving on: %s", region.name, exc)
                summaries.append(
                    CollectionSummary(run_id=str(uuid.uuid4()), region=region.name, keyword=(keyword or "").strip(), error=str(exc))
                )
                continue
            summaries.append(summary)
            if on_complete is not None:
                on_complete(summary)
        return summaries

    def _run_level(
        self,
        scan_fn: Callable[..., ScanResult],
        region_name: str,
        keyword: str,
        tasks: List[_Task],
        radius: int,
        depth: int,
    ) -> List[ScanResult]:
        try:
            futures: List[Future] = [
                self._executor.submit(_run_scan_safe, scan_fn, region_name, keyword, polygon, radius, depth, boundary)
                for polygon, boundary in tasks
            ]
            wait(futures)
            return [future.result() for future in futures]
        except (RuntimeError, CancelledError) as exc:
            logger.error("Parallel collection failed at depth %d for %s: %s", depth, region_name, exc)
            raise CollectionAbortedError(f"collection of {region_name} aborted at depth {depth}: {exc}") from exc


def _run_scan_safe(
    scan_fn: Callable[..., ScanResult],
    region_name: str,
    keyword: str,
    polygon: Polygon,
    radius: int,
    depth: int,
    boundary: Optional[Polygon],
) -> ScanResult:
    try:
        return scan_fn(region_name, keyword, polygon, radius, depth, boundary)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Scan task failed at depth %d, radius %dm: %s", depth, radius, exc)
        return ScanResult()


def _validate(region: Optional[RegionArea], keyword: str) -> None:
    if region is None or not region.name:
        raise ConfigError("region name is required")
    if not keyword:
        raise ConfigError("keyword is required")
    if not any(region.polygons):
        raise ConfigError(f"region {region.name} has no polygon")


def build_collector(settings: Optional[Settings] = None) -> RegionCollector:
    """Wire the Kakao client, ledger and sink from settings."""
    settings = settings or get_settings()
    if not settings.kakao_api_key:
        raise ConfigError("KAKAO_API_KEY is required")
    check_radius_schedule(settings.initial_radius_m, settings.max_depth)

    init_pool(settings=settings)

    def search(keyword: str, center: CellCenter, radius_m: int, page: int) -> SearchPage:
        return kakao_local.keyword_search_with_retry(
            keyword,
            center.lng,
            center.lat,
            radius_m,
            page,
            settings.kakao_api_key,
            call_delay_ms=settings.api_call_delay_ms,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
            max_retry_delay_ms=settings.max_retry_delay_ms,
        )

    scanner = CellScanner(
        search,
        ScanLedger(),
        PlaceSink(batch_size=settings.sink_batch_size),
        dense_threshold=settings.dense_threshold,
        max_pages=settings.max_pages,
    )
    return RegionCollector(
        scanner,
        max_workers=settings.max_workers,
        initial_radius_m=settings.initial_radius_m,
        max_depth=settings.max_depth,
    )
