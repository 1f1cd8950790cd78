"""CLI job to collect places for one region (or every region) and persist them."""

import argparse
import logging
from typing import List, Optional

from poi_collector.core.collector import build_collector
from poi_collector.core.config import ConfigError, get_settings
from poi_collector.core.db import ensure_schema
from poi_collector.core.regions import find_region, load_regions
from poi_collector.models import CollectionSummary

logger = logging.getLogger(__name__)


def run_collection_job(
    *,
    region_name: Optional[str],
    keyword: Optional[str],
    regions_file: Optional[str],
    all_regions: bool = False,
) -> List[CollectionSummary]:
    settings = get_settings()
    keyword = (keyword or settings.default_keyword or "").strip()
    if not keyword:
        raise ConfigError("a keyword is required (--keyword or COLLECTOR_KEYWORD)")

    regions_file = regions_file or settings.regions_file
    if not regions_file:
        raise ConfigError("a regions file is required (--regions-file or REGIONS_FILE)")
    if not all_regions and not region_name:
        raise ConfigError("--region is required unless --all is given")

    regions = load_regions(regions_file)
    if not all_regions:
        region = find_region(regions, region_name)
        if region is None:
            raise ConfigError(f"region {region_name!r} not found in {regions_file}")
        regions = [region]

    collector = build_collector(settings)
    ensure_schema()
    with collector:
        summaries = collector.collect_regions(regions, keyword)

    logger.info(
        "Completed run: regions=%d aborted=%d places_saved=%d",
        len(summaries),
        sum(1 for summary in summaries if summary.error),
        sum(summary.places_saved for summary in summaries),
    )
    return summaries


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Collect keyword search results over an adaptive grid")
    parser.add_argument("--region", dest="region_name", help="Region name as it appears in the regions file")
    parser.add_argument("--all", dest="all_regions", action="store_true", help="Collect every region in the file")
    parser.add_argument(
        "--keyword",
        dest="keyword",
        default=settings.default_keyword or None,
        help="Search keyword",
    )
    parser.add_argument(
        "--regions-file",
        dest="regions_file",
        default=settings.regions_file,
        help="GeoJSON FeatureCollection with region boundaries",
    )
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        run_collection_job(
            region_name=args.region_name,
            keyword=args.keyword,
            regions_file=args.regions_file,
            all_regions=args.all_regions,
        )
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(2) from exc
    except Exception as exc:  # noqa: BLE001
        logger.error("Collection job failed: %s", exc, exc_info=True)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
