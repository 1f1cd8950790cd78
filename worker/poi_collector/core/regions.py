"""Load collection regions from a GeoJSON FeatureCollection."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from poi_collector.models import RegionArea

logger = logging.getLogger(__name__)


def _outer_rings(geometry: Dict[str, Any]) -> List[List[List[float]]]:
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates") or []
    if geometry_type == "Polygon":
        polygons = [coordinates]
    elif geometry_type == "MultiPolygon":
        polygons = coordinates
    else:
        raise ValueError(f"unsupported geometry type {geometry_type!r}")

    rings = []
    for polygon in polygons:
        if not polygon:
            continue
        rings.append([[float(point[0]), float(point[1])] for point in polygon[0]])
    return rings


def feature_to_region(feature: Dict[str, Any], name_key: str = "name") -> Optional[RegionArea]:
    properties = feature.get("properties") or {}
    name = str(properties.get(name_key) or "").strip()
    if not name:
        logger.warning("Skipping feature without %r property", name_key)
        return None

    geometry = feature.get("geometry") or {}
    try:
        rings = _outer_rings(geometry)
    except (TypeError, ValueError, IndexError) as exc:
        logger.error("Could not parse coordinates for region %s: %s", name, exc)
        rings = []
    return RegionArea(name=name, polygons=tuple(rings))


def load_regions(path: Union[str, Path], name_key: str = "name") -> List[RegionArea]:
    """Read every named feature of a GeoJSON file as a :class:`RegionArea`."""
    with Path(path).open("r", encoding="utf-8") as fh:
        collection = json.load(fh)

    regions = []
    for feature in collection.get("features", []):
        region = feature_to_region(feature, name_key=name_key)
        if region is not None:
            regions.append(region)
    logger.info("Loaded %d regions from %s", len(regions), path)
    return regions


def find_region(regions: Iterable[RegionArea], name: str) -> Optional[RegionArea]:
    wanted = name.strip().lower()
    for region in regions:
        if region.name.lower() == wanted:
            return region
    return None
