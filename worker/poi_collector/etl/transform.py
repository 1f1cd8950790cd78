"""Utilities for transforming Kakao keyword search documents into database rows."""

import logging
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def document_coordinates(document: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    """Return ``(lat, lng)``; Kakao sends them as strings in ``y`` and ``x``."""
    return _safe_float(document.get("y")), _safe_float(document.get("x"))


def to_place_row(document: Dict[str, Any], region: str, keyword: str) -> Optional[Dict[str, Any]]:
    place_id = _strip_or_none(document.get("id"))
    lat, lng = document_coordinates(document)
    if not place_id or lat is None or lng is None:
        logger.debug("Skipping document without id or coordinates: %s", document)
        return None

    return {
        "place_id": place_id,
        "region": region,
        "keyword": keyword,
        "place_name": _strip_or_none(document.get("place_name")),
        "road_address": _strip_or_none(document.get("road_address_name")),
        "lot_address": _strip_or_none(document.get("address_name")),
        "lat": lat,
        "lng": lng,
        "phone": _strip_or_none(document.get("phone")),
        "category": _strip_or_none(document.get("category_name")),
        "category_group_code": _strip_or_none(document.get("category_group_code")),
        "category_group_name": _strip_or_none(document.get("category_group_name")),
        "place_url": _strip_or_none(document.get("place_url")),
        "distance": _strip_or_none(document.get("distance")),
    }
