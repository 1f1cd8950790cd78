"""Core data models shared by the grid collection pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

# A closed ring of (lng, lat) vertex pairs.
Polygon = Sequence[Sequence[float]]


class ScanStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"
    SUBDIVIDED = "SUBDIVIDED"


@dataclass(frozen=True)
class RegionArea:
    """A named area to collect, made of one or more outer rings."""

    name: str
    polygons: Tuple[Polygon, ...] = ()


@dataclass(frozen=True, slots=True)
class BoundingBox:
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float


@dataclass(frozen=True, slots=True)
class CellCenter:
    lat: float
    lng: float


@dataclass(slots=True)
class SearchPage:
    """One page of a Kakao keyword search."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    total_count: int = 0
    pageable_count: int = 0
    is_last_page: bool = True


@dataclass(slots=True)
class ScanResult:
    """Outcome of scanning one polygon at one radius."""

    sub_polygons: List[List[List[float]]] = field(default_factory=list)
    cells_visited: int = 0
    cells_skipped: int = 0
    cells_completed: int = 0
    cells_subdivided: int = 0
    cells_failed: int = 0
    places_saved: int = 0


@dataclass(slots=True)
class CollectionSummary:
    run_id: str
    region: str
    keyword: str
    levels: int = 0
    final_radius_m: int = 0
    force_collected_polygons: int = 0
    cells_visited: int = 0
    cells_skipped: int = 0
    cells_completed: int = 0
    cells_subdivided: int = 0
    cells_failed: int = 0
    places_saved: int = 0
    error: Optional[str] = None

    def absorb(self, result: ScanResult) -> None:
        self.cells_visited += result.cells_visited
        self.cells_skipped += result.cells_skipped
        self.cells_completed += result.cells_completed
        self.cells_subdivided += result.cells_subdivided
        self.cells_failed += result.cells_failed
        self.places_saved += result.places_saved
