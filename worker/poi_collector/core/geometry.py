"""Flat-earth grid helpers for splitting a region into search cells.

Distances use a fixed 111 km per degree of latitude and scale longitude by
``cos(latitude)``. This holds well at metro scale and degrades near the poles.
"""

import math
from typing import List

from poi_collector.models import BoundingBox, CellCenter, Polygon

DEGREE_PER_METER = 1.0 / 111_000.0


def bounding_box(polygon: Polygon) -> BoundingBox:
    if not polygon:
        return BoundingBox(0.0, 0.0, 0.0, 0.0)

    lngs = [point[0] for point in polygon]
    lats = [point[1] for point in polygon]
    return BoundingBox(
        lat_min=min(lats),
        lat_max=max(lats),
        lng_min=min(lngs),
        lng_max=max(lngs),
    )


def point_in_polygon(lat: float, lng: float, polygon: Polygon) -> bool:
    """Even-odd ray casting test; vertices are (lng, lat) pairs."""
    if not polygon:
        return False

    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        lng_i, lat_i = polygon[i][0], polygon[i][1]
        lng_j, lat_j = polygon[j][0], polygon[j][1]
        if (lat_i > lat) != (lat_j > lat):
            cross_lng = (lng_j - lng_i) * (lat - lat_i) / (lat_j - lat_i) + lng_i
            if lng < cross_lng:
                inside = not inside
        j = i
    return inside


def generate_grid(
    lat_start: float,
    lat_end: float,
    lng_start: float,
    lng_end: float,
    radius_m: int,
) -> List[CellCenter]:
    """Return the centers of square cells of side ``2 * radius_m`` covering the box.

    Rows and columns start at the box origin and continue while the cell origin
    is still inside the box, so the last row/column may overhang the far edge.
    """
    if radius_m <= 0:
        raise ValueError(f"radius_m must be positive, got {radius_m}")

    lat_step = radius_m * 2 * DEGREE_PER_METER
    mid_lat = (lat_start + lat_end) / 2.0
    lng_step = lat_step / math.cos(math.radians(mid_lat))

    centers: List[CellCenter] = []
    row = 0
    while lat_start + row * lat_step <= lat_end:
        lat = lat_start + row * lat_step
        col = 0
        while lng_start + col * lng_step <= lng_end:
            lng = lng_start + col * lng_step
            centers.append(CellCenter(lat=lat + lat_step / 2, lng=lng + lng_step / 2))
            col += 1
        row += 1
    return centers


def cell_polygon(center_lat: float, center_lng: float, radius_m: int) -> List[List[float]]:
    """Closed square ring of side ``2 * radius_m`` centered on a grid cell."""
    lat_offset = radius_m * DEGREE_PER_METER
    lng_offset = radius_m * DEGREE_PER_METER / math.cos(math.radians(center_lat))
    lat_start, lat_end = center_lat - lat_offset, center_lat + lat_offset
    lng_start, lng_end = center_lng - lng_offset, center_lng + lng_offset
    return [
        [lng_start, lat_start],
        [lng_end, lat_start],
        [lng_end, lat_end],
        [lng_start, lat_end],
        [lng_start, lat_start],
    ]
