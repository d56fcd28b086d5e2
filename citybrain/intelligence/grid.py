"""
Zone Grid
Fixed-size coordinate cells used as the unit of supply/demand aggregation
"""

import math
from dataclasses import dataclass
from typing import List, Tuple


DEFAULT_CELL_SIZE_DEG = 0.027
KM_PER_DEGREE = 111.0

FOUR_NEIGHBORS: Tuple[Tuple[int, int], ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))
EIGHT_NEIGHBORS: Tuple[Tuple[int, int], ...] = FOUR_NEIGHBORS + ((1, 1), (1, -1), (-1, 1), (-1, -1))


@dataclass(frozen=True)
class ZoneCell:
    zone_id: str
    lat_index: int
    lng_index: int
    center_lat: float
    center_lng: float


class ZoneGrid:
    SEPARATOR = '_'

    def __init__(self, cell_size_deg: float = DEFAULT_CELL_SIZE_DEG):
        if cell_size_deg <= 0:
            raise ValueError("cell_size_deg must be positive")
        self.cell_size_deg = cell_size_deg

    def zone_index(self, lat: float, lng: float) -> Tuple[int, int]:
        return (math.floor(lat / self.cell_size_deg), math.floor(lng / self.cell_size_deg))

    def zone_id(self, lat: float, lng: float) -> str:
        lat_index, lng_index = self.zone_index(lat, lng)
        return f"{lat_index}{self.SEPARATOR}{lng_index}"

    def parse(self, zone_id: str) -> Tuple[int, int]:
        # Negative indices keep their minus sign, so split on the last separator
        lat_part, sep, lng_part = zone_id.rpartition(self.SEPARATOR)
        if not sep or not lat_part:
            raise ValueError(f"Invalid zone id: {zone_id!r}")
        return (int(lat_part), int(lng_part))

    def zone_center(self, zone_id: str) -> Tuple[float, float]:
        lat_index, lng_index = self.parse(zone_id)
        return (
            (lat_index + 0.5) * self.cell_size_deg,
            (lng_index + 0.5) * self.cell_size_deg,
        )

    def cell(self, lat: float, lng: float) -> ZoneCell:
        zone_id = self.zone_id(lat, lng)
        lat_index, lng_index = self.parse(zone_id)
        center_lat, center_lng = self.zone_center(zone_id)
        return ZoneCell(zone_id, lat_index, lng_index, center_lat, center_lng)

    def neighbor_ids(self, zone_id: str, offsets=FOUR_NEIGHBORS) -> List[str]:
        lat_index, lng_index = self.parse(zone_id)
        return [f"{lat_index + dlat}{self.SEPARATOR}{lng_index + dlng}" for dlat, dlng in offsets]

    def offset_point(self, lat: float, lng: float, dlat: int, dlng: int) -> Tuple[float, float]:
        return (lat + dlat * self.cell_size_deg, lng + dlng * self.cell_size_deg)


def approx_distance_km(lat1: float, lng1: float, lat2: float, lng2: float,
                       km_per_degree: float = KM_PER_DEGREE) -> float:
    """Flat-earth distance: Euclidean on degrees scaled by km per degree. Not haversine."""
    return math.sqrt((lat1 - lat2) ** 2 + (lng1 - lng2) ** 2) * km_per_degree


DEFAULT_GRID = ZoneGrid()


def zone_id(lat: float, lng: float) -> str:
    return DEFAULT_GRID.zone_id(lat, lng)


def zone_center(zone_id: str) -> Tuple[float, float]:
    return DEFAULT_GRID.zone_center(zone_id)
