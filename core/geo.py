"""
Geographic rollup of completed sessions.

Free-form place names are normalized into a region → city → town
hierarchy. Rows with a town aggregate under the full triple; rows
without one aggregate under region + city only, so a town is never
double-counted under its parent city in the rollup. Filtering by a city
alone still matches every row in it, towns included.

Only rollups are exposed: a place carries the centroid of its rows'
coordinates (rounded), never an individual point, and no place is
reported unless at least one row fell into it.
"""
import re
import unicodedata
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Iterable, Mapping, Tuple

from core.config import config

_WHITESPACE_RE = re.compile(r"\s+")
_NUMERIC_TOWN_RE = re.compile(r"^[0-9\-]+$")


def normalize_place_name(raw: Optional[str]) -> Optional[str]:
    """NFKC-normalize and trim a place name; blank names become None."""
    if raw is None:
        return None
    name = unicodedata.normalize("NFKC", str(raw))
    name = _WHITESPACE_RE.sub(" ", name).strip()
    return name or None


@dataclass(frozen=True)
class PlaceKey:
    """A place in the region → city → town hierarchy (town optional)."""
    region: str
    city: str
    town: Optional[str] = None

    @property
    def is_city_level(self) -> bool:
        return self.town is None

    @property
    def label(self) -> str:
        return " ".join(p for p in (self.region, self.city, self.town) if p)


def normalize_place(
    region: Optional[str],
    city: Optional[str],
    town: Optional[str] = None,
) -> Optional[PlaceKey]:
    """
    Build a PlaceKey from raw names.

    Returns None when region or city is missing. A town made only of
    digits (a bare block number) carries no place information and is
    dropped, leaving a city-level key.
    """
    region = normalize_place_name(region)
    city = normalize_place_name(city)
    if region is None or city is None:
        return None
    town = normalize_place_name(town)
    if town is not None and _NUMERIC_TOWN_RE.match(town):
        town = None
    return PlaceKey(region, city, town)


@dataclass
class PlaceAggregate:
    """Completed sessions rolled up to one place."""
    key: PlaceKey
    count: int = 0
    _lat_sum: float = field(default=0.0, repr=False)
    _lon_sum: float = field(default=0.0, repr=False)
    _located: int = field(default=0, repr=False)

    def add(self, latitude: Optional[float] = None, longitude: Optional[float] = None) -> None:
        self.count += 1
        if latitude is not None and longitude is not None:
            self._lat_sum += float(latitude)
            self._lon_sum += float(longitude)
            self._located += 1

    @property
    def has_coordinates(self) -> bool:
        return self._located > 0

    @property
    def coordinates(self) -> Optional[Tuple[float, float]]:
        """Rounded centroid of the located rows in this place."""
        if not self._located:
            return None
        precision = config.geo.coordinate_precision
        return (
            round(self._lat_sum / self._located, precision),
            round(self._lon_sum / self._located, precision),
        )

    def to_dict(self) -> Dict[str, Any]:
        coords = self.coordinates
        return {
            "region": self.key.region,
            "city": self.key.city,
            "town": self.key.town,
            "count": self.count,
            "latitude": coords[0] if coords else None,
            "longitude": coords[1] if coords else None,
        }


def aggregate_places(rows: Iterable[Mapping[str, Any]]) -> List[PlaceAggregate]:
    """
    Roll rows up into places, in first-seen order.

    Each row needs ``region``, ``city`` and ``town`` and may carry
    ``latitude``/``longitude``. Unplaceable rows are skipped.
    """
    places: Dict[PlaceKey, PlaceAggregate] = {}
    for row in rows:
        key = normalize_place(row.get("region"), row.get("city"), row.get("town"))
        if key is None:
            continue
        place = places.get(key)
        if place is None:
            place = places[key] = PlaceAggregate(key)
        place.add(row.get("latitude"), row.get("longitude"))
    return list(places.values())


def rank_places(places: List[PlaceAggregate], limit: Optional[int] = None) -> List[PlaceAggregate]:
    """Order by count descending; first-seen order breaks ties (stable sort)."""
    ranked = sorted(places, key=lambda p: p.count, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def find_hotspot(places: Iterable[PlaceAggregate]) -> Optional[PlaceAggregate]:
    """
    The located place with the highest count.

    Ties go to the place seen first. Returns None when no place has
    coordinates.
    """
    hotspot = None
    for place in places:
        if not place.has_coordinates:
            continue
        if hotspot is None or place.count > hotspot.count:
            hotspot = place
    return hotspot


def summarize_regions(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """
    Per-region totals over raw rows, count descending.

    A row only needs a region to count here; city and town may be absent.
    Ties keep first-seen order.
    """
    totals: Dict[str, int] = {}
    for row in rows:
        region = normalize_place_name(row.get("region"))
        if region is not None:
            totals[region] = totals.get(region, 0) + 1
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [{"region": region, "count": count} for region, count in ranked]


def matches_place(
    row: Mapping[str, Any],
    region: str,
    city: str,
    town: Optional[str] = None,
) -> bool:
    """
    Whether a raw row falls inside the given place.

    With a town only rows of that town match. Without one the whole city
    matches, town-level rows included.
    """
    target = normalize_place(region, city, town)
    key = normalize_place(row.get("region"), row.get("city"), row.get("town"))
    if target is None or key is None:
        return False
    if target.is_city_level:
        return (key.region, key.city) == (target.region, target.city)
    return key == target
