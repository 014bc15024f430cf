from __future__ import annotations

"""Geospatial lookups and cross-validation.

This module owns every proximity decision made by the orchestrator:

- ``lookup_nearby`` fans out one places lookup per amenity category and waits
  for all of them; a failed category degrades to an empty batch.
- ``CrossValidator`` keeps the records that lie near the returned points,
  combining categories with AND/OR semantics.
- ``location_filter`` / ``proximity_filter`` build the record-store filter
  fragments for a location, optionally tagged with the proximity marker that
  tells callers distance filtering happens in application code.

Distances are great-circle (Haversine) distances in kilometres.

Fail-open policy
----------------

Records without coordinates, and lookups that produced no points at all, are
passed through unfiltered with a warning. Missing proximity data is never
treated as "no match".
"""

import asyncio
import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .clients.interfaces import PlacesClient
from .schemas.domain import GeoPoint, LogicalOperator, NearbyPlaces

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Threshold used when validating record-store results against looked-up points.
CROSS_VALIDATION_MAX_KM = 10.0

# Threshold used when narrowing an existing candidate set by proximity.
CANDIDATE_PROXIMITY_MAX_KM = 20.0

DEFAULT_LOOKUP_RADIUS_METERS = 20000

PROXIMITY_MARKER_KEY = "_proximityFilter"


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates, in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(
        d_lng / 2
    ) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def record_coordinates(record: Mapping[str, Any]) -> Optional[Tuple[float, float]]:
    """Extract ``(lat, lng)`` from ``record["location"]["coordinates"]``."""
    location = record.get("location") if isinstance(record, Mapping) else None
    coords = location.get("coordinates") if isinstance(location, Mapping) else None
    if not isinstance(coords, Mapping):
        return None
    lat = _number(coords.get("lat"))
    lng = _number(coords.get("lng"))
    if lat is None or lng is None:
        return None
    return lat, lng


def coerce_nearby(value: Any) -> List[NearbyPlaces]:
    """Normalize a data-bag ``nearby_places`` value into ``NearbyPlaces`` batches."""
    if not value:
        return []
    out: List[NearbyPlaces] = []
    for item in value:
        if isinstance(item, NearbyPlaces):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(NearbyPlaces.model_validate(item))
    return out


def points_from_nearby(nearby: Iterable[NearbyPlaces]) -> List[GeoPoint]:
    """Flatten lookup batches into points tagged with their requested category.

    Places without coordinates are skipped.
    """
    points: List[GeoPoint] = []
    for batch in nearby:
        for place in batch.results:
            lat = _number(place.location.lat)
            lng = _number(place.location.lng)
            if lat is None or lng is None:
                continue
            category = batch.category or (place.types[0] if place.types else "place")
            points.append(GeoPoint(lat=lat, lng=lng, name=place.name, category=category))
    return points


def _operator(value: Any) -> LogicalOperator:
    if isinstance(value, LogicalOperator):
        return value
    if isinstance(value, str) and value.strip().upper() == LogicalOperator.AND.value:
        return LogicalOperator.AND
    return LogicalOperator.OR


class CrossValidator:
    """Keep records that lie within ``max_distance_km`` of looked-up points.

    - OR: a record passes if any point of any category is within range.
    - AND: a record passes only if every category present among the points
      has at least one point within range.
    """

    def __init__(self, max_distance_km: float) -> None:
        self.max_distance_km = max_distance_km

    def _passes(self, lat: float, lng: float, points: Sequence[GeoPoint], operator: LogicalOperator) -> bool:
        if operator == LogicalOperator.AND:
            near_by_category: Dict[str, bool] = {}
            for p in points:
                near = haversine_km(lat, lng, p.lat, p.lng) <= self.max_distance_km
                near_by_category[p.category] = near_by_category.get(p.category, False) or near
            return all(near_by_category.values())
        return any(haversine_km(lat, lng, p.lat, p.lng) <= self.max_distance_km for p in points)

    def filter(
        self,
        records: Sequence[Dict[str, Any]],
        points: Sequence[GeoPoint],
        operator: Any = LogicalOperator.OR,
    ) -> List[Dict[str, Any]]:
        records = list(records)
        if not points:
            logger.warning("No place coordinates found for proximity filtering, keeping all records")
            return records

        op = _operator(operator)
        kept: List[Dict[str, Any]] = []
        without_coords = 0
        for record in records:
            coords = record_coordinates(record)
            if coords is None:
                without_coords += 1
                kept.append(record)
                continue
            if self._passes(coords[0], coords[1], points, op):
                kept.append(record)

        if without_coords:
            logger.warning(f"{without_coords} records without coordinates passed through proximity filtering")
        logger.debug(
            f"Proximity filtering ({op.value}, {self.max_distance_km} km) kept {len(kept)} of {len(records)} records"
        )
        return kept


def cross_validate(
    records: Sequence[Dict[str, Any]], nearby: Iterable[NearbyPlaces], operator: Any = LogicalOperator.OR
) -> List[Dict[str, Any]]:
    """Validate record-store results against looked-up points (10 km)."""
    return CrossValidator(CROSS_VALIDATION_MAX_KM).filter(records, points_from_nearby(nearby), operator)


def filter_by_proximity(
    records: Sequence[Dict[str, Any]], nearby: Iterable[NearbyPlaces], operator: Any = LogicalOperator.OR
) -> List[Dict[str, Any]]:
    """Narrow an existing candidate set by proximity (20 km)."""
    return CrossValidator(CANDIDATE_PROXIMITY_MAX_KM).filter(records, points_from_nearby(nearby), operator)


async def lookup_nearby(
    places: PlacesClient,
    categories: Sequence[str],
    location: Any,
    radius_meters: int = DEFAULT_LOOKUP_RADIUS_METERS,
) -> List[NearbyPlaces]:
    """Look up every category concurrently and wait for all of them.

    One batch is returned per category, in request order. A category whose
    lookup raised yields an empty batch with ``status="ERROR"``.
    """
    reference = location if isinstance(location, (str, Mapping)) else str(location)

    async def _one(category: str) -> List[Any]:
        return await places.find_nearby([category], reference, radius_meters)

    settled = await asyncio.gather(*(_one(c) for c in categories), return_exceptions=True)

    batches: List[NearbyPlaces] = []
    for category, outcome in zip(categories, settled):
        if isinstance(outcome, BaseException):
            logger.warning(f"Nearby lookup for '{category}' failed: {outcome}")
            batches.append(NearbyPlaces(category=category, results=[], status="ERROR"))
            continue
        batches.append(NearbyPlaces.model_validate({"category": category, "results": list(outcome or [])}))
    return batches


def location_filter(location: Any) -> Dict[str, Any]:
    """Record-store filter fragment matching a location.

    Strings match the city case-insensitively. Mappings may carry ``city``,
    ``state`` or ``lat``/``lng``. Anything else yields an empty filter.
    """
    if isinstance(location, str) and location.strip():
        return {"location.city": {"$regex": location.strip(), "$options": "i"}}
    if isinstance(location, Mapping):
        city = location.get("city")
        if isinstance(city, str) and city.strip():
            return {"location.city": {"$regex": city.strip(), "$options": "i"}}
        state = location.get("state")
        if isinstance(state, str) and state.strip():
            return {"location.state": {"$regex": state.strip(), "$options": "i"}}
        if location.get("lat") is not None and location.get("lng") is not None:
            return {"location.coordinates": {"$exists": True}}
    logger.warning(f"Could not build a location filter for: {location!r}")
    return {}


def proximity_filter(
    location: Any,
    nearby: Iterable[NearbyPlaces],
    operator: Any = LogicalOperator.OR,
    *,
    max_distance_km: float = CANDIDATE_PROXIMITY_MAX_KM,
) -> Dict[str, Any]:
    """Location filter plus the marker requesting proximity post-filtering.

    Without any points only the location filter is returned.
    """
    base = location_filter(location)
    points = points_from_nearby(nearby)
    if not points:
        logger.warning("No place coordinates found, proximity marker omitted")
        return base
    marker = {
        "coordinates": [p.model_dump() for p in points],
        "maxDistance": max_distance_km,
        "logicalOperator": _operator(operator).value,
    }
    return {**base, PROXIMITY_MARKER_KEY: marker}


def strip_proximity_marker(expression: Any) -> Any:
    """Remove proximity markers from a filter before it reaches the record store."""
    if isinstance(expression, Mapping):
        return {k: strip_proximity_marker(v) for k, v in expression.items() if k != PROXIMITY_MARKER_KEY}
    if isinstance(expression, list):
        stripped = [strip_proximity_marker(v) for v in expression]
        return [v for v in stripped if v != {}]
    return expression
