# app/domain/geo.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from .errors import InvalidCoordinates, MissingCoordinates
from .parsing import to_float

EARTH_RADIUS_M = 6_371_008.8


@dataclass(frozen=True)
class Point:
    longitude: float
    latitude: float

    def as_geojson(self) -> dict[str, Any]:
        return {"type": "Point", "coordinates": [self.longitude, self.latitude]}


def _pair(raw: Any) -> tuple[Any, Any]:
    # [lng, lat]
    if isinstance(raw, (list, tuple)):
        if len(raw) != 2:
            raise InvalidCoordinates(f"expected [longitude, latitude], got {len(raw)} values")
        return raw[0], raw[1]

    if isinstance(raw, Mapping):
        # GeoJSON {"type": "Point", "coordinates": [lng, lat]}
        if "coordinates" in raw:
            if raw.get("type", "Point") != "Point":
                raise InvalidCoordinates(f"unsupported geometry type {raw.get('type')!r}")
            return _pair(raw["coordinates"])
        # legacy embedded {"lat": .., "lng": ..}
        lng = raw.get("lng", raw.get("lon", raw.get("longitude")))
        lat = raw.get("lat", raw.get("latitude"))
        if lng is None and lat is None:
            raise MissingCoordinates()
        return lng, lat

    raise InvalidCoordinates(f"unsupported coordinates value {type(raw).__name__}")


def parse_coordinates(raw: Any) -> Point:
    """
    Accepts [lng, lat], GeoJSON Point, or {"lat", "lng"}; returns a range-checked Point.
    """
    if raw is None:
        raise MissingCoordinates()

    lng_raw, lat_raw = _pair(raw)
    lng, lat = to_float(lng_raw), to_float(lat_raw)
    if lng is None or lat is None:
        raise InvalidCoordinates(f"non-numeric value in ({lng_raw!r}, {lat_raw!r})")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinates(f"longitude {lng} outside [-180, 180]")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinates(f"latitude {lat} outside [-90, 90]")
    return Point(longitude=lng, latitude=lat)


def coordinates_from_payload(payload: Mapping[str, Any]) -> Point:
    """
    Coordinates from a raw address payload: `coordinates`, else a GeoJSON `location`.
    """
    raw = payload.get("coordinates")
    if raw is None:
        raw = payload.get("location")
    return parse_coordinates(raw)


def haversine_m(a: Point, b: Point) -> float:
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlambda = math.radians(b.longitude - a.longitude)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bounding_box(center: Point, radius_m: float) -> tuple[float, float, float, float]:
    """
    (min_lng, min_lat, max_lng, max_lat) that contains every point within radius_m.
    Longitude span is widened to the full range near the poles.
    """
    dlat = math.degrees(radius_m / EARTH_RADIUS_M)
    min_lat = max(-90.0, center.latitude - dlat)
    max_lat = min(90.0, center.latitude + dlat)

    cos_lat = math.cos(math.radians(max(abs(min_lat), abs(max_lat))))
    if cos_lat < 1e-9:
        return -180.0, min_lat, 180.0, max_lat

    dlng = math.degrees(radius_m / (EARTH_RADIUS_M * cos_lat))
    if dlng >= 180.0:
        return -180.0, min_lat, 180.0, max_lat
    return center.longitude - dlng, min_lat, center.longitude + dlng, max_lat
