"""
GeoJSON handling for farm locations

Farms carry two location representations: the approximate point a farmer
types in at registration and the polygon an administrator captures in QGIS
during verification. Both travel and rest as serialized GeoJSON text, so
every read and write goes through the helpers below.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from src.api.core.errors import ValidationError

GeoJSON = Dict[str, Any]

CENTRED_TYPES = {"Point", "Polygon", "MultiPolygon"}


def parse_geojson(value: Union[str, GeoJSON]) -> GeoJSON:
    """
    Decode a GeoJSON payload

    Args:
        value: JSON text or an already decoded object

    Returns:
        The decoded object

    Raises:
        ValidationError: If the text is not JSON or does not hold an object
    """
    if isinstance(value, dict):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("GeoJSON payload is empty")
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Malformed JSON: {e.msg}")
    if not isinstance(decoded, dict):
        raise ValidationError("GeoJSON payload must be an object")
    return decoded


def normalize_geometry(payload: Union[str, GeoJSON]) -> GeoJSON:
    """
    Reduce a GeoJSON document to a bare geometry object

    FeatureCollection yields its first feature's geometry, Feature yields its
    geometry, and anything else is taken as a geometry already. The result
    must carry both ``type`` and ``coordinates``.
    """
    geometry = parse_geojson(payload)

    if geometry.get("type") == "FeatureCollection":
        features = geometry.get("features")
        if not isinstance(features, list) or not features:
            raise ValidationError("FeatureCollection must have at least one feature")
        first = features[0]
        if not isinstance(first, dict) or not first.get("geometry"):
            raise ValidationError("Feature must have geometry")
        geometry = first

    if geometry.get("type") == "Feature":
        geometry = geometry.get("geometry")
        if not isinstance(geometry, dict):
            raise ValidationError("Feature must have geometry")

    if not geometry.get("type") or geometry.get("coordinates") is None:
        raise ValidationError("Geometry must have type and coordinates properties")

    # Shapes that get centred on a map must hold real positions
    if geometry["type"] in CENTRED_TYPES:
        outer_ring(geometry)

    return geometry


def parse_point(value: Union[str, GeoJSON]) -> GeoJSON:
    """Validate a farmer-supplied location: a GeoJSON Point of [lng, lat]"""
    point = normalize_geometry(value)
    if point["type"] != "Point":
        raise ValidationError(f"Input coordinates must be a GeoJSON Point, got {point['type']}")
    return point


def _is_position(position: Any) -> bool:
    return (
        isinstance(position, list)
        and len(position) >= 2
        and all(isinstance(c, (int, float)) and not isinstance(c, bool) for c in position[:2])
    )


def outer_ring(geometry: GeoJSON) -> List[List[float]]:
    """
    Positions used for centring and bounds

    Points give a single position, Polygons their exterior ring and
    MultiPolygons the exterior ring of their first polygon only.

    Raises:
        ValidationError: If the type cannot be centred or the ring is not a
            non-empty list of [longitude, latitude] positions
    """
    kind = geometry.get("type")
    coords = geometry.get("coordinates")
    if kind not in CENTRED_TYPES:
        raise ValidationError(f"Unsupported geometry type for centring: {kind}")
    try:
        if kind == "Point":
            ring = [coords]
        elif kind == "Polygon":
            ring = coords[0]
        else:
            ring = coords[0][0]
    except (IndexError, KeyError, TypeError):
        raise ValidationError(f"{kind} has no coordinates")
    if not isinstance(ring, list) or not ring:
        raise ValidationError(f"{kind} ring is empty")
    if not all(_is_position(position) for position in ring):
        raise ValidationError(f"{kind} coordinates must be [longitude, latitude] positions")
    return ring


def bbox_centroid(geometry: GeoJSON) -> Tuple[float, float]:
    """
    Bounding-box midpoint of the outer ring as ``(lat, lng)``

    Good enough to centre a map on a farm; not an area-weighted centroid.
    """
    ring = outer_ring(geometry)
    try:
        lngs = [position[0] for position in ring]
        lats = [position[1] for position in ring]
        return (min(lats) + max(lats)) / 2, (min(lngs) + max(lngs)) / 2
    except (IndexError, TypeError):
        raise ValidationError(f"{geometry.get('type')} coordinates cannot be centred")


@dataclass(frozen=True)
class UnverifiedGeometry:
    """Farmer-supplied approximate point"""
    point: GeoJSON
    kind: str = "unverified"

    @property
    def geometry(self) -> GeoJSON:
        return self.point


@dataclass(frozen=True)
class VerifiedGeometry:
    """Admin-captured boundary (Polygon, MultiPolygon or a wrapper of one)"""
    shape: GeoJSON
    kind: str = "verified"

    @property
    def geometry(self) -> GeoJSON:
        return normalize_geometry(self.shape)


FarmGeometry = Union[UnverifiedGeometry, VerifiedGeometry]


def display_geometry(status: str, verified_geometry: Optional[str],
                     input_coordinates: Optional[str]) -> Optional[FarmGeometry]:
    """
    Pick the authoritative location of a farm

    The verified boundary wins when the farm is VERIFIED and one is stored;
    otherwise the farmer's input point is used. Stored text that no longer
    parses is skipped rather than failing the read.
    """
    if status == "VERIFIED" and verified_geometry:
        try:
            shape = parse_geojson(verified_geometry)
            normalize_geometry(shape)
            return VerifiedGeometry(shape)
        except ValidationError:
            pass
    if input_coordinates:
        try:
            return UnverifiedGeometry(parse_point(input_coordinates))
        except ValidationError:
            return None
    return None


def describe(geometry: Optional[FarmGeometry]) -> Optional[Dict[str, Any]]:
    """Serializable summary used in farm responses"""
    if geometry is None:
        return None
    bare = geometry.geometry
    try:
        lat, lng = bbox_centroid(bare)
        centroid = {"lat": lat, "lng": lng}
    except ValidationError:
        centroid = None
    return {"kind": geometry.kind, "geometry": bare, "centroid": centroid}


def dumps(geometry: GeoJSON) -> str:
    return json.dumps(geometry, separators=(",", ":"))
