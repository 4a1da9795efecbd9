"""
Site geometry parsing.

Accepts the GeoJSON shapes a GIS host hands over for a developable area:
a Polygon, a MultiPolygon, a Feature wrapping either, or a
FeatureCollection of same-purpose features (multi-lot sites).  Each part
becomes one shapely Polygon; areas of all parts add up to the site area.
"""

from __future__ import annotations

import logging
from typing import Optional

from shapely.geometry import LineString, MultiLineString, MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry

from site_feasibility.engine.geometry import GeodeticGeometry, GeometryBackend
from site_feasibility.models.schemas import SiteMetrics

logger = logging.getLogger(__name__)

SIMPLIFY_TOLERANCE_M = 0.05


def parse_site(geojson: dict) -> list[Polygon]:
    """Split a GeoJSON site into polygon parts.

    Raises ValueError for unsupported or empty geometry.
    """
    if not geojson or "type" not in geojson:
        raise ValueError("Site geometry must be a GeoJSON object with a 'type'.")

    kind = geojson["type"]
    if kind == "FeatureCollection":
        parts: list[Polygon] = []
        for feature in geojson.get("features") or []:
            parts.extend(parse_site(feature))
    elif kind == "Feature":
        if not geojson.get("geometry"):
            raise ValueError("Site feature has no geometry.")
        parts = parse_site(geojson["geometry"])
    elif kind in ("Polygon", "MultiPolygon"):
        parts = _polygon_parts(shape(geojson))
    else:
        raise ValueError(f"Unsupported site geometry type: {kind}")

    if not parts:
        raise ValueError("Site geometry contains no polygons.")
    return parts


def _polygon_parts(geom: BaseGeometry) -> list[Polygon]:
    if not geom.is_valid:
        logger.warning("Invalid site polygon, repairing with buffer(0)")
        geom = geom.buffer(0)
    if isinstance(geom, MultiPolygon):
        return [p for p in geom.geoms if not p.is_empty and p.area > 0]
    if isinstance(geom, Polygon) and not geom.is_empty and geom.area > 0:
        return [geom]
    return []


def prepare_parts(
    parts: list[Polygon],
    backend: GeometryBackend,
    tolerance: float = SIMPLIFY_TOLERANCE_M,
) -> list[Polygon]:
    """Drop near-duplicate vertices; keep the original if simplifying breaks it."""
    prepared = []
    for part in parts:
        simplified = backend.simplify(part, tolerance)
        if simplified.is_empty or not simplified.is_valid or not isinstance(simplified, Polygon):
            simplified = part
        prepared.append(simplified)
    return prepared


def site_area(parts: list[Polygon], backend: Optional[GeometryBackend] = None) -> float:
    backend = backend or GeodeticGeometry()
    return sum(backend.area(p) for p in parts)


def site_metrics_from_geojson(
    geojson: dict,
    fsr: Optional[float] = None,
    hob: Optional[float] = None,
    site_area_override: Optional[float] = None,
    property_value: Optional[float] = None,
    backend: Optional[GeometryBackend] = None,
) -> SiteMetrics:
    """SiteMetrics whose developable area is the summed area of the geometry."""
    backend = backend or GeodeticGeometry()
    area = site_area(parse_site(geojson), backend)
    return SiteMetrics(
        developable_area=area,
        site_area=site_area_override,
        fsr=fsr,
        hob=hob,
        property_value=property_value,
    )


def parse_road_boundary(geojson: Optional[dict]) -> Optional[BaseGeometry]:
    """Road frontage line(s) from GeoJSON, or None when not supplied.

    Accepts a LineString or MultiLineString, bare or wrapped in a Feature.
    Raises ValueError for any other geometry.
    """
    if not geojson:
        return None
    if geojson.get("type") == "Feature":
        geojson = geojson.get("geometry")
        if not geojson:
            raise ValueError("Road boundary feature has no geometry.")

    kind = geojson.get("type")
    if kind not in ("LineString", "MultiLineString"):
        raise ValueError(f"Unsupported road boundary geometry type: {kind}")

    road = shape(geojson)
    if road.is_empty or not isinstance(road, (LineString, MultiLineString)):
        raise ValueError("Road boundary has no line geometry.")
    return road
