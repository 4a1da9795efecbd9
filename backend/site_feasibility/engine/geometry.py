"""
Geometry backends for the massing engine.

The footprint generator and placement optimizer only talk to a
``GeometryBackend``: area, dimensions, point-in-polygon,
polygon-within-polygon, distance, bearing, destination and offset, all in
metres.  Two implementations are provided:

  PlanarGeometry    coordinates are already metres (tests, local grids)
  GeodeticGeometry  GeoJSON lon/lat; distances, bearings and areas on
                    the WGS84 ellipsoid (pyproj), shape comparisons in a
                    local equirectangular projection

Shape operations that are unit-free (scaling about a point, translating,
centroid, point-on-surface) are done with shapely directly.
"""

from __future__ import annotations

import math

from pyproj import Geod
from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform


METERS_PER_DEGREE = 111_320.0
WGS84 = Geod(ellps="WGS84")


class GeometryBackend:
    """Metric geometry primitives the engine depends on."""

    name = "abstract"

    # ── metric measures ────────────────────────────────────────────
    def area(self, polygon: BaseGeometry) -> float:
        raise NotImplementedError

    def dimensions(self, polygon: BaseGeometry) -> tuple[float, float]:
        """(east-west, north-south) extent of the bounding box in metres."""
        raise NotImplementedError

    def distance(self, a: Point, b: Point) -> float:
        raise NotImplementedError

    def polygon_distance(self, a: BaseGeometry, b: BaseGeometry) -> float:
        """Shortest gap between two shapes in metres (0 if they touch)."""
        raise NotImplementedError

    def boundary_distance(self, polygon: Polygon, point: Point) -> float:
        """Distance from a point to the nearest edge of a polygon."""
        raise NotImplementedError

    def bearing(self, a: Point, b: Point) -> float:
        """Bearing from a to b, degrees clockwise from north."""
        raise NotImplementedError

    def destination(self, origin: Point, distance: float, bearing: float) -> Point:
        raise NotImplementedError

    def offset(self, origin: Point, east: float, north: float) -> Point:
        """Point displaced by metric east/north offsets."""
        raise NotImplementedError

    def to_local(self, geom: BaseGeometry, origin: Point) -> BaseGeometry:
        """Geometry in metres relative to ``origin``."""
        raise NotImplementedError

    def simplify(self, polygon: Polygon, tolerance: float) -> Polygon:
        raise NotImplementedError

    # ── topology (unit-free) ───────────────────────────────────────
    def contains_point(self, polygon: BaseGeometry, point: Point) -> bool:
        return polygon.contains(point)

    def within(self, inner: BaseGeometry, outer: BaseGeometry) -> bool:
        return inner.within(outer)

    def centroid(self, polygon: BaseGeometry) -> Point:
        return polygon.centroid

    def point_on_surface(self, polygon: BaseGeometry) -> Point:
        return polygon.representative_point()

    def bbox(self, polygon: BaseGeometry) -> tuple[float, float, float, float]:
        return polygon.bounds


class PlanarGeometry(GeometryBackend):
    """Cartesian coordinates in metres; x east, y north."""

    name = "planar"

    def area(self, polygon):
        return polygon.area

    def dimensions(self, polygon):
        minx, miny, maxx, maxy = polygon.bounds
        return maxx - minx, maxy - miny

    def distance(self, a, b):
        return math.hypot(b.x - a.x, b.y - a.y)

    def polygon_distance(self, a, b):
        return a.distance(b)

    def boundary_distance(self, polygon, point):
        return polygon.boundary.distance(point)

    def bearing(self, a, b):
        return math.degrees(math.atan2(b.x - a.x, b.y - a.y))

    def destination(self, origin, distance, bearing):
        theta = math.radians(bearing)
        return Point(origin.x + distance * math.sin(theta), origin.y + distance * math.cos(theta))

    def offset(self, origin, east, north):
        return Point(origin.x + east, origin.y + north)

    def to_local(self, geom, origin):
        return transform(lambda x, y, z=None: (x - origin.x, y - origin.y), geom)

    def simplify(self, polygon, tolerance):
        return polygon.simplify(tolerance, preserve_topology=True)


class GeodeticGeometry(GeometryBackend):
    """WGS84 lon/lat coordinates (GeoJSON order)."""

    name = "geodetic"

    def area(self, polygon):
        # Signed by ring orientation
        area, _ = WGS84.geometry_area_perimeter(polygon)
        return abs(area)

    def dimensions(self, polygon):
        minx, miny, maxx, maxy = polygon.bounds
        mid_lat = (miny + maxy) / 2
        width = (maxx - minx) * METERS_PER_DEGREE * math.cos(math.radians(mid_lat))
        height = (maxy - miny) * METERS_PER_DEGREE
        return width, height

    def distance(self, a, b):
        _, _, dist = WGS84.inv(a.x, a.y, b.x, b.y)
        return dist

    def polygon_distance(self, a, b):
        # Project about the midpoint so the result does not depend on argument order
        ca, cb = a.centroid, b.centroid
        origin = Point((ca.x + cb.x) / 2, (ca.y + cb.y) / 2)
        return self.to_local(a, origin).distance(self.to_local(b, origin))

    def boundary_distance(self, polygon, point):
        return self.to_local(polygon, point).boundary.distance(Point(0, 0))

    def bearing(self, a, b):
        azimuth, _, _ = WGS84.inv(a.x, a.y, b.x, b.y)
        return azimuth

    def destination(self, origin, distance, bearing):
        lon, lat, _ = WGS84.fwd(origin.x, origin.y, bearing, distance)
        return Point(lon, lat)

    def offset(self, origin, east, north):
        lon_factor = METERS_PER_DEGREE * math.cos(math.radians(origin.y))
        return Point(origin.x + east / lon_factor, origin.y + north / METERS_PER_DEGREE)

    def to_local(self, geom, origin):
        lng_to_m = math.cos(math.radians(origin.y)) * METERS_PER_DEGREE
        lat_to_m = METERS_PER_DEGREE

        def project(x, y, z=None):
            return ((x - origin.x) * lng_to_m, (y - origin.y) * lat_to_m)

        return transform(project, geom)

    def simplify(self, polygon, tolerance):
        return polygon.simplify(tolerance / METERS_PER_DEGREE, preserve_topology=True)
