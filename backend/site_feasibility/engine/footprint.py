"""
Building footprint generation.

Given a developable-area polygon and a target GFA:

  1. Find a visual center: start from a point guaranteed inside the
     polygon and take one pass of 8-direction steps, keeping any step that
     moves further from the boundary.  Falls back to the centroid.
  2. Scale the polygon about that center by sqrt(site efficiency) to get
     the single-building footprint candidate.
  3. Decide whether one building can carry the GFA.  Split when the
     candidate is too elongated (aspect > 3), too tall (> 30 floors or
     over the height cap) or too wide (> max footprint width).
  4. When splitting, pick a building count and per-building scale.

With a road boundary, the width test becomes a depth test: does any part
of the candidate sit further than the max width from the road?
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from shapely import affinity
from shapely.errors import GEOSException
from shapely.geometry import Point, Polygon
from shapely.geometry.base import BaseGeometry

from site_feasibility.engine.feasibility import whole_storeys
from site_feasibility.engine.geometry import GeometryBackend
from site_feasibility.models.schemas import BuildingConstraints

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
# CONSTANTS
# ──────────────────────────────────────────────────────────────────

VISUAL_CENTER_STEP_M = 10.0
_DIRECTIONS = [
    (1, 0), (-1, 0), (0, 1), (0, -1),
    (1, 1), (-1, 1), (1, -1), (-1, -1),
]

MAX_ASPECT_RATIO = 3
MAX_FLOORS_SINGLE = 30
MIN_SPLIT_BUILDINGS = 2
MAX_BUILDINGS = 8
WIDTH_SCALE_TIGHT = 0.6    # width forced the split and the count covers it
WIDTH_SCALE_LOOSE = 0.8    # width wanted more buildings than the site allows
ROAD_DEPTH_SAMPLE_M = 2.0


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass
class FootprintCandidate:
    """The site scaled down to the site-efficiency envelope."""
    polygon: Polygon
    center: Point
    area: float
    width: float
    depth: float

    @property
    def max_dimension(self) -> float:
        return max(self.width, self.depth)

    @property
    def aspect_ratio(self) -> float:
        shorter = min(self.width, self.depth)
        if shorter <= 0:
            return math.inf
        return self.max_dimension / shorter

    @property
    def diameter(self) -> float:
        """Side of the square with the candidate's area."""
        return math.sqrt(self.area)


@dataclass
class MassingDecision:
    candidate: FootprintCandidate
    target_gfa: float
    height_cap: float
    required_floors: int
    max_allowed_floors: int
    height_restricted: bool
    width_restricted: bool
    aspect_restricted: bool
    exceeds_single_floors: bool
    building_count: int
    width_count: int
    scale_factor: float  # linear scale applied to the candidate per building

    @property
    def is_single_building(self) -> bool:
        return self.building_count == 1

    @property
    def gfa_per_building(self) -> float:
        return self.target_gfa / self.building_count


# ──────────────────────────────────────────────────────────────────
# VISUAL CENTER
# ──────────────────────────────────────────────────────────────────

def visual_center(
    polygon: Polygon,
    backend: GeometryBackend,
    step: float = VISUAL_CENTER_STEP_M,
) -> Point:
    """A point well inside the polygon, not merely its centroid."""
    if polygon.is_empty or backend.area(polygon) <= 0:
        logger.warning("Degenerate polygon, using centroid as visual center")
        return backend.centroid(polygon)

    try:
        best = backend.point_on_surface(polygon)
        best_distance = backend.boundary_distance(polygon, best)
        for dx, dy in _DIRECTIONS:
            step_point = backend.offset(best, dx * step, dy * step)
            if not backend.contains_point(polygon, step_point):
                continue
            d = backend.boundary_distance(polygon, step_point)
            if d > best_distance:
                best, best_distance = step_point, d
        return best
    except (GEOSException, ValueError, ZeroDivisionError) as e:
        logger.warning("Visual center search failed (%s), falling back to centroid", e)
        return backend.centroid(polygon)


# ──────────────────────────────────────────────────────────────────
# FOOTPRINT CANDIDATE
# ──────────────────────────────────────────────────────────────────

def scale_about(polygon: Polygon, center: Point, factor: float) -> Polygon:
    return affinity.scale(polygon, xfact=factor, yfact=factor, origin=center)


def build_footprint_candidate(
    site: Polygon,
    site_efficiency_ratio: float,
    backend: GeometryBackend,
    center: Optional[Point] = None,
) -> Optional[FootprintCandidate]:
    """Scale the site about its visual center to the efficiency envelope.

    Area scales with the square of the linear factor, hence the sqrt.
    Returns None for a zero-area site.
    """
    if site.is_empty or backend.area(site) <= 0:
        logger.warning("Site polygon has no area, no footprint generated")
        return None

    center = center or visual_center(site, backend)
    polygon = scale_about(site, center, math.sqrt(site_efficiency_ratio))
    area = backend.area(polygon)
    if area <= 0:
        return None

    width, depth = backend.dimensions(polygon)
    return FootprintCandidate(polygon=polygon, center=center, area=area, width=width, depth=depth)


# ──────────────────────────────────────────────────────────────────
# SINGLE VS MULTIPLE BUILDINGS
# ──────────────────────────────────────────────────────────────────

def height_cap(constraints: BuildingConstraints, hob: Optional[float] = None) -> float:
    """The site HOB when it is tighter than the absolute maximum."""
    if hob and hob <= constraints.max_building_height:
        return hob
    return constraints.max_building_height


def floors_for(gfa: float, footprint_area: float, max_allowed_floors: int) -> tuple[int, bool]:
    """Floors needed to carry ``gfa``, capped; second value is True when capped."""
    if footprint_area <= 0 or gfa <= 0:
        return 0, False
    required = math.ceil(gfa / footprint_area)
    if required > max_allowed_floors:
        return max_allowed_floors, True
    return required, False


def floors_with_setback(
    gfa: float,
    footprint_area: float,
    max_allowed_floors: int,
    threshold: Optional[int],
    upper_scale: float,
) -> tuple[int, bool]:
    """Like ``floors_for``, but floors above ``threshold`` carry only
    ``upper_scale``² of the footprint area."""
    floors, capped = floors_for(gfa, footprint_area, max_allowed_floors)
    if not threshold or floors <= threshold:
        return floors, capped

    upper_area = footprint_area * upper_scale ** 2
    remaining = gfa - threshold * footprint_area
    required = threshold + math.ceil(remaining / upper_area)
    if required > max_allowed_floors:
        return max_allowed_floors, True
    return required, False


def exceeds_depth_from_road(
    polygon: Polygon,
    road: BaseGeometry,
    max_depth: float,
    backend: GeometryBackend,
    spacing: float = ROAD_DEPTH_SAMPLE_M,
) -> bool:
    """True when any part of ``polygon`` lies more than ``max_depth`` from the road.

    Samples a grid every ``spacing`` metres inside the polygon; falls back
    to the vertices when the polygon is too small to hold a sample.
    """
    origin = polygon.centroid
    local = backend.to_local(polygon, origin)
    local_road = backend.to_local(road, origin)

    minx, miny, maxx, maxy = local.bounds
    samples = []
    x = minx
    while x <= maxx:
        y = miny
        while y <= maxy:
            p = Point(x, y)
            if local.contains(p):
                samples.append(p)
            y += spacing
        x += spacing
    if not samples:
        samples = [Point(c) for c in local.exterior.coords]

    return any(local_road.distance(p) > max_depth for p in samples)


def decide_massing(
    candidate: FootprintCandidate,
    target_gfa: float,
    constraints: BuildingConstraints,
    hob: Optional[float] = None,
    depth_exceeded: Optional[bool] = None,
) -> MassingDecision:
    """Single vs. multiple buildings for one candidate.

    ``depth_exceeded`` is the road-depth test result when a road boundary
    is known; it then replaces the max-dimension width test.
    """
    cap = height_cap(constraints, hob)
    max_allowed = whole_storeys(cap, constraints.floor_to_floor_height)
    required = math.ceil(target_gfa / candidate.area) if target_gfa > 0 else 0

    aspect = candidate.aspect_ratio
    max_dim = candidate.max_dimension
    max_width = constraints.max_building_width

    aspect_restricted = aspect > MAX_ASPECT_RATIO
    exceeds_single = required > MAX_FLOORS_SINGLE
    height_restricted = required > max_allowed
    if depth_exceeded is None:
        width_restricted = max_dim > max_width
    else:
        width_restricted = depth_exceeded

    width_count = math.ceil(max_dim / max_width)
    split = aspect_restricted or exceeds_single or height_restricted or width_restricted

    count = 1
    scale = 1.0
    if split:
        counts = [math.ceil(aspect / MAX_ASPECT_RATIO), width_count]
        if height_restricted and max_allowed > 0:
            counts.append(math.ceil(required / max_allowed))
        count = max(max(counts), MIN_SPLIT_BUILDINGS)

        site_limit = math.floor(
            candidate.diameter / (max_width + constraints.min_building_separation)
        )
        upper = min(MAX_BUILDINGS, site_limit)
        if count > upper:
            logger.warning(
                "Site fits at most %d buildings (wanted %d)", max(upper, 1), count,
            )
        count = max(min(count, upper), 1)

        if count > 1:
            scale = 1 / math.sqrt(count)
            if width_restricted:
                scale *= WIDTH_SCALE_LOOSE if width_count > count else WIDTH_SCALE_TIGHT

    logger.debug(
        "Massing decision: required=%d floors, cap=%d, aspect=%.2f, max_dim=%.1f m -> %d building(s)",
        required, max_allowed, aspect, max_dim, count,
    )
    return MassingDecision(
        candidate=candidate,
        target_gfa=target_gfa,
        height_cap=cap,
        required_floors=required,
        max_allowed_floors=max_allowed,
        height_restricted=height_restricted,
        width_restricted=width_restricted,
        aspect_restricted=aspect_restricted,
        exceeds_single_floors=exceeds_single,
        building_count=count,
        width_count=width_count,
        scale_factor=scale,
    )


def building_footprint(decision: MassingDecision) -> Polygon:
    """The candidate scaled down for one of ``building_count`` buildings."""
    if decision.scale_factor == 1.0:
        return decision.candidate.polygon
    return scale_about(decision.candidate.polygon, decision.candidate.center, decision.scale_factor)
