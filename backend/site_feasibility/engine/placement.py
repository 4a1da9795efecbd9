"""
Multi-building placement within a developable area.

  1. Arrange N footprints on a circle around the visual center.
  2. Push apart any pair closer than the minimum separation (<= 10 passes);
     drop the last placement while pairs are still too close.
  3. Pull placements that stick out of the site back toward the center
     (binary search along the bearing, then a safety buffer).
  4. Per footprint: compress the long axis to the width cap, then make
     sure it sits inside the site (one 85% shrink, else skip).
  5. Final check: any footprint that ended up too close to an earlier one
     is dropped rather than returned overlapping.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from shapely import affinity
from shapely.geometry import Point, Polygon

from site_feasibility.engine.geometry import GeometryBackend

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
# CONSTANTS
# ──────────────────────────────────────────────────────────────────

MAX_SEPARATION_ITERATIONS = 10
SEPARATION_BUFFER_M = 0.5
MAX_CONTAINMENT_ITERATIONS = 10
CONTAINMENT_TOLERANCE_M = 1.0
CONTAINMENT_START_FRACTION = 0.8
CONTAINMENT_BUFFER_M = 2.0
CONTAINMENT_SHRINK = 0.85
SEPARATION_TOLERANCE_M = 1e-6


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass
class Placement:
    index: int
    angle: float
    position: Point


@dataclass
class PlacedFootprint:
    index: int
    position: Point
    polygon: Polygon
    area: float
    raw_max_dimension: float
    width_compressed: bool = False
    shrunk_to_fit: bool = False


@dataclass
class PlacementOutcome:
    footprints: list[PlacedFootprint] = field(default_factory=list)
    planned_count: int = 0
    warnings: list[str] = field(default_factory=list)


# ──────────────────────────────────────────────────────────────────
# CIRCULAR ARRANGEMENT
# ──────────────────────────────────────────────────────────────────

def placement_radius(site_diameter: float, min_separation: float, count: int) -> float:
    """Radius that spreads ``count`` points at least ``min_separation`` apart."""
    if count < 2:
        return 0.0
    return max(site_diameter / 4, min_separation / (2 * math.sin(math.pi / count)))


def initial_placements(
    center: Point,
    count: int,
    radius: float,
    backend: GeometryBackend,
) -> list[Placement]:
    placements = []
    for i in range(count):
        angle = 2 * math.pi * i / count
        position = backend.offset(center, radius * math.cos(angle), radius * math.sin(angle))
        placements.append(Placement(index=i, angle=angle, position=position))
    return placements


def footprint_at(footprint: Polygon, center: Point, position: Point) -> Polygon:
    """Move a footprint scaled about ``center`` so that center lands on ``position``."""
    return affinity.translate(footprint, xoff=position.x - center.x, yoff=position.y - center.y)


# ──────────────────────────────────────────────────────────────────
# SEPARATION
# ──────────────────────────────────────────────────────────────────

def _gap(
    a: Placement, b: Placement, footprint: Polygon, center: Point, backend: GeometryBackend,
) -> float:
    return backend.polygon_distance(
        footprint_at(footprint, center, a.position),
        footprint_at(footprint, center, b.position),
    )


def _too_close_pairs(placements, footprint, center, min_separation, backend):
    pairs = []
    for i in range(len(placements)):
        for j in range(i + 1, len(placements)):
            gap = _gap(placements[i], placements[j], footprint, center, backend)
            if gap < min_separation - SEPARATION_TOLERANCE_M:
                pairs.append((i, j, gap))
    return pairs


def enforce_separation(
    placements: list[Placement],
    footprint: Polygon,
    center: Point,
    min_separation: float,
    backend: GeometryBackend,
    max_iterations: int = MAX_SEPARATION_ITERATIONS,
) -> bool:
    """Push too-close footprints apart in place.  True when all pairs are clear."""
    for _ in range(max_iterations):
        moved = False
        for i in range(len(placements)):
            for j in range(i + 1, len(placements)):
                a, b = placements[i], placements[j]
                gap = _gap(a, b, footprint, center, backend)
                if gap >= min_separation - SEPARATION_TOLERANCE_M:
                    continue
                bearing = backend.bearing(a.position, b.position)
                step = (min_separation - gap) / 2 + SEPARATION_BUFFER_M
                a.position = backend.destination(a.position, step, bearing - 180)
                b.position = backend.destination(b.position, step, bearing)
                moved = True
        if not moved:
            return True
    return not _too_close_pairs(placements, footprint, center, min_separation, backend)


def drop_crowded(
    placements: list[Placement],
    footprint: Polygon,
    center: Point,
    min_separation: float,
    backend: GeometryBackend,
) -> list[Placement]:
    """Remove trailing placements until no pair is too close."""
    kept = list(placements)
    while len(kept) > 1 and _too_close_pairs(kept, footprint, center, min_separation, backend):
        dropped = kept.pop()
        logger.warning(
            "Buildings still too close after separation, reducing count to %d (dropped #%d)",
            len(kept), dropped.index + 1,
        )
    return kept


# ──────────────────────────────────────────────────────────────────
# CONTAINMENT
# ──────────────────────────────────────────────────────────────────

def pull_inside(
    position: Point,
    center: Point,
    site: Polygon,
    backend: GeometryBackend,
    fits=None,
) -> Point:
    """Largest distance from ``center`` toward ``position`` that still fits.

    ``fits(point)`` defaults to point-in-site.  The result is pulled a
    further safety buffer toward the center.
    """
    if fits is None:
        def fits(p):
            return backend.contains_point(site, p)

    if fits(position):
        return position

    bearing = backend.bearing(center, position)
    lo, hi = 0.0, backend.distance(center, position)
    current = hi * CONTAINMENT_START_FRACTION
    for _ in range(MAX_CONTAINMENT_ITERATIONS):
        if fits(backend.destination(center, current, bearing)):
            lo = current
            current = (current + hi) / 2
        else:
            hi = current
            current = (lo + current) / 2
        if hi - lo < CONTAINMENT_TOLERANCE_M:
            break

    return backend.destination(center, max(lo - CONTAINMENT_BUFFER_M, 0.0), bearing)


def compress_to_width(
    polygon: Polygon,
    max_width: float,
    backend: GeometryBackend,
) -> tuple[Polygon, bool]:
    """Squash the longer bounding-box axis down to ``max_width``.

    The shorter axis is never touched.
    """
    width, depth = backend.dimensions(polygon)
    longer = max(width, depth)
    if longer <= max_width or longer <= 0:
        return polygon, False

    factor = max_width / longer
    origin = polygon.centroid
    if width >= depth:
        return affinity.scale(polygon, xfact=factor, yfact=1.0, origin=origin), True
    return affinity.scale(polygon, xfact=1.0, yfact=factor, origin=origin), True


def ensure_contained(
    polygon: Polygon,
    site: Polygon,
    backend: GeometryBackend,
    shrink: float = CONTAINMENT_SHRINK,
) -> tuple[Polygon, bool]:
    """Shrink a footprint about its centroid once if it pokes out of the site.

    An already-contained footprint comes back unchanged.
    """
    if backend.within(polygon, site):
        return polygon, False
    return affinity.scale(polygon, xfact=shrink, yfact=shrink, origin=polygon.centroid), True


# ──────────────────────────────────────────────────────────────────
# MAIN ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def optimize_placement(
    footprint: Polygon,
    center: Point,
    site: Polygon,
    count: int,
    site_diameter: float,
    min_separation: float,
    max_width: float,
    backend: GeometryBackend,
) -> PlacementOutcome:
    """Place ``count`` copies of ``footprint`` (scaled about ``center``) on the site."""
    outcome = PlacementOutcome(planned_count=count)
    if count < 1:
        return outcome

    if count == 1:
        placements = [Placement(index=0, angle=0.0, position=center)]
    else:
        radius = placement_radius(site_diameter, min_separation, count)
        placements = initial_placements(center, count, radius, backend)

        if not enforce_separation(placements, footprint, center, min_separation, backend):
            before = len(placements)
            placements = drop_crowded(placements, footprint, center, min_separation, backend)
            outcome.warnings.append(
                f"Reduced building count from {before} to {len(placements)} "
                f"to keep {min_separation:g} m separation"
            )

    for p in placements:
        def footprint_fits(point, _fp=footprint):
            return backend.contains_point(site, point) and backend.within(
                footprint_at(_fp, center, point), site,
            )

        if not footprint_fits(p.position):
            p.position = pull_inside(p.position, center, site, backend, fits=footprint_fits)

    accepted: list[PlacedFootprint] = []
    for p in placements:
        polygon = footprint_at(footprint, center, p.position)
        raw_max_dim = max(backend.dimensions(polygon))

        polygon, compressed = compress_to_width(polygon, max_width, backend)
        polygon, shrunk = ensure_contained(polygon, site, backend)
        if shrunk and not backend.within(polygon, site):
            logger.warning("Building %d does not fit inside the site, skipped", p.index + 1)
            outcome.warnings.append(f"Building {p.index + 1} skipped: does not fit inside the site")
            continue

        too_close = any(
            backend.polygon_distance(polygon, other.polygon) < min_separation - SEPARATION_TOLERANCE_M
            for other in accepted
        )
        if too_close:
            logger.warning("Building %d too close to a neighbour after correction, skipped", p.index + 1)
            outcome.warnings.append(
                f"Building {p.index + 1} skipped: closer than {min_separation:g} m to a neighbour"
            )
            continue

        accepted.append(PlacedFootprint(
            index=p.index,
            position=p.position,
            polygon=polygon,
            area=backend.area(polygon),
            raw_max_dimension=raw_max_dim,
            width_compressed=compressed,
            shrunk_to_fit=shrunk,
        ))

    outcome.footprints = accepted
    return outcome
