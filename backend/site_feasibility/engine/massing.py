"""
Building massing pipeline.

Site geometry + target GFA -> list of Building records:

  1. Parse the site into polygon parts; split the target GFA by part area.
  2. Per part: footprint candidate, single vs. multiple decision, placement.
  3. Per placed footprint: floors = min(ceil(GFA share / area), cap),
     height = floors x floor-to-floor.  With a setback threshold the
     floors above it move onto a smaller upper section.
  4. Each building reports the floor area it actually carries; any part
     of the target the buildings cannot carry is the GFA shortfall.

Also converts buildings into simple 3D meshes for viewers.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from shapely import affinity
from shapely.geometry import MultiPolygon, Point, Polygon, shape
from shapely.geometry.base import BaseGeometry

from site_feasibility.engine.footprint import (
    build_footprint_candidate,
    building_footprint,
    decide_massing,
    exceeds_depth_from_road,
    floors_for,
    floors_with_setback,
    height_cap,
)
from site_feasibility.engine.feasibility import whole_storeys
from site_feasibility.engine.geometry import GeodeticGeometry, GeometryBackend
from site_feasibility.engine.placement import PlacedFootprint, optimize_placement
from site_feasibility.engine.site import parse_road_boundary, parse_site, prepare_parts
from site_feasibility.models.schemas import (
    Building,
    BuildingConstraints,
    BuildingSection,
    MassingResult,
)

logger = logging.getLogger(__name__)

SiteInput = Union[dict, Polygon, MultiPolygon, list]

GFA_TOLERANCE_M2 = 1.0


# ──────────────────────────────────────────────────────────────────
# MAIN ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def generate_massing(
    site: SiteInput,
    target_gfa: float,
    constraints: Optional[BuildingConstraints] = None,
    hob: Optional[float] = None,
    backend: Optional[GeometryBackend] = None,
    road_boundary: Optional[Union[dict, BaseGeometry]] = None,
) -> MassingResult:
    """Generate building footprints and heights for a site.

    ``site`` is GeoJSON (Polygon, MultiPolygon, Feature, FeatureCollection),
    a shapely Polygon, or a list of Polygons.  Coordinates are lon/lat
    unless a different ``backend`` is supplied.  ``road_boundary`` (GeoJSON
    or shapely lines) switches the width test to depth from the road.

    Raises ValueError for unusable site or road geometry.  Geometry that
    cannot host a building degrades to fewer (or no) buildings with warnings.
    """
    constraints = constraints or BuildingConstraints()
    backend = backend or GeodeticGeometry()

    parts = _site_parts(site)
    simplified = prepare_parts(parts, backend)
    road = parse_road_boundary(road_boundary) if isinstance(road_boundary, dict) else road_boundary
    cap = height_cap(constraints, hob)
    max_allowed = whole_storeys(cap, constraints.floor_to_floor_height)
    warnings: list[str] = []

    def empty() -> MassingResult:
        return MassingResult(
            target_gfa=max(target_gfa, 0.0),
            is_single_building=False,
            building_count=0,
            height_cap=cap,
            max_allowed_floors=max_allowed,
            gfa_shortfall=max(target_gfa, 0.0),
            warnings=warnings,
        )

    if target_gfa <= 0:
        logger.warning("Target GFA is %s, no buildings generated", target_gfa)
        warnings.append("Target GFA is zero; no buildings generated")
        return empty()
    if max_allowed == 0:
        logger.warning(
            "Height cap %.1f m is below one storey (%.1f m), no buildings generated",
            cap, constraints.floor_to_floor_height,
        )
        warnings.append(f"Height cap {cap:g} m allows no storeys; no buildings generated")
        return empty()

    areas = [backend.area(p) for p in parts]
    total_area = sum(areas)
    if total_area <= 0:
        logger.warning("Site has no area, no buildings generated")
        warnings.append("Site has no area; no buildings generated")
        return empty()

    buildings: list[Building] = []
    for part, outline, area in zip(parts, simplified, areas):
        part_target = target_gfa * area / total_area
        part_buildings, part_warnings = _mass_part(
            part, outline, part_target, constraints, hob, backend,
            first_number=len(buildings) + 1,
            road=road,
        )
        buildings.extend(part_buildings)
        warnings.extend(part_warnings)

    total_gfa = sum(b.gfa for b in buildings)
    shortfall = target_gfa - total_gfa
    if shortfall > GFA_TOLERANCE_M2:
        logger.warning("Buildings carry %.0f of %.0f m² target GFA", total_gfa, target_gfa)
        warnings.append(
            f"Buildings carry {total_gfa:,.0f} m² of the {target_gfa:,.0f} m² target "
            f"({shortfall:,.0f} m² short)"
        )
    else:
        shortfall = 0.0

    return MassingResult(
        target_gfa=target_gfa,
        is_single_building=len(buildings) == 1,
        building_count=len(buildings),
        buildings=buildings,
        height_cap=cap,
        max_allowed_floors=max_allowed,
        max_building_height=max((b.height for b in buildings), default=0.0),
        total_gfa=total_gfa,
        total_floor_area=sum(b.floor_area for b in buildings),
        total_footprint_area=sum(b.footprint_area for b in buildings),
        height_restricted=any(b.height_restricted for b in buildings),
        width_restricted=any(b.width_restricted for b in buildings),
        gfa_shortfall=shortfall,
        warnings=warnings,
    )


def _site_parts(site: SiteInput) -> list[Polygon]:
    if isinstance(site, Polygon):
        return [site]
    if isinstance(site, MultiPolygon):
        return list(site.geoms)
    if isinstance(site, list):
        return [p for p in site if isinstance(p, Polygon) and not p.is_empty]
    return parse_site(site)


# ──────────────────────────────────────────────────────────────────
# PER-PART MASSING
# ──────────────────────────────────────────────────────────────────

def _mass_part(
    part: Polygon,
    outline: Polygon,
    target_gfa: float,
    constraints: BuildingConstraints,
    hob: Optional[float],
    backend: GeometryBackend,
    first_number: int = 1,
    road: Optional[BaseGeometry] = None,
) -> tuple[list[Building], list[str]]:
    """Mass one polygon part.

    Footprints are shaped from the simplified ``outline`` but must sit
    inside the unsimplified ``part``.
    """
    warnings: list[str] = []
    candidate = build_footprint_candidate(outline, constraints.site_efficiency_ratio, backend)
    if candidate is None:
        warnings.append("Skipped a site part with no usable area")
        return [], warnings

    depth_exceeded = None
    if road is not None:
        depth_exceeded = exceeds_depth_from_road(
            candidate.polygon, road, constraints.max_building_width, backend,
        )

    decision = decide_massing(candidate, target_gfa, constraints, hob, depth_exceeded=depth_exceeded)
    footprint = building_footprint(decision)

    outcome = optimize_placement(
        footprint=footprint,
        center=candidate.center,
        site=part,
        count=decision.building_count,
        site_diameter=candidate.diameter,
        min_separation=constraints.min_building_separation,
        max_width=constraints.max_building_width,
        backend=backend,
    )
    warnings.extend(outcome.warnings)

    placed = outcome.footprints
    if not placed:
        logger.warning("No building fits on site part (target %.0f m²)", target_gfa)
        warnings.append("No building footprint fits inside the site")
        return [], warnings

    share = target_gfa / len(placed)
    buildings = [
        _make_building(
            fp, first_number + i, share, decision.max_allowed_floors,
            decision.height_restricted, constraints, backend,
        )
        for i, fp in enumerate(placed)
    ]
    return buildings, warnings


def _make_building(
    fp: PlacedFootprint,
    number: int,
    gfa_share: float,
    max_allowed_floors: int,
    split_for_height: bool,
    constraints: BuildingConstraints,
    backend: GeometryBackend,
) -> Building:
    threshold = constraints.setback_floor_threshold
    ftf = constraints.floor_to_floor_height
    if threshold:
        floors, capped = floors_with_setback(
            gfa_share, fp.area, max_allowed_floors, threshold, constraints.setback_scale,
        )
    else:
        floors, capped = floors_for(gfa_share, fp.area, max_allowed_floors)

    if threshold and floors > threshold:
        sections = setback_sections(fp.polygon, floors, threshold, constraints, backend)
    else:
        sections = [_section(fp.polygon, fp.area, floors, 0.0, ftf)]
    floor_area = sum(s.floor_area for s in sections)

    return Building(
        building_id=f"B{number}",
        name=f"Building {number}",
        footprint=polygon_to_geojson(fp.polygon),
        footprint_area=fp.area,
        floors=floors,
        height=floors * ftf,
        gfa=min(gfa_share, floor_area),
        floor_area=floor_area,
        sections=sections,
        base_height=sections[0].height if len(sections) > 1 else None,
        height_restricted=capped or split_for_height,
        width_restricted=fp.raw_max_dimension > constraints.max_building_width,
        shrunk_to_fit=fp.shrunk_to_fit,
    )


# ──────────────────────────────────────────────────────────────────
# PODIUM SETBACK
# ──────────────────────────────────────────────────────────────────

def setback_sections(
    polygon: Polygon,
    floors: int,
    threshold: int,
    constraints: BuildingConstraints,
    backend: GeometryBackend,
) -> list[BuildingSection]:
    """Podium of ``threshold`` floors plus an upper section scaled about the centroid."""
    ftf = constraints.floor_to_floor_height
    scale = constraints.setback_scale
    upper = affinity.scale(polygon, xfact=scale, yfact=scale, origin=polygon.centroid)
    podium_height = threshold * ftf
    return [
        _section(polygon, backend.area(polygon), threshold, 0.0, ftf),
        _section(upper, backend.area(upper), floors - threshold, podium_height, ftf),
    ]


def _section(
    polygon: Polygon, area: float, floors: int, base_height: float, ftf: float,
) -> BuildingSection:
    return BuildingSection(
        footprint=polygon_to_geojson(polygon),
        footprint_area=area,
        floors=floors,
        base_height=base_height,
        height=floors * ftf,
        floor_area=floors * area,
    )


# ──────────────────────────────────────────────────────────────────
# EXTRUSION
# ──────────────────────────────────────────────────────────────────

def extrude_building(
    building: Building,
    backend: Optional[GeometryBackend] = None,
    origin: Optional[Point] = None,
    v_offset: int = 0,
) -> dict:
    """Triangle mesh of a building in local metres (z up).

    Each section becomes its own closed prism stacked at its base height.
    Coordinates are relative to ``origin`` (default: the footprint's
    centroid).  Pass a shared origin and running ``v_offset`` to merge
    several buildings into one mesh.
    """
    backend = backend or GeodeticGeometry()
    base = shape(building.footprint)
    origin = origin or base.centroid

    if building.sections:
        prisms = [(shape(s.footprint), s.base_height, s.top_height) for s in building.sections]
    else:
        prisms = [(base, 0.0, building.height)]

    vertices: list = []
    faces: list = []
    for polygon, bottom, top in prisms:
        local = backend.to_local(polygon, origin)
        v, f = _extrude_polygon(local, bottom, top, v_offset + len(vertices))
        vertices.extend(v)
        faces.extend(f)
    return {"id": building.building_id, "vertices": vertices, "faces": faces}


def extrude_massing(
    result: MassingResult,
    backend: Optional[GeometryBackend] = None,
) -> dict:
    """All buildings of a massing result as one mesh around a shared origin."""
    backend = backend or GeodeticGeometry()
    if not result.buildings:
        return {"vertices": [], "faces": [], "buildings": []}

    origin = shape(result.buildings[0].footprint).centroid
    vertices: list = []
    faces: list = []
    ids = []
    for b in result.buildings:
        mesh = extrude_building(b, backend, origin=origin, v_offset=len(vertices))
        vertices.extend(mesh["vertices"])
        faces.extend(mesh["faces"])
        ids.append(b.building_id)
    return {"vertices": vertices, "faces": faces, "buildings": ids}


def _extrude_polygon(
    polygon: Polygon, z_bottom: float, z_top: float, v_offset: int,
) -> tuple[list, list]:
    """Prism over a local-metre footprint ring: walls, roof and floor as triangles.

    Vertex indices start at ``v_offset``; bottom ring first, then top ring.
    """
    coords = list(polygon.exterior.coords[:-1])
    n = len(coords)
    if n < 3:
        return [], []

    vertices = [[round(x, 2), round(y, 2), round(z_bottom, 2)] for x, y in coords]
    vertices += [[round(x, 2), round(y, 2), round(z_top, 2)] for x, y in coords]

    faces = []
    for i in range(n):
        j = (i + 1) % n
        bl, br = v_offset + i, v_offset + j
        tl, tr = v_offset + n + i, v_offset + n + j
        faces.append([bl, br, tr])
        faces.append([bl, tr, tl])

    # Caps fan out from the first vertex of each ring
    for i in range(1, n - 1):
        faces.append([v_offset + n, v_offset + n + i, v_offset + n + i + 1])
    for i in range(1, n - 1):
        faces.append([v_offset, v_offset + i + 1, v_offset + i])

    return vertices, faces


# ──────────────────────────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────────────────────────

def polygon_to_geojson(polygon: Polygon) -> dict:
    """GeoJSON Polygon dict with plain lists (JSON-serializable)."""
    rings = [polygon.exterior] + list(polygon.interiors)
    return {
        "type": "Polygon",
        "coordinates": [[[x, y] for x, y, *_ in ring.coords] for ring in rings],
    }
