#!/usr/bin/env python3
"""
Run feasibility, housing sensitivity and massing for a GeoJSON site.

Usage:
    python3 scripts/run_feasibility.py site.geojson --profile high_density --fsr 2.5 --hob 31
    python3 scripts/run_feasibility.py site.geojson --target-gfa 12000 --summary
"""

from __future__ import annotations

import argparse
import json
import os
import sys

# Add backend to path for direct import mode
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.join(os.path.dirname(SCRIPT_DIR), "backend")
sys.path.insert(0, BACKEND_DIR)

from site_feasibility.engine.feasibility import calculate_feasibility  # noqa: E402
from site_feasibility.engine.massing import generate_massing  # noqa: E402
from site_feasibility.engine.profiles import default_settings  # noqa: E402
from site_feasibility.engine.sensitivity import run_sensitivity  # noqa: E402
from site_feasibility.engine.site import site_metrics_from_geojson  # noqa: E402
from site_feasibility.models.schemas import BuildingConstraints, DensityProfile  # noqa: E402


# ──────────────────────────────────────────────────────────────────
# FORMATTING
# ──────────────────────────────────────────────────────────────────

def format_summary(result, sensitivity, massing) -> str:
    lines = []
    lines.append(f"\n{'='*70}")
    lines.append(f"  {result.profile.value}  |  {result.developable_area:,.0f} m² developable")
    lines.append(f"{'='*70}")
    lines.append(f"  GFA:            {result.gfa:,.0f} m²  ({result.binding_constraint.value} binds)")
    lines.append(f"                  {result.gfa_explanation}")
    lines.append(f"  Yield:          {result.development_yield} dwellings ({result.yield_basis.value})")
    lines.append(f"  Gross revenue:  ${result.gross_realization:,.0f}")
    lines.append(f"  Dev costs:      ${result.total_development_costs:,.0f}")
    lines.append(f"  Residual land:  ${result.residual_land_value:,.0f}"
                 f"  (${result.residual_land_value_per_m2:,.0f}/m²)")
    lines.append(f"  Feasible:       {'yes' if result.is_feasible else 'NO'}")

    lines.append("\n  BREAKEVEN:")
    for scenario, point in sensitivity.breakeven.items():
        if point is None:
            lines.append(f"    {scenario.value:<11} feasible at 100%")
        else:
            lines.append(f"    {scenario.value:<11} {point.percentage}% ({point.units} units)")

    lines.append(f"\n  MASSING: {massing.building_count} building(s), height cap {massing.height_cap:g} m")
    for b in massing.buildings:
        flags = []
        if b.height_restricted:
            flags.append("height")
        if b.width_restricted:
            flags.append("width")
        lines.append(
            f"    {b.name:<12} {b.floors:>3} fl  {b.height:>6.1f} m  "
            f"{b.footprint_area:>8,.0f} m² footprint  {b.gfa:>10,.0f} m² GFA"
            + (f"  podium {b.base_height:g} m" if b.has_setback else "")
            + (f"  [{', '.join(flags)} restricted]" if flags else "")
        )
    for w in massing.warnings:
        lines.append(f"    ! {w}")
    return "\n".join(lines)


# ──────────────────────────────────────────────────────────────────
# MAIN
# ──────────────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="Run site feasibility and massing for a GeoJSON site")
    parser.add_argument("site", help="GeoJSON file (Polygon, MultiPolygon, Feature or FeatureCollection)")
    parser.add_argument("--profile", default=DensityProfile.HIGH.value,
                        choices=[p.value for p in DensityProfile])
    parser.add_argument("--fsr", type=float, default=None)
    parser.add_argument("--hob", type=float, default=None, help="Height of building control (m)")
    parser.add_argument("--property-value", type=float, default=None)
    parser.add_argument("--target-gfa", type=float, default=None,
                        help="Massing target GFA (default: feasibility GFA)")
    parser.add_argument("--set", nargs="*", default=[], metavar="KEY=VALUE",
                        help="Override density settings, e.g. dwelling_price=900000")
    parser.add_argument("--road", default=None, help="GeoJSON file with the road frontage line")
    parser.add_argument("--setback-floors", type=int, default=None,
                        help="Podium height in floors; upper floors get a setback")
    parser.add_argument("--summary", action="store_true", help="Print a text summary instead of JSON")
    args = parser.parse_args()

    with open(args.site) as f:
        geojson = json.load(f)

    overrides = {}
    for item in args.set:
        key, _, value = item.partition("=")
        overrides[key] = float(value)

    density = default_settings(args.profile, **overrides)
    metrics = site_metrics_from_geojson(
        geojson, fsr=args.fsr, hob=args.hob, property_value=args.property_value,
    )
    result = calculate_feasibility(metrics, density)
    sensitivity = run_sensitivity(result)

    road = None
    if args.road:
        with open(args.road) as f:
            road = json.load(f)

    constraints = BuildingConstraints(
        floor_to_floor_height=density.floor_to_floor_height,
        setback_floor_threshold=args.setback_floors,
    )
    target = args.target_gfa if args.target_gfa is not None else result.gfa
    massing = generate_massing(
        geojson, target, constraints=constraints, hob=args.hob, road_boundary=road,
    )

    if args.summary:
        print(format_summary(result, sensitivity, massing))
        return

    print(json.dumps({
        "feasibility": result.model_dump(mode="json"),
        "sensitivity": sensitivity.model_dump(mode="json"),
        "massing": massing.model_dump(mode="json"),
    }, indent=2))


if __name__ == "__main__":
    main()
