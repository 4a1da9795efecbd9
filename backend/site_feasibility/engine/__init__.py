from __future__ import annotations

from site_feasibility.engine.feasibility import calculate_feasibility
from site_feasibility.engine.massing import extrude_building, extrude_massing, generate_massing
from site_feasibility.engine.profiles import default_settings
from site_feasibility.engine.sensitivity import analyze_housing_impact, run_sensitivity

__all__ = [
    "calculate_feasibility",
    "default_settings",
    "run_sensitivity",
    "analyze_housing_impact",
    "generate_massing",
    "extrude_building",
    "extrude_massing",
]
