from __future__ import annotations

from site_feasibility.models.schemas import (
    Building,
    BuildingConstraints,
    CalculationResult,
    DensityProfile,
    DensitySettings,
    MassingResult,
    SensitivityResult,
    SiteMetrics,
)

__all__ = [
    "Building",
    "BuildingConstraints",
    "CalculationResult",
    "DensityProfile",
    "DensitySettings",
    "MassingResult",
    "SensitivityResult",
    "SiteMetrics",
]
