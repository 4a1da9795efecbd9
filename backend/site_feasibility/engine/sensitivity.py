"""
Social / affordable housing impact and breakeven analysis.

For each share of dwellings handed over to a subsidised tenure, the lost
revenue is taken straight off the base residual land value:

  social      100% of the dwelling price forgone
  affordable   25% forgone (sold at 75% of market)
  mixed      62.5% forgone (even split of the two)

The breakeven for a scenario is the largest sampled share at which the
residual is still non-negative.
"""

from __future__ import annotations

import math
from typing import Optional

from site_feasibility.models.schemas import (
    BreakevenPoint,
    CalculationResult,
    HousingImpactPoint,
    HousingScenario,
    SensitivityResult,
)


REVENUE_REDUCTION: dict[HousingScenario, float] = {
    HousingScenario.SOCIAL: 1.0,
    HousingScenario.AFFORDABLE: 0.25,
    HousingScenario.MIXED: (1.0 + 0.25) / 2,
}

IMPACT_PERCENTAGES: tuple[int, ...] = tuple(range(0, 101, 5))


def affected_units(total_units: int, percentage: float) -> int:
    """Dwellings converted at a given percentage, rounded half up."""
    return int(math.floor(total_units * percentage / 100 + 0.5))


def residual_with_subsidy(
    base_residual: float,
    dwelling_price: float,
    units: int,
    scenario: HousingScenario,
) -> float:
    return base_residual - units * dwelling_price * REVENUE_REDUCTION[scenario]


def analyze_housing_impact(
    base_residual: float,
    dwelling_price: float,
    total_units: int,
    percentages: tuple[int, ...] = IMPACT_PERCENTAGES,
) -> SensitivityResult:
    """Build the housing impact curve and locate breakeven points."""
    points: list[HousingImpactPoint] = []
    trackers = {s: _BreakevenTracker(s, total_units) for s in HousingScenario}

    for pct in sorted(percentages):
        units = affected_units(total_units, pct)
        residuals = {
            s: residual_with_subsidy(base_residual, dwelling_price, units, s)
            for s in HousingScenario
        }
        for s, value in residuals.items():
            trackers[s].observe(pct, units, value)

        points.append(HousingImpactPoint(
            percentage=pct,
            affected_units=units,
            total_units=total_units,
            social_residual_land_value=residuals[HousingScenario.SOCIAL],
            affordable_residual_land_value=residuals[HousingScenario.AFFORDABLE],
            mixed_residual_land_value=residuals[HousingScenario.MIXED],
            social_percent_change=_percent_change(residuals[HousingScenario.SOCIAL], base_residual),
            affordable_percent_change=_percent_change(residuals[HousingScenario.AFFORDABLE], base_residual),
            mixed_percent_change=_percent_change(residuals[HousingScenario.MIXED], base_residual),
        ))

    return SensitivityResult(
        base_residual_land_value=base_residual,
        dwelling_price=dwelling_price,
        total_units=total_units,
        points=points,
        breakeven={s: t.result() for s, t in trackers.items()},
    )


def run_sensitivity(result: CalculationResult) -> SensitivityResult:
    """Housing impact analysis for a feasibility result."""
    return analyze_housing_impact(
        base_residual=result.residual_land_value,
        dwelling_price=result.dwelling_price,
        total_units=result.development_yield,
    )


def _percent_change(value: float, base: float) -> float:
    if base == 0:
        return 0.0
    return round((value - base) / abs(base) * 100, 1)


class _BreakevenTracker:
    """Tracks the last feasible and first infeasible sample while scanning up."""

    def __init__(self, scenario: HousingScenario, total_units: int):
        self.scenario = scenario
        self.total_units = total_units
        self.last_ok: Optional[tuple[int, int, float]] = None
        self.first_bad: Optional[tuple[int, int, float]] = None

    def observe(self, pct: int, units: int, residual: float) -> None:
        if residual >= 0:
            if self.first_bad is None:
                self.last_ok = (pct, units, residual)
        elif self.first_bad is None:
            self.first_bad = (pct, units, residual)

    def result(self) -> Optional[BreakevenPoint]:
        if self.first_bad is None:
            return None  # feasible at 100%

        bad_pct, _, bad_value = self.first_bad
        if self.last_ok is None:
            return BreakevenPoint(
                scenario=self.scenario,
                percentage=0,
                units=0,
                is_feasible=False,
                interpolated_percentage=0.0,
            )

        ok_pct, ok_units, ok_value = self.last_ok
        interpolated = ok_pct + ok_value * (bad_pct - ok_pct) / (ok_value - bad_value)
        return BreakevenPoint(
            scenario=self.scenario,
            percentage=ok_pct,
            units=ok_units,
            is_feasible=True,
            interpolated_percentage=round(interpolated, 2),
        )
