"""Tests for the housing impact / breakeven analysis."""

from __future__ import annotations

import pytest

from site_feasibility.engine.feasibility import calculate_feasibility
from site_feasibility.engine.profiles import default_settings
from site_feasibility.engine.sensitivity import (
    IMPACT_PERCENTAGES,
    REVENUE_REDUCTION,
    affected_units,
    analyze_housing_impact,
    residual_with_subsidy,
    run_sensitivity,
)
from site_feasibility.models.schemas import DensityProfile, HousingScenario, SiteMetrics


PRICE = 750_000


def _analyze(base: float = 5_000_000, units: int = 20):
    return analyze_housing_impact(base, PRICE, units)


class TestAffectedUnits:
    def test_rounds_half_up(self):
        assert affected_units(5, 10) == 1
        assert affected_units(3, 50) == 2

    def test_rounds_down(self):
        assert affected_units(20, 12) == 2

    def test_full_share(self):
        assert affected_units(20, 100) == 20

    def test_zero(self):
        assert affected_units(20, 0) == 0


class TestReductions:
    def test_fractions(self):
        assert REVENUE_REDUCTION[HousingScenario.SOCIAL] == 1.0
        assert REVENUE_REDUCTION[HousingScenario.AFFORDABLE] == 0.25
        assert REVENUE_REDUCTION[HousingScenario.MIXED] == pytest.approx(0.625)

    def test_residual_with_subsidy(self):
        assert residual_with_subsidy(1_000_000, PRICE, 2, HousingScenario.AFFORDABLE) == (
            1_000_000 - 2 * PRICE * 0.25
        )


class TestHousingImpactCurve:
    def test_sampled_percentages(self):
        result = _analyze()
        assert [p.percentage for p in result.points] == list(range(0, 101, 5))
        assert IMPACT_PERCENTAGES[-1] == 100

    def test_social_at_fifty_percent(self):
        result = _analyze()
        point = next(p for p in result.points if p.percentage == 50)
        assert point.affected_units == 10
        assert point.social_residual_land_value == 5_000_000 - 10 * PRICE

    def test_zero_percent_equals_base(self):
        point = _analyze().points[0]
        for scenario in HousingScenario:
            assert point.residual_for(scenario) == 5_000_000

    def test_monotonic_non_increasing(self):
        result = _analyze(base=3_000_000, units=37)
        for scenario in HousingScenario:
            values = [p.residual_for(scenario) for p in result.points]
            assert all(b <= a for a, b in zip(values, values[1:])), scenario

    def test_scenarios_ordered_at_each_point(self):
        for p in _analyze().points:
            assert p.social_residual_land_value <= p.mixed_residual_land_value
            assert p.mixed_residual_land_value <= p.affordable_residual_land_value

    def test_percent_change(self):
        point = next(p for p in _analyze().points if p.percentage == 50)
        assert point.social_percent_change == pytest.approx(-150.0)

    def test_percent_change_zero_base(self):
        result = analyze_housing_impact(0, PRICE, 10)
        assert all(p.social_percent_change == 0 for p in result.points)


class TestBreakeven:
    def test_social_breakeven(self):
        point = _analyze().breakeven[HousingScenario.SOCIAL]
        assert point.percentage == 30
        assert point.units == 6
        assert point.is_feasible
        assert point.interpolated_percentage == pytest.approx(33.33, abs=0.01)

    def test_mixed_breakeven(self):
        point = _analyze().breakeven[HousingScenario.MIXED]
        assert point.percentage == 50
        assert point.units == 10

    def test_affordable_feasible_at_full_share(self):
        assert _analyze().breakeven[HousingScenario.AFFORDABLE] is None

    def test_breakeven_ordering(self):
        breakeven = _analyze(base=4_000_000, units=30).breakeven

        def pct(s):
            point = breakeven[s]
            return 100 if point is None else point.percentage

        assert pct(HousingScenario.SOCIAL) <= pct(HousingScenario.MIXED)
        assert pct(HousingScenario.MIXED) <= pct(HousingScenario.AFFORDABLE)

    def test_base_already_negative(self):
        result = _analyze(base=-1)
        for scenario in HousingScenario:
            point = result.breakeven[scenario]
            assert point.percentage == 0
            assert point.units == 0
            assert not point.is_feasible

    def test_no_units_never_breaks_even(self):
        result = _analyze(units=0)
        assert all(v is None for v in result.breakeven.values())


class TestRunSensitivity:
    def test_uses_feasibility_result(self):
        site = SiteMetrics(developable_area=5000, fsr=2.5, hob=31)
        result = calculate_feasibility(site, default_settings(DensityProfile.HIGH))
        sensitivity = run_sensitivity(result)
        assert sensitivity.base_residual_land_value == result.residual_land_value
        assert sensitivity.total_units == result.development_yield
        assert sensitivity.dwelling_price == result.dwelling_price
        assert set(sensitivity.breakeven) == set(HousingScenario)
