"""Tests for the residual land value feasibility model."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from site_feasibility.engine.feasibility import (
    calculate_feasibility,
    calculate_gfa_envelope,
    calculate_yield,
    financial_cascade,
    interest_on_purchase,
    whole_storeys,
)
from site_feasibility.engine.profiles import default_settings, land_tax_per_year
from site_feasibility.models.schemas import (
    BindingConstraint,
    DensityProfile,
    SiteMetrics,
    YieldBasis,
)


# ──────────────────────────────────────────────────────────────────
# HELPERS
# ──────────────────────────────────────────────────────────────────

def _make_site(
    area: float = 5000,
    fsr: float | None = 2.5,
    hob: float | None = 31,
    **kwargs,
) -> SiteMetrics:
    return SiteMetrics(developable_area=area, fsr=fsr, hob=hob, **kwargs)


def _high_density(**overrides):
    values = {"site_efficiency_ratio": 0.6}
    values.update(overrides)
    return default_settings(DensityProfile.HIGH, **values)


def _low_mid(**overrides):
    values = {"minimum_lot_size": 250}
    values.update(overrides)
    return default_settings(DensityProfile.LOW_MID, **values)


# ──────────────────────────────────────────────────────────────────
# PROFILES AND LAND TAX
# ──────────────────────────────────────────────────────────────────

class TestDefaultSettings:
    def test_profiles_differ_in_efficiency(self):
        assert default_settings("low_mid_density").site_efficiency_ratio == 0.6
        assert default_settings("high_density").site_efficiency_ratio == 0.4

    def test_low_mid_has_minimum_lot_size(self):
        assert default_settings(DensityProfile.LOW_MID).minimum_lot_size == 200
        assert default_settings(DensityProfile.HIGH).minimum_lot_size is None

    def test_overrides_applied(self):
        s = default_settings(DensityProfile.HIGH, dwelling_price=900_000)
        assert s.dwelling_price == 900_000
        assert s.profile == DensityProfile.HIGH

    def test_out_of_range_rate_rejected(self):
        with pytest.raises(ValidationError):
            default_settings(DensityProfile.HIGH, agents_commission=1.5)

    def test_misspelled_override_rejected(self):
        with pytest.raises(ValidationError, match="dwelling_prise"):
            default_settings(DensityProfile.HIGH, dwelling_prise=900_000)

    def test_zero_project_period_rejected(self):
        with pytest.raises(ValueError):
            default_settings(DensityProfile.HIGH, project_period=0)

    def test_unknown_profile_rejected(self):
        with pytest.raises(ValueError):
            default_settings("skyscraper")


class TestLandTax:
    def test_below_threshold(self):
        assert land_tax_per_year(500_000) == 0
        assert land_tax_per_year(1_000_000) == 0

    def test_missing_value(self):
        assert land_tax_per_year(None) == 0

    def test_general_rate(self):
        assert land_tax_per_year(2_000_000) == pytest.approx(16_100)

    def test_premium_rate(self):
        assert land_tax_per_year(5_000_000) == pytest.approx(108_036)


# ──────────────────────────────────────────────────────────────────
# GFA ENVELOPE
# ──────────────────────────────────────────────────────────────────

class TestWholeStoreys:
    def test_exact_division(self):
        assert whole_storeys(31, 3.1) == 10

    def test_partial_storey_dropped(self):
        assert whole_storeys(30, 3.1) == 9

    def test_zero_height(self):
        assert whole_storeys(0, 3.1) == 0


class TestGfaEnvelope:
    def test_fsr_binds(self):
        env = calculate_gfa_envelope(5000, 5000, 2.5, 31, _high_density())
        assert env.footprint_area == pytest.approx(3000)
        assert env.max_storeys == 10
        assert env.gfa_under_fsr == pytest.approx(12_500)
        assert env.gfa_under_hob == pytest.approx(3000 * 10 * 0.75)
        assert env.gfa == pytest.approx(12_500)
        assert env.binding == BindingConstraint.FSR

    def test_hob_binds(self):
        env = calculate_gfa_envelope(5000, 5000, 5.0, 31, _high_density())
        assert env.gfa == pytest.approx(22_500)
        assert env.binding == BindingConstraint.HOB

    def test_no_hob_uses_fsr(self):
        env = calculate_gfa_envelope(5000, 5000, 2.5, None, _high_density())
        assert env.gfa == pytest.approx(12_500)
        assert env.max_storeys is None

    def test_no_fsr_uses_hob(self):
        env = calculate_gfa_envelope(5000, 5000, None, 31, _high_density())
        assert env.gfa == pytest.approx(22_500)
        assert env.binding == BindingConstraint.HOB

    def test_no_controls(self):
        env = calculate_gfa_envelope(5000, 5000, None, None, _high_density())
        assert env.gfa == 0
        assert env.binding == BindingConstraint.NONE

    def test_low_mid_full_footprint(self):
        env = calculate_gfa_envelope(2000, 2000, None, 9.3, _low_mid())
        assert env.footprint_area == pytest.approx(2000)

    def test_fsr_uses_site_area(self):
        env = calculate_gfa_envelope(4000, 5000, 2.0, None, _high_density())
        assert env.gfa == pytest.approx(10_000)


# ──────────────────────────────────────────────────────────────────
# YIELD
# ──────────────────────────────────────────────────────────────────

class TestYield:
    def test_high_density_nsa_yield(self):
        outcome = calculate_yield(12_500, 5000, _high_density())
        assert outcome.nsa == pytest.approx(10_625)
        assert outcome.development_yield == 132
        assert outcome.basis == YieldBasis.NSA
        assert outcome.gfa == 12_500

    def test_low_mid_capped_by_lot_size(self):
        outcome = calculate_yield(1200, 2000, _low_mid())
        assert outcome.nsa_yield == 12
        assert outcome.lot_size_yield == 8
        assert outcome.development_yield == 8
        assert outcome.basis == YieldBasis.LOT_SIZE
        assert outcome.gfa == pytest.approx(8 * 80)

    def test_low_mid_nsa_yield_smaller(self):
        outcome = calculate_yield(300, 2000, _low_mid())
        assert outcome.development_yield == 3
        assert outcome.basis == YieldBasis.NSA
        assert outcome.gfa == pytest.approx(3 * 80)

    def test_low_mid_zero_nsa_falls_back_to_lots(self):
        outcome = calculate_yield(50, 2000, _low_mid())
        assert outcome.nsa_yield == 0
        assert outcome.development_yield == 8

    def test_low_mid_default_minimum_lot(self):
        settings = default_settings(DensityProfile.LOW_MID)
        outcome = calculate_yield(50, 2000, settings)
        assert outcome.lot_size_yield == 10

    def test_low_mid_zero_gfa_builds_nothing(self):
        outcome = calculate_yield(0, 2000, _low_mid())
        assert outcome.lot_size_yield == 8
        assert outcome.development_yield == 0
        assert outcome.gfa == 0


# ──────────────────────────────────────────────────────────────────
# FINANCIAL CASCADE
# ──────────────────────────────────────────────────────────────────

class TestInterestOnPurchase:
    def test_standard_case(self):
        assert interest_on_purchase(1_000_000, 0.075, 24) == pytest.approx(
            1_000_000 - 1_000_000 / 1.075
        )

    def test_negative_residual_is_positive_interest(self):
        assert interest_on_purchase(-1_000_000, 0.075, 24) > 0

    def test_zero_denominator_gives_zero(self):
        assert interest_on_purchase(1_000_000, -1.0, 24) == 0

    def test_negative_denominator_gives_zero(self):
        assert interest_on_purchase(1_000_000, -2.0, 24) == 0


class TestFinancialCascade:
    def test_revenue_lines(self):
        c = financial_cascade(10, 1000, _high_density())
        assert c["gross_realization"] == 7_500_000
        assert c["gst"] == pytest.approx(750_000)
        selling = 7_500_000 * (0.02 + 0.005 + 0.0075)
        assert c["net_realization"] == pytest.approx(7_500_000 - 750_000 - selling)
        assert c["profit_and_risk"] == pytest.approx(c["net_realization"] * 0.2)

    def test_cost_lines(self):
        c = financial_cascade(10, 1000, _high_density())
        assert c["construction_costs"] == pytest.approx(3_500_000)
        assert c["total_development_costs"] == pytest.approx(
            3_500_000 + 200_000 + 3_500_000 * 0.05 + 3_500_000 * 0.01
        )
        assert c["finance_costs"] == pytest.approx(0.075 * 1.0 * c["total_development_costs"])

    def test_land_tax_over_project_period(self):
        c = financial_cascade(10, 1000, _high_density(), annual_land_tax=12_000)
        assert c["land_tax"] == pytest.approx(24_000)

    def test_residual_identity(self):
        c = financial_cascade(50, 5000, _high_density())
        r = c["residual_before_interest"]
        assert c["interest_on_purchase"] == pytest.approx(interest_on_purchase(r, 0.075, 24))
        assert c["acquisition_costs"] == pytest.approx(0.03 * (r - c["interest_on_purchase"]))
        assert c["residual_land_value"] == pytest.approx(
            r - c["interest_on_purchase"] - c["acquisition_costs"]
        )

    def test_acquisition_cost_follows_negative_residual(self):
        c = financial_cascade(0, 0, _high_density())
        r = c["residual_before_interest"]
        assert r == pytest.approx(-215_000)
        interest = c["interest_on_purchase"]
        assert c["acquisition_costs"] == pytest.approx(0.03 * (r - interest))
        assert c["acquisition_costs"] < 0
        assert c["residual_land_value"] == pytest.approx((r - interest) * 0.97)
        assert c["residual_land_value"] == pytest.approx(-223_100)


# ──────────────────────────────────────────────────────────────────
# FULL MODEL
# ──────────────────────────────────────────────────────────────────

class TestCalculateFeasibility:
    def test_fsr_binding_scenario(self):
        result = calculate_feasibility(_make_site(), _high_density())
        assert result.gfa == pytest.approx(min(12_500, 3000 * 10 * 0.75))
        assert result.binding_constraint == BindingConstraint.FSR
        assert result.max_storeys == 10
        assert "FSR governs" in result.gfa_explanation

    def test_hob_binding_scenario(self):
        result = calculate_feasibility(_make_site(fsr=5.0), _high_density())
        assert result.gfa == pytest.approx(22_500)
        assert result.binding_constraint == BindingConstraint.HOB
        assert "height governs" in result.gfa_explanation

    def test_low_mid_downstream_uses_actual_yield(self):
        site = _make_site(area=2000, fsr=0.6, hob=None)
        density = _low_mid()
        result = calculate_feasibility(site, density)

        assert result.nsa_yield == 12
        assert result.development_yield == 8
        assert result.gfa == pytest.approx(640)
        assert result.gross_realization == 8 * 750_000
        assert result.construction_costs == pytest.approx(640 * 3500)

        expected = financial_cascade(8, 640, density, 0.0)
        for key, value in expected.items():
            assert getattr(result, key) == pytest.approx(value), key

    def test_custom_controls_override_site(self):
        result = calculate_feasibility(_make_site(), _high_density(), custom_fsr=1.0)
        assert result.fsr == 1.0
        assert result.gfa == pytest.approx(5000)

    def test_custom_hob_override(self):
        result = calculate_feasibility(_make_site(fsr=None), _high_density(), custom_hob=15.5)
        assert result.max_storeys == 5
        assert result.gfa == pytest.approx(3000 * 5 * 0.75)

    def test_zero_hob_treated_as_missing(self):
        result = calculate_feasibility(_make_site(hob=0), _high_density())
        assert result.hob is None
        assert result.gfa == pytest.approx(12_500)

    def test_no_controls_not_feasible(self):
        result = calculate_feasibility(_make_site(fsr=None, hob=None), _high_density())
        assert result.gfa == 0
        assert result.development_yield == 0
        assert result.binding_constraint == BindingConstraint.NONE
        assert not result.is_feasible

    def test_low_mid_no_controls_not_feasible(self):
        site = SiteMetrics(developable_area=2000)
        result = calculate_feasibility(site, default_settings(DensityProfile.LOW_MID))
        assert result.gfa == 0
        assert result.development_yield == 0
        assert result.binding_constraint == BindingConstraint.NONE
        assert not result.is_feasible

    def test_low_mid_zero_fsr_not_feasible(self):
        result = calculate_feasibility(_make_site(area=2000, fsr=0, hob=None), _low_mid())
        assert result.gfa == 0
        assert result.development_yield == 0
        assert not result.is_feasible

    def test_zero_area_does_not_raise(self):
        result = calculate_feasibility(_make_site(area=0), _high_density())
        assert result.gfa == 0
        assert result.residual_land_value_per_m2 == 0
        assert not result.is_feasible

    def test_land_tax_from_property_value(self):
        site = _make_site(property_value=2_000_000)
        result = calculate_feasibility(site, _high_density())
        assert result.land_tax_per_year == pytest.approx(16_100)
        assert result.land_tax == pytest.approx(32_200)

    def test_explicit_land_tax_wins(self):
        site = _make_site(property_value=2_000_000, annual_land_tax=5_000)
        result = calculate_feasibility(site, _high_density())
        assert result.land_tax_per_year == 5_000

    def test_rlv_per_m2(self):
        result = calculate_feasibility(_make_site(), _high_density())
        assert result.residual_land_value_per_m2 == pytest.approx(result.residual_land_value / 5000)

    def test_feasible_flag_follows_residual(self):
        result = calculate_feasibility(_make_site(), _high_density())
        assert result.is_feasible == (result.residual_land_value >= 0)

    def test_repeatable(self):
        a = calculate_feasibility(_make_site(), _high_density())
        b = calculate_feasibility(_make_site(), _high_density())
        assert a == b
        assert a.model_dump() == b.model_dump()

    def test_result_is_frozen(self):
        result = calculate_feasibility(_make_site(), _high_density())
        with pytest.raises(ValidationError):
            result.gfa = 1
