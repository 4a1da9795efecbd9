"""
Residual land value feasibility model.

Turns planning controls (FSR, HOB) and a density profile into GFA, yield,
revenue, costs and the residual land value a project can bear:

  1. Footprint = developable area x site efficiency (100% for low/mid)
  2. GFA = min(site area x FSR, footprint x storeys x GBA:GFA)
  3. NSA = GFA x GFA:NSA, yield = floor(NSA / unit size)
  4. Low/mid only: yield capped by floor(developable area / min lot size),
     GFA re-derived from that yield
  5. Revenue -> GST and selling costs -> profit and risk
  6. Construction, fees, contributions, land tax, finance
  7. Interest on the purchase loan and acquisition costs -> residual

Every figure from step 5 on is driven by a single yield, so both density
branches share one cascade.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from site_feasibility.engine.profiles import DEFAULT_MINIMUM_LOT_SIZE, land_tax_per_year
from site_feasibility.models.schemas import (
    BindingConstraint,
    CalculationResult,
    DensitySettings,
    SiteMetrics,
    YieldBasis,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────
# CONSTANTS
# ──────────────────────────────────────────────────────────────────

GST_RATE = 0.10
ACQUISITION_COST_RATE = 0.03      # stamp duty, legals on the land purchase
PURCHASE_LOAN_DRAW = 0.5          # 50% LVR acquisition loan, averaged over the period
_FLOOR_EPSILON = 1e-9             # 31 / 3.1 must give 10 storeys, not 9


# ──────────────────────────────────────────────────────────────────
# DATA CLASSES
# ──────────────────────────────────────────────────────────────────

@dataclass
class GfaEnvelope:
    """GFA derived from planning controls, before yield adjustments."""
    footprint_area: float
    max_storeys: Optional[int]
    gfa_under_fsr: Optional[float]
    gfa_under_hob: Optional[float]
    gfa: float
    binding: BindingConstraint


@dataclass
class YieldOutcome:
    gfa: float
    nsa: float
    nsa_yield: int
    lot_size_yield: Optional[int]
    development_yield: int
    basis: YieldBasis


# ──────────────────────────────────────────────────────────────────
# MAIN ENTRY POINT
# ──────────────────────────────────────────────────────────────────

def calculate_feasibility(
    site: SiteMetrics,
    density: DensitySettings,
    custom_fsr: Optional[float] = None,
    custom_hob: Optional[float] = None,
) -> CalculationResult:
    """Run the full feasibility model for one density profile.

    ``custom_fsr`` / ``custom_hob`` replace the site's controls when given.
    Never raises for zero areas or zero GFA; such results come back with
    ``is_feasible=False``.
    """
    fsr = custom_fsr if custom_fsr is not None else site.fsr
    hob = custom_hob if custom_hob is not None else site.hob
    if not hob:
        hob = None

    envelope = calculate_gfa_envelope(
        developable_area=site.developable_area,
        site_area=site.effective_site_area,
        fsr=fsr,
        hob=hob,
        density=density,
    )
    outcome = calculate_yield(envelope.gfa, site.developable_area, density)

    if site.annual_land_tax is not None:
        annual_land_tax = site.annual_land_tax
    else:
        annual_land_tax = land_tax_per_year(site.property_value)

    cascade = financial_cascade(
        development_yield=outcome.development_yield,
        gfa=outcome.gfa,
        density=density,
        annual_land_tax=annual_land_tax,
    )

    developable_area = site.developable_area
    rlv = cascade["residual_land_value"]
    rlv_per_m2 = rlv / developable_area if developable_area > 0 else 0.0
    is_feasible = outcome.gfa > 0 and rlv >= 0

    if outcome.gfa <= 0:
        logger.warning(
            "Zero GFA for %s (fsr=%s, hob=%s, area=%s); result is not feasible",
            density.profile.value, fsr, hob, developable_area,
        )

    return CalculationResult(
        profile=density.profile,
        yield_basis=outcome.basis,
        binding_constraint=envelope.binding,
        gfa_explanation=explain_gfa(envelope, site.effective_site_area, fsr, hob, density),
        developable_area=developable_area,
        site_area=site.effective_site_area,
        fsr=fsr,
        hob=hob,
        max_storeys=envelope.max_storeys,
        building_footprint_area=envelope.footprint_area,
        gfa_under_fsr=envelope.gfa_under_fsr,
        gfa_under_hob=envelope.gfa_under_hob,
        gfa=outcome.gfa,
        nsa=outcome.nsa,
        assumed_unit_size=density.assumed_unit_size,
        nsa_yield=outcome.nsa_yield,
        lot_size_yield=outcome.lot_size_yield,
        development_yield=outcome.development_yield,
        dwelling_price=density.dwelling_price,
        construction_cost_per_m2=density.construction_cost_per_m2,
        da_fee=density.da_fee,
        land_tax_per_year=annual_land_tax,
        project_period=density.project_period,
        residual_land_value_per_m2=rlv_per_m2,
        is_feasible=is_feasible,
        **cascade,
    )


# ──────────────────────────────────────────────────────────────────
# GFA AND YIELD
# ──────────────────────────────────────────────────────────────────

def whole_storeys(height: float, floor_to_floor: float) -> int:
    """Number of full storeys that fit under a height limit."""
    if height <= 0 or floor_to_floor <= 0:
        return 0
    return int(math.floor(height / floor_to_floor + _FLOOR_EPSILON))


def calculate_gfa_envelope(
    developable_area: float,
    site_area: float,
    fsr: Optional[float],
    hob: Optional[float],
    density: DensitySettings,
) -> GfaEnvelope:
    """GFA under FSR and under HOB; the lower of the two governs."""
    ratio = 1.0 if density.uses_lot_size_yield else density.site_efficiency_ratio
    footprint_area = developable_area * ratio

    gfa_under_fsr = site_area * fsr if fsr is not None else None

    max_storeys = None
    gfa_under_hob = None
    if hob:
        max_storeys = whole_storeys(hob, density.floor_to_floor_height)
        gfa_under_hob = footprint_area * max_storeys * density.gba_to_gfa_ratio

    if gfa_under_fsr is not None and gfa_under_hob is not None:
        if gfa_under_hob < gfa_under_fsr:
            gfa, binding = gfa_under_hob, BindingConstraint.HOB
        else:
            gfa, binding = gfa_under_fsr, BindingConstraint.FSR
    elif gfa_under_fsr is not None:
        gfa, binding = gfa_under_fsr, BindingConstraint.FSR
    elif gfa_under_hob is not None:
        gfa, binding = gfa_under_hob, BindingConstraint.HOB
    else:
        gfa, binding = 0.0, BindingConstraint.NONE

    logger.debug(
        "GFA envelope: fsr=%s hob=%s -> %.1f m² (%s binds)",
        gfa_under_fsr, gfa_under_hob, gfa, binding.value,
    )
    return GfaEnvelope(
        footprint_area=footprint_area,
        max_storeys=max_storeys,
        gfa_under_fsr=gfa_under_fsr,
        gfa_under_hob=gfa_under_hob,
        gfa=max(gfa, 0.0),
        binding=binding,
    )


def calculate_yield(gfa: float, developable_area: float, density: DensitySettings) -> YieldOutcome:
    """Dwelling yield from GFA.

    For low/mid density the yield is also capped by how many minimum-size
    lots fit on the developable area, and GFA is re-derived from the
    resulting yield so that costs follow the dwellings actually built.
    """
    nsa = gfa * density.gfa_to_nsa_ratio
    nsa_yield = int(math.floor(nsa / density.assumed_unit_size)) if nsa > 0 else 0

    if not density.uses_lot_size_yield:
        return YieldOutcome(
            gfa=gfa, nsa=nsa, nsa_yield=nsa_yield, lot_size_yield=None,
            development_yield=nsa_yield, basis=YieldBasis.NSA,
        )

    min_lot = density.minimum_lot_size or DEFAULT_MINIMUM_LOT_SIZE
    lot_size_yield = int(math.floor(developable_area / min_lot)) if developable_area > 0 else 0

    if gfa <= 0:
        # No envelope, nothing to build regardless of lot count
        return YieldOutcome(
            gfa=0.0, nsa=0.0, nsa_yield=0, lot_size_yield=lot_size_yield,
            development_yield=0, basis=YieldBasis.NSA,
        )
    if nsa_yield == 0:
        actual = lot_size_yield
    else:
        actual = min(nsa_yield, lot_size_yield)
    basis = YieldBasis.LOT_SIZE if actual == lot_size_yield and actual != nsa_yield else YieldBasis.NSA

    return YieldOutcome(
        gfa=actual * density.assumed_unit_size,
        nsa=nsa,
        nsa_yield=nsa_yield,
        lot_size_yield=lot_size_yield,
        development_yield=actual,
        basis=basis,
    )


# ──────────────────────────────────────────────────────────────────
# FINANCIAL CASCADE
# ──────────────────────────────────────────────────────────────────

def financial_cascade(
    development_yield: int,
    gfa: float,
    density: DensitySettings,
    annual_land_tax: float = 0.0,
) -> dict[str, float]:
    """Revenue, costs and residual land value for a given yield and GFA."""
    gross = development_yield * density.dwelling_price
    gst = gross * GST_RATE
    agents_commission = gross * density.agents_commission
    legal_fees = gross * density.legal_fees
    marketing_costs = gross * density.marketing_costs
    net = gross - gst - agents_commission - legal_fees - marketing_costs

    profit_and_risk = net * density.profit_and_risk
    net_after_profit = net - profit_and_risk

    construction_costs = gfa * density.construction_cost_per_m2
    professional_fees = construction_costs * density.professional_fees
    development_contribution = construction_costs * density.development_contribution
    total_development_costs = (
        construction_costs + density.da_fee + professional_fees + development_contribution
    )

    project_years = density.project_period / 12
    land_tax = annual_land_tax * project_years
    finance_costs = density.interest_rate * (project_years / 2) * total_development_costs

    residual_before_interest = (
        net_after_profit - total_development_costs - land_tax - finance_costs
    )
    interest = interest_on_purchase(
        residual_before_interest, density.interest_rate, density.project_period,
    )
    acquisition_costs = ACQUISITION_COST_RATE * (residual_before_interest - interest)
    residual_land_value = residual_before_interest - interest - acquisition_costs

    return {
        "gross_realization": gross,
        "gst": gst,
        "agents_commission": agents_commission,
        "legal_fees": legal_fees,
        "marketing_costs": marketing_costs,
        "net_realization": net,
        "profit_and_risk": profit_and_risk,
        "net_realization_after_profit": net_after_profit,
        "construction_costs": construction_costs,
        "professional_fees": professional_fees,
        "development_contribution": development_contribution,
        "total_development_costs": total_development_costs,
        "land_tax": land_tax,
        "finance_costs": finance_costs,
        "residual_before_interest": residual_before_interest,
        "interest_on_purchase": interest,
        "acquisition_costs": acquisition_costs,
        "residual_land_value": residual_land_value,
    }


def interest_on_purchase(
    residual_before_interest: float,
    interest_rate: float,
    project_period_months: float,
) -> float:
    """Interest carried on the land purchase loan over the project period.

    The land price R is discounted by simple interest on the average
    loan draw: |R - R / (1 + r/12 x months x 0.5)|.  A non-positive
    denominator yields 0.
    """
    denominator = 1 + (interest_rate / 12) * project_period_months * PURCHASE_LOAN_DRAW
    if denominator <= 0:
        return 0.0
    return abs(residual_before_interest - residual_before_interest / denominator)


# ──────────────────────────────────────────────────────────────────
# EXPLANATION
# ──────────────────────────────────────────────────────────────────

def explain_gfa(
    envelope: GfaEnvelope,
    site_area: float,
    fsr: Optional[float],
    hob: Optional[float],
    density: DensitySettings,
) -> str:
    """Human-readable derivation of the governing GFA."""
    parts = []
    if envelope.gfa_under_fsr is not None:
        parts.append(
            f"FSR {fsr:g}:1 ({site_area:,.0f} m² x {fsr:g} = "
            f"{envelope.gfa_under_fsr:,.0f} m²)"
        )
    if envelope.gfa_under_hob is not None:
        parts.append(
            f"HOB {hob:g} m ({envelope.max_storeys} storeys x "
            f"{envelope.footprint_area:,.0f} m² footprint x "
            f"{density.gba_to_gfa_ratio:.0%} efficiency = "
            f"{envelope.gfa_under_hob:,.0f} m²)"
        )

    if not parts:
        return "No FSR or HOB control; GFA is zero."
    if len(parts) == 1:
        return parts[0]
    return (
        f"Minimum of {parts[0]} and {parts[1]}; "
        f"{'height' if envelope.binding == BindingConstraint.HOB else 'FSR'} governs."
    )
