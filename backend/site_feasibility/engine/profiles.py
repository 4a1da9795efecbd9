"""
Density profile defaults and the land tax schedule.

Two profiles are supported.  Low/mid density assumes a full-coverage
footprint with yield capped by minimum lot size; high density applies a
site efficiency discount and derives yield from net sellable area.

All dollar figures are AUD.  The land tax schedule follows the NSW
general/premium thresholds.
"""

from __future__ import annotations

from site_feasibility.models.schemas import DensityProfile, DensitySettings


# ──────────────────────────────────────────────────────────────────
# PROFILE DEFAULTS
# ──────────────────────────────────────────────────────────────────

DEFAULT_MINIMUM_LOT_SIZE = 200.0  # m², used when a low/mid profile omits it

_SHARED_DEFAULTS: dict[str, float] = {
    "floor_to_floor_height": 3.1,      # metres
    "gfa_to_nsa_ratio": 0.85,
    "assumed_unit_size": 80,           # m² NSA per dwelling
    "dwelling_price": 750_000,
    "construction_cost_per_m2": 3_500,
    "agents_commission": 0.02,
    "legal_fees": 0.005,
    "marketing_costs": 0.0075,
    "profit_and_risk": 0.20,
    "da_fee": 200_000,
    "professional_fees": 0.05,
    "development_contribution": 0.01,
    "interest_rate": 0.075,
    "project_period": 24,              # months
}

DEFAULT_PROFILES: dict[DensityProfile, dict[str, float]] = {
    DensityProfile.LOW_MID: {
        **_SHARED_DEFAULTS,
        "site_efficiency_ratio": 0.6,
        "gba_to_gfa_ratio": 0.9,
        "minimum_lot_size": DEFAULT_MINIMUM_LOT_SIZE,
    },
    DensityProfile.HIGH: {
        **_SHARED_DEFAULTS,
        "site_efficiency_ratio": 0.4,
        "gba_to_gfa_ratio": 0.75,
    },
}


def default_settings(profile: DensityProfile | str, **overrides) -> DensitySettings:
    """Build DensitySettings for a profile, with overrides applied on top.

    Raises pydantic.ValidationError (a ValueError) for out-of-range values.
    """
    profile = DensityProfile(profile)
    values = {**DEFAULT_PROFILES[profile], **overrides}
    values["profile"] = profile
    return DensitySettings(**values)


# ──────────────────────────────────────────────────────────────────
# LAND TAX
# ──────────────────────────────────────────────────────────────────

LAND_TAX_GENERAL_THRESHOLD = 1_000_000
LAND_TAX_PREMIUM_THRESHOLD = 4_000_000
_GENERAL_BASE = 100
_GENERAL_RATE = 0.016
_PREMIUM_BASE = 88_036
_PREMIUM_RATE = 0.02


def land_tax_per_year(property_value: float | None) -> float:
    """Annual land tax for a given unimproved land value."""
    if not property_value or property_value <= LAND_TAX_GENERAL_THRESHOLD:
        return 0.0
    if property_value > LAND_TAX_PREMIUM_THRESHOLD:
        return _PREMIUM_BASE + (property_value - LAND_TAX_PREMIUM_THRESHOLD) * _PREMIUM_RATE
    return _GENERAL_BASE + (property_value - LAND_TAX_GENERAL_THRESHOLD) * _GENERAL_RATE
