from __future__ import annotations

import copy
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────────────────────────────────────────────
# ENUMS
# ──────────────────────────────────────────────────────────────────

class DensityProfile(str, Enum):
    LOW_MID = "low_mid_density"
    HIGH = "high_density"


class BindingConstraint(str, Enum):
    FSR = "fsr"
    HOB = "hob"
    NONE = "none"


class YieldBasis(str, Enum):
    NSA = "nsa"            # floor(NSA / unit size)
    LOT_SIZE = "lot_size"  # floor(developable area / minimum lot size)


class HousingScenario(str, Enum):
    SOCIAL = "social"
    AFFORDABLE = "affordable"
    MIXED = "mixed"


# ──────────────────────────────────────────────────────────────────
# INPUTS
# ──────────────────────────────────────────────────────────────────

class DensitySettings(BaseModel):
    """Market and cost assumptions for one density profile.

    Rates are fractions (0.02 == 2%).  ``project_period`` is in months.
    Unknown keys are rejected so a misspelled override cannot pass silently.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    profile: DensityProfile = DensityProfile.HIGH
    site_efficiency_ratio: float = Field(ge=0, le=1)
    floor_to_floor_height: float = Field(gt=0)
    gba_to_gfa_ratio: float = Field(ge=0, le=1)
    gfa_to_nsa_ratio: float = Field(ge=0, le=1)
    assumed_unit_size: float = Field(gt=0)
    dwelling_price: float = Field(ge=0)
    construction_cost_per_m2: float = Field(ge=0)
    agents_commission: float = Field(ge=0, le=1)
    legal_fees: float = Field(ge=0, le=1)
    marketing_costs: float = Field(ge=0, le=1)
    profit_and_risk: float = Field(ge=0, le=1)
    da_fee: float = Field(ge=0)
    professional_fees: float = Field(ge=0, le=1)
    development_contribution: float = Field(ge=0, le=1)
    interest_rate: float = Field(ge=0, le=1)
    project_period: float = Field(gt=0)
    minimum_lot_size: Optional[float] = Field(default=None, gt=0)

    @property
    def uses_lot_size_yield(self) -> bool:
        return self.profile == DensityProfile.LOW_MID


class BuildingConstraints(BaseModel):
    """Massing limits.

    ``setback_floor_threshold`` turns on podium/tower massing: floors above
    the threshold sit on a smaller upper section scaled by ``setback_scale``.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_building_height: float = Field(default=100, gt=0)       # absolute cap, metres
    min_building_separation: float = Field(default=6, ge=0)     # metres
    max_building_width: float = Field(default=18, gt=0)         # metres
    site_efficiency_ratio: float = Field(default=0.6, gt=0, le=1)
    floor_to_floor_height: float = Field(default=3.1, gt=0)
    setback_floor_threshold: Optional[int] = Field(default=None, ge=1)
    setback_scale: float = Field(default=0.85, gt=0, le=1)


class SiteMetrics(BaseModel):
    """Area metrics and planning controls for a site.

    ``site_area`` defaults to the developable area; FSR applies to the
    whole site, the efficiency envelope to the developable area only.
    """
    model_config = ConfigDict(frozen=True)

    developable_area: float = Field(ge=0)
    site_area: Optional[float] = Field(default=None, ge=0)
    fsr: Optional[float] = Field(default=None, ge=0)
    hob: Optional[float] = Field(default=None, ge=0)
    property_value: Optional[float] = Field(default=None, ge=0)
    annual_land_tax: Optional[float] = Field(default=None, ge=0)

    @property
    def effective_site_area(self) -> float:
        if self.site_area is None:
            return self.developable_area
        return self.site_area


# ──────────────────────────────────────────────────────────────────
# FEASIBILITY OUTPUT
# ──────────────────────────────────────────────────────────────────

class CalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    profile: DensityProfile
    yield_basis: YieldBasis
    binding_constraint: BindingConstraint
    gfa_explanation: str

    # Development metrics
    developable_area: float
    site_area: float
    fsr: Optional[float] = None
    hob: Optional[float] = None
    max_storeys: Optional[int] = None
    building_footprint_area: float
    gfa_under_fsr: Optional[float] = None
    gfa_under_hob: Optional[float] = None
    gfa: float
    nsa: float
    assumed_unit_size: float
    nsa_yield: int
    lot_size_yield: Optional[int] = None
    development_yield: int

    # Revenue
    dwelling_price: float
    gross_realization: float
    gst: float
    agents_commission: float
    legal_fees: float
    marketing_costs: float
    net_realization: float
    profit_and_risk: float
    net_realization_after_profit: float

    # Costs
    construction_cost_per_m2: float
    construction_costs: float
    da_fee: float
    professional_fees: float
    development_contribution: float
    total_development_costs: float
    land_tax_per_year: float
    land_tax: float
    finance_costs: float
    project_period: float

    # Residual
    residual_before_interest: float
    interest_on_purchase: float
    acquisition_costs: float
    residual_land_value: float
    residual_land_value_per_m2: float
    is_feasible: bool


# ──────────────────────────────────────────────────────────────────
# SENSITIVITY OUTPUT
# ──────────────────────────────────────────────────────────────────

class HousingImpactPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: int
    affected_units: int
    total_units: int
    social_residual_land_value: float
    affordable_residual_land_value: float
    mixed_residual_land_value: float
    social_percent_change: float = 0
    affordable_percent_change: float = 0
    mixed_percent_change: float = 0

    def residual_for(self, scenario: HousingScenario) -> float:
        return getattr(self, f"{HousingScenario(scenario).value}_residual_land_value")


class BreakevenPoint(BaseModel):
    """Largest sampled subsidised share at which the site still stacks up."""
    model_config = ConfigDict(frozen=True)

    scenario: HousingScenario
    percentage: int
    units: int
    is_feasible: bool
    interpolated_percentage: Optional[float] = None


class SensitivityResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_residual_land_value: float
    dwelling_price: float
    total_units: int
    points: list[HousingImpactPoint] = []
    # None means the site is feasible at 100% for that scenario
    breakeven: dict[HousingScenario, Optional[BreakevenPoint]] = {}


# ──────────────────────────────────────────────────────────────────
# MASSING OUTPUT
# ──────────────────────────────────────────────────────────────────

class BuildingSection(BaseModel):
    """A vertical slice of a building extruded from ``base_height`` upward."""
    model_config = ConfigDict(frozen=True)

    footprint: dict  # GeoJSON Polygon
    footprint_area: float
    floors: int
    base_height: float
    height: float  # section height, not absolute
    floor_area: float

    @property
    def top_height(self) -> float:
        return self.base_height + self.height


class Building(BaseModel):
    """One extruded building.

    ``floor_area`` is what the building carries across its sections;
    ``gfa`` is that figure capped at the building's share of the target.
    With a podium setback ``sections`` holds the base and the smaller
    upper section and ``base_height`` is the podium height.
    """
    model_config = ConfigDict(frozen=True)

    building_id: str
    name: str
    footprint: dict  # GeoJSON Polygon
    footprint_area: float
    floors: int
    height: float
    gfa: float
    floor_area: float
    sections: list[BuildingSection] = []
    base_height: Optional[float] = None
    height_restricted: bool = False
    width_restricted: bool = False
    shrunk_to_fit: bool = False

    @property
    def has_setback(self) -> bool:
        return len(self.sections) > 1


class MassingResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    target_gfa: float
    is_single_building: bool
    building_count: int
    buildings: list[Building] = []
    height_cap: float
    max_allowed_floors: int
    max_building_height: float = 0
    total_gfa: float = 0
    total_floor_area: float = 0
    total_footprint_area: float = 0
    height_restricted: bool = False
    width_restricted: bool = False
    # Target GFA the placed buildings cannot carry
    gfa_shortfall: float = 0
    warnings: list[str] = []

    def to_feature_collection(self) -> dict:
        """Footprints as a GeoJSON FeatureCollection for map renderers.

        A building with a podium setback contributes one feature per
        section; ``baseHeight`` and ``height`` are absolute so extrusion
        layers can stack them.
        """
        features = []
        for b in self.buildings:
            properties = {
                "buildingId": b.building_id,
                "name": b.name,
                "floors": b.floors,
                "height": b.height,
                "baseHeight": 0.0,
                "gfa": b.gfa,
                "footprintArea": b.footprint_area,
                "heightRestricted": b.height_restricted,
                "widthRestricted": b.width_restricted,
            }
            if not b.has_setback:
                features.append({
                    "type": "Feature",
                    "id": b.building_id,
                    "geometry": copy.deepcopy(b.footprint),
                    "properties": properties,
                })
                continue

            for label, section in zip(("base", "top"), b.sections):
                features.append({
                    "type": "Feature",
                    "id": f"{b.building_id}-{label}",
                    "geometry": copy.deepcopy(section.footprint),
                    "properties": {
                        **properties,
                        "section": label,
                        "floors": section.floors,
                        "height": section.top_height,
                        "baseHeight": section.base_height,
                        "footprintArea": section.footprint_area,
                    },
                })
        return {"type": "FeatureCollection", "features": features}


# ──────────────────────────────────────────────────────────────────
# API REQUESTS
# ──────────────────────────────────────────────────────────────────

class FeasibilityRequest(BaseModel):
    site: SiteMetrics
    profile: DensityProfile = DensityProfile.HIGH
    overrides: dict[str, float] = {}
    custom_fsr: Optional[float] = Field(default=None, ge=0)
    custom_hob: Optional[float] = Field(default=None, ge=0)


class MassingRequest(BaseModel):
    site: dict  # GeoJSON Polygon / MultiPolygon / Feature / FeatureCollection
    target_gfa: Optional[float] = Field(default=None, ge=0)
    hob: Optional[float] = Field(default=None, ge=0)
    fsr: Optional[float] = Field(default=None, ge=0)
    profile: DensityProfile = DensityProfile.HIGH
    constraints: Optional[BuildingConstraints] = None
    road_boundary: Optional[dict] = None  # GeoJSON LineString / MultiLineString


# ──────────────────────────────────────────────────────────────────
# API RESPONSES
# ──────────────────────────────────────────────────────────────────

class SensitivityResponse(BaseModel):
    feasibility: CalculationResult
    sensitivity: SensitivityResult
