"""
Schémas Tarification / Pricing schemas.
Requête, contexte, règles appliquées et résultat complet.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field, field_serializer

from app.schemas.cost import CostBreakdown, CostComponentName, TripAnalysis, VehicleSelection, ZoneSurcharges
from app.schemas.pricing_settings import (
    ContactInfo,
    OrganizationPricingSettings,
    VehicleCategoryInfo,
    VehicleInfo,
)
from app.schemas.rate_rule import AdvancedRate, SeasonalMultiplier
from app.schemas.zone import GeoPoint, Zone, ZoneResolution
from app.utils.money import Amount, jsonable


class TripType(str, enum.Enum):
    """Type de course / Trip type."""
    TRANSFER = "transfer"
    EXCURSION = "excursion"
    DISPO = "dispo"


class AppliedRule(BaseModel):
    """Trace d'un ajustement appliqué / Record of one applied adjustment."""
    type: str
    description: str
    price_before: Amount | None = None
    price_after: Amount | None = None
    details: dict[str, Any] = {}

    @field_serializer("details", when_used="json")
    def _serialize_details(self, details: dict[str, Any]) -> dict[str, Any]:
        return jsonable(details)


class ResolvedRates(BaseModel):
    rate_per_km: Amount
    rate_per_hour: Amount
    rate_source: Literal["CATEGORY", "ORGANIZATION"]
    used_category_rates: bool


class DynamicBasePriceResult(BaseModel):
    """Prix de base dynamique et intermédiaires / Dynamic base price and intermediates."""
    distance_km: Amount
    duration_minutes: Amount
    rate_per_km: Amount
    rate_per_hour: Amount
    rate_source: Literal["CATEGORY", "ORGANIZATION"]
    target_margin_percent: Amount
    distance_based_price: Amount
    duration_based_price: Amount
    selected_method: Literal["distance", "duration"]
    base_price: Amount
    price_with_margin: Amount


class TripTypePricingResult(BaseModel):
    price: Amount
    rule: AppliedRule | None = None


# ---- Zone dense et aller-retour / Dense zone and round trip ----

class DenseZoneDetection(BaseModel):
    is_intra_dense_zone: bool
    pickup_zone_code: str | None = None
    dropoff_zone_code: str | None = None
    dense_zone_codes: list[str]
    commercial_speed_kmh: Amount | None = None
    speed_threshold: Amount
    is_below_threshold: bool

    @property
    def is_flagged(self) -> bool:
        return self.is_intra_dense_zone and self.is_below_threshold


class MadSuggestion(BaseModel):
    type: str = "CONSIDER_MAD_PRICING"
    transfer_price: Amount
    mad_price: Amount
    mad_hours: int
    price_difference: Amount
    percentage_gain: Amount
    recommendation: str
    auto_switched: bool


class RoundTripReason(str, enum.Enum):
    NOT_ROUND_TRIP = "NOT_ROUND_TRIP"
    DRIVER_CAN_RETURN = "DRIVER_CAN_RETURN"
    EXCEEDS_MAX_RETURN_DISTANCE = "EXCEEDS_MAX_RETURN_DISTANCE"
    WAITING_TIME_TOO_SHORT = "WAITING_TIME_TOO_SHORT"
    CANNOT_RETURN_IN_TIME = "CANNOT_RETURN_IN_TIME"


class RoundTripDetection(BaseModel):
    is_driver_blocked: bool
    waiting_time_minutes: int
    min_waiting_time_for_separate_transfers: int
    max_return_distance_km: Amount
    return_distance_km: Amount
    return_to_base_minutes: Amount
    round_trip_to_base_minutes: Amount
    exceeds_max_return_distance: bool
    reason: RoundTripReason


class RoundTripMadSuggestion(BaseModel):
    type: str = "CONSIDER_MAD_FOR_ROUND_TRIP"
    two_transfers_price: Amount
    mad_price: Amount
    mad_hours: int
    price_difference: Amount
    percentage_gain: Amount
    recommendation: str
    auto_switched: bool


# ---- Rentabilité et commission / Profitability and commission ----

class ProfitabilityTier(str, enum.Enum):
    GREEN = "green"
    ORANGE = "orange"
    RED = "red"


class ProfitabilityThresholds(BaseModel):
    green_threshold: Amount = Decimal("20")
    orange_threshold: Amount = Decimal("0")


class ProfitabilityData(BaseModel):
    indicator: ProfitabilityTier
    margin_percent: Amount
    thresholds: ProfitabilityThresholds
    label: str
    description: str


class CommissionResult(BaseModel):
    commission_percent: Amount
    commission_amount: Amount
    net_amount_after_commission: Amount


class EffectiveMargin(BaseModel):
    gross_margin: Amount
    gross_margin_percent: Amount
    effective_margin: Amount
    effective_margin_percent: Amount


class CommissionData(BaseModel):
    commission_percent: Amount
    commission_amount: Amount
    net_amount_after_commission: Amount
    gross_margin: Amount
    gross_margin_percent: Amount
    effective_margin: Amount
    effective_margin_percent: Amount
    profitability: ProfitabilityData


class PriceOverrideValidation(BaseModel):
    is_valid: bool
    error_code: Literal["INVALID_PRICE", "BELOW_MINIMUM_MARGIN"] | None = None
    message: str | None = None
    warnings: list[str] = []


# ---- Requête et résultat / Request and result ----

class PricingRequest(BaseModel):
    """Faits de la course / Trip facts."""
    pickup: GeoPoint
    dropoff: GeoPoint
    trip_type: str = TripType.TRANSFER.value
    vehicle_category_id: str | None = None
    pickup_at: datetime | None = None
    distance_km: Amount | None = Field(default=None, ge=0)
    duration_minutes: Amount | None = Field(default=None, ge=0)
    routing_source: Literal["GOOGLE_API", "HAVERSINE_ESTIMATE"] | None = None
    is_round_trip: bool = False
    waiting_time_minutes: int | None = Field(default=None, ge=0)


class PricingContext(BaseModel):
    """Données chargées par l'appelant / Data loaded by the caller."""
    settings: OrganizationPricingSettings
    zones: list[Zone] = []
    advanced_rates: list[AdvancedRate] = []
    seasonal_multipliers: list[SeasonalMultiplier] = []
    vehicle_category: VehicleCategoryInfo | None = None
    vehicle: VehicleInfo | None = None
    vehicle_selection: VehicleSelection | None = None
    contact: ContactInfo = ContactInfo()
    parking_cost: Amount | None = None


class PricingResult(BaseModel):
    """Résultat complet d'un calcul / Complete pricing outcome."""
    price: Amount
    currency: str = "EUR"
    trip_type: str
    internal_cost: Amount | None = None
    margin: Amount | None = None
    margin_percent: Amount | None = None
    profitability: ProfitabilityData | None = None
    commission: CommissionData | None = None
    applied_rules: list[AppliedRule] = []
    warnings: list[str] = []
    base_price: DynamicBasePriceResult
    cost_breakdown: CostBreakdown
    zone_surcharges: ZoneSurcharges
    trip_analysis: TripAnalysis
    pickup_zone: ZoneResolution
    dropoff_zone: ZoneResolution
    dense_zone: DenseZoneDetection | None = None
    mad_suggestion: MadSuggestion | None = None
    round_trip: RoundTripDetection | None = None
    round_trip_mad_suggestion: RoundTripMadSuggestion | None = None


class PriceOverrideRequest(BaseModel):
    result: PricingResult
    new_price: Amount
    settings: OrganizationPricingSettings
    reason: str | None = None
    minimum_margin_percent: Amount | None = None


class PriceOverrideResponse(BaseModel):
    validation: PriceOverrideValidation
    result: PricingResult | None = None


class CostOverrideRequest(BaseModel):
    """Correction d'un composant du coût interne / Manual edit of one internal cost component."""
    result: PricingResult
    component: CostComponentName
    value: Amount = Field(..., ge=0)
    edited_by: str
    reason: str | None = None
    settings: OrganizationPricingSettings | None = None


# ---- Validation du résultat / Result validation ----

class ValidationCheckStatus(str, enum.Enum):
    PASS = "PASS"
    WARNING = "WARNING"
    FAIL = "FAIL"


class ValidationCheck(BaseModel):
    id: str
    name: str
    status: ValidationCheckStatus
    message: str
    details: dict[str, Any] = {}

    @field_serializer("details", when_used="json")
    def _serialize_details(self, details: dict[str, Any]) -> dict[str, Any]:
        return jsonable(details)


class PricingValidationResult(BaseModel):
    is_valid: bool
    overall_status: Literal["VALID", "WARNING", "INVALID"]
    checks: list[ValidationCheck]
    warnings: list[str] = []
    errors: list[str] = []
    timestamp: datetime


# ---- Corps de requête API / API request bodies ----

class PricingCalculateRequest(BaseModel):
    request: PricingRequest
    context: PricingContext


class CommissionRequest(BaseModel):
    price: Amount = Field(..., ge=0)
    internal_cost: Amount = Decimal("0")
    commission_percent: Amount = Field(..., ge=0)
    settings: OrganizationPricingSettings | None = None


class TripAnalysisRequest(BaseModel):
    distance_km: Amount = Field(..., ge=0)
    duration_minutes: Amount = Field(..., ge=0)
    settings: OrganizationPricingSettings
    vehicle_category: VehicleCategoryInfo | None = None
    vehicle: VehicleInfo | None = None
    vehicle_selection: VehicleSelection | None = None
    routing_source: Literal["GOOGLE_API", "HAVERSINE_ESTIMATE"] | None = None
