"""
Schémas Paramètres tarifaires / Pricing settings schemas.
Instantané passé par valeur à chaque calcul / Snapshot passed by value to each call.
"""

import enum
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.zone import ZoneConflictStrategy, ZoneMultiplierAggregation
from app.utils.money import Amount


class FuelType(str, enum.Enum):
    """Type de carburant / Fuel type."""
    DIESEL = "DIESEL"
    GASOLINE = "GASOLINE"
    LPG = "LPG"
    ELECTRIC = "ELECTRIC"


class RegulatoryCategory(str, enum.Enum):
    """Catégorie réglementaire / Regulatory category."""
    LIGHT = "LIGHT"
    HEAVY = "HEAVY"


class RoundingRule(str, enum.Enum):
    """Arrondi du prix final / Final price rounding."""
    NONE = "NONE"                  # au centime / to the cent
    NEAREST_EURO = "NEAREST_EURO"
    UP_TO_EURO = "UP_TO_EURO"
    UP_TO_FIVE_EUROS = "UP_TO_FIVE_EUROS"


class TimeBucketStrategy(str, enum.Enum):
    """Interpolation entre forfaits horaires / Interpolation between time buckets."""
    ROUND_UP = "ROUND_UP"
    ROUND_DOWN = "ROUND_DOWN"
    PROPORTIONAL = "PROPORTIONAL"


class MadTimeBucket(BaseModel):
    """Forfait MAD par durée / MAD package per duration."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    duration_hours: Amount
    vehicle_category_id: str
    price: Amount
    is_active: bool = True


class VehicleCategoryInfo(BaseModel):
    """Catégorie de véhicule / Vehicle category (surcharges de tarif optionnelles)."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    name: str
    price_multiplier: Amount = Decimal("1")
    default_rate_per_km: Amount | None = None
    default_rate_per_hour: Amount | None = None
    fuel_type: FuelType | None = None
    fuel_consumption_l100km: Amount | None = None
    regulatory_category: RegulatoryCategory = RegulatoryCategory.LIGHT


class VehicleInfo(BaseModel):
    """Véhicule sélectionné / Selected vehicle."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    consumption_l100km: Amount | None = None
    fuel_type: FuelType | None = None


class OrganizationPricingSettings(BaseModel):
    """Paramètres tarifaires d'une organisation / Organization pricing settings."""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    # Tarifs de base / Base rates
    base_rate_per_km: Amount = Decimal("2.5")
    base_rate_per_hour: Amount = Decimal("45")
    target_margin_percent: Amount = Decimal("20")
    minimum_fare: Amount | None = None
    rounding_rule: RoundingRule = RoundingRule.NONE

    # Seuils de rentabilité / Profitability thresholds
    green_margin_threshold: Amount | None = None
    orange_margin_threshold: Amount | None = None

    # Coûts opérationnels (None = composant exclu) / Operational costs (None = excluded)
    fuel_consumption_l100km: Amount | None = None
    fuel_price_per_liter: Amount | None = None
    toll_cost_per_km: Amount | None = None
    wear_cost_per_km: Amount | None = None
    driver_hourly_cost: Amount | None = None

    # Zones
    zone_conflict_strategy: ZoneConflictStrategy | None = None
    zone_multiplier_aggregation: ZoneMultiplierAggregation | None = None

    # Types de course / Trip types
    excursion_minimum_hours: Amount | None = None
    excursion_surcharge_percent: Amount | None = None
    dispo_included_km_per_hour: Amount | None = None
    dispo_overage_rate_per_km: Amount | None = None
    time_bucket_strategy: TimeBucketStrategy | None = None
    mad_time_buckets: list[MadTimeBucket] = []

    # Zone dense / Dense zone
    dense_zone_speed_threshold: Amount | None = None
    dense_zone_codes: list[str] | None = None
    auto_switch_to_mad: bool = False

    # Aller-retour / Round trip
    min_waiting_time_for_separate_transfers: int | None = None
    max_return_distance_km: Amount | None = None
    round_trip_buffer_minutes: int | None = None
    auto_switch_round_trip_to_mad: bool = False

    # Difficulté client (clé "1".."5") / Client difficulty (key "1".."5")
    difficulty_multipliers: dict[str, Amount] | None = None


class ContactInfo(BaseModel):
    """Client du devis / Quote contact (partenaire = commission)."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str | None = None
    is_partner: bool = False
    commission_percent: Amount | None = Field(default=None, ge=0)
    difficulty_score: int | None = None
