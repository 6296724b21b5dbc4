"""Schémas Règles tarifaires / Rate rule schemas (majorations et saisons)."""

import enum
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.utils.money import Amount

# HH:MM, 00:00 à 23:59 / 00:00 to 23:59
HHMM_PATTERN = r"^([01][0-9]|2[0-3]):[0-5][0-9]$"


class AdjustmentType(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class AdvancedRateAppliesTo(str, enum.Enum):
    """Famille de majoration / Adjustment family."""
    NIGHT = "NIGHT"
    WEEKEND = "WEEKEND"
    LONG_DISTANCE = "LONG_DISTANCE"
    ZONE = "ZONE"


class AdvancedRate(BaseModel):
    """Majoration horaire / jour / distance / zone / Time-day-distance-zone rate."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    name: str
    applies_to: AdvancedRateAppliesTo
    start_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    end_time: str | None = Field(default=None, pattern=HHMM_PATTERN)   # exclusif / exclusive
    days_of_week: str | None = None        # "0,6" (0 = dimanche / Sunday)
    min_distance_km: Amount | None = None
    max_distance_km: Amount | None = None
    zone_id: str | None = None
    adjustment_type: AdjustmentType
    value: Amount
    priority: int = 0
    is_active: bool = True
    vehicle_category_id: str | None = None
    vehicle_category_ids: list[str] | None = None


class SeasonalMultiplier(BaseModel):
    """Coefficient saisonnier / Seasonal multiplier."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    name: str
    description: str | None = None
    start_date: date
    end_date: date                         # inclusif / inclusive
    multiplier: Amount = Decimal("1")
    priority: int = 0
    is_active: bool = True
    vehicle_category_id: str | None = None
    vehicle_category_ids: list[str] | None = None
