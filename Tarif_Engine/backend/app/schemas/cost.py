"""
Schémas Coût interne / Internal cost schemas.
Ventilation par composant, segments et corrections manuelles.
"""

import enum
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from app.utils.money import Amount

CostComponentName = Literal["fuel", "tolls", "wear", "driver", "parking"]
COST_COMPONENTS: tuple[str, ...] = ("fuel", "tolls", "wear", "driver", "parking")


class FuelCost(BaseModel):
    amount: Amount
    distance_km: Amount | None = None
    consumption_l100km: Amount | None = None
    price_per_liter: Amount | None = None


class DistanceRateCost(BaseModel):
    """Coût proportionnel au km (péage, usure) / Per-km cost (tolls, wear)."""
    amount: Amount
    distance_km: Amount | None = None
    rate_per_km: Amount | None = None


class DriverCost(BaseModel):
    amount: Amount
    duration_minutes: Amount | None = None
    hourly_rate: Amount | None = None


class ParkingCost(BaseModel):
    amount: Amount
    description: str = ""


class CostBreakdown(BaseModel):
    """Ventilation du coût (None = non configuré) / Cost breakdown (None = not configured)."""
    fuel: FuelCost | None = None
    tolls: DistanceRateCost | None = None
    wear: DistanceRateCost | None = None
    driver: DriverCost | None = None
    parking: ParkingCost | None = None
    total: Amount | None = None

    def amounts(self) -> dict[str, Decimal | None]:
        """Montants par composant / Amount per component."""
        result = {}
        for name in COST_COMPONENTS:
            component = getattr(self, name)
            result[name] = component.amount if component is not None else None
        return result


class ConsumptionSource(str, enum.Enum):
    VEHICLE = "VEHICLE"
    CATEGORY = "CATEGORY"
    ORGANIZATION = "ORGANIZATION"
    DEFAULT = "DEFAULT"


class FuelConsumptionResolution(BaseModel):
    consumption_l100km: Amount
    source: ConsumptionSource


class ZoneSurchargeDetail(BaseModel):
    zone_id: str
    zone_code: str
    zone_name: str
    parking_surcharge: Amount
    access_fee: Amount
    total: Amount


class ZoneSurcharges(BaseModel):
    pickup: ZoneSurchargeDetail | None = None
    dropoff: ZoneSurchargeDetail | None = None
    total: Amount = Decimal("0")


class CostOverride(BaseModel):
    """Correction manuelle d'un composant / Manual edit of one component."""
    component: CostComponentName
    original_value: Amount | None = None
    edited_value: Amount
    edited_by: str
    edited_at: datetime
    reason: str | None = None


class CostOverrides(BaseModel):
    overrides: list[CostOverride] = []
    has_manual_edits: bool = False
    last_edited_at: datetime | None = None
    last_edited_by: str | None = None


# ---- Segments / Segments ----

class RoutingSource(str, enum.Enum):
    """Provenance des distances / Distance provenance."""
    GOOGLE_API = "GOOGLE_API"
    HAVERSINE_ESTIMATE = "HAVERSINE_ESTIMATE"
    VEHICLE_SELECTION = "VEHICLE_SELECTION"


SegmentName = Literal["approach", "service", "return"]


class SegmentAnalysis(BaseModel):
    name: SegmentName
    description: str
    distance_km: Amount
    duration_minutes: Amount
    cost: CostBreakdown
    is_estimated: bool = False


class VehicleSelection(BaseModel):
    """Données de sélection véhicule / Vehicle selection data (transparence)."""
    vehicle_id: str
    vehicle_name: str | None = None
    base_id: str | None = None
    base_name: str | None = None
    approach_distance_km: Amount
    approach_duration_minutes: Amount
    return_distance_km: Amount
    return_duration_minutes: Amount
    routing_source: RoutingSource = RoutingSource.VEHICLE_SELECTION


class TripAnalysis(BaseModel):
    segments: list[SegmentAnalysis]
    total_distance_km: Amount
    total_duration_minutes: Amount
    total_internal_cost: Amount | None = None
    routing_source: RoutingSource
    is_estimated: bool
    vehicle_selection: VehicleSelection | None = None
    cost_overrides: CostOverrides | None = None
    calculated_at: datetime

    def segment(self, name: str) -> SegmentAnalysis | None:
        """Segment par nom / Segment by name."""
        for seg in self.segments:
            if seg.name == name:
                return seg
        return None
