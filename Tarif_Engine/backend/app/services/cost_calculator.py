"""
Service de calcul des coûts / Cost calculation service.
Coût interne d'une course : carburant, péages, usure, chauffeur, stationnement.
Un paramètre absent exclut le composant (pas de contribution nulle).
"""

import logging
from datetime import datetime
from decimal import Decimal

from app.schemas.cost import (
    COST_COMPONENTS,
    ConsumptionSource,
    CostBreakdown,
    CostOverride,
    CostOverrides,
    DistanceRateCost,
    DriverCost,
    FuelConsumptionResolution,
    FuelCost,
    ParkingCost,
    ZoneSurchargeDetail,
    ZoneSurcharges,
)
from app.schemas.pricing_settings import (
    FuelType,
    OrganizationPricingSettings,
    VehicleCategoryInfo,
    VehicleInfo,
)
from app.schemas.zone import Zone
from app.utils.money import HUNDRED, SIXTY, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_FUEL_CONSUMPTION_L100KM = Decimal("8.0")

# Prix moyens France / Average French pump prices (EUR par litre, kWh pour l'électrique)
DEFAULT_FUEL_PRICES: dict[FuelType, Decimal] = {
    FuelType.DIESEL: Decimal("1.789"),
    FuelType.GASOLINE: Decimal("1.899"),
    FuelType.LPG: Decimal("0.999"),
    FuelType.ELECTRIC: Decimal("0.25"),
}


class CostCalculatorService:
    """Calcul du coût interne / Internal cost calculation."""

    @staticmethod
    def resolve_fuel_consumption(
        settings: OrganizationPricingSettings,
        vehicle_category: VehicleCategoryInfo | None = None,
        vehicle: VehicleInfo | None = None,
    ) -> FuelConsumptionResolution:
        """
        Consommation retenue / Resolved consumption.
        Ordre : véhicule, catégorie, organisation, défaut (valeur > 0 exigée).
        """
        chain = [
            (vehicle.consumption_l100km if vehicle else None, ConsumptionSource.VEHICLE),
            (vehicle_category.fuel_consumption_l100km if vehicle_category else None, ConsumptionSource.CATEGORY),
            (settings.fuel_consumption_l100km, ConsumptionSource.ORGANIZATION),
        ]
        for value, source in chain:
            if value is not None and value > 0:
                return FuelConsumptionResolution(consumption_l100km=value, source=source)
        return FuelConsumptionResolution(
            consumption_l100km=DEFAULT_FUEL_CONSUMPTION_L100KM, source=ConsumptionSource.DEFAULT
        )

    @staticmethod
    def resolve_fuel_price(
        settings: OrganizationPricingSettings,
        fuel_type: FuelType | None = None,
    ) -> Decimal | None:
        """
        Prix du carburant / Fuel price per liter.
        Prix organisation, sinon prix moyen du type de carburant, sinon None.
        """
        if settings.fuel_price_per_liter is not None:
            return settings.fuel_price_per_liter
        if fuel_type is not None:
            return DEFAULT_FUEL_PRICES[fuel_type]
        return None

    @staticmethod
    def calculate_cost_breakdown(
        distance_km: Decimal,
        duration_minutes: Decimal,
        settings: OrganizationPricingSettings,
        vehicle_category: VehicleCategoryInfo | None = None,
        vehicle: VehicleInfo | None = None,
        parking_amount: Decimal | None = None,
        parking_description: str = "",
    ) -> CostBreakdown:
        """
        Ventilation du coût d'un segment / Cost breakdown for one segment.
        Total arrondi une seule fois / Total rounded once.
        """
        distance_km = to_decimal(distance_km)
        duration_minutes = to_decimal(duration_minutes)

        fuel_type = None
        if vehicle and vehicle.fuel_type:
            fuel_type = vehicle.fuel_type
        elif vehicle_category and vehicle_category.fuel_type:
            fuel_type = vehicle_category.fuel_type

        fuel = None
        fuel_price = CostCalculatorService.resolve_fuel_price(settings, fuel_type)
        if fuel_price is not None:
            consumption = CostCalculatorService.resolve_fuel_consumption(settings, vehicle_category, vehicle)
            fuel = FuelCost(
                amount=distance_km / HUNDRED * consumption.consumption_l100km * fuel_price,
                distance_km=distance_km,
                consumption_l100km=consumption.consumption_l100km,
                price_per_liter=fuel_price,
            )

        tolls = None
        if settings.toll_cost_per_km is not None:
            tolls = DistanceRateCost(
                amount=distance_km * settings.toll_cost_per_km,
                distance_km=distance_km,
                rate_per_km=settings.toll_cost_per_km,
            )

        wear = None
        if settings.wear_cost_per_km is not None:
            wear = DistanceRateCost(
                amount=distance_km * settings.wear_cost_per_km,
                distance_km=distance_km,
                rate_per_km=settings.wear_cost_per_km,
            )

        driver = None
        if settings.driver_hourly_cost is not None:
            driver = DriverCost(
                amount=duration_minutes / SIXTY * settings.driver_hourly_cost,
                duration_minutes=duration_minutes,
                hourly_rate=settings.driver_hourly_cost,
            )

        parking = None
        if parking_amount is not None:
            parking = ParkingCost(amount=to_decimal(parking_amount), description=parking_description)

        return _with_total(CostBreakdown(fuel=fuel, tolls=tolls, wear=wear, driver=driver, parking=parking))

    @staticmethod
    def calculate_zone_surcharges(pickup_zone: Zone | None, dropoff_zone: Zone | None) -> ZoneSurcharges:
        """
        Frais fixes de zone (stationnement, accès) / Fixed zone fees (parking, access).
        Dépose ignorée si même zone que la prise en charge.
        """
        pickup = _zone_surcharge(pickup_zone)
        dropoff = None
        if dropoff_zone is not None and (pickup_zone is None or dropoff_zone.id != pickup_zone.id):
            dropoff = _zone_surcharge(dropoff_zone)

        total = ZERO
        for detail in (pickup, dropoff):
            if detail is not None:
                total += detail.total
        return ZoneSurcharges(pickup=pickup, dropoff=dropoff, total=total)

    @staticmethod
    def add_parking(breakdown: CostBreakdown, amount: Decimal, description: str) -> CostBreakdown:
        """Ajouter un montant au stationnement / Add an amount to parking."""
        if amount <= 0:
            return breakdown
        if breakdown.parking is None:
            parking = ParkingCost(amount=amount, description=description)
        else:
            label = "; ".join(d for d in (breakdown.parking.description, description) if d)
            parking = ParkingCost(amount=breakdown.parking.amount + amount, description=label)
        return _with_total(breakdown.model_copy(update={"parking": parking}))

    @staticmethod
    def combine_cost_breakdowns(breakdowns: list[CostBreakdown]) -> CostBreakdown:
        """
        Somme composant par composant / Component-wise sum.
        Les taux unitaires viennent du premier segment qui en porte.
        """
        combined = {}
        for name in COST_COMPONENTS:
            parts = [getattr(b, name) for b in breakdowns if getattr(b, name) is not None]
            if not parts:
                combined[name] = None
                continue
            amount = sum((p.amount for p in parts), ZERO)
            if name == "parking":
                label = "; ".join(p.description for p in parts if p.description)
                combined[name] = ParkingCost(amount=amount, description=label)
            elif name == "driver":
                combined[name] = DriverCost(
                    amount=amount,
                    duration_minutes=_sum_optional(p.duration_minutes for p in parts),
                    hourly_rate=_first_rate(p.hourly_rate for p in parts),
                )
            elif name == "fuel":
                combined[name] = FuelCost(
                    amount=amount,
                    distance_km=_sum_optional(p.distance_km for p in parts),
                    consumption_l100km=_first_rate(p.consumption_l100km for p in parts),
                    price_per_liter=_first_rate(p.price_per_liter for p in parts),
                )
            else:
                combined[name] = DistanceRateCost(
                    amount=amount,
                    distance_km=_sum_optional(p.distance_km for p in parts),
                    rate_per_km=_first_rate(p.rate_per_km for p in parts),
                )
        return _with_total(CostBreakdown(**combined))

    @staticmethod
    def apply_cost_override(
        breakdown: CostBreakdown,
        component: str,
        value: Decimal,
        edited_by: str,
        edited_at: datetime,
        reason: str | None = None,
        existing: CostOverrides | None = None,
    ) -> tuple[CostBreakdown, CostOverrides]:
        """
        Correction manuelle d'un composant / Manual edit of one cost component.
        Valeur identique : aucune trace / Unchanged value: nothing recorded.
        """
        if component not in COST_COMPONENTS:
            raise ValueError(f"Unknown cost component: {component}")
        value = to_decimal(value)
        if value < 0:
            raise ValueError("Cost override must be zero or positive")

        overrides = existing or CostOverrides()
        current = breakdown.amounts()[component]
        if current is not None and round_money(current) == round_money(value):
            return breakdown, overrides

        original = getattr(breakdown, component)
        if original is None:
            edited = _empty_component(component, value)
        else:
            edited = original.model_copy(update={"amount": value})
        updated = _with_total(breakdown.model_copy(update={component: edited}))

        record = CostOverride(
            component=component,
            original_value=round_money(current) if current is not None else None,
            edited_value=value,
            edited_by=edited_by,
            edited_at=edited_at,
            reason=reason,
        )
        logger.info(
            "Coût corrigé / cost override: %s %s -> %s par %s", component, current, value, edited_by
        )
        summary = CostOverrides(
            overrides=[*overrides.overrides, record],
            has_manual_edits=True,
            last_edited_at=edited_at,
            last_edited_by=edited_by,
        )
        return updated, summary


def _with_total(breakdown: CostBreakdown) -> CostBreakdown:
    """Recalculer le total (None si aucun composant) / Recompute total (None if no component)."""
    present = [a for a in breakdown.amounts().values() if a is not None]
    total = round_money(sum(present, ZERO)) if present else None
    return breakdown.model_copy(update={"total": total})


def _zone_surcharge(zone: Zone | None) -> ZoneSurchargeDetail | None:
    if zone is None:
        return None
    parking = zone.fixed_parking_surcharge or ZERO
    access = zone.fixed_access_fee or ZERO
    if parking == 0 and access == 0:
        return None
    return ZoneSurchargeDetail(
        zone_id=zone.id,
        zone_code=zone.code,
        zone_name=zone.name,
        parking_surcharge=parking,
        access_fee=access,
        total=parking + access,
    )


def _sum_optional(values) -> Decimal | None:
    present = [v for v in values if v is not None]
    return sum(present, ZERO) if present else None


def _first_rate(values) -> Decimal | None:
    for value in values:
        if value:
            return value
    return None


def _empty_component(component: str, amount: Decimal):
    if component == "fuel":
        return FuelCost(amount=amount)
    if component == "driver":
        return DriverCost(amount=amount)
    if component == "parking":
        return ParkingCost(amount=amount, description="Manual edit")
    return DistanceRateCost(amount=amount)
