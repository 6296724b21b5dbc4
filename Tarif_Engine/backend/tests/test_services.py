"""Tests des services / Service tests."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from app.schemas.cost import ConsumptionSource
from app.schemas.pricing_settings import FuelType, OrganizationPricingSettings, VehicleCategoryInfo, VehicleInfo
from app.schemas.zone import GeoPoint, RadiusGeometry, Zone
from app.services.cost_calculator import CostCalculatorService
from app.services.distance_service import DistanceService
from app.services.dynamic_pricing import DynamicPricingService
from app.services.time_calculator import TimeCalculatorService
from app.utils.money import round_money


def _costed_settings(**overrides) -> OrganizationPricingSettings:
    values = {
        "fuel_consumption_l100km": Decimal("8"),
        "fuel_price_per_liter": Decimal("1.80"),
        "toll_cost_per_km": Decimal("0.10"),
        "wear_cost_per_km": Decimal("0.05"),
        "driver_hourly_cost": Decimal("30"),
    }
    values.update(overrides)
    return OrganizationPricingSettings(**values)


def _zone(zone_id: str, parking=None, access=None) -> Zone:
    return Zone(
        id=zone_id,
        name=f"Zone {zone_id}",
        code=zone_id.upper(),
        geometry=RadiusGeometry(center=GeoPoint(lat=48.8566, lng=2.3522), radius_km=5),
        fixed_parking_surcharge=parking,
        fixed_access_fee=access,
    )


# ---- Temps / Time ----

def test_travel_time_rounds_to_whole_minutes():
    travel = TimeCalculatorService.calculate_travel_time_minutes
    assert travel(Decimal("25"), Decimal("50")) == Decimal("30")
    assert travel(Decimal("10.25"), Decimal("50")) == Decimal("12")
    assert travel(Decimal("2.5"), Decimal("60")) == Decimal("3")
    assert travel(Decimal("10"), Decimal("0")) == Decimal("0")


def test_time_range_overnight():
    assert TimeCalculatorService.is_time_in_range(datetime(2026, 3, 10, 23, 0), "22:00", "06:00")
    assert TimeCalculatorService.is_time_in_range(datetime(2026, 3, 10, 5, 59), "22:00", "06:00")
    assert not TimeCalculatorService.is_time_in_range(datetime(2026, 3, 10, 6, 0), "22:00", "06:00")
    assert TimeCalculatorService.is_time_in_range(datetime(2026, 3, 10, 8, 0), "08:00", "10:00")


def test_day_index_sunday_is_zero():
    # 8 mars 2026 = dimanche / Sunday
    assert TimeCalculatorService.day_index(datetime(2026, 3, 8, 12, 0)) == 0
    assert TimeCalculatorService.is_day_in_set(datetime(2026, 3, 7, 12, 0), "0,6")
    assert not TimeCalculatorService.is_day_in_set(datetime(2026, 3, 9, 12, 0), "0,6")


def test_date_range_end_inclusive():
    moment = datetime(2026, 12, 31, 23, 0)
    assert TimeCalculatorService.is_within_date_range(moment, date(2026, 12, 20), date(2026, 12, 31))
    assert not TimeCalculatorService.is_within_date_range(moment, date(2026, 12, 1), date(2026, 12, 30))


def test_night_overlap_across_midnight():
    minutes = TimeCalculatorService.night_overlap_minutes(
        datetime(2026, 3, 10, 21, 0), datetime(2026, 3, 11, 1, 0), "22:00", "06:00"
    )
    assert minutes == 180


# ---- Distances ----

def test_haversine():
    # Paris -> Lyon ~ 392 km
    dist = DistanceService.haversine_km(48.8566, 2.3522, 45.7640, 4.8357)
    assert 380 < dist < 400


def test_estimate_trip_uses_road_factor_and_speed():
    distance, duration = DistanceService.estimate_trip(
        GeoPoint(lat=48.8566, lng=2.3522), GeoPoint(lat=45.7640, lng=4.8357)
    )
    assert Decimal("494") < distance < Decimal("520")
    assert duration == round_money(distance / 50 * 60, "1")


# ---- Coûts / Costs ----

def test_cost_breakdown_components():
    breakdown = CostCalculatorService.calculate_cost_breakdown(100, 90, _costed_settings())
    assert breakdown.fuel.amount == Decimal("14.4")
    assert breakdown.tolls.amount == Decimal("10")
    assert breakdown.wear.amount == Decimal("5")
    assert breakdown.driver.amount == Decimal("45")
    assert breakdown.parking is None
    assert breakdown.total == Decimal("74.40")


def test_cost_breakdown_without_settings_has_no_total():
    breakdown = CostCalculatorService.calculate_cost_breakdown(100, 90, OrganizationPricingSettings())
    assert breakdown.fuel is None
    assert breakdown.driver is None
    assert breakdown.total is None


def test_missing_component_is_excluded_not_zero():
    breakdown = CostCalculatorService.calculate_cost_breakdown(
        100, 90, _costed_settings(toll_cost_per_km=None)
    )
    assert breakdown.tolls is None
    assert breakdown.total == Decimal("64.40")


def test_fuel_uses_default_price_for_category_fuel_type():
    category = VehicleCategoryInfo(
        id="van", name="Van", fuel_type=FuelType.DIESEL, fuel_consumption_l100km=Decimal("10")
    )
    breakdown = CostCalculatorService.calculate_cost_breakdown(
        100, 60, OrganizationPricingSettings(), vehicle_category=category
    )
    assert breakdown.fuel.price_per_liter == Decimal("1.789")
    assert breakdown.total == Decimal("17.89")


def test_fuel_consumption_chain():
    settings = _costed_settings(fuel_consumption_l100km=Decimal("7"))
    category = VehicleCategoryInfo(id="berline", name="Berline", fuel_consumption_l100km=Decimal("9"))
    vehicle = VehicleInfo(id="v1", consumption_l100km=Decimal("6.5"))

    resolved = CostCalculatorService.resolve_fuel_consumption(settings, category, vehicle)
    assert resolved.source == ConsumptionSource.VEHICLE
    assert resolved.consumption_l100km == Decimal("6.5")

    resolved = CostCalculatorService.resolve_fuel_consumption(settings, category, VehicleInfo(id="v2"))
    assert resolved.source == ConsumptionSource.CATEGORY

    resolved = CostCalculatorService.resolve_fuel_consumption(OrganizationPricingSettings())
    assert resolved.source == ConsumptionSource.DEFAULT
    assert resolved.consumption_l100km == Decimal("8.0")


def test_zone_surcharges_same_zone_counted_once():
    zone = _zone("cdg", parking=Decimal("5"), access=Decimal("3"))
    surcharges = CostCalculatorService.calculate_zone_surcharges(zone, zone)
    assert surcharges.pickup.total == Decimal("8")
    assert surcharges.dropoff is None
    assert surcharges.total == Decimal("8")


def test_zone_surcharges_both_ends():
    surcharges = CostCalculatorService.calculate_zone_surcharges(
        _zone("cdg", parking=Decimal("5")), _zone("orly", access=Decimal("4"))
    )
    assert surcharges.dropoff.zone_code == "ORLY"
    assert surcharges.total == Decimal("9")


def test_combine_cost_breakdowns_sums_components():
    settings = _costed_settings()
    first = CostCalculatorService.calculate_cost_breakdown(100, 90, settings)
    second = CostCalculatorService.calculate_cost_breakdown(20, 30, settings)
    combined = CostCalculatorService.combine_cost_breakdowns([first, second])
    assert combined.tolls.amount == Decimal("12")
    assert combined.tolls.distance_km == Decimal("120")
    assert combined.driver.duration_minutes == Decimal("120")
    assert combined.total == first.total + second.total


def test_cost_override_records_audit_trail():
    breakdown = CostCalculatorService.calculate_cost_breakdown(100, 90, _costed_settings())
    edited_at = datetime(2026, 3, 10, 9, 0)
    updated, overrides = CostCalculatorService.apply_cost_override(
        breakdown, "tolls", Decimal("12"), "ops@example.com", edited_at, reason="A1 toll"
    )
    assert updated.tolls.amount == Decimal("12")
    assert updated.total == Decimal("76.40")
    assert overrides.has_manual_edits
    assert overrides.last_edited_by == "ops@example.com"
    assert overrides.overrides[0].original_value == Decimal("10.00")
    assert overrides.overrides[0].reason == "A1 toll"


def test_cost_override_same_value_not_recorded():
    breakdown = CostCalculatorService.calculate_cost_breakdown(100, 90, _costed_settings())
    updated, overrides = CostCalculatorService.apply_cost_override(
        breakdown, "tolls", Decimal("10.00"), "ops@example.com", datetime(2026, 3, 10, 9, 0)
    )
    assert updated == breakdown
    assert not overrides.has_manual_edits


def test_cost_override_rejects_unknown_component():
    breakdown = CostCalculatorService.calculate_cost_breakdown(100, 90, _costed_settings())
    with pytest.raises(ValueError):
        CostCalculatorService.apply_cost_override(breakdown, "insurance", 5, "ops", datetime(2026, 3, 10))


# ---- Prix de base / Base price ----

def test_dynamic_base_price_distance_wins():
    result = DynamicPricingService.calculate_dynamic_base_price(10, 30, OrganizationPricingSettings())
    assert result.distance_based_price == Decimal("25")
    assert result.duration_based_price == Decimal("22.5")
    assert result.selected_method == "distance"
    assert result.base_price == Decimal("25")
    assert result.price_with_margin == Decimal("30.00")


def test_dynamic_base_price_duration_wins():
    result = DynamicPricingService.calculate_dynamic_base_price(5, 60, OrganizationPricingSettings())
    assert result.selected_method == "duration"
    assert result.base_price == Decimal("45")
    assert result.price_with_margin == Decimal("54.00")


def test_dynamic_base_price_tie_favors_distance():
    result = DynamicPricingService.calculate_dynamic_base_price(18, 60, OrganizationPricingSettings())
    assert result.distance_based_price == result.duration_based_price
    assert result.selected_method == "distance"


@pytest.mark.parametrize("distance,duration", [(0, 0), (3, 120), (40, 20), (12.5, 17)])
def test_base_price_is_max_of_methods(distance, duration):
    result = DynamicPricingService.calculate_dynamic_base_price(distance, duration, OrganizationPricingSettings())
    assert result.base_price == max(result.distance_based_price, result.duration_based_price)


def test_category_rates_need_both_values():
    settings = OrganizationPricingSettings()
    full = VehicleCategoryInfo(
        id="van", name="Van", default_rate_per_km=Decimal("3"), default_rate_per_hour=Decimal("60")
    )
    partial = VehicleCategoryInfo(id="lux", name="Luxe", default_rate_per_km=Decimal("4"))

    rates = DynamicPricingService.resolve_rates(settings, full)
    assert rates.rate_source == "CATEGORY"
    assert rates.used_category_rates

    rates = DynamicPricingService.resolve_rates(settings, partial)
    assert rates.rate_source == "ORGANIZATION"
    assert rates.rate_per_km == Decimal("2.5")
