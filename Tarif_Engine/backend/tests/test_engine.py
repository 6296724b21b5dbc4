"""Tests du moteur complet / End-to-end pricing engine tests."""

from datetime import datetime
from decimal import Decimal

from app.schemas.cost import RoutingSource, VehicleSelection
from app.schemas.pricing import PricingContext, PricingRequest, ProfitabilityTier, RoundTripReason
from app.schemas.pricing_settings import ContactInfo, OrganizationPricingSettings, RoundingRule
from app.schemas.rate_rule import AdjustmentType, AdvancedRate, AdvancedRateAppliesTo
from app.schemas.zone import GeoPoint, RadiusGeometry, Zone
from app.services.pricing_engine import DEFAULT_TRIP_ESTIMATE, PricingEngine
from app.services.pricing_validation import PricingValidationService
from app.services.profitability import ProfitabilityService
from app.services.shadow_calculator import ShadowCalculatorService
from app.services.zone_resolver import NO_CONFLICT_STRATEGY

PICKUP = GeoPoint(lat=48.86, lng=2.35)
DROPOFF = GeoPoint(lat=48.87, lng=2.36)

COSTS = {
    "fuel_consumption_l100km": Decimal("8"),
    "fuel_price_per_liter": Decimal("1.80"),
    "toll_cost_per_km": Decimal("0.10"),
    "wear_cost_per_km": Decimal("0.05"),
    "driver_hourly_cost": Decimal("30"),
}


def _request(**overrides) -> PricingRequest:
    values = {"pickup": PICKUP, "dropoff": DROPOFF, "distance_km": Decimal("10"), "duration_minutes": Decimal("30")}
    values.update(overrides)
    return PricingRequest(**values)


def _context(zones=None, contact=None, **settings) -> PricingContext:
    return PricingContext(
        settings=OrganizationPricingSettings(**settings),
        zones=zones or [],
        contact=contact or ContactInfo(),
    )


def _zone(code, lat, lng, radius_km, multiplier="1", parking=None) -> Zone:
    return Zone(
        id=code.lower(),
        name=code,
        code=code,
        geometry=RadiusGeometry(center=GeoPoint(lat=lat, lng=lng), radius_km=radius_km),
        price_multiplier=Decimal(multiplier),
        fixed_parking_surcharge=parking,
    )


# ---- Cas de base / Basic cases ----

def test_standard_transfer_without_costs():
    result = PricingEngine.calculate_price(_request(), _context())
    assert result.price == Decimal("30.00")
    assert result.internal_cost is None
    assert result.margin is None
    assert result.profitability is None
    assert [r.type for r in result.applied_rules] == ["DYNAMIC_BASE_PRICE"]
    assert result.trip_analysis.routing_source == RoutingSource.GOOGLE_API
    assert not result.trip_analysis.is_estimated


def test_transfer_with_costs_and_profitability():
    result = PricingEngine.calculate_price(_request(), _context(**COSTS))
    assert result.internal_cost == Decimal("17.94")
    assert result.margin == Decimal("12.06")
    assert result.margin_percent == Decimal("40.20")
    assert result.profitability.indicator == ProfitabilityTier.GREEN
    assert result.trip_analysis.total_internal_cost == Decimal("17.94")


def test_zone_multiplier_and_surcharge_counted_once():
    zone = _zone("PARIS_0", 48.86, 2.35, 5, multiplier="1.2", parking=Decimal("5"))
    result = PricingEngine.calculate_price(_request(), _context(zones=[zone], **COSTS))
    assert result.price == Decimal("36.00")
    assert result.zone_surcharges.total == Decimal("5")
    assert result.cost_breakdown.parking.amount == Decimal("5")
    assert result.internal_cost == Decimal("22.94")
    assert result.trip_analysis.segment("service").cost.parking.amount == Decimal("5")
    assert result.trip_analysis.total_internal_cost == Decimal("22.94")
    assert result.pickup_zone.selected_zone.code == "PARIS_0"


def test_overlapping_zones_without_strategy_warn():
    zones = [_zone("A", 48.86, 2.35, 5, "1.1"), _zone("B", 48.86, 2.35, 5, "1.3")]
    result = PricingEngine.calculate_price(_request(), _context(zones=zones))
    assert result.warnings == [NO_CONFLICT_STRATEGY]
    assert result.price == Decimal("39.00")


# ---- Types de course / Trip types ----

def test_excursion_price():
    request = _request(trip_type="excursion", distance_km=Decimal("50"), duration_minutes=Decimal("120"))
    result = PricingEngine.calculate_price(request, _context())
    assert result.price == Decimal("207.00")
    assert result.applied_rules[1].type == "TRIP_TYPE"
    assert result.dense_zone is None


def test_dispo_price():
    request = _request(trip_type="dispo", distance_km=Decimal("300"), duration_minutes=Decimal("240"))
    result = PricingEngine.calculate_price(request, _context())
    assert result.price == Decimal("230.00")


def test_unknown_trip_type_priced_as_transfer():
    result = PricingEngine.calculate_price(_request(trip_type="helicopter"), _context())
    assert result.price == Decimal("30.00")
    assert result.trip_type == "helicopter"


# ---- Majorations / Adjustments ----

def test_weighted_night_rate_from_duration():
    night = AdvancedRate(
        id="night", name="Nuit", applies_to=AdvancedRateAppliesTo.NIGHT,
        start_time="22:00", end_time="06:00",
        adjustment_type=AdjustmentType.PERCENTAGE, value=Decimal("20"),
    )
    context = _context()
    context = context.model_copy(update={"advanced_rates": [night]})
    request = _request(duration_minutes=Decimal("120"), pickup_at=datetime(2026, 3, 10, 21, 0))
    result = PricingEngine.calculate_price(request, context)
    assert result.base_price.price_with_margin == Decimal("108.00")
    assert result.price == Decimal("118.80")


def test_client_difficulty_applied():
    result = PricingEngine.calculate_price(_request(), _context(contact=ContactInfo(difficulty_score=5)))
    assert result.price == Decimal("33.00")
    assert result.applied_rules[-1].type == "CLIENT_DIFFICULTY_MULTIPLIER"


def test_minimum_fare():
    result = PricingEngine.calculate_price(_request(), _context(minimum_fare=Decimal("50")))
    assert result.price == Decimal("50.00")
    assert result.applied_rules[-1].type == "MINIMUM_FARE"


def test_rounding_rule_up_to_five_euros():
    result = PricingEngine.calculate_price(
        _request(distance_km=Decimal("11")), _context(rounding_rule=RoundingRule.UP_TO_FIVE_EUROS)
    )
    assert result.price == Decimal("35.00")
    assert result.applied_rules[-1].type == "ROUNDING"


def test_rounding_rules():
    apply = PricingEngine.apply_rounding_rule
    assert apply(Decimal("33.49"), RoundingRule.NEAREST_EURO) == Decimal("33")
    assert apply(Decimal("33.01"), RoundingRule.UP_TO_EURO) == Decimal("34")
    assert apply(Decimal("35"), RoundingRule.UP_TO_FIVE_EUROS) == Decimal("35")
    assert apply(Decimal("33.005"), RoundingRule.NONE) == Decimal("33.01")


# ---- Zone dense et aller-retour / Dense zone and round trip ----

def test_dense_zone_auto_switch_to_mad():
    zones = [_zone("PARIS_0", 48.86, 2.35, 1), _zone("LA_DEFENSE", 48.89, 2.24, 2)]
    request = _request(dropoff=GeoPoint(lat=48.89, lng=2.24), distance_km=Decimal("5"))
    result = PricingEngine.calculate_price(request, _context(zones=zones, auto_switch_to_mad=True))
    assert result.dense_zone.is_flagged
    assert result.mad_suggestion.auto_switched
    assert result.price == Decimal("54.00")
    assert result.applied_rules[-1].type == "AUTO_SWITCH_TO_MAD"


def test_dense_zone_suggestion_only():
    zones = [_zone("PARIS_0", 48.86, 2.35, 1), _zone("LA_DEFENSE", 48.89, 2.24, 2)]
    request = _request(dropoff=GeoPoint(lat=48.89, lng=2.24), distance_km=Decimal("5"))
    result = PricingEngine.calculate_price(request, _context(zones=zones))
    assert result.mad_suggestion.mad_price == Decimal("54.00")
    assert result.price == Decimal("27.00")


def test_round_trip_doubles_and_detects_blocking():
    request = _request(is_round_trip=True, waiting_time_minutes=30)
    result = PricingEngine.calculate_price(request, _context(**COSTS))
    assert result.price == Decimal("60.00")
    assert result.internal_cost == Decimal("35.88")
    assert result.round_trip.is_driver_blocked
    assert result.round_trip.reason == RoundTripReason.WAITING_TIME_TOO_SHORT
    assert result.round_trip_mad_suggestion.mad_price == Decimal("108.00")
    assert not result.round_trip_mad_suggestion.auto_switched


def test_round_trip_auto_switch_to_mad():
    request = _request(is_round_trip=True, waiting_time_minutes=30)
    result = PricingEngine.calculate_price(request, _context(auto_switch_round_trip_to_mad=True))
    assert result.price == Decimal("108.00")
    assert result.applied_rules[-1].type == "AUTO_SWITCH_ROUND_TRIP_TO_MAD"


def test_round_trip_analysis_is_sum_of_segments():
    zone = _zone("PARIS_0", 48.86, 2.35, 5, parking=Decimal("5"))
    request = _request(is_round_trip=True, waiting_time_minutes=300)
    context = _context(zones=[zone], **COSTS).model_copy(update={"parking_cost": Decimal("4")})
    result = PricingEngine.calculate_price(request, context)

    analysis = result.trip_analysis
    assert [s.name for s in analysis.segments] == ["service", "service"]
    assert analysis.segments[1].description == "Dropoff → Pickup (client return trip)"
    assert analysis.total_distance_km == Decimal("20")
    assert analysis.total_duration_minutes == Decimal("60")
    assert analysis.total_internal_cost == sum(s.cost.total for s in analysis.segments)
    assert analysis.total_internal_cost == result.internal_cost == Decimal("44.88")
    assert analysis.segments[0].cost.parking.amount == Decimal("9")
    assert analysis.segments[1].cost.parking is None
    assert result.price == Decimal("60.00")


# ---- Distances estimées / Estimated distances ----

def test_missing_distance_uses_haversine_estimate():
    request = PricingRequest(pickup=PICKUP, dropoff=GeoPoint(lat=45.764, lng=4.8357))
    result = PricingEngine.calculate_price(request, _context())
    assert result.trip_analysis.routing_source == RoutingSource.HAVERSINE_ESTIMATE
    assert result.trip_analysis.is_estimated
    assert result.base_price.distance_km > Decimal("490")


def test_same_point_without_distance_uses_defaults():
    request = PricingRequest(pickup=PICKUP, dropoff=PICKUP)
    result = PricingEngine.calculate_price(request, _context())
    assert DEFAULT_TRIP_ESTIMATE in result.warnings
    assert result.base_price.distance_km == Decimal("10")
    assert result.price == Decimal("30.00")


# ---- Commission et prix forcé / Commission and price override ----

def test_partner_commission():
    partner = ContactInfo(is_partner=True, commission_percent=Decimal("10"))
    result = PricingEngine.calculate_price(_request(), _context(contact=partner, **COSTS))
    assert result.commission.commission_amount == Decimal("3.00")
    assert result.commission.net_amount_after_commission == Decimal("27.00")
    assert result.commission.effective_margin == Decimal("9.06")


def test_price_override_replaces_previous_override():
    result = PricingEngine.calculate_price(_request(), _context(**COSTS))
    first = ProfitabilityService.apply_price_override(result, Decimal("40"), reason="VIP")
    second = ProfitabilityService.apply_price_override(first, Decimal("45"))

    overrides = [r for r in second.applied_rules if r.type == "MANUAL_OVERRIDE"]
    assert len(overrides) == 1
    assert overrides[0].price_before == Decimal("30.00")
    assert second.price == Decimal("45.00")
    assert second.margin == Decimal("27.06")


def test_cost_override_updates_cost_and_margin():
    result = PricingEngine.calculate_price(_request(), _context(**COSTS))
    edited = ProfitabilityService.apply_cost_override(
        result, "driver", Decimal("20"), "ops", datetime(2026, 3, 10, 9, 0), reason="Night shift"
    )
    assert edited.cost_breakdown.driver.amount == Decimal("20")
    assert edited.internal_cost == Decimal("22.94")
    assert edited.margin == Decimal("7.06")
    assert edited.margin_percent == Decimal("23.53")
    assert edited.profitability.indicator == ProfitabilityTier.GREEN

    overrides = edited.trip_analysis.cost_overrides
    assert overrides.has_manual_edits
    assert overrides.overrides[0].original_value == Decimal("15.00")
    assert edited.trip_analysis.total_internal_cost == Decimal("17.94")


def test_cost_override_with_unchanged_value_records_nothing():
    result = PricingEngine.calculate_price(_request(), _context(**COSTS))
    edited = ProfitabilityService.apply_cost_override(result, "driver", Decimal("15"), "ops", datetime(2026, 3, 10))
    assert edited.internal_cost == Decimal("17.94")
    assert not edited.trip_analysis.cost_overrides.has_manual_edits


# ---- Segments ----

def test_shadow_segments_with_vehicle_selection():
    selection = VehicleSelection(
        vehicle_id="v1",
        approach_distance_km=Decimal("5"),
        approach_duration_minutes=Decimal("10"),
        return_distance_km=Decimal("8"),
        return_duration_minutes=Decimal("15"),
    )
    analysis = ShadowCalculatorService.calculate_shadow_segments(
        Decimal("10"), Decimal("30"), OrganizationPricingSettings(**COSTS), vehicle_selection=selection
    )
    assert [s.name for s in analysis.segments] == ["approach", "service", "return"]
    assert analysis.total_distance_km == Decimal("23")
    assert analysis.total_duration_minutes == Decimal("55")
    assert analysis.routing_source == RoutingSource.VEHICLE_SELECTION
    assert analysis.segment("approach").description == "Base → Pickup (deadhead)"
    assert analysis.total_internal_cost == sum(s.cost.total for s in analysis.segments)


def test_shadow_service_only_is_estimated():
    analysis = ShadowCalculatorService.calculate_shadow_segments(
        Decimal("10"), Decimal("30"), OrganizationPricingSettings(**COSTS)
    )
    assert [s.name for s in analysis.segments] == ["service"]
    assert analysis.is_estimated
    assert analysis.segments[0].is_estimated


# ---- Validation du résultat / Result validation ----

def test_validation_of_healthy_result():
    result = PricingEngine.calculate_price(_request(), _context(**COSTS))
    report = PricingValidationService.validate_pricing_result(result)
    assert report.overall_status == "VALID"
    assert report.is_valid
    assert len(report.checks) == 6


def test_validation_flags_negative_margin():
    result = PricingEngine.calculate_price(_request(), _context(driver_hourly_cost=Decimal("200")))
    report = PricingValidationService.validate_pricing_result(result)
    assert report.overall_status == "INVALID"
    assert not report.is_valid
    assert any(c.id == "margin-positive" and c.status == "FAIL" for c in report.checks)


def test_validation_warns_on_slow_speed():
    result = PricingEngine.calculate_price(_request(distance_km=Decimal("5")), _context(**COSTS))
    report = PricingValidationService.validate_pricing_result(result)
    assert report.overall_status == "WARNING"
    assert any(c.id == "duration-plausible" and c.status == "WARNING" for c in report.checks)
