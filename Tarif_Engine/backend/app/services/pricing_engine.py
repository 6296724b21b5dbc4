"""
Moteur de tarification / Pricing engine.
Orchestration : zones -> prix de base -> type de course -> majorations ->
coûts -> zone dense / aller-retour -> plancher et arrondi -> marge et commission.
Fonction pure : tout l'état est fourni par l'appelant.
"""

import logging
import math
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from app.schemas.pricing import (
    AppliedRule,
    PricingContext,
    PricingRequest,
    PricingResult,
    TripType,
)
from app.schemas.pricing_settings import RoundingRule
from app.services.cost_calculator import CostCalculatorService
from app.services.dense_zone_detector import DenseZoneDetectorService
from app.services.distance_service import (
    DEFAULT_AVERAGE_SPEED_KMH,
    DEFAULT_ROAD_DISTANCE_FACTOR,
    DistanceService,
)
from app.services.dynamic_pricing import DynamicPricingService
from app.services.multiplier_engine import MultiplierContext, MultiplierEngine
from app.services.profitability import ProfitabilityService
from app.services.shadow_calculator import ShadowCalculatorService
from app.services.time_calculator import TimeCalculatorService
from app.services.trip_type_pricing import TripTypePricingService
from app.services.zone_resolver import ZoneResolverService
from app.utils.money import ONE, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_DISTANCE_KM = Decimal("10")
DEFAULT_DURATION_MINUTES = Decimal("30")
DEFAULT_TRIP_ESTIMATE = "DEFAULT_TRIP_ESTIMATE"
FIVE = Decimal("5")


class PricingEngine:
    """Calcul complet d'un prix / Complete price calculation."""

    @staticmethod
    def resolve_trip_facts(
        request: PricingRequest,
        road_distance_factor: float = DEFAULT_ROAD_DISTANCE_FACTOR,
        average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
        default_distance_km: Decimal = DEFAULT_DISTANCE_KM,
        default_duration_minutes: Decimal = DEFAULT_DURATION_MINUTES,
    ) -> tuple[Decimal, Decimal, str, list[str]]:
        """
        Distance, durée et provenance / Distance, duration and provenance.
        Valeurs fournies > estimation à vol d'oiseau > valeurs par défaut.
        """
        warnings: list[str] = []
        distance = request.distance_km
        duration = request.duration_minutes

        if distance is not None:
            source = request.routing_source or "GOOGLE_API"
            if duration is None:
                duration = TimeCalculatorService.calculate_travel_time_minutes(distance, to_decimal(average_speed_kmh))
            return distance, duration, source, warnings

        estimated_distance, estimated_duration = DistanceService.estimate_trip(
            request.pickup, request.dropoff, road_distance_factor, average_speed_kmh
        )
        if estimated_distance > 0:
            if duration is None:
                duration = estimated_duration
            return estimated_distance, duration, "HAVERSINE_ESTIMATE", warnings

        warnings.append(DEFAULT_TRIP_ESTIMATE)
        logger.warning(
            "Aucune distance exploitable, valeurs par défaut / no usable distance, defaults: %s km, %s min",
            default_distance_km, default_duration_minutes,
        )
        return (
            to_decimal(default_distance_km),
            duration if duration is not None else to_decimal(default_duration_minutes),
            "HAVERSINE_ESTIMATE",
            warnings,
        )

    @staticmethod
    def apply_rounding_rule(price: Decimal, rule: RoundingRule) -> Decimal:
        """Arrondi du prix final / Final price rounding."""
        if rule == RoundingRule.NEAREST_EURO:
            return price.quantize(ONE, rounding=ROUND_HALF_UP)
        if rule == RoundingRule.UP_TO_EURO:
            return price.quantize(ONE, rounding=ROUND_CEILING)
        if rule == RoundingRule.UP_TO_FIVE_EUROS:
            return Decimal(math.ceil(price / FIVE)) * FIVE
        return round_money(price)

    @staticmethod
    def calculate_price(
        request: PricingRequest,
        context: PricingContext,
        road_distance_factor: float = DEFAULT_ROAD_DISTANCE_FACTOR,
        average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
        default_distance_km: Decimal = DEFAULT_DISTANCE_KM,
        default_duration_minutes: Decimal = DEFAULT_DURATION_MINUTES,
    ) -> PricingResult:
        """
        Calculer le prix d'une course / Calculate a trip price.
        Chaque ajustement est tracé dans applied_rules, dans l'ordre d'application.
        """
        settings = context.settings
        category = context.vehicle_category
        category_id = request.vehicle_category_id or (category.id if category else None)
        rules: list[AppliedRule] = []

        distance, duration, routing_source, warnings = PricingEngine.resolve_trip_facts(
            request, road_distance_factor, average_speed_kmh, default_distance_km, default_duration_minutes
        )

        # 1. Zones
        pickup_res = ZoneResolverService.resolve_point(request.pickup, context.zones, settings.zone_conflict_strategy)
        dropoff_res = ZoneResolverService.resolve_point(
            request.dropoff, context.zones, settings.zone_conflict_strategy
        )
        for warning in pickup_res.warnings + dropoff_res.warnings:
            if warning not in warnings:
                warnings.append(warning)
        pickup_zone = pickup_res.selected_zone
        dropoff_zone = dropoff_res.selected_zone

        # 2. Prix de base / Base price
        rates = DynamicPricingService.resolve_rates(settings, category)
        base = DynamicPricingService.calculate_dynamic_base_price(distance, duration, settings, rates)
        price = base.price_with_margin
        rules.append(AppliedRule(
            type="DYNAMIC_BASE_PRICE",
            description=(
                f"Base price ({base.selected_method}): {round_money(base.base_price)}€ "
                f"+ {base.target_margin_percent}% margin"
            ),
            price_after=price,
            details={
                "selected_method": base.selected_method,
                "rate_source": base.rate_source,
                "distance_based_price": base.distance_based_price,
                "duration_based_price": base.duration_based_price,
            },
        ))

        # 3. Type de course / Trip type
        trip = TripTypePricingService.apply_trip_type_pricing(
            request.trip_type, distance, duration, rates.rate_per_hour, price, settings, category_id
        )
        if trip.rule is not None:
            price = trip.price
            rules.append(trip.rule)

        # 4. Zones et catégorie / Zones and category
        price, zone_rule = ZoneResolverService.apply_zone_multiplier(
            price, pickup_res, dropoff_res, settings.zone_multiplier_aggregation
        )
        if zone_rule is not None:
            rules.append(zone_rule)

        price, category_rule = MultiplierEngine.apply_vehicle_category_multiplier(
            price, category, rates.used_category_rates
        )
        if category_rule is not None:
            rules.append(category_rule)

        # 5. Majorations avancées et saisonnières / Advanced and seasonal
        ctx = MultiplierContext(
            pickup_at=request.pickup_at,
            estimated_end_at=ShadowCalculatorService.estimate_end_at(request.pickup_at, duration),
            distance_km=distance,
            pickup_zone_id=pickup_zone.id if pickup_zone else None,
            dropoff_zone_id=dropoff_zone.id if dropoff_zone else None,
            vehicle_category_id=category_id,
        )
        price, multiplier_rules = MultiplierEngine.apply_all_multipliers(
            price, ctx, context.advanced_rates, context.seasonal_multipliers
        )
        rules.extend(multiplier_rules)

        price, difficulty_rule = MultiplierEngine.apply_client_difficulty_multiplier(
            price, context.contact.difficulty_score, settings.difficulty_multipliers
        )
        if difficulty_rule is not None:
            rules.append(difficulty_rule)

        # 6. Coût interne / Internal cost
        is_transfer = request.trip_type not in (TripType.EXCURSION.value, TripType.DISPO.value)
        is_round_trip = is_transfer and request.is_round_trip
        parking_items: list[tuple[Decimal, str]] = []
        if context.parking_cost is not None:
            parking_items.append((context.parking_cost, "Parking"))
        surcharges = CostCalculatorService.calculate_zone_surcharges(pickup_zone, dropoff_zone)
        if surcharges.total > 0:
            codes = [d.zone_code for d in (surcharges.pickup, surcharges.dropoff) if d is not None]
            parking_items.append((surcharges.total, f"Zone surcharges ({', '.join(codes)})"))
        analysis = ShadowCalculatorService.calculate_shadow_segments(
            distance, duration, settings, category, context.vehicle, context.vehicle_selection, routing_source,
            is_round_trip=is_round_trip, parking_items=parking_items,
        )
        breakdown = CostCalculatorService.combine_cost_breakdowns([s.cost for s in analysis.segments])

        # 7. Zone dense / Dense zone
        dense_zone = mad_suggestion = None
        if is_transfer:
            dense_zone = DenseZoneDetectorService.detect_dense_zone(
                pickup_zone, dropoff_zone, distance, duration, settings
            )
            if dense_zone.is_flagged:
                mad_suggestion = DenseZoneDetectorService.calculate_mad_suggestion(
                    price, duration, settings, settings.auto_switch_to_mad
                )
                if mad_suggestion.auto_switched:
                    price = mad_suggestion.mad_price
                    rules.append(DenseZoneDetectorService.build_auto_switch_rule(dense_zone, mad_suggestion))

        # 8. Aller-retour / Round trip
        round_trip = round_trip_mad = None
        if is_round_trip:
            doubled = price * 2
            rules.append(AppliedRule(
                type="ROUND_TRIP",
                description="Round trip: outbound and return legs (×2)",
                price_before=price,
                price_after=doubled,
                details={"multiplier": 2},
            ))
            price = doubled

            round_trip = DenseZoneDetectorService.detect_round_trip_blocked(
                True, distance, duration, request.waiting_time_minutes, settings
            )
            if round_trip.is_driver_blocked:
                round_trip_mad = DenseZoneDetectorService.calculate_round_trip_mad_suggestion(
                    price, duration, round_trip.waiting_time_minutes, settings,
                    settings.auto_switch_round_trip_to_mad,
                )
                if round_trip_mad.auto_switched:
                    price = round_trip_mad.mad_price
                    rules.append(DenseZoneDetectorService.build_round_trip_auto_switch_rule(
                        round_trip, round_trip_mad
                    ))

        # 9. Plancher et arrondi / Minimum fare and rounding
        if settings.minimum_fare is not None and price < settings.minimum_fare:
            rules.append(AppliedRule(
                type="MINIMUM_FARE",
                description=f"Minimum fare applied: {settings.minimum_fare}€",
                price_before=price,
                price_after=settings.minimum_fare,
                details={"minimum_fare": settings.minimum_fare},
            ))
            price = settings.minimum_fare

        final_price = PricingEngine.apply_rounding_rule(price, settings.rounding_rule)
        if settings.rounding_rule != RoundingRule.NONE and final_price != round_money(price):
            rules.append(AppliedRule(
                type="ROUNDING",
                description=f"Price rounded ({settings.rounding_rule.value})",
                price_before=price,
                price_after=final_price,
                details={"rounding_rule": settings.rounding_rule.value},
            ))
        final_price = round_money(final_price)

        # 10. Marge et commission / Margin and commission
        internal_cost = breakdown.total
        thresholds = ProfitabilityService.get_thresholds_from_settings(settings)
        margin = margin_percent = profitability = None
        if internal_cost is not None:
            margin = round_money(final_price - internal_cost)
            margin_percent = ProfitabilityService.calculate_margin_percent(final_price, internal_cost)
            profitability = ProfitabilityService.get_profitability_data(margin_percent, thresholds)

        commission = None
        if ProfitabilityService.has_commission(context.contact):
            commission = ProfitabilityService.get_commission_data(
                final_price,
                internal_cost if internal_cost is not None else ZERO,
                ProfitabilityService.get_commission_percent(context.contact),
                thresholds,
            )

        logger.debug(
            "Prix calculé / price calculated: %s€ (%s règles, coût %s)", final_price, len(rules), internal_cost
        )

        return PricingResult(
            price=final_price,
            trip_type=request.trip_type,
            internal_cost=internal_cost,
            margin=margin,
            margin_percent=margin_percent,
            profitability=profitability,
            commission=commission,
            applied_rules=rules,
            warnings=warnings,
            base_price=base,
            cost_breakdown=breakdown,
            zone_surcharges=surcharges,
            trip_analysis=analysis,
            pickup_zone=pickup_res,
            dropoff_zone=dropoff_res,
            dense_zone=dense_zone,
            mad_suggestion=mad_suggestion,
            round_trip=round_trip,
            round_trip_mad_suggestion=round_trip_mad,
        )
