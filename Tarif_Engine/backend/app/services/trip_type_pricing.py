"""
Service de tarification par type de course / Trip-type pricing service.
Transfert : prix standard. Excursion : durée minimale + supplément.
Mise à disposition : forfait km inclus + dépassement, ou forfaits horaires.
"""

import logging
from decimal import Decimal

from app.schemas.pricing import AppliedRule, TripType, TripTypePricingResult
from app.schemas.pricing_settings import MadTimeBucket, OrganizationPricingSettings, TimeBucketStrategy
from app.utils.money import HUNDRED, ONE, SIXTY, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_EXCURSION_MINIMUM_HOURS = Decimal("4")
DEFAULT_EXCURSION_SURCHARGE_PERCENT = Decimal("15")
DEFAULT_DISPO_INCLUDED_KM_PER_HOUR = Decimal("50")
DEFAULT_DISPO_OVERAGE_RATE_PER_KM = Decimal("0.50")


class TripTypePricingService:
    """Tarification selon le type de course / Pricing by trip type."""

    @staticmethod
    def calculate_excursion_price(
        duration_minutes: Decimal,
        rate_per_hour: Decimal,
        settings: OrganizationPricingSettings,
    ) -> TripTypePricingResult:
        """
        Excursion : MAX(heures demandées, minimum) × tarif × (1 + supplément).
        Excursion: MAX(requested hours, minimum) × rate × (1 + surcharge).
        """
        minimum = _or_default(settings.excursion_minimum_hours, DEFAULT_EXCURSION_MINIMUM_HOURS)
        surcharge_pct = _or_default(settings.excursion_surcharge_percent, DEFAULT_EXCURSION_SURCHARGE_PERCENT)

        requested = to_decimal(duration_minutes) / SIXTY
        effective = max(requested, minimum)
        base = effective * rate_per_hour
        surcharge = base * surcharge_pct / HUNDRED
        price = base + surcharge

        minimum_applied = requested < minimum
        description = f"Excursion: {_hours(effective)}h × {rate_per_hour}€/h + {surcharge_pct}% surcharge"
        if minimum_applied:
            description += f" (minimum {_hours(minimum)}h applied)"

        rule = AppliedRule(
            type="TRIP_TYPE",
            description=description,
            price_after=price,
            details={
                "trip_type": TripType.EXCURSION.value,
                "minimum_applied": minimum_applied,
                "requested_hours": requested,
                "effective_hours": effective,
                "surcharge_percent": surcharge_pct,
                "surcharge_amount": surcharge,
                "base_price_before_adjustment": base,
                "price_after_adjustment": price,
            },
        )
        return TripTypePricingResult(price=price, rule=rule)

    @staticmethod
    def calculate_dispo_price(
        duration_minutes: Decimal,
        distance_km: Decimal,
        rate_per_hour: Decimal,
        settings: OrganizationPricingSettings,
    ) -> TripTypePricingResult:
        """
        Mise à disposition : heures × tarif + km hors forfait × tarif dépassement.
        Dispo: hours × rate + overage km × overage rate.
        """
        included_per_hour = _or_default(settings.dispo_included_km_per_hour, DEFAULT_DISPO_INCLUDED_KM_PER_HOUR)
        overage_rate = _or_default(settings.dispo_overage_rate_per_km, DEFAULT_DISPO_OVERAGE_RATE_PER_KM)

        hours = to_decimal(duration_minutes) / SIXTY
        distance_km = to_decimal(distance_km)
        base = hours * rate_per_hour
        included_km = hours * included_per_hour
        overage_km = max(ZERO, distance_km - included_km)
        overage_amount = overage_km * overage_rate
        price = base + overage_amount

        description = f"Dispo: {_hours(hours)}h × {rate_per_hour}€/h"
        if overage_km > 0:
            description += f" + {round_money(overage_km)}km overage × {overage_rate}€/km"

        rule = AppliedRule(
            type="TRIP_TYPE",
            description=description,
            price_after=price,
            details={
                "trip_type": TripType.DISPO.value,
                "requested_duration_hours": hours,
                "included_km": included_km,
                "actual_km": distance_km,
                "overage_km": overage_km,
                "overage_rate_per_km": overage_rate,
                "overage_amount": overage_amount,
                "base_price_before_adjustment": base,
                "price_after_adjustment": price,
            },
        )
        return TripTypePricingResult(price=price, rule=rule)

    @staticmethod
    def calculate_dispo_price_with_buckets(
        duration_minutes: Decimal,
        distance_km: Decimal,
        vehicle_category_id: str | None,
        rate_per_hour: Decimal,
        settings: OrganizationPricingSettings,
    ) -> TripTypePricingResult:
        """
        Mise à disposition sur forfaits horaires / Dispo on time buckets.
        Sous le premier forfait ou sans forfait : tarif horaire classique.
        """
        strategy = settings.time_bucket_strategy or TimeBucketStrategy.ROUND_UP
        buckets = sorted(
            (b for b in settings.mad_time_buckets if b.is_active and b.vehicle_category_id == vehicle_category_id),
            key=lambda b: b.duration_hours,
        )
        hours = to_decimal(duration_minutes) / SIXTY
        if not buckets or hours < buckets[0].duration_hours:
            return TripTypePricingService.calculate_dispo_price(duration_minutes, distance_km, rate_per_hour, settings)

        lower = upper = None
        extra_hours = ZERO
        last = buckets[-1]
        if hours > last.duration_hours:
            bucket_price = last.price
            used = last
            extra_hours = hours - last.duration_hours
            description = f"Time bucket: {_hours(last.duration_hours)}h ({last.price}€) + {_hours(extra_hours)}h extra"
        else:
            exact = next((b for b in buckets if b.duration_hours == hours), None)
            if exact is not None:
                bucket_price, used = exact.price, exact
                description = f"Time bucket: {_hours(exact.duration_hours)}h ({exact.price}€)"
            else:
                lower, upper = _surrounding(buckets, hours)
                bucket_price, used, description = _interpolate(hours, lower, upper, strategy)

        extra_amount = extra_hours * rate_per_hour
        included_per_hour = _or_default(settings.dispo_included_km_per_hour, DEFAULT_DISPO_INCLUDED_KM_PER_HOUR)
        overage_rate = _or_default(settings.dispo_overage_rate_per_km, DEFAULT_DISPO_OVERAGE_RATE_PER_KM)
        included_km = hours * included_per_hour
        overage_km = max(ZERO, to_decimal(distance_km) - included_km)
        overage_amount = overage_km * overage_rate
        price = bucket_price + extra_amount + overage_amount
        if overage_km > 0:
            description += f" + {round_money(overage_km)}km overage × {overage_rate}€/km"

        rule = AppliedRule(
            type="TIME_BUCKET",
            description=description,
            price_after=price,
            details={
                "trip_type": TripType.DISPO.value,
                "interpolation_strategy": strategy.value,
                "time_bucket_used": _bucket_ref(used),
                "lower_bucket": _bucket_ref(lower),
                "upper_bucket": _bucket_ref(upper),
                "bucket_price": bucket_price,
                "extra_hours_charged": extra_hours,
                "extra_hours_amount": extra_amount,
                "included_km": included_km,
                "actual_km": to_decimal(distance_km),
                "overage_km": overage_km,
                "overage_rate_per_km": overage_rate,
                "overage_amount": overage_amount,
                "price_after_adjustment": price,
            },
        )
        return TripTypePricingResult(price=price, rule=rule)

    @staticmethod
    def apply_trip_type_pricing(
        trip_type: str,
        distance_km: Decimal,
        duration_minutes: Decimal,
        rate_per_hour: Decimal,
        standard_price: Decimal,
        settings: OrganizationPricingSettings,
        vehicle_category_id: str | None = None,
    ) -> TripTypePricingResult:
        """
        Aiguillage par type de course / Dispatch on trip type.
        Transfert ou type inconnu : prix standard, sans règle.
        """
        if trip_type == TripType.EXCURSION.value:
            result = TripTypePricingService.calculate_excursion_price(duration_minutes, rate_per_hour, settings)
        elif trip_type == TripType.DISPO.value:
            if settings.time_bucket_strategy is not None:
                result = TripTypePricingService.calculate_dispo_price_with_buckets(
                    duration_minutes, distance_km, vehicle_category_id, rate_per_hour, settings
                )
            else:
                result = TripTypePricingService.calculate_dispo_price(
                    duration_minutes, distance_km, rate_per_hour, settings
                )
        else:
            if trip_type != TripType.TRANSFER.value:
                logger.warning("Type de course inconnu, prix standard / unknown trip type: %s", trip_type)
            return TripTypePricingResult(price=standard_price)

        result.rule.price_before = standard_price
        return result


def _or_default(value: Decimal | None, default: Decimal) -> Decimal:
    return value if value is not None else default


def _hours(value: Decimal) -> Decimal:
    rounded = round_money(value)
    if rounded == rounded.to_integral_value():
        return rounded.quantize(ONE)
    return rounded.normalize()


def _surrounding(buckets: list[MadTimeBucket], hours: Decimal):
    for lower, upper in zip(buckets, buckets[1:]):
        if lower.duration_hours <= hours <= upper.duration_hours:
            return lower, upper
    return buckets[-1], buckets[-1]


def _interpolate(hours: Decimal, lower: MadTimeBucket, upper: MadTimeBucket, strategy: TimeBucketStrategy):
    if strategy == TimeBucketStrategy.ROUND_UP:
        return upper.price, upper, f"Time bucket: {_hours(hours)}h → {_hours(upper.duration_hours)}h ({upper.price}€) [ROUND_UP]"
    if strategy == TimeBucketStrategy.ROUND_DOWN:
        return lower.price, lower, f"Time bucket: {_hours(hours)}h → {_hours(lower.duration_hours)}h ({lower.price}€) [ROUND_DOWN]"
    span = upper.duration_hours - lower.duration_hours
    ratio = (hours - lower.duration_hours) / span if span else ONE
    price = lower.price + ratio * (upper.price - lower.price)
    description = (
        f"Time bucket: {_hours(hours)}h interpolated between {_hours(lower.duration_hours)}h "
        f"and {_hours(upper.duration_hours)}h = {round_money(price)}€ [PROPORTIONAL]"
    )
    return price, lower, description


def _bucket_ref(bucket: MadTimeBucket | None) -> dict | None:
    if bucket is None:
        return None
    return {"duration_hours": bucket.duration_hours, "price": bucket.price}
