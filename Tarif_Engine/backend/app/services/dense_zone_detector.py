"""
Détection zone dense et aller-retour bloquant / Dense zone and blocked round-trip detection.
Propose (ou applique) une tarification MAD horaire quand elle rapporte plus.
"""

import logging
import math
from decimal import Decimal

from app.schemas.pricing import (
    AppliedRule,
    DenseZoneDetection,
    MadSuggestion,
    RoundTripDetection,
    RoundTripMadSuggestion,
    RoundTripReason,
)
from app.schemas.pricing_settings import OrganizationPricingSettings
from app.schemas.zone import Zone
from app.utils.money import HUNDRED, ONE, SIXTY, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_DENSE_ZONE_SPEED_THRESHOLD = Decimal("15")  # km/h
DEFAULT_DENSE_ZONE_CODES = ["PARIS_0", "PARIS_10", "LA_DEFENSE"]
DEFAULT_MIN_WAITING_TIME_FOR_SEPARATE_TRANSFERS = 120  # minutes
DEFAULT_MAX_RETURN_DISTANCE_KM = Decimal("30")
DEFAULT_ROUND_TRIP_BUFFER = 30  # minutes


class DenseZoneDetectorService:
    """Zone dense et aller-retour / Dense zone and round trip."""

    @staticmethod
    def commercial_speed_kmh(distance_km: Decimal, duration_minutes: Decimal) -> Decimal | None:
        """Vitesse commerciale (None si durée nulle) / Commercial speed (None if no duration)."""
        duration_minutes = to_decimal(duration_minutes)
        if duration_minutes <= 0:
            return None
        return round_money(to_decimal(distance_km) / (duration_minutes / SIXTY))

    @staticmethod
    def detect_dense_zone(
        pickup_zone: Zone | None,
        dropoff_zone: Zone | None,
        distance_km: Decimal,
        duration_minutes: Decimal,
        settings: OrganizationPricingSettings,
    ) -> DenseZoneDetection:
        """
        Course intra-zone dense à faible vitesse ? / Intra-dense-zone trip at low speed?
        Les deux extrémités doivent être en zone dense.
        """
        codes = settings.dense_zone_codes if settings.dense_zone_codes is not None else DEFAULT_DENSE_ZONE_CODES
        threshold = settings.dense_zone_speed_threshold
        if threshold is None:
            threshold = DEFAULT_DENSE_ZONE_SPEED_THRESHOLD

        pickup_code = pickup_zone.code if pickup_zone else None
        dropoff_code = dropoff_zone.code if dropoff_zone else None
        intra = pickup_code in codes and dropoff_code in codes
        speed = DenseZoneDetectorService.commercial_speed_kmh(distance_km, duration_minutes)

        return DenseZoneDetection(
            is_intra_dense_zone=intra,
            pickup_zone_code=pickup_code,
            dropoff_zone_code=dropoff_code,
            dense_zone_codes=list(codes),
            commercial_speed_kmh=speed,
            speed_threshold=threshold,
            is_below_threshold=speed is not None and speed < threshold,
        )

    @staticmethod
    def mad_price(hours: int, settings: OrganizationPricingSettings) -> Decimal:
        """Prix MAD avec marge / MAD price with margin."""
        base = Decimal(hours) * settings.base_rate_per_hour
        return round_money(base * (ONE + settings.target_margin_percent / HUNDRED))

    @staticmethod
    def calculate_mad_suggestion(
        transfer_price: Decimal,
        duration_minutes: Decimal,
        settings: OrganizationPricingSettings,
        auto_switch: bool,
    ) -> MadSuggestion:
        """
        Comparer MAD et transfert / Compare MAD with transfer.
        Heures arrondies à l'heure supérieure / Hours rounded up.
        """
        transfer_price = round_money(transfer_price)
        hours = math.ceil(to_decimal(duration_minutes) / SIXTY)
        mad = DenseZoneDetectorService.mad_price(hours, settings)
        difference, gain = _difference(mad, transfer_price)
        better = mad > transfer_price

        if better:
            recommendation = f"Consider MAD pricing: {mad}€ ({hours}h) vs Transfer {transfer_price}€ (+{gain}%)"
        else:
            recommendation = f"Transfer pricing is optimal: {transfer_price}€ vs MAD {mad}€"

        return MadSuggestion(
            transfer_price=transfer_price,
            mad_price=mad,
            mad_hours=hours,
            price_difference=difference,
            percentage_gain=gain,
            recommendation=recommendation,
            auto_switched=auto_switch and better,
        )

    @staticmethod
    def build_auto_switch_rule(detection: DenseZoneDetection, suggestion: MadSuggestion) -> AppliedRule:
        """Règle de bascule automatique en MAD / Auto-switch to MAD rule."""
        return AppliedRule(
            type="AUTO_SWITCH_TO_MAD",
            description=(
                f"Auto-switched from Transfer to MAD pricing due to dense zone "
                f"({detection.pickup_zone_code} → {detection.dropoff_zone_code}) with low commercial speed "
                f"({detection.commercial_speed_kmh} km/h < {detection.speed_threshold} km/h threshold)"
            ),
            price_before=suggestion.transfer_price,
            price_after=suggestion.mad_price,
            details={
                "price_difference": suggestion.price_difference,
                "percentage_gain": suggestion.percentage_gain,
                "reason": "DENSE_ZONE_LOW_SPEED",
                "commercial_speed_kmh": detection.commercial_speed_kmh,
                "speed_threshold": detection.speed_threshold,
                "mad_hours": suggestion.mad_hours,
            },
        )

    @staticmethod
    def detect_round_trip_blocked(
        is_round_trip: bool,
        distance_km: Decimal,
        duration_minutes: Decimal,
        waiting_time_minutes: int | None,
        settings: OrganizationPricingSettings,
    ) -> RoundTripDetection:
        """
        Chauffeur bloqué sur place ? / Is the driver blocked on site?
        Bloqué si attente < 2 × trajet + marge, ou distance > retour max.
        """
        min_waiting = settings.min_waiting_time_for_separate_transfers
        if min_waiting is None:
            min_waiting = DEFAULT_MIN_WAITING_TIME_FOR_SEPARATE_TRANSFERS
        max_return = settings.max_return_distance_km
        if max_return is None:
            max_return = DEFAULT_MAX_RETURN_DISTANCE_KM
        buffer = settings.round_trip_buffer_minutes
        if buffer is None:
            buffer = DEFAULT_ROUND_TRIP_BUFFER

        distance_km = to_decimal(distance_km)
        duration_minutes = to_decimal(duration_minutes)
        needed = duration_minutes * 2 + buffer

        if not is_round_trip:
            return RoundTripDetection(
                is_driver_blocked=False,
                waiting_time_minutes=0,
                min_waiting_time_for_separate_transfers=min_waiting,
                max_return_distance_km=max_return,
                return_distance_km=distance_km,
                return_to_base_minutes=duration_minutes,
                round_trip_to_base_minutes=needed,
                exceeds_max_return_distance=False,
                reason=RoundTripReason.NOT_ROUND_TRIP,
            )

        waiting = waiting_time_minutes or 0
        exceeds = distance_km > max_return
        blocked = waiting < needed or exceeds

        if not blocked:
            reason = RoundTripReason.DRIVER_CAN_RETURN
        elif exceeds:
            reason = RoundTripReason.EXCEEDS_MAX_RETURN_DISTANCE
        elif waiting < min_waiting:
            reason = RoundTripReason.WAITING_TIME_TOO_SHORT
        else:
            reason = RoundTripReason.CANNOT_RETURN_IN_TIME

        return RoundTripDetection(
            is_driver_blocked=blocked,
            waiting_time_minutes=waiting,
            min_waiting_time_for_separate_transfers=min_waiting,
            max_return_distance_km=max_return,
            return_distance_km=distance_km,
            return_to_base_minutes=duration_minutes,
            round_trip_to_base_minutes=needed,
            exceeds_max_return_distance=exceeds,
            reason=reason,
        )

    @staticmethod
    def calculate_round_trip_mad_suggestion(
        two_transfers_price: Decimal,
        duration_minutes: Decimal,
        waiting_time_minutes: int,
        settings: OrganizationPricingSettings,
        auto_switch: bool,
    ) -> RoundTripMadSuggestion:
        """MAD (aller + attente + retour) contre 2 × transfert / MAD vs 2 × transfer."""
        two_transfers_price = round_money(two_transfers_price)
        total_minutes = to_decimal(duration_minutes) * 2 + waiting_time_minutes
        hours = math.ceil(total_minutes / SIXTY)
        mad = DenseZoneDetectorService.mad_price(hours, settings)
        difference, gain = _difference(mad, two_transfers_price)
        better = mad > two_transfers_price

        if better:
            recommendation = (
                f"Consider MAD pricing for round-trip: {mad}€ ({hours}h) "
                f"vs 2×Transfer {two_transfers_price}€ (+{gain}%)"
            )
        else:
            recommendation = f"2×Transfer pricing is optimal: {two_transfers_price}€ vs MAD {mad}€"

        return RoundTripMadSuggestion(
            two_transfers_price=two_transfers_price,
            mad_price=mad,
            mad_hours=hours,
            price_difference=difference,
            percentage_gain=gain,
            recommendation=recommendation,
            auto_switched=auto_switch and better,
        )

    @staticmethod
    def build_round_trip_auto_switch_rule(
        detection: RoundTripDetection,
        suggestion: RoundTripMadSuggestion,
    ) -> AppliedRule:
        """Règle de bascule aller-retour en MAD / Round-trip auto-switch rule."""
        return AppliedRule(
            type="AUTO_SWITCH_ROUND_TRIP_TO_MAD",
            description=(
                f"Auto-switched round-trip from 2×Transfer to MAD pricing "
                f"(driver blocked on-site: {detection.reason.value})"
            ),
            price_before=suggestion.two_transfers_price,
            price_after=suggestion.mad_price,
            details={
                "price_difference": suggestion.price_difference,
                "percentage_gain": suggestion.percentage_gain,
                "reason": detection.reason.value,
                "waiting_time_minutes": detection.waiting_time_minutes,
                "return_to_base_minutes": detection.return_to_base_minutes,
                "exceeds_max_return_distance": detection.exceeds_max_return_distance,
                "mad_hours": suggestion.mad_hours,
            },
        )


def _difference(mad: Decimal, reference: Decimal) -> tuple[Decimal, Decimal]:
    difference = round_money(mad - reference)
    gain = round_money(difference / reference * HUNDRED) if reference > 0 else ZERO
    return difference, gain
