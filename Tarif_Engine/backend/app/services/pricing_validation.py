"""
Contrôle de cohérence d'un résultat de tarification / Sanity checks on a pricing result.
Chaque contrôle rend PASS, WARNING ou FAIL ; un seul FAIL invalide le résultat.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal

from app.schemas.pricing import PricingResult, PricingValidationResult, ValidationCheck, ValidationCheckStatus
from app.utils.money import HUNDRED, SIXTY, ZERO, round_money

logger = logging.getLogger(__name__)

MIN_REASONABLE_MARGIN_PERCENT = Decimal("-50")
MAX_REASONABLE_MARGIN_PERCENT = Decimal("200")
MAX_PRICE_TO_COST_RATIO = Decimal("10")
MIN_ZONE_MULTIPLIER = Decimal("0.5")
MAX_ZONE_MULTIPLIER = Decimal("3.0")
MIN_PLAUSIBLE_SPEED_KMH = Decimal("20")
MAX_PLAUSIBLE_SPEED_KMH = Decimal("150")
COMPONENTS_SUM_TOLERANCE = Decimal("0.05")


class PricingValidationService:
    """Validation du résultat / Result validation."""

    @staticmethod
    def check_margin_positive(result: PricingResult) -> ValidationCheck:
        if result.margin is None:
            return _check("margin-positive", "Positive margin", ValidationCheckStatus.PASS, "No internal cost to compare")
        if result.margin < 0:
            return _check(
                "margin-positive", "Positive margin", ValidationCheckStatus.FAIL,
                f"Negative margin: {result.margin}€", {"margin": result.margin},
            )
        return _check(
            "margin-positive", "Positive margin", ValidationCheckStatus.PASS,
            f"Margin: {result.margin}€", {"margin": result.margin},
        )

    @staticmethod
    def check_margin_reasonable(result: PricingResult) -> ValidationCheck:
        percent = result.margin_percent
        if percent is None:
            return _check("margin-reasonable", "Reasonable margin", ValidationCheckStatus.PASS, "No margin computed")
        if not MIN_REASONABLE_MARGIN_PERCENT <= percent <= MAX_REASONABLE_MARGIN_PERCENT:
            return _check(
                "margin-reasonable", "Reasonable margin", ValidationCheckStatus.WARNING,
                f"Margin {percent}% outside {MIN_REASONABLE_MARGIN_PERCENT}%..{MAX_REASONABLE_MARGIN_PERCENT}%",
                {"margin_percent": percent},
            )
        return _check(
            "margin-reasonable", "Reasonable margin", ValidationCheckStatus.PASS,
            f"Margin {percent}%", {"margin_percent": percent},
        )

    @staticmethod
    def check_price_vs_cost(result: PricingResult) -> ValidationCheck:
        cost = result.internal_cost
        if cost is None or cost <= 0:
            return _check("price-vs-cost", "Price vs cost", ValidationCheckStatus.PASS, "No internal cost to compare")
        ratio = round_money(result.price / cost)
        if ratio > MAX_PRICE_TO_COST_RATIO:
            return _check(
                "price-vs-cost", "Price vs cost", ValidationCheckStatus.WARNING,
                f"Price is {ratio}× the internal cost", {"ratio": ratio},
            )
        return _check(
            "price-vs-cost", "Price vs cost", ValidationCheckStatus.PASS,
            f"Price is {ratio}× the internal cost", {"ratio": ratio},
        )

    @staticmethod
    def check_zone_multiplier(result: PricingResult) -> ValidationCheck:
        multipliers = [result.pickup_zone.effective_multiplier, result.dropoff_zone.effective_multiplier]
        out_of_range = [m for m in multipliers if not MIN_ZONE_MULTIPLIER <= m <= MAX_ZONE_MULTIPLIER]
        if out_of_range:
            return _check(
                "zone-multiplier", "Zone multiplier range", ValidationCheckStatus.WARNING,
                f"Zone multiplier outside {MIN_ZONE_MULTIPLIER}..{MAX_ZONE_MULTIPLIER}",
                {"multipliers": multipliers},
            )
        return _check(
            "zone-multiplier", "Zone multiplier range", ValidationCheckStatus.PASS,
            "Zone multipliers in range", {"multipliers": multipliers},
        )

    @staticmethod
    def check_duration_plausible(result: PricingResult) -> ValidationCheck:
        distance = result.base_price.distance_km
        duration = result.base_price.duration_minutes
        if distance <= 0 or duration <= 0:
            return _check(
                "duration-plausible", "Plausible duration", ValidationCheckStatus.PASS, "No distance or duration",
            )
        speed = round_money(distance / (duration / SIXTY))
        if not MIN_PLAUSIBLE_SPEED_KMH <= speed <= MAX_PLAUSIBLE_SPEED_KMH:
            return _check(
                "duration-plausible", "Plausible duration", ValidationCheckStatus.WARNING,
                f"Average speed {speed} km/h outside {MIN_PLAUSIBLE_SPEED_KMH}..{MAX_PLAUSIBLE_SPEED_KMH} km/h",
                {"speed_kmh": speed},
            )
        return _check(
            "duration-plausible", "Plausible duration", ValidationCheckStatus.PASS,
            f"Average speed {speed} km/h", {"speed_kmh": speed},
        )

    @staticmethod
    def check_components_sum(result: PricingResult) -> ValidationCheck:
        breakdown = result.cost_breakdown
        present = [a for a in breakdown.amounts().values() if a is not None]
        if breakdown.total is None or not present:
            return _check("components-sum", "Cost components sum", ValidationCheckStatus.PASS, "No cost components")
        summed = sum(present, ZERO)
        gap = abs(summed - breakdown.total)
        if breakdown.total > 0 and gap / breakdown.total > COMPONENTS_SUM_TOLERANCE:
            return _check(
                "components-sum", "Cost components sum", ValidationCheckStatus.FAIL,
                f"Components sum {round_money(summed)}€ differs from total {breakdown.total}€",
                {"sum": summed, "total": breakdown.total, "gap_percent": round_money(gap / breakdown.total * HUNDRED)},
            )
        return _check(
            "components-sum", "Cost components sum", ValidationCheckStatus.PASS,
            "Components match the total", {"sum": summed, "total": breakdown.total},
        )

    @staticmethod
    def validate_pricing_result(result: PricingResult) -> PricingValidationResult:
        """
        Exécuter tous les contrôles / Run every check.
        FAIL → INVALID, WARNING → WARNING, sinon VALID.
        """
        checks = [
            PricingValidationService.check_margin_positive(result),
            PricingValidationService.check_margin_reasonable(result),
            PricingValidationService.check_price_vs_cost(result),
            PricingValidationService.check_zone_multiplier(result),
            PricingValidationService.check_duration_plausible(result),
            PricingValidationService.check_components_sum(result),
        ]
        errors = [c.message for c in checks if c.status == ValidationCheckStatus.FAIL]
        warnings = [c.message for c in checks if c.status == ValidationCheckStatus.WARNING]

        if errors:
            status = "INVALID"
            logger.warning("Résultat de tarification invalide / invalid pricing result: %s", errors)
        elif warnings:
            status = "WARNING"
        else:
            status = "VALID"

        return PricingValidationResult(
            is_valid=not errors,
            overall_status=status,
            checks=checks,
            warnings=warnings,
            errors=errors,
            timestamp=datetime.now(timezone.utc),
        )


def _check(check_id: str, name: str, status: ValidationCheckStatus, message: str, details: dict | None = None):
    return ValidationCheck(id=check_id, name=name, status=status, message=message, details=details or {})
