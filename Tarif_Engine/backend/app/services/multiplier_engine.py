"""
Moteur de majorations / Multiplier engine.
Majorations avancées (horaire, jour, distance, zone) puis coefficients saisonniers,
appliqués par priorité croissante sur un prix courant (pli gauche).
"""

import logging
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from app.schemas.pricing import AppliedRule
from app.schemas.pricing_settings import VehicleCategoryInfo
from app.schemas.rate_rule import AdjustmentType, AdvancedRate, AdvancedRateAppliesTo, SeasonalMultiplier
from app.services.time_calculator import TimeCalculatorService
from app.utils.money import HUNDRED, ONE, round_money, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_WEEKEND_DAYS = "0,6"

# Score de difficulté client 1..5 / Client difficulty score 1..5
DEFAULT_DIFFICULTY_MULTIPLIERS: dict[int, Decimal] = {
    1: Decimal("1.00"),
    2: Decimal("1.02"),
    3: Decimal("1.05"),
    4: Decimal("1.08"),
    5: Decimal("1.10"),
}


class MultiplierContext(BaseModel):
    """Faits utilisés par les règles / Facts the rules are evaluated against."""
    pickup_at: datetime | None = None
    estimated_end_at: datetime | None = None
    distance_km: Decimal = Decimal("0")
    pickup_zone_id: str | None = None
    dropoff_zone_id: str | None = None
    vehicle_category_id: str | None = None


class MultiplierEngine:
    """Évaluation et cumul des majorations / Rule evaluation and stacking."""

    @staticmethod
    def matches_vehicle_category(
        single_id: str | None,
        id_list: list[str] | None,
        quote_category_id: str | None,
    ) -> bool:
        """
        Filtre catégorie de véhicule / Vehicle category gate.
        Devis sans catégorie : toujours applicable (données historiques).
        Liste non vide : prioritaire sur l'identifiant unique.
        Liste vide : on retombe sur l'identifiant unique.
        """
        if not quote_category_id:
            return True
        if id_list:
            return quote_category_id in id_list
        if not single_id:
            return True
        return single_id == quote_category_id

    @staticmethod
    def evaluate_advanced_rate(rate: AdvancedRate, ctx: MultiplierContext, check_time: bool = True) -> bool:
        """
        La majoration s'applique-t-elle ? / Does the rate apply?
        check_time=False : plage horaire traitée au prorata par l'appelant.
        """
        if not rate.is_active:
            return False
        if not MultiplierEngine.matches_vehicle_category(
            rate.vehicle_category_id, rate.vehicle_category_ids, ctx.vehicle_category_id
        ):
            return False

        days = rate.days_of_week
        if rate.applies_to == AdvancedRateAppliesTo.NIGHT:
            if not (rate.start_time and rate.end_time):
                return False
        elif rate.applies_to == AdvancedRateAppliesTo.WEEKEND:
            days = days or DEFAULT_WEEKEND_DAYS
        elif rate.applies_to == AdvancedRateAppliesTo.LONG_DISTANCE:
            if rate.min_distance_km is None and rate.max_distance_km is None:
                return False
        elif rate.applies_to == AdvancedRateAppliesTo.ZONE:
            if not rate.zone_id:
                return False

        if check_time and rate.start_time and rate.end_time:
            if ctx.pickup_at is None:
                return False
            if not TimeCalculatorService.is_time_in_range(ctx.pickup_at, rate.start_time, rate.end_time):
                return False
        if days:
            if ctx.pickup_at is None or not TimeCalculatorService.is_day_in_set(ctx.pickup_at, days):
                return False
        if rate.min_distance_km is not None and ctx.distance_km < rate.min_distance_km:
            return False
        if rate.max_distance_km is not None and ctx.distance_km > rate.max_distance_km:
            return False
        if rate.zone_id and rate.zone_id not in (ctx.pickup_zone_id, ctx.dropoff_zone_id):
            return False
        return True

    @staticmethod
    def adjust(price: Decimal, adjustment_type: AdjustmentType, value: Decimal) -> Decimal:
        """Pourcentage composé ou montant fixe / Compounding percentage or flat amount."""
        if adjustment_type == AdjustmentType.PERCENTAGE:
            return price * (ONE + value / HUNDRED)
        return price + value

    @staticmethod
    def calculate_weighted_night_rate(
        price: Decimal,
        rate: AdvancedRate,
        ctx: MultiplierContext,
    ) -> tuple[Decimal, AppliedRule | None] | None:
        """
        Majoration de nuit au prorata / Pro-rata night rate.
        None si la fin de course est inconnue (évaluation ponctuelle).
        """
        if ctx.pickup_at is None or ctx.estimated_end_at is None:
            return None
        if not (rate.start_time and rate.end_time):
            return None
        total = round((ctx.estimated_end_at - ctx.pickup_at).total_seconds() / 60)
        if total <= 0:
            return None

        night = TimeCalculatorService.night_overlap_minutes(
            ctx.pickup_at, ctx.estimated_end_at, rate.start_time, rate.end_time
        )
        if night == 0:
            return price, None

        fraction = Decimal(night) / Decimal(total)
        effective = rate.value * fraction
        adjusted = MultiplierEngine.adjust(price, rate.adjustment_type, effective)
        share = round_money(fraction * HUNDRED, "1")
        rule = AppliedRule(
            type="ADVANCED_RATE",
            description=f"Applied NIGHT rate: {rate.name} ({share}% of trip)",
            price_before=price,
            price_after=adjusted,
            details={
                "rule_id": rate.id,
                "rule_name": rate.name,
                "applies_to": rate.applies_to.value,
                "adjustment_type": rate.adjustment_type.value,
                "adjustment_value": round_money(effective),
                "base_adjustment": rate.value,
                "night_minutes": night,
                "total_minutes": total,
                "night_percentage": round_money(fraction * HUNDRED),
            },
        )
        return adjusted, rule

    @staticmethod
    def apply_advanced_rates(
        price: Decimal,
        ctx: MultiplierContext,
        rates: list[AdvancedRate],
    ) -> tuple[Decimal, list[AppliedRule]]:
        """
        Appliquer les majorations par priorité croissante / Apply rates by ascending priority.
        Égalité : ordre d'entrée conservé / Ties keep input order.
        """
        rules: list[AppliedRule] = []
        for rate in sorted(rates, key=lambda r: r.priority):
            if (
                rate.applies_to == AdvancedRateAppliesTo.NIGHT
                and MultiplierEngine.evaluate_advanced_rate(rate, ctx, check_time=False)
            ):
                weighted = MultiplierEngine.calculate_weighted_night_rate(price, rate, ctx)
                if weighted is not None:
                    price, rule = weighted
                    if rule is not None:
                        rules.append(rule)
                    continue

            if not MultiplierEngine.evaluate_advanced_rate(rate, ctx):
                continue
            before = price
            price = MultiplierEngine.adjust(price, rate.adjustment_type, rate.value)
            logger.debug("Majoration appliquée / rate applied: %s %s -> %s", rate.name, before, price)
            rules.append(AppliedRule(
                type="ADVANCED_RATE",
                description=f"Applied {rate.applies_to.value} rate: {rate.name}",
                price_before=before,
                price_after=price,
                details={
                    "rule_id": rate.id,
                    "rule_name": rate.name,
                    "applies_to": rate.applies_to.value,
                    "adjustment_type": rate.adjustment_type.value,
                    "adjustment_value": rate.value,
                },
            ))
        return price, rules

    @staticmethod
    def evaluate_seasonal_multiplier(multiplier: SeasonalMultiplier, ctx: MultiplierContext) -> bool:
        """Coefficient saisonnier applicable ? / Does the seasonal multiplier apply?"""
        if not multiplier.is_active:
            return False
        if not MultiplierEngine.matches_vehicle_category(
            multiplier.vehicle_category_id, multiplier.vehicle_category_ids, ctx.vehicle_category_id
        ):
            return False
        if ctx.pickup_at is None:
            return False
        return TimeCalculatorService.is_within_date_range(ctx.pickup_at, multiplier.start_date, multiplier.end_date)

    @staticmethod
    def apply_seasonal_multipliers(
        price: Decimal,
        ctx: MultiplierContext,
        multipliers: list[SeasonalMultiplier],
    ) -> tuple[Decimal, list[AppliedRule]]:
        """Appliquer les coefficients saisonniers / Apply seasonal multipliers."""
        rules: list[AppliedRule] = []
        for multiplier in sorted(multipliers, key=lambda m: m.priority):
            if not MultiplierEngine.evaluate_seasonal_multiplier(multiplier, ctx):
                continue
            before = price
            price = price * multiplier.multiplier
            rules.append(AppliedRule(
                type="SEASONAL_MULTIPLIER",
                description=f"Applied seasonal multiplier: {multiplier.name} (×{multiplier.multiplier})",
                price_before=before,
                price_after=price,
                details={
                    "rule_id": multiplier.id,
                    "rule_name": multiplier.name,
                    "adjustment_type": "MULTIPLIER",
                    "adjustment_value": multiplier.multiplier,
                },
            ))
        return price, rules

    @staticmethod
    def apply_all_multipliers(
        price: Decimal,
        ctx: MultiplierContext,
        advanced_rates: list[AdvancedRate],
        seasonal_multipliers: list[SeasonalMultiplier],
    ) -> tuple[Decimal, list[AppliedRule]]:
        """Majorations avancées puis saisonnières / Advanced rates then seasonal."""
        price, rules = MultiplierEngine.apply_advanced_rates(price, ctx, advanced_rates)
        price, seasonal_rules = MultiplierEngine.apply_seasonal_multipliers(price, ctx, seasonal_multipliers)
        return price, rules + seasonal_rules

    @staticmethod
    def apply_vehicle_category_multiplier(
        price: Decimal,
        vehicle_category: VehicleCategoryInfo | None,
        used_category_rates: bool,
    ) -> tuple[Decimal, AppliedRule | None]:
        """
        Coefficient de catégorie / Vehicle category multiplier.
        Ignoré si les tarifs de la catégorie ont déjà servi au prix de base.
        """
        if vehicle_category is None or vehicle_category.price_multiplier == ONE:
            return price, None
        if used_category_rates:
            return price, AppliedRule(
                type="VEHICLE_CATEGORY_MULTIPLIER",
                description=f"Category multiplier skipped: {vehicle_category.name} rates already used",
                price_before=price,
                price_after=price,
                details={
                    "category_id": vehicle_category.id,
                    "multiplier": vehicle_category.price_multiplier,
                    "skipped_reason": "CATEGORY_RATES_USED",
                },
            )
        adjusted = price * vehicle_category.price_multiplier
        return adjusted, AppliedRule(
            type="VEHICLE_CATEGORY_MULTIPLIER",
            description=f"Vehicle category multiplier: {vehicle_category.name} (×{vehicle_category.price_multiplier})",
            price_before=price,
            price_after=adjusted,
            details={"category_id": vehicle_category.id, "multiplier": vehicle_category.price_multiplier},
        )

    @staticmethod
    def apply_client_difficulty_multiplier(
        price: Decimal,
        difficulty_score: int | None,
        configured: dict[str, Decimal] | None = None,
    ) -> tuple[Decimal, AppliedRule | None]:
        """Majoration difficulté client (score 1..5) / Client difficulty adjustment (score 1..5)."""
        if difficulty_score is None or not 1 <= difficulty_score <= 5:
            return price, None
        if configured:
            multiplier = to_decimal(configured.get(str(difficulty_score), ONE))
        else:
            multiplier = DEFAULT_DIFFICULTY_MULTIPLIERS[difficulty_score]
        if multiplier == ONE:
            return price, None

        adjusted = price * multiplier
        change = round_money((multiplier - ONE) * HUNDRED)
        return adjusted, AppliedRule(
            type="CLIENT_DIFFICULTY_MULTIPLIER",
            description=f"Client difficulty adjustment: +{change}% (score {difficulty_score}/5)",
            price_before=price,
            price_after=adjusted,
            details={"difficulty_score": difficulty_score, "multiplier": multiplier},
        )
