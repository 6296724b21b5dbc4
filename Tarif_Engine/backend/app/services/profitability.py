"""
Service de rentabilité et commission / Profitability and commission service.
Indicateur vert/orange/rouge, commission partenaire, prix forcé manuellement.
"""

import logging
from datetime import datetime
from decimal import Decimal

from app.schemas.pricing import (
    AppliedRule,
    CommissionData,
    CommissionResult,
    EffectiveMargin,
    PriceOverrideValidation,
    PricingResult,
    ProfitabilityData,
    ProfitabilityThresholds,
    ProfitabilityTier,
)
from app.schemas.pricing_settings import ContactInfo, OrganizationPricingSettings
from app.services.cost_calculator import CostCalculatorService
from app.utils.money import HUNDRED, ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)

MAX_COMMISSION_PERCENT = Decimal("100")

TIER_LABELS = {
    ProfitabilityTier.GREEN: "Profitable",
    ProfitabilityTier.ORANGE: "Low margin",
    ProfitabilityTier.RED: "Loss",
}


class ProfitabilityService:
    """Rentabilité et commission / Profitability and commission."""

    @staticmethod
    def calculate_margin_percent(price: Decimal, internal_cost: Decimal) -> Decimal:
        """Marge en % du prix (0 si prix ≤ 0) / Margin as % of price (0 if price ≤ 0)."""
        price = to_decimal(price)
        if price <= 0:
            return ZERO
        return round_money((price - to_decimal(internal_cost)) / price * HUNDRED)

    @staticmethod
    def calculate_profitability_indicator(
        margin_percent: Decimal,
        thresholds: ProfitabilityThresholds | None = None,
    ) -> ProfitabilityTier:
        """Seuils inclusifs / Inclusive thresholds."""
        thresholds = thresholds or ProfitabilityThresholds()
        if margin_percent >= thresholds.green_threshold:
            return ProfitabilityTier.GREEN
        if margin_percent >= thresholds.orange_threshold:
            return ProfitabilityTier.ORANGE
        return ProfitabilityTier.RED

    @staticmethod
    def get_thresholds_from_settings(settings: OrganizationPricingSettings | None) -> ProfitabilityThresholds:
        defaults = ProfitabilityThresholds()
        if settings is None:
            return defaults
        return ProfitabilityThresholds(
            green_threshold=(
                settings.green_margin_threshold
                if settings.green_margin_threshold is not None
                else defaults.green_threshold
            ),
            orange_threshold=(
                settings.orange_margin_threshold
                if settings.orange_margin_threshold is not None
                else defaults.orange_threshold
            ),
        )

    @staticmethod
    def get_profitability_data(
        margin_percent: Decimal,
        thresholds: ProfitabilityThresholds | None = None,
    ) -> ProfitabilityData:
        """Indicateur complet pour l'affichage / Full indicator for display."""
        thresholds = thresholds or ProfitabilityThresholds()
        margin_percent = to_decimal(margin_percent)
        tier = ProfitabilityService.calculate_profitability_indicator(margin_percent, thresholds)

        shown = round_money(margin_percent, "0.1")
        if tier == ProfitabilityTier.GREEN:
            description = f"Margin: {shown}% (≥{thresholds.green_threshold}% target)"
        elif tier == ProfitabilityTier.ORANGE:
            description = f"Margin: {shown}% (below {thresholds.green_threshold}% target)"
        else:
            description = f"Margin: {shown}% (loss)"

        return ProfitabilityData(
            indicator=tier,
            margin_percent=margin_percent,
            thresholds=thresholds,
            label=TIER_LABELS[tier],
            description=description,
        )

    @staticmethod
    def calculate_commission(total_excl_vat: Decimal, commission_percent: Decimal) -> CommissionResult:
        """
        Commission partenaire / Partner commission.
        Taux plafonné à 100 %, montants arrondis à 2 décimales.
        """
        total = to_decimal(total_excl_vat)
        percent = to_decimal(commission_percent)
        if percent <= 0 or total <= 0:
            return CommissionResult(
                commission_percent=ZERO,
                commission_amount=ZERO,
                net_amount_after_commission=round_money(max(ZERO, total)),
            )
        percent = min(percent, MAX_COMMISSION_PERCENT)
        amount = round_money(total * percent / HUNDRED)
        return CommissionResult(
            commission_percent=percent,
            commission_amount=amount,
            net_amount_after_commission=round_money(total - amount),
        )

    @staticmethod
    def calculate_effective_margin(
        price: Decimal,
        internal_cost: Decimal,
        commission_amount: Decimal,
    ) -> EffectiveMargin:
        """
        Marge brute et marge après commission / Gross margin and margin after commission.
        Les deux restent visibles, la commission n'entre pas dans le coût.
        """
        price = to_decimal(price)
        gross = round_money(price - to_decimal(internal_cost))
        effective = round_money(gross - to_decimal(commission_amount))
        return EffectiveMargin(
            gross_margin=gross,
            gross_margin_percent=round_money(gross / price * HUNDRED) if price > 0 else ZERO,
            effective_margin=effective,
            effective_margin_percent=round_money(effective / price * HUNDRED) if price > 0 else ZERO,
        )

    @staticmethod
    def has_commission(contact: ContactInfo | None) -> bool:
        return bool(contact and contact.is_partner and contact.commission_percent and contact.commission_percent > 0)

    @staticmethod
    def get_commission_percent(contact: ContactInfo | None) -> Decimal:
        if not ProfitabilityService.has_commission(contact):
            return ZERO
        return contact.commission_percent

    @staticmethod
    def get_commission_data(
        price: Decimal,
        internal_cost: Decimal,
        commission_percent: Decimal,
        thresholds: ProfitabilityThresholds | None = None,
    ) -> CommissionData:
        """
        Commission et rentabilité effective / Commission and effective profitability.
        L'indicateur porte sur la marge après commission.
        """
        commission = ProfitabilityService.calculate_commission(price, commission_percent)
        margin = ProfitabilityService.calculate_effective_margin(price, internal_cost, commission.commission_amount)
        return CommissionData(
            **commission.model_dump(),
            **margin.model_dump(),
            profitability=ProfitabilityService.get_profitability_data(margin.effective_margin_percent, thresholds),
        )

    # ---- Prix forcé / Price override ----

    @staticmethod
    def validate_price_override(
        new_price: Decimal,
        internal_cost: Decimal | None,
        minimum_margin_percent: Decimal | None = None,
    ) -> PriceOverrideValidation:
        """
        Contrôle du prix saisi / Check a manually entered price.
        Prix ≤ 0 refusé ; marge sous le minimum : simple avertissement.
        """
        new_price = to_decimal(new_price)
        if new_price <= 0:
            return PriceOverrideValidation(
                is_valid=False,
                error_code="INVALID_PRICE",
                message="Price must be greater than zero",
            )

        warnings = []
        if internal_cost is not None:
            margin = ProfitabilityService.calculate_margin_percent(new_price, internal_cost)
            if margin < 0:
                warnings.append(f"Price is below internal cost ({round_money(internal_cost)}€)")
            if minimum_margin_percent is not None and margin < minimum_margin_percent:
                return PriceOverrideValidation(
                    is_valid=True,
                    error_code="BELOW_MINIMUM_MARGIN",
                    message=f"Margin {margin}% is below the minimum of {minimum_margin_percent}%",
                    warnings=warnings,
                )
        return PriceOverrideValidation(is_valid=True, warnings=warnings)

    @staticmethod
    def apply_price_override(
        result: PricingResult,
        new_price: Decimal,
        settings: OrganizationPricingSettings | None = None,
        reason: str | None = None,
    ) -> PricingResult:
        """
        Appliquer un prix forcé / Apply a manual price.
        Remplace toute règle MANUAL_OVERRIDE précédente ; le prix d'origine est conservé.
        """
        new_price = round_money(new_price)
        kept = [r for r in result.applied_rules if r.type != "MANUAL_OVERRIDE"]
        previous = next((r for r in result.applied_rules if r.type == "MANUAL_OVERRIDE"), None)
        original = previous.price_before if previous is not None else result.price

        rule = AppliedRule(
            type="MANUAL_OVERRIDE",
            description=f"Price manually set to {new_price}€" + (f" ({reason})" if reason else ""),
            price_before=original,
            price_after=new_price,
            details={
                "previous_price": result.price,
                "price_change": round_money(new_price - original),
                "reason": reason,
            },
        )
        logger.info("Prix forcé / price override: %s -> %s", original, new_price)

        update = {"price": new_price, "applied_rules": [*kept, rule]}
        update.update(_margin_update(new_price, result.internal_cost, result.commission, settings))
        return result.model_copy(update=update)

    @staticmethod
    def apply_cost_override(
        result: PricingResult,
        component: str,
        value: Decimal,
        edited_by: str,
        edited_at: datetime,
        settings: OrganizationPricingSettings | None = None,
        reason: str | None = None,
    ) -> PricingResult:
        """
        Corriger un composant du coût interne / Manually edit an internal cost component.
        Les segments gardent le calcul d'origine ; la correction est tracée dans
        trip_analysis.cost_overrides et se reporte sur le coût et la marge.
        """
        breakdown, overrides = CostCalculatorService.apply_cost_override(
            result.cost_breakdown,
            component,
            value,
            edited_by,
            edited_at,
            reason,
            existing=result.trip_analysis.cost_overrides,
        )
        update = {
            "cost_breakdown": breakdown,
            "internal_cost": breakdown.total,
            "trip_analysis": result.trip_analysis.model_copy(update={"cost_overrides": overrides}),
        }
        update.update(_margin_update(result.price, breakdown.total, result.commission, settings))
        return result.model_copy(update=update)


def _margin_update(
    price: Decimal,
    internal_cost: Decimal | None,
    commission: CommissionData | None,
    settings: OrganizationPricingSettings | None,
) -> dict:
    """Marge, indicateur et commission recalculés / Recomputed margin, tier and commission."""
    if internal_cost is None:
        return {}
    thresholds = ProfitabilityService.get_thresholds_from_settings(settings)
    margin_percent = ProfitabilityService.calculate_margin_percent(price, internal_cost)
    update = {
        "margin": round_money(price - internal_cost),
        "margin_percent": margin_percent,
        "profitability": ProfitabilityService.get_profitability_data(margin_percent, thresholds),
    }
    if commission is not None:
        update["commission"] = ProfitabilityService.get_commission_data(
            price, internal_cost, commission.commission_percent, thresholds
        )
    return update
