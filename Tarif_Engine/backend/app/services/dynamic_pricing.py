"""
Service de prix de base dynamique / Dynamic base price service.
MAX(distance × tarif km, durée × tarif horaire) puis marge cible.
"""

import logging
from decimal import Decimal

from app.schemas.pricing import DynamicBasePriceResult, ResolvedRates
from app.schemas.pricing_settings import OrganizationPricingSettings, VehicleCategoryInfo
from app.utils.money import HUNDRED, ONE, SIXTY, round_money, to_decimal

logger = logging.getLogger(__name__)


class DynamicPricingService:
    """Prix de base / Base price."""

    @staticmethod
    def resolve_rates(
        settings: OrganizationPricingSettings,
        vehicle_category: VehicleCategoryInfo | None = None,
    ) -> ResolvedRates:
        """
        Tarifs retenus / Resolved rates.
        Catégorie prioritaire seulement si tarif km ET horaire renseignés.
        """
        if vehicle_category is not None:
            per_km = vehicle_category.default_rate_per_km
            per_hour = vehicle_category.default_rate_per_hour
            if per_km is not None and per_hour is not None:
                return ResolvedRates(
                    rate_per_km=per_km,
                    rate_per_hour=per_hour,
                    rate_source="CATEGORY",
                    used_category_rates=True,
                )
            if per_km is not None or per_hour is not None:
                logger.warning(
                    "Tarifs catégorie incomplets, tarifs organisation utilisés / "
                    "incomplete category rates for %s",
                    vehicle_category.id,
                )
        return ResolvedRates(
            rate_per_km=settings.base_rate_per_km,
            rate_per_hour=settings.base_rate_per_hour,
            rate_source="ORGANIZATION",
            used_category_rates=False,
        )

    @staticmethod
    def calculate_dynamic_base_price(
        distance_km: Decimal,
        duration_minutes: Decimal,
        settings: OrganizationPricingSettings,
        rates: ResolvedRates | None = None,
    ) -> DynamicBasePriceResult:
        """
        Calculer le prix de base / Calculate the base price.
        Égalité : la distance l'emporte / Ties favor distance.
        """
        distance_km = to_decimal(distance_km)
        duration_minutes = to_decimal(duration_minutes)
        rates = rates or DynamicPricingService.resolve_rates(settings)

        distance_price = distance_km * rates.rate_per_km
        duration_price = duration_minutes / SIXTY * rates.rate_per_hour
        if distance_price >= duration_price:
            method, base_price = "distance", distance_price
        else:
            method, base_price = "duration", duration_price

        margin = settings.target_margin_percent
        price_with_margin = round_money(base_price * (ONE + margin / HUNDRED))

        return DynamicBasePriceResult(
            distance_km=distance_km,
            duration_minutes=duration_minutes,
            rate_per_km=rates.rate_per_km,
            rate_per_hour=rates.rate_per_hour,
            rate_source=rates.rate_source,
            target_margin_percent=margin,
            distance_based_price=distance_price,
            duration_based_price=duration_price,
            selected_method=method,
            base_price=base_price,
            price_with_margin=price_with_margin,
        )
