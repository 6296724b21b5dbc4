"""Routes Tarification / Pricing API routes."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request

from app.config import settings
from app.rate_limit import limiter
from app.schemas.cost import TripAnalysis
from app.schemas.pricing import (
    CommissionData,
    CommissionRequest,
    CostOverrideRequest,
    PriceOverrideRequest,
    PriceOverrideResponse,
    PricingCalculateRequest,
    PricingResult,
    PricingValidationResult,
    TripAnalysisRequest,
)
from app.services.pricing_engine import PricingEngine
from app.services.pricing_validation import PricingValidationService
from app.services.profitability import ProfitabilityService
from app.services.shadow_calculator import ShadowCalculatorService
from app.utils.money import to_decimal

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/calculate", response_model=PricingResult)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def calculate_price(request: Request, data: PricingCalculateRequest):
    """Calculer le prix d'une course / Calculate a trip price."""
    try:
        return PricingEngine.calculate_price(
            data.request,
            data.context,
            road_distance_factor=settings.ROAD_DISTANCE_FACTOR,
            average_speed_kmh=settings.DEFAULT_AVERAGE_SPEED_KMH,
            default_distance_km=to_decimal(settings.DEFAULT_DISTANCE_KM),
            default_duration_minutes=to_decimal(settings.DEFAULT_DURATION_MINUTES),
        )
    except ValueError as e:
        logger.warning("Tarification refusée / pricing rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/validate", response_model=PricingValidationResult)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def validate_pricing(request: Request, data: PricingResult):
    """Contrôler un résultat de tarification / Sanity-check a pricing result."""
    return PricingValidationService.validate_pricing_result(data)


@router.post("/price-override", response_model=PriceOverrideResponse)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def override_price(request: Request, data: PriceOverrideRequest):
    """Forcer le prix d'un résultat / Manually set the price of a result."""
    validation = ProfitabilityService.validate_price_override(
        data.new_price, data.result.internal_cost, data.minimum_margin_percent
    )
    if not validation.is_valid:
        return PriceOverrideResponse(validation=validation)
    result = ProfitabilityService.apply_price_override(data.result, data.new_price, data.settings, data.reason)
    return PriceOverrideResponse(validation=validation, result=result)


@router.post("/commission", response_model=CommissionData)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def calculate_commission(request: Request, data: CommissionRequest):
    """Commission partenaire et marge effective / Partner commission and effective margin."""
    thresholds = ProfitabilityService.get_thresholds_from_settings(data.settings)
    return ProfitabilityService.get_commission_data(
        data.price, data.internal_cost, data.commission_percent, thresholds
    )


@router.post("/trip-analysis", response_model=TripAnalysis)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def trip_analysis(request: Request, data: TripAnalysisRequest):
    """Analyse par segments (approche, service, retour) / Segment analysis."""
    return ShadowCalculatorService.calculate_shadow_segments(
        data.distance_km,
        data.duration_minutes,
        data.settings,
        data.vehicle_category,
        data.vehicle,
        data.vehicle_selection,
        data.routing_source,
    )


@router.post("/cost-override", response_model=PricingResult)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def override_cost(request: Request, data: CostOverrideRequest):
    """Corriger un composant du coût interne / Manually edit an internal cost component."""
    try:
        return ProfitabilityService.apply_cost_override(
            data.result,
            data.component,
            data.value,
            data.edited_by,
            datetime.now(timezone.utc),
            data.settings,
            data.reason,
        )
    except ValueError as e:
        logger.warning("Correction de coût refusée / cost override rejected: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
