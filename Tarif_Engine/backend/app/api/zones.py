"""Routes Zones / Zone API routes."""

from fastapi import APIRouter, Request

from app.config import settings
from app.rate_limit import limiter
from app.schemas.zone import ZoneResolution, ZoneResolveRequest, ZoneValidateRequest, ZoneValidationResult
from app.services.zone_resolver import ZoneResolverService
from app.services.zone_validator import ZoneValidatorService

router = APIRouter()


@router.post("/resolve", response_model=ZoneResolution)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def resolve_zone(request: Request, data: ZoneResolveRequest):
    """Zone retenue pour un point / Resolved zone for a point."""
    return ZoneResolverService.resolve_point(data.point, data.zones, data.strategy)


@router.post("/validate", response_model=ZoneValidationResult)
@limiter.limit(settings.RATE_LIMIT_PRICING)
async def validate_zones(request: Request, data: ZoneValidateRequest):
    """Contrôle de topologie des zones / Zone topology check."""
    return ZoneValidatorService.validate_zone_topology(
        data.zones, data.conflict_strategy, data.check_coverage, data.bounding_box
    )
