"""Routes API / API routes."""

from fastapi import APIRouter

from app.api import (
    pricing,
    zones,
)

api_router = APIRouter(prefix="/api")

api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
api_router.include_router(zones.router, prefix="/zones", tags=["zones"])
