"""
Schémas Zone / Zone schemas.
Géométrie polymorphe : union discriminée sur `type` (RADIUS, POLYGON, POINT).
"""

import enum
from decimal import Decimal
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from app.utils.money import Amount


class ZoneConflictStrategy(str, enum.Enum):
    """Résolution des zones superposées / Overlapping zone resolution."""
    PRIORITY = "PRIORITY"
    MOST_EXPENSIVE = "MOST_EXPENSIVE"
    CLOSEST = "CLOSEST"
    COMBINED = "COMBINED"


class ZoneMultiplierAggregation(str, enum.Enum):
    """Agrégation prise en charge / dépose / Pickup-dropoff aggregation."""
    MAX = "MAX"
    PICKUP_ONLY = "PICKUP_ONLY"
    DROPOFF_ONLY = "DROPOFF_ONLY"
    AVERAGE = "AVERAGE"


class GeoPoint(BaseModel):
    model_config = ConfigDict(frozen=True)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RadiusGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["RADIUS"] = "RADIUS"
    center: GeoPoint | None = None
    radius_km: float | None = None


# Sommet GeoJSON [lng, lat] (altitude tolérée) / GeoJSON vertex [lng, lat] (altitude allowed)
Vertex = Annotated[list[float], Field(min_length=2)]


class PolygonGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["POLYGON"] = "POLYGON"
    ring: list[Vertex] | None = None   # [[lng, lat], ...] fermé / closed
    center: GeoPoint | None = None


class PointGeometry(BaseModel):
    model_config = ConfigDict(frozen=True)
    type: Literal["POINT"] = "POINT"
    center: GeoPoint | None = None


ZoneGeometry = Annotated[
    RadiusGeometry | PolygonGeometry | PointGeometry,
    Field(discriminator="type"),
]


class Zone(BaseModel):
    """Zone tarifaire / Pricing zone (lecture seule pour le moteur)."""
    model_config = ConfigDict(frozen=True, from_attributes=True)
    id: str
    name: str
    code: str
    geometry: ZoneGeometry
    priority: int | None = None
    price_multiplier: Amount = Decimal("1")
    is_active: bool = True
    fixed_parking_surcharge: Amount | None = None
    fixed_access_fee: Amount | None = None


class ZoneRef(BaseModel):
    """Référence compacte pour les règles / Compact reference for rules."""
    id: str
    code: str
    name: str
    multiplier: Amount


class ZoneResolution(BaseModel):
    """Résultat de détection pour un point / Detection result for one point."""
    point: GeoPoint
    selected_zone: Zone | None = None
    candidates: list[Zone] = []
    strategy: ZoneConflictStrategy | None = None
    effective_multiplier: Amount = Decimal("1")
    warnings: list[str] = []


class ZoneMultiplierResult(BaseModel):
    multiplier: Amount
    source: Literal["pickup", "dropoff", "both", "none"]


# ---- Validation de topologie / Topology validation ----

class ValidationSeverity(str, enum.Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class ZoneOverlap(BaseModel):
    zone1_id: str
    zone1_name: str
    zone2_id: str
    zone2_name: str
    overlap_type: str                    # ex. RADIUS_RADIUS
    severity: ValidationSeverity
    message: str
    suggestion: str


class ZoneMissingField(BaseModel):
    zone_id: str
    zone_name: str
    field: str
    severity: ValidationSeverity
    message: str


class ZoneTopologyWarning(BaseModel):
    code: str
    severity: ValidationSeverity
    message: str
    zone_ids: list[str] = []


class ZoneValidationSummary(BaseModel):
    total_zones: int
    active_zones: int
    overlaps_count: int
    missing_fields_count: int
    warnings_count: int


class ZoneValidationResult(BaseModel):
    is_valid: bool
    overlaps: list[ZoneOverlap] = []
    missing_fields: list[ZoneMissingField] = []
    warnings: list[ZoneTopologyWarning] = []
    summary: ZoneValidationSummary


# ---- Corps de requête API / API request bodies ----

class ZoneResolveRequest(BaseModel):
    point: GeoPoint
    zones: list[Zone] = []
    strategy: ZoneConflictStrategy | None = None


class ZoneValidateRequest(BaseModel):
    zones: list[Zone] = []
    conflict_strategy: ZoneConflictStrategy | None = None
    check_coverage: bool = False
    bounding_box: tuple[float, float, float, float] | None = None   # (lat_min, lat_max, lng_min, lng_max)
