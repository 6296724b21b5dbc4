"""
Service de validation de topologie des zones / Zone topology validation service.
Signale chevauchements et champs manquants comme avertissements de configuration.
"""

import logging
from decimal import Decimal
from itertools import combinations

from app.schemas.zone import (
    GeoPoint,
    PointGeometry,
    PolygonGeometry,
    RadiusGeometry,
    ValidationSeverity,
    Zone,
    ZoneConflictStrategy,
    ZoneMissingField,
    ZoneOverlap,
    ZoneTopologyWarning,
    ZoneValidationResult,
    ZoneValidationSummary,
)
from app.services.zone_resolver import ZoneResolverService
from app.utils.geo import edge_midpoints, haversine, open_ring, point_in_polygon

logger = logging.getLogger(__name__)

POINT_POINT_TOLERANCE_KM = 0.2
COVERAGE_GRID_STEPS = 5


class ZoneValidatorService:
    """Contrôle de configuration des zones / Zone configuration checks."""

    @staticmethod
    def validate_zone_topology(
        zones: list[Zone],
        conflict_strategy: ZoneConflictStrategy | None = None,
        check_coverage: bool = False,
        bounding_box: tuple[float, float, float, float] | None = None,
    ) -> ZoneValidationResult:
        """
        Valider l'ensemble des zones / Validate the zone set.
        Seules les zones actives sont comparées / Only active zones are compared.
        """
        active = [z for z in zones if z.is_active]
        overlaps = ZoneValidatorService.detect_overlaps(active, conflict_strategy)
        missing = ZoneValidatorService.check_missing_fields(zones, conflict_strategy)
        warnings: list[ZoneTopologyWarning] = []

        if not zones:
            warnings.append(ZoneTopologyWarning(
                code="NO_ZONES",
                severity=ValidationSeverity.WARNING,
                message="No zones configured. Pricing will use default multipliers.",
            ))

        if check_coverage and bounding_box is None:
            warnings.append(ZoneTopologyWarning(
                code="COVERAGE_CHECK_LIMITED",
                severity=ValidationSeverity.INFO,
                message="Coverage gap detection requires a bounding box.",
            ))
        elif check_coverage:
            gaps = ZoneValidatorService.find_coverage_gaps(active, bounding_box)
            if gaps:
                warnings.append(ZoneTopologyWarning(
                    code="COVERAGE_GAP",
                    severity=ValidationSeverity.WARNING,
                    message=f"{len(gaps)} of {COVERAGE_GRID_STEPS ** 2} sampled points fall outside every active zone.",
                ))

        if active and all(z.price_multiplier == Decimal("1") for z in active):
            warnings.append(ZoneTopologyWarning(
                code="ALL_DEFAULT_MULTIPLIERS",
                severity=ValidationSeverity.INFO,
                message="All active zones use the default multiplier (1.0).",
                zone_ids=[z.id for z in active],
            ))

        has_error = any(m.severity == ValidationSeverity.ERROR for m in missing) or any(
            o.severity == ValidationSeverity.ERROR for o in overlaps
        )
        summary = ZoneValidationSummary(
            total_zones=len(zones),
            active_zones=len(active),
            overlaps_count=len(overlaps),
            missing_fields_count=len(missing),
            warnings_count=sum(1 for w in warnings if w.severity == ValidationSeverity.WARNING),
        )
        logger.debug("Validation zones / zone validation: %s", summary.model_dump())
        return ZoneValidationResult(
            is_valid=not has_error,
            overlaps=overlaps,
            missing_fields=missing,
            warnings=warnings,
            summary=summary,
        )

    @staticmethod
    def find_coverage_gaps(
        zones: list[Zone],
        bounding_box: tuple[float, float, float, float],
        steps: int = COVERAGE_GRID_STEPS,
    ) -> list[GeoPoint]:
        """
        Points de grille hors de toute zone / Grid points outside every zone.
        Boîte : (lat_min, lat_max, lng_min, lng_max), un point au centre de chaque cellule.
        """
        lat_min, lat_max, lng_min, lng_max = bounding_box
        lat_step = (lat_max - lat_min) / steps
        lng_step = (lng_max - lng_min) / steps
        gaps = []
        for i in range(steps):
            for j in range(steps):
                point = GeoPoint(lat=lat_min + (i + 0.5) * lat_step, lng=lng_min + (j + 0.5) * lng_step)
                if not any(ZoneResolverService.is_point_in_zone(point, z) for z in zones):
                    gaps.append(point)
        return gaps

    @staticmethod
    def detect_overlaps(
        zones: list[Zone],
        conflict_strategy: ZoneConflictStrategy | None = None,
    ) -> list[ZoneOverlap]:
        """Chevauchements entre paires de zones actives / Overlaps between active zone pairs."""
        severity = ValidationSeverity.INFO if conflict_strategy else ValidationSeverity.WARNING
        overlaps = []
        for zone1, zone2 in combinations([z for z in zones if z.is_active], 2):
            overlap_type = ZoneValidatorService.zones_overlap(zone1, zone2)
            if overlap_type is None:
                continue
            if conflict_strategy:
                suggestion = f"Overlap resolved by the {conflict_strategy.value} strategy."
            else:
                suggestion = "Configure a zone conflict strategy or adjust zone boundaries."
            overlaps.append(ZoneOverlap(
                zone1_id=zone1.id,
                zone1_name=zone1.name,
                zone2_id=zone2.id,
                zone2_name=zone2.name,
                overlap_type=overlap_type,
                severity=severity,
                message=f'Zones "{zone1.name}" and "{zone2.name}" overlap ({overlap_type}).',
                suggestion=suggestion,
            ))
        return overlaps

    @staticmethod
    def zones_overlap(zone1: Zone, zone2: Zone) -> str | None:
        """Type de chevauchement ou None / Overlap type or None."""
        g1, g2 = zone1.geometry, zone2.geometry
        label = f"{g1.type}_{g2.type}"

        if isinstance(g1, PointGeometry) and isinstance(g2, PointGeometry):
            if g1.center is None or g2.center is None:
                return None
            distance = haversine(g1.center.lat, g1.center.lng, g2.center.lat, g2.center.lng)
            return label if distance <= POINT_POINT_TOLERANCE_KM else None

        # Point contre autre : le point est-il dans l'autre zone ? / Point vs other
        if isinstance(g1, PointGeometry) or isinstance(g2, PointGeometry):
            point_zone, other = (zone1, zone2) if isinstance(g1, PointGeometry) else (zone2, zone1)
            center = point_zone.geometry.center
            if center is None:
                return None
            return label if ZoneResolverService.is_point_in_zone(center, other) else None

        if isinstance(g1, RadiusGeometry) and isinstance(g2, RadiusGeometry):
            if not _radius_complete(g1) or not _radius_complete(g2):
                return None
            distance = haversine(g1.center.lat, g1.center.lng, g2.center.lat, g2.center.lng)
            return label if distance < g1.radius_km + g2.radius_km else None

        if isinstance(g1, PolygonGeometry) and isinstance(g2, PolygonGeometry):
            if not _polygon_complete(g1) or not _polygon_complete(g2):
                return None
            if _any_vertex_inside(g1.ring, g2.ring) or _any_vertex_inside(g2.ring, g1.ring):
                return label
            return None

        polygon, circle = (g1, g2) if isinstance(g1, PolygonGeometry) else (g2, g1)
        if not _polygon_complete(polygon) or not _radius_complete(circle):
            return None
        if point_in_polygon(circle.center.lat, circle.center.lng, polygon.ring):
            return label
        for lng, lat in (v[:2] for v in open_ring(polygon.ring)):
            if _in_circle(lat, lng, circle):
                return label
        for lat, lng in edge_midpoints(polygon.ring):
            if _in_circle(lat, lng, circle):
                return label
        return None

    @staticmethod
    def check_missing_fields(
        zones: list[Zone],
        conflict_strategy: ZoneConflictStrategy | None = None,
    ) -> list[ZoneMissingField]:
        """Champs obligatoires manquants / Missing required fields."""
        missing = []

        def _add(zone: Zone, field: str, message: str, severity=ValidationSeverity.ERROR) -> None:
            missing.append(ZoneMissingField(
                zone_id=zone.id, zone_name=zone.name, field=field, severity=severity, message=message,
            ))

        for zone in zones:
            geometry = zone.geometry
            if isinstance(geometry, RadiusGeometry):
                if geometry.radius_km is None or geometry.radius_km <= 0:
                    _add(zone, "radius_km", "RADIUS zone requires a positive radius.")
                if geometry.center is None:
                    _add(zone, "center", "RADIUS zone requires a center.")
            elif isinstance(geometry, PolygonGeometry):
                if not geometry.ring:
                    _add(zone, "ring", "POLYGON zone requires a geometry ring.")
                elif len(geometry.ring) < 4:
                    _add(zone, "ring", "POLYGON ring requires at least 3 points plus closure.")
            elif isinstance(geometry, PointGeometry) and geometry.center is None:
                _add(zone, "center", "POINT zone requires a center.")

            if conflict_strategy in (ZoneConflictStrategy.PRIORITY, ZoneConflictStrategy.COMBINED):
                if not zone.priority:
                    _add(
                        zone,
                        "priority",
                        f"Priority is not set; {conflict_strategy.value} strategy relies on it.",
                        ValidationSeverity.WARNING,
                    )
        return missing


def _radius_complete(geometry: RadiusGeometry) -> bool:
    return geometry.center is not None and geometry.radius_km is not None


def _polygon_complete(geometry: PolygonGeometry) -> bool:
    return bool(geometry.ring) and len(geometry.ring) >= 4


def _in_circle(lat: float, lng: float, circle: RadiusGeometry) -> bool:
    return haversine(lat, lng, circle.center.lat, circle.center.lng) <= circle.radius_km


def _any_vertex_inside(ring: list[list[float]], other_ring: list[list[float]]) -> bool:
    return any(point_in_polygon(v[1], v[0], other_ring) for v in open_ring(ring))

