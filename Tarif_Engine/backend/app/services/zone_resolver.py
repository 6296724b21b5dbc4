"""
Service de résolution des zones / Zone resolution service.
Point -> zones contenantes -> zone retenue et multiplicateur effectif.
"""

import logging
from decimal import Decimal

from app.schemas.pricing import AppliedRule
from app.schemas.zone import (
    GeoPoint,
    PointGeometry,
    PolygonGeometry,
    RadiusGeometry,
    Zone,
    ZoneConflictStrategy,
    ZoneMultiplierAggregation,
    ZoneMultiplierResult,
    ZoneRef,
    ZoneResolution,
)
from app.utils.geo import haversine, point_in_polygon, polygon_centroid
from app.utils.money import ONE, round_money

logger = logging.getLogger(__name__)

POINT_ZONE_TOLERANCE_KM = 0.1
NO_CONFLICT_STRATEGY = "NO_CONFLICT_STRATEGY"

# Ordre de spécificité / Specificity order
_TYPE_ORDER = {"POINT": 0, "RADIUS": 1, "POLYGON": 2}


class ZoneResolverService:
    """Détection et arbitrage des zones / Zone detection and arbitration."""

    @staticmethod
    def is_point_in_zone(point: GeoPoint, zone: Zone) -> bool:
        """
        Le point est-il dans la zone ? / Is the point inside the zone?
        Zone inactive ou géométrie incomplète : jamais / Inactive or incomplete: never.
        """
        if not zone.is_active:
            return False
        geometry = zone.geometry
        if isinstance(geometry, RadiusGeometry):
            if geometry.center is None or geometry.radius_km is None:
                return False
            distance = haversine(point.lat, point.lng, geometry.center.lat, geometry.center.lng)
            return distance < geometry.radius_km
        if isinstance(geometry, PolygonGeometry):
            if not geometry.ring or len(geometry.ring) < 4:
                return False
            return point_in_polygon(point.lat, point.lng, geometry.ring)
        if isinstance(geometry, PointGeometry):
            if geometry.center is None:
                return False
            distance = haversine(point.lat, point.lng, geometry.center.lat, geometry.center.lng)
            return distance <= POINT_ZONE_TOLERANCE_KM
        return False

    @staticmethod
    def find_zones_for_point(point: GeoPoint, zones: list[Zone]) -> list[Zone]:
        """
        Toutes les zones contenant le point / All zones containing the point.
        Triées par spécificité : POINT, RADIUS (petit rayon d'abord), POLYGON.
        """
        matches = [z for z in zones if ZoneResolverService.is_point_in_zone(point, z)]

        def _specificity(zone: Zone) -> tuple[int, float]:
            radius = zone.geometry.radius_km if isinstance(zone.geometry, RadiusGeometry) else 0.0
            return _TYPE_ORDER[zone.geometry.type], radius or 0.0

        return sorted(matches, key=_specificity)

    @staticmethod
    def zone_center(zone: Zone) -> GeoPoint | None:
        """Centre fourni, sinon centroïde du polygone / Given center, else polygon centroid."""
        geometry = zone.geometry
        if geometry.center is not None:
            return geometry.center
        if isinstance(geometry, PolygonGeometry) and geometry.ring:
            centroid = polygon_centroid(geometry.ring)
            if centroid is not None:
                return GeoPoint(lat=centroid[0], lng=centroid[1])
        return None

    @staticmethod
    def resolve_zone_conflict(
        point: GeoPoint,
        candidates: list[Zone],
        strategy: ZoneConflictStrategy | None,
    ) -> ZoneResolution:
        """
        Arbitrer entre zones superposées / Resolve overlapping zones.
        Sans stratégie : MOST_EXPENSIVE + avertissement / No strategy: MOST_EXPENSIVE + warning.
        """
        warnings: list[str] = []
        if not candidates:
            return ZoneResolution(point=point, strategy=strategy)

        if len(candidates) == 1:
            zone = candidates[0]
            return ZoneResolution(
                point=point,
                selected_zone=zone,
                candidates=candidates,
                strategy=strategy,
                effective_multiplier=zone.price_multiplier,
            )

        used = strategy
        if used is None:
            used = ZoneConflictStrategy.MOST_EXPENSIVE
            warnings.append(NO_CONFLICT_STRATEGY)
            logger.warning(
                "Zones superposées sans stratégie, MOST_EXPENSIVE appliqué / "
                "overlapping zones without strategy: %s",
                [z.code for z in candidates],
            )

        effective = None
        if used == ZoneConflictStrategy.PRIORITY:
            selected = _first_max(candidates, lambda z: z.priority or 0)
        elif used == ZoneConflictStrategy.MOST_EXPENSIVE:
            selected = _first_max(candidates, lambda z: z.price_multiplier)
        elif used == ZoneConflictStrategy.CLOSEST:
            selected = ZoneResolverService._closest(point, candidates)
        else:
            # COMBINED : zone représentative priorité puis coût, multiplicateurs cumulés
            selected = _first_max(candidates, lambda z: (z.priority or 0, z.price_multiplier))
            effective = ONE
            for zone in candidates:
                effective *= zone.price_multiplier

        return ZoneResolution(
            point=point,
            selected_zone=selected,
            candidates=candidates,
            strategy=used,
            effective_multiplier=effective if effective is not None else selected.price_multiplier,
            warnings=warnings,
        )

    @staticmethod
    def _closest(point: GeoPoint, candidates: list[Zone]) -> Zone:
        """Centre le plus proche (sans centre : dernier) / Nearest center (no center: last)."""
        best = None
        best_distance = None
        for zone in candidates:
            center = ZoneResolverService._conflict_center(zone)
            if center is None:
                continue
            distance = haversine(point.lat, point.lng, center.lat, center.lng)
            if best_distance is None or distance < best_distance:
                best, best_distance = zone, distance
        return best if best is not None else candidates[0]

    @staticmethod
    def _conflict_center(zone: Zone) -> GeoPoint | None:
        """Centre fourni ou premier sommet du polygone / Given center or first ring vertex."""
        geometry = zone.geometry
        if geometry.center is not None:
            return geometry.center
        if isinstance(geometry, PolygonGeometry) and geometry.ring:
            lng, lat = geometry.ring[0][0], geometry.ring[0][1]
            return GeoPoint(lat=lat, lng=lng)
        return None

    @staticmethod
    def resolve_point(
        point: GeoPoint,
        zones: list[Zone],
        strategy: ZoneConflictStrategy | None,
    ) -> ZoneResolution:
        """Détection + arbitrage pour un point / Detection + arbitration for one point."""
        candidates = ZoneResolverService.find_zones_for_point(point, zones)
        return ZoneResolverService.resolve_zone_conflict(point, candidates, strategy)

    @staticmethod
    def calculate_effective_zone_multiplier(
        pickup_multiplier: Decimal | None,
        dropoff_multiplier: Decimal | None,
        aggregation: ZoneMultiplierAggregation = ZoneMultiplierAggregation.MAX,
    ) -> ZoneMultiplierResult:
        """Multiplicateur prise en charge / dépose / Pickup-dropoff multiplier."""
        pickup = pickup_multiplier if pickup_multiplier is not None else ONE
        dropoff = dropoff_multiplier if dropoff_multiplier is not None else ONE

        if aggregation == ZoneMultiplierAggregation.PICKUP_ONLY:
            return ZoneMultiplierResult(multiplier=pickup, source="pickup")
        if aggregation == ZoneMultiplierAggregation.DROPOFF_ONLY:
            return ZoneMultiplierResult(multiplier=dropoff, source="dropoff")
        if aggregation == ZoneMultiplierAggregation.AVERAGE:
            average = round_money((pickup + dropoff) / 2, "0.001")
            return ZoneMultiplierResult(multiplier=average, source="both")
        if pickup >= dropoff:
            return ZoneMultiplierResult(multiplier=pickup, source="pickup")
        return ZoneMultiplierResult(multiplier=dropoff, source="dropoff")

    @staticmethod
    def apply_zone_multiplier(
        price: Decimal,
        pickup: ZoneResolution,
        dropoff: ZoneResolution,
        aggregation: ZoneMultiplierAggregation | None,
    ) -> tuple[Decimal, AppliedRule | None]:
        """Appliquer le multiplicateur de zone / Apply the zone multiplier."""
        if pickup.selected_zone is None and dropoff.selected_zone is None:
            return price, None

        strategy = aggregation or ZoneMultiplierAggregation.MAX
        result = ZoneResolverService.calculate_effective_zone_multiplier(
            pickup.effective_multiplier if pickup.selected_zone else None,
            dropoff.effective_multiplier if dropoff.selected_zone else None,
            strategy,
        )
        adjusted = price * result.multiplier

        if result.multiplier == ONE:
            description = f"Zone multiplier ({strategy.value}): no adjustment"
        else:
            description = f"Zone multiplier ({strategy.value}): ×{result.multiplier} from {result.source}"

        rule = AppliedRule(
            type="ZONE_MULTIPLIER",
            description=description,
            price_before=price,
            price_after=adjusted,
            details={
                "strategy": strategy.value,
                "pickup_zone": _zone_ref(pickup),
                "dropoff_zone": _zone_ref(dropoff),
                "applied_multiplier": result.multiplier,
                "source": result.source,
            },
        )
        return adjusted, rule


def _zone_ref(resolution: ZoneResolution) -> dict | None:
    zone = resolution.selected_zone
    if zone is None:
        return None
    return ZoneRef(
        id=zone.id, code=zone.code, name=zone.name, multiplier=resolution.effective_multiplier
    ).model_dump()


def _first_max(zones: list[Zone], key):
    """Premier maximum rencontré / First encountered maximum."""
    best = zones[0]
    for zone in zones[1:]:
        if key(zone) > key(best):
            best = zone
    return best
