"""
Calcul fantôme par segments / Shadow segment calculation.
Approche (base → prise en charge), service (client), retour (dépose → base).
Sans sélection de véhicule : segment service seul, marqué estimé si à vol d'oiseau.
"""

from datetime import datetime, timezone
from decimal import Decimal

from app.schemas.cost import (
    CostBreakdown,
    RoutingSource,
    SegmentAnalysis,
    SegmentName,
    TripAnalysis,
    VehicleSelection,
)
from app.schemas.pricing_settings import OrganizationPricingSettings, VehicleCategoryInfo, VehicleInfo
from app.services.cost_calculator import CostCalculatorService
from app.services.time_calculator import TimeCalculatorService
from app.utils.money import ZERO, to_decimal

SEGMENT_DESCRIPTIONS: dict[str, str] = {
    "approach": "Base → Pickup (deadhead)",
    "service": "Pickup → Dropoff (client trip)",
    "return": "Dropoff → Base (deadhead)",
}
RETURN_LEG_DESCRIPTION = "Dropoff → Pickup (client return trip)"


class ShadowCalculatorService:
    """Analyse de course par segments / Segment-based trip analysis."""

    @staticmethod
    def calculate_segment(
        name: SegmentName,
        distance_km: Decimal,
        duration_minutes: Decimal,
        settings: OrganizationPricingSettings,
        vehicle_category: VehicleCategoryInfo | None = None,
        vehicle: VehicleInfo | None = None,
        is_estimated: bool = False,
        description: str | None = None,
    ) -> SegmentAnalysis:
        """Un segment et son coût / One segment and its cost."""
        distance_km = to_decimal(distance_km)
        duration_minutes = to_decimal(duration_minutes)
        cost = CostCalculatorService.calculate_cost_breakdown(
            distance_km, duration_minutes, settings, vehicle_category, vehicle
        )
        return SegmentAnalysis(
            name=name,
            description=description or SEGMENT_DESCRIPTIONS[name],
            distance_km=distance_km,
            duration_minutes=duration_minutes,
            cost=cost,
            is_estimated=is_estimated,
        )

    @staticmethod
    def resolve_routing_source(
        requested: str | None,
        vehicle_selection: VehicleSelection | None,
    ) -> RoutingSource:
        """
        Provenance des distances / Distance provenance.
        Itinéraire routé > sélection véhicule > estimation.
        """
        if requested == RoutingSource.GOOGLE_API.value:
            return RoutingSource.GOOGLE_API
        if vehicle_selection is not None:
            return RoutingSource.VEHICLE_SELECTION
        return RoutingSource.HAVERSINE_ESTIMATE

    @staticmethod
    def calculate_shadow_segments(
        distance_km: Decimal,
        duration_minutes: Decimal,
        settings: OrganizationPricingSettings,
        vehicle_category: VehicleCategoryInfo | None = None,
        vehicle: VehicleInfo | None = None,
        vehicle_selection: VehicleSelection | None = None,
        routing_source: str | None = None,
        is_round_trip: bool = False,
        parking_items: list[tuple[Decimal, str]] | None = None,
        calculated_at: datetime | None = None,
    ) -> TripAnalysis:
        """
        Assembler l'analyse complète / Assemble the full trip analysis.
        Totaux = sommes des segments, coût composant par composant.
        Aller-retour : le trajet client est compté deux fois (deux segments service).
        Stationnement et suppléments de zone : portés par le premier segment service.
        """
        source = ShadowCalculatorService.resolve_routing_source(routing_source, vehicle_selection)
        estimated = source == RoutingSource.HAVERSINE_ESTIMATE

        segments: list[SegmentAnalysis] = []
        if vehicle_selection is not None:
            segments.append(ShadowCalculatorService.calculate_segment(
                "approach",
                vehicle_selection.approach_distance_km,
                vehicle_selection.approach_duration_minutes,
                settings, vehicle_category, vehicle,
            ))
        service = ShadowCalculatorService.calculate_segment(
            "service", distance_km, duration_minutes, settings, vehicle_category, vehicle, is_estimated=estimated
        )
        cost = service.cost
        for amount, label in parking_items or []:
            cost = CostCalculatorService.add_parking(cost, to_decimal(amount), label)
        segments.append(service.model_copy(update={"cost": cost}))
        if is_round_trip:
            segments.append(ShadowCalculatorService.calculate_segment(
                "service", distance_km, duration_minutes, settings, vehicle_category, vehicle,
                is_estimated=estimated, description=RETURN_LEG_DESCRIPTION,
            ))
        if vehicle_selection is not None:
            segments.append(ShadowCalculatorService.calculate_segment(
                "return",
                vehicle_selection.return_distance_km,
                vehicle_selection.return_duration_minutes,
                settings, vehicle_category, vehicle,
            ))

        return ShadowCalculatorService.build_trip_analysis(segments, source, vehicle_selection, calculated_at)

    @staticmethod
    def build_trip_analysis(
        segments: list[SegmentAnalysis],
        routing_source: RoutingSource,
        vehicle_selection: VehicleSelection | None = None,
        calculated_at: datetime | None = None,
    ) -> TripAnalysis:
        total_cost: CostBreakdown = CostCalculatorService.combine_cost_breakdowns([s.cost for s in segments])
        return TripAnalysis(
            segments=segments,
            total_distance_km=sum((s.distance_km for s in segments), ZERO),
            total_duration_minutes=sum((s.duration_minutes for s in segments), ZERO),
            total_internal_cost=total_cost.total,
            routing_source=routing_source,
            is_estimated=routing_source == RoutingSource.HAVERSINE_ESTIMATE,
            vehicle_selection=vehicle_selection,
            calculated_at=calculated_at or datetime.now(timezone.utc),
        )

    @staticmethod
    def estimate_end_at(pickup_at: datetime | None, duration_minutes: Decimal) -> datetime | None:
        """Fin estimée de la course / Estimated trip end."""
        return TimeCalculatorService.estimate_end_at(pickup_at, duration_minutes)
