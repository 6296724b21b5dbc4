"""
Service de calcul des distances / Distance calculation service.
Estimation à vol d'oiseau quand aucun itinéraire routier n'est fourni.
"""

from decimal import Decimal

from app.schemas.zone import GeoPoint
from app.utils.geo import haversine
from app.services.time_calculator import TimeCalculatorService
from app.utils.money import to_decimal

DEFAULT_ROAD_DISTANCE_FACTOR = 1.3
DEFAULT_AVERAGE_SPEED_KMH = 50.0


class DistanceService:
    """Service de distances / Distance service."""

    @staticmethod
    def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Distance à vol d'oiseau en km / Haversine distance in km."""
        return round(haversine(lat1, lon1, lat2, lon2), 2)

    @staticmethod
    def estimate_road_distance(haversine_km: float, factor: float = DEFAULT_ROAD_DISTANCE_FACTOR) -> float:
        """
        Estimation de la distance routière / Estimate road distance.
        Facteur multiplicateur par défaut: 1.3 (routes sinueuses).
        """
        return round(haversine_km * factor, 2)

    @staticmethod
    def estimate_trip(
        pickup: GeoPoint,
        dropoff: GeoPoint,
        factor: float = DEFAULT_ROAD_DISTANCE_FACTOR,
        average_speed_kmh: float = DEFAULT_AVERAGE_SPEED_KMH,
    ) -> tuple[Decimal, Decimal]:
        """
        Distance (km) et durée (min) estimées / Estimated distance (km) and duration (min).
        Distance routière = vol d'oiseau × facteur, durée à vitesse moyenne.
        """
        straight = DistanceService.haversine_km(pickup.lat, pickup.lng, dropoff.lat, dropoff.lng)
        distance = to_decimal(DistanceService.estimate_road_distance(straight, factor))
        return distance, TimeCalculatorService.calculate_travel_time_minutes(distance, to_decimal(average_speed_kmh))
