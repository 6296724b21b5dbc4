"""Utilitaires géographiques / Geographic utilities."""

import math

# Anneau GeoJSON : liste de [lng, lat] / GeoJSON ring: list of [lng, lat]
Ring = list[list[float]]


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance Haversine en km / Haversine distance in km."""
    R = 6371.0
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = math.sin(dlat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def point_in_polygon(lat: float, lng: float, ring: Ring) -> bool:
    """
    Test point dans polygone (ray casting) / Point-in-polygon test (ray casting).
    L'anneau est au format GeoJSON [lng, lat].
    """
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def open_ring(ring: Ring) -> Ring:
    """Anneau sans le point de fermeture / Ring without its closing point."""
    if len(ring) > 1 and ring[0] == ring[-1]:
        return ring[:-1]
    return ring


def edge_midpoints(ring: Ring) -> list[tuple[float, float]]:
    """Milieux des arêtes (lat, lng) / Edge midpoints (lat, lng)."""
    midpoints = []
    for a, b in zip(ring, ring[1:]):
        midpoints.append(((a[1] + b[1]) / 2, (a[0] + b[0]) / 2))
    return midpoints


def polygon_centroid(ring: Ring) -> tuple[float, float] | None:
    """Moyenne des sommets (lat, lng) / Vertex mean (lat, lng)."""
    vertices = open_ring(ring)
    if not vertices:
        return None
    lat = sum(v[1] for v in vertices) / len(vertices)
    lng = sum(v[0] for v in vertices) / len(vertices)
    return lat, lng
