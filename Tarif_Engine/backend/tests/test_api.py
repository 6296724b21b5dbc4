"""Tests API / API tests."""

import pytest
from httpx import ASGITransport, AsyncClient

from app.main import app

TRIP = {
    "pickup": {"lat": 48.86, "lng": 2.35},
    "dropoff": {"lat": 48.87, "lng": 2.36},
    "distance_km": 10,
    "duration_minutes": 30,
}

COSTED_SETTINGS = {
    "fuel_consumption_l100km": 8,
    "fuel_price_per_liter": 1.8,
    "toll_cost_per_km": 0.1,
    "wear_cost_per_km": 0.05,
    "driver_hourly_cost": 30,
}


def _radius_zone(zone_id: str, lat: float, lng: float, radius_km: float, multiplier: float = 1.0) -> dict:
    return {
        "id": zone_id,
        "name": zone_id.title(),
        "code": zone_id.upper(),
        "geometry": {"type": "RADIUS", "center": {"lat": lat, "lng": lng}, "radius_km": radius_km},
        "price_multiplier": multiplier,
    }


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/api/")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "running"
    assert "X-Request-ID" in resp.headers
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


@pytest.mark.asyncio
async def test_calculate_price(client):
    resp = await client.post("/api/pricing/calculate", json={
        "request": TRIP,
        "context": {"settings": COSTED_SETTINGS},
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["price"] == 30.0
    assert data["internal_cost"] == 17.94
    assert data["profitability"]["indicator"] == "green"
    assert data["applied_rules"][0]["type"] == "DYNAMIC_BASE_PRICE"
    assert data["trip_analysis"]["segments"][0]["name"] == "service"


@pytest.mark.asyncio
async def test_calculate_excursion(client):
    resp = await client.post("/api/pricing/calculate", json={
        "request": {**TRIP, "trip_type": "excursion", "distance_km": 50, "duration_minutes": 120},
        "context": {"settings": {}},
    })
    assert resp.status_code == 200
    assert resp.json()["price"] == 207.0


@pytest.mark.asyncio
async def test_calculate_rejects_negative_distance(client):
    resp = await client.post("/api/pricing/calculate", json={
        "request": {**TRIP, "distance_km": -1},
        "context": {"settings": {}},
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_validate_result(client):
    calc = await client.post("/api/pricing/calculate", json={
        "request": TRIP,
        "context": {"settings": COSTED_SETTINGS},
    })
    resp = await client.post("/api/pricing/validate", json=calc.json())
    assert resp.status_code == 200
    data = resp.json()
    assert data["overall_status"] == "VALID"
    assert len(data["checks"]) == 6


@pytest.mark.asyncio
async def test_price_override(client):
    calc = await client.post("/api/pricing/calculate", json={
        "request": TRIP,
        "context": {"settings": COSTED_SETTINGS},
    })
    resp = await client.post("/api/pricing/price-override", json={
        "result": calc.json(),
        "new_price": 45,
        "settings": COSTED_SETTINGS,
        "reason": "Client VIP",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["validation"]["is_valid"] is True
    assert data["result"]["price"] == 45.0
    assert data["result"]["applied_rules"][-1]["type"] == "MANUAL_OVERRIDE"


@pytest.mark.asyncio
async def test_price_override_rejects_zero(client):
    calc = await client.post("/api/pricing/calculate", json={"request": TRIP, "context": {"settings": {}}})
    resp = await client.post("/api/pricing/price-override", json={
        "result": calc.json(),
        "new_price": 0,
        "settings": {},
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["validation"]["error_code"] == "INVALID_PRICE"
    assert data["result"] is None


@pytest.mark.asyncio
async def test_commission(client):
    resp = await client.post("/api/pricing/commission", json={
        "price": 150,
        "internal_cost": 100,
        "commission_percent": 10,
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["commission_amount"] == 15.0
    assert data["net_amount_after_commission"] == 135.0
    assert data["effective_margin"] == 35.0


@pytest.mark.asyncio
async def test_trip_analysis(client):
    resp = await client.post("/api/pricing/trip-analysis", json={
        "distance_km": 10,
        "duration_minutes": 30,
        "settings": COSTED_SETTINGS,
        "vehicle_selection": {
            "vehicle_id": "v1",
            "approach_distance_km": 5,
            "approach_duration_minutes": 10,
            "return_distance_km": 8,
            "return_duration_minutes": 15,
        },
    })
    assert resp.status_code == 200
    data = resp.json()
    assert [s["name"] for s in data["segments"]] == ["approach", "service", "return"]
    assert data["routing_source"] == "VEHICLE_SELECTION"
    assert data["total_distance_km"] == 23.0


@pytest.mark.asyncio
async def test_resolve_zone(client):
    resp = await client.post("/api/zones/resolve", json={
        "point": {"lat": 48.86, "lng": 2.35},
        "zones": [_radius_zone("a", 48.86, 2.35, 5, 1.1), _radius_zone("b", 48.86, 2.35, 5, 1.3)],
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["selected_zone"]["id"] == "b"
    assert data["warnings"] == ["NO_CONFLICT_STRATEGY"]


@pytest.mark.asyncio
async def test_resolve_zone_rejects_unknown_geometry(client):
    zone = _radius_zone("a", 48.86, 2.35, 5)
    zone["geometry"]["type"] = "HEXAGON"
    resp = await client.post("/api/zones/resolve", json={"point": {"lat": 48.86, "lng": 2.35}, "zones": [zone]})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_validate_zones(client):
    resp = await client.post("/api/zones/validate", json={
        "zones": [_radius_zone("a", 48.85, 2.35, 5), _radius_zone("b", 48.87, 2.35, 5)],
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["summary"]["overlaps_count"] == 1
    assert data["overlaps"][0]["overlap_type"] == "RADIUS_RADIUS"


@pytest.mark.asyncio
async def test_cost_override(client):
    calc = await client.post("/api/pricing/calculate", json={
        "request": TRIP,
        "context": {"settings": COSTED_SETTINGS},
    })
    resp = await client.post("/api/pricing/cost-override", json={
        "result": calc.json(),
        "component": "driver",
        "value": 20,
        "edited_by": "ops",
        "reason": "Night shift",
    })
    assert resp.status_code == 200
    data = resp.json()
    assert data["internal_cost"] == 22.94
    assert data["margin"] == 7.06
    assert data["trip_analysis"]["cost_overrides"]["has_manual_edits"] is True
    assert data["trip_analysis"]["cost_overrides"]["overrides"][0]["edited_by"] == "ops"


@pytest.mark.asyncio
async def test_cost_override_rejects_unknown_component(client):
    calc = await client.post("/api/pricing/calculate", json={"request": TRIP, "context": {"settings": {}}})
    resp = await client.post("/api/pricing/cost-override", json={
        "result": calc.json(),
        "component": "insurance",
        "value": 5,
        "edited_by": "ops",
    })
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_round_trip_analysis_totals(client):
    resp = await client.post("/api/pricing/calculate", json={
        "request": {**TRIP, "is_round_trip": True, "waiting_time_minutes": 300},
        "context": {"settings": COSTED_SETTINGS},
    })
    assert resp.status_code == 200
    analysis = resp.json()["trip_analysis"]
    assert analysis["total_distance_km"] == 20.0
    assert analysis["total_internal_cost"] == 35.88
    assert analysis["total_internal_cost"] == sum(s["cost"]["total"] for s in analysis["segments"])


@pytest.mark.asyncio
async def test_resolve_zone_rejects_short_ring_vertex(client):
    zone = {
        "id": "bad",
        "name": "Bad",
        "code": "BAD",
        "geometry": {"type": "POLYGON", "ring": [[2.3], [2.4, 48.9], [2.4, 48.8], [2.3]]},
    }
    resp = await client.post("/api/zones/resolve", json={"point": {"lat": 48.86, "lng": 2.35}, "zones": [zone]})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_calculate_rejects_malformed_rate_time(client):
    resp = await client.post("/api/pricing/calculate", json={
        "request": TRIP,
        "context": {
            "settings": {},
            "advanced_rates": [{
                "id": "night",
                "name": "Night",
                "applies_to": "NIGHT",
                "start_time": "22h",
                "end_time": "06:00",
                "adjustment_type": "PERCENTAGE",
                "value": 20,
            }],
        },
    })
    assert resp.status_code == 422
