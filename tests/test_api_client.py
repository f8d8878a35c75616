import json

import httpx
import pytest

from api_client import StorefrontClient
from errors import RateLimitedError, ServiceError
from schemas import LocationConfig, PrintConfig, PrintLocation

QUOTE = {
    "garment_cost": 144.0, "garment_cost_per_shirt": 6.0, "print_cost": 36.0, "print_cost_per_shirt": 1.5,
    "setup_fees": 25.0, "total_screens": 1, "subtotal": 205.0, "total": 205.0, "per_shirt_price": 8.54,
    "deposit_amount": 102.5, "balance_due": 102.5,
}
FRONT = PrintConfig(locations={PrintLocation.FRONT: LocationConfig(enabled=True, num_colors=1)})


def client_for(handler):
    return StorefrontClient("http://api.test", token="tok", transport=httpx.MockTransport(handler))


async def test_fetch_quote_payload_shapes():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        assert request.headers["Authorization"] == "Bearer tok"
        return httpx.Response(200, json=QUOTE)

    async with client_for(handler) as client:
        await client.fetch_quote([("g1", 24)], FRONT)
        await client.fetch_quote([("g1", 12), ("g2", 12)], FRONT)

    assert bodies[0]["garment_id"] == "g1" and bodies[0]["quantity"] == 24
    assert bodies[1]["garments"] == [{"garment_id": "g1", "quantity": 12}, {"garment_id": "g2", "quantity": 12}]


async def test_http_errors_become_service_errors():
    def handler(request):
        return httpx.Response(500, json={"detail": "Failed to save pending order"})

    async with client_for(handler) as client:
        with pytest.raises(ServiceError) as excinfo:
            await client.check_order("pi_1")
    assert str(excinfo.value) == "Failed to save pending order"
    assert excinfo.value.status_code == 500


async def test_rate_limit_carries_retry_after():
    def handler(request):
        return httpx.Response(429, json={"detail": "Slow down", "retry_after": 36, "is_rate_limit": True})

    async with client_for(handler) as client:
        with pytest.raises(RateLimitedError) as excinfo:
            await client.generate_artwork("wolf")
    assert excinfo.value.retry_after == 36


async def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with client_for(handler) as client:
        with pytest.raises(ServiceError) as excinfo:
            await client.list_garments()
    assert "Network error" in str(excinfo.value)


async def test_rejected_discount_is_a_result_not_an_error():
    def handler(request):
        return httpx.Response(400, json={"valid": False, "message": "This discount code has expired"})

    async with client_for(handler) as client:
        result = await client.validate_discount("SUMMER", 100)
    assert result.valid is False
    assert result.message == "This discount code has expired"


async def test_check_order_sends_intent_id():
    def handler(request):
        assert request.url.params["payment_intent_id"] == "pi_7"
        return httpx.Response(200, json={"order_id": None, "status": "pending"})

    async with client_for(handler) as client:
        assert (await client.check_order("pi_7")).status == "pending"


async def test_non_json_bodies_become_service_errors():
    def handler(request):
        return httpx.Response(200, text="<html>Bad gateway</html>", headers={"Content-Type": "text/html"})

    async with client_for(handler) as client:
        with pytest.raises(ServiceError) as excinfo:
            await client.list_garments()
        assert excinfo.value.status_code == 200

        with pytest.raises(ServiceError):
            await client.validate_discount("SUMMER", 100)
