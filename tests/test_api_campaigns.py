import re
import uuid

from campaigns import make_slug, slugify
from conftest import HOODIE_ID, TEE_ID

FRONT_TWO_COLORS = {"locations": {"front": {"enabled": True, "num_colors": 2}}}


def campaign_payload(**overrides):
    payload = {
        "name": "Team Tees 2026!",
        "deadline": "2026-11-30",
        "payment_style": "everyone_pays",
        "garment_id": TEE_ID,
        "selected_colors": ["White"],
        "garment_configs": {
            TEE_ID: {"price": 0, "colors": ["White"]},
            HOODIE_ID: {"price": 0, "colors": ["Navy"]},
        },
        "print_config": FRONT_TWO_COLORS,
        "artwork_urls": {"front": "https://cdn.test/crest.svg"},
        "mockup_image_urls": {"White": "https://cdn.test/mockups/white.png"},
    }
    payload.update(overrides)
    return payload


def test_slugs():
    assert slugify("Team Tees 2026!") == "team-tees-2026"
    assert slugify("***") == "campaign"
    assert len(slugify("x" * 80)) == 50
    assert re.fullmatch(r"team-tees-2026-[a-z0-9]{6}", make_slug("Team Tees 2026!"))


async def test_calculate_prices(api, seed_garment):
    await seed_garment()
    missing = str(uuid.uuid4())
    response = await api.post("/api/campaigns/calculate-price", json={
        "garment_ids": [TEE_ID, missing], "print_config": FRONT_TWO_COLORS,
    })
    assert response.status_code == 200
    assert response.json() == {"prices": {TEE_ID: 9.0}, "missing_garments": [missing]}


async def test_create_campaign_recomputes_placeholder_prices(api, seed_garment, auth_headers):
    await seed_garment()
    await seed_garment(garment_id=HOODIE_ID, name="Pullover Hoodie", base_cost=12.0)

    response = await api.post("/api/campaigns", json=campaign_payload(), headers=auth_headers())
    assert response.status_code == 201
    slug = response.json()["slug"]
    assert slug.startswith("team-tees-2026-")

    campaign = (await api.get(f"/api/campaigns/{slug}")).json()
    assert campaign["status"] == "active"
    assert campaign["garment_configs"][TEE_ID]["price"] == 9.0
    assert campaign["garment_configs"][HOODIE_ID]["price"] == 21.0
    assert campaign["price_per_shirt"] == 9.0
    assert campaign["organizer_name"] == "Pat Organizer"


async def test_create_campaign_keeps_distinct_prices(api, seed_garment, auth_headers):
    await seed_garment()
    payload = campaign_payload(garment_configs={
        TEE_ID: {"price": 14.0, "colors": ["White"]},
        HOODIE_ID: {"price": 30.0, "colors": ["Navy"]},
    })
    slug = (await api.post("/api/campaigns", json=payload, headers=auth_headers())).json()["slug"]
    campaign = (await api.get(f"/api/campaigns/{slug}")).json()
    assert campaign["price_per_shirt"] == 14.0


async def test_create_campaign_requires_sign_in(api):
    response = await api.post("/api/campaigns", json=campaign_payload())
    assert response.status_code == 401


async def test_unknown_campaign(api):
    response = await api.get("/api/campaigns/nope-123456")
    assert response.status_code == 404
