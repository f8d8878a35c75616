import uuid

from conftest import TEE_ID
from drafts import draft_name


def draft_payload(**overrides):
    payload = {
        "garment_id": TEE_ID,
        "selected_colors": ["Navy", "White"],
        "color_size_quantities": {"Navy": {"M": 12}, "White": {"L": 12}},
        "print_config": {"locations": {"front": {"enabled": True, "num_colors": 2}}},
        "artwork_file_records": {
            "front": {"location": "front", "file_url": "https://cdn.test/logo.png", "file_name": "logo.png"},
        },
        "customer_name": "Jamie Rivera",
        "email": "jamie@example.com",
    }
    payload.update(overrides)
    return payload


def test_draft_name():
    assert draft_name("Classic Tee", ["Navy"]) == "Navy Classic Tee Draft"
    assert draft_name("Classic Tee", []) == "Classic Tee Draft"
    assert draft_name(None, []) == "Order Draft"


async def test_draft_lifecycle(api, seed_garment, auth_headers):
    await seed_garment()
    headers = auth_headers(email="jamie@example.com")

    created = await api.post("/api/order-drafts", json=draft_payload(), headers=headers)
    assert created.status_code == 200
    draft = created.json()
    assert draft["name"] == "Navy Classic Tee Draft"
    assert draft["artwork_file_records"]["front"]["file_url"] == "https://cdn.test/logo.png"

    updated = await api.post("/api/order-drafts", json=draft_payload(
        draft_id=draft["id"], selected_colors=["White"], phone="555-0100",
    ), headers=headers)
    assert updated.json()["id"] == draft["id"]
    assert updated.json()["name"] == "White Classic Tee Draft"

    listed = await api.get("/api/order-drafts", headers=headers)
    assert [d["id"] for d in listed.json()] == [draft["id"]]

    fetched = await api.get(f"/api/order-drafts/{draft['id']}", headers=headers)
    assert fetched.json()["phone"] == "555-0100"

    deleted = await api.delete(f"/api/order-drafts/{draft['id']}", headers=headers)
    assert deleted.json() == {"success": True}
    assert (await api.get(f"/api/order-drafts/{draft['id']}", headers=headers)).status_code == 404


async def test_drafts_are_private(api, seed_garment, auth_headers):
    await seed_garment()
    owner, stranger = auth_headers(email="owner@example.com"), auth_headers(email="stranger@example.com")
    draft_id = (await api.post("/api/order-drafts", json=draft_payload(), headers=owner)).json()["id"]

    assert (await api.get(f"/api/order-drafts/{draft_id}", headers=stranger)).status_code == 404
    assert (await api.delete(f"/api/order-drafts/{draft_id}", headers=stranger)).status_code == 404
    assert (await api.post("/api/order-drafts", json=draft_payload(draft_id=draft_id),
                           headers=stranger)).status_code == 404
    assert (await api.get("/api/order-drafts", headers=stranger)).json() == []


async def test_drafts_require_a_valid_token(api):
    assert (await api.get("/api/order-drafts")).status_code == 401
    bad = {"Authorization": "Bearer not-a-jwt"}
    assert (await api.get("/api/order-drafts", headers=bad)).status_code == 401


async def test_unknown_garment_falls_back_to_order_name(api, auth_headers):
    response = await api.post("/api/order-drafts", json=draft_payload(garment_id=str(uuid.uuid4())),
                              headers=auth_headers())
    assert response.json()["name"] == "Navy Order Draft"
