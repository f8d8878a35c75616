import asyncio
import base64
import json
from io import BytesIO

import httpx
import pytest
from google.genai import errors as genai_errors
from PIL import Image

import artwork
from settings import settings


def png_bytes(width=120, height=80):
    buffer = BytesIO()
    Image.new("RGBA", (width, height), (255, 0, 0, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def uploads(monkeypatch):
    stored = []

    async def fake_upload(data, folder, public_id_prefix=None):
        stored.append((folder, public_id_prefix, len(data)))
        return f"https://res.cloudinary.test/{folder}/{public_id_prefix}.bin"

    monkeypatch.setattr(artwork, "_upload_to_cloudinary", fake_upload)
    return stored


# ===================================================================
# Uploads
# ===================================================================

async def test_upload_temp_reports_dimensions(api, uploads):
    transform = {"x": 250, "y": 280, "scale": 0.5, "rotation": 0}
    response = await api.post(
        "/api/artwork/upload-temp",
        data={"location": "front", "transform": json.dumps(transform)},
        files={"file": ("logo.png", png_bytes(), "image/png")},
    )
    assert response.status_code == 200
    body = response.json()
    assert (body["width"], body["height"]) == (120, 80)
    assert body["location"] == "front"
    assert body["transform"]["scale"] == 0.5
    assert body["file_url"].startswith("https://res.cloudinary.test/")
    assert uploads[0][1] == "front"


async def test_upload_temp_accepts_vectors_without_dimensions(api, uploads):
    response = await api.post(
        "/api/artwork/upload-temp",
        data={"location": "back", "is_vectorized": "true"},
        files={"file": ("logo-vector.svg", b"<svg xmlns='http://www.w3.org/2000/svg'/>", "image/svg+xml")},
    )
    body = response.json()
    assert body["is_vectorized"] is True
    assert body["width"] is None


async def test_upload_temp_rejections(api, uploads, monkeypatch):
    response = await api.post("/api/artwork/upload-temp", data={"location": "front"},
                              files={"file": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 400

    response = await api.post("/api/artwork/upload-temp", data={"location": "sleeve"},
                              files={"file": ("logo.png", png_bytes(), "image/png")})
    assert response.status_code == 422

    monkeypatch.setattr(artwork, "MAX_FILE_SIZE_BYTES", 10)
    response = await api.post("/api/artwork/upload-temp", data={"location": "front"},
                              files={"file": ("logo.png", png_bytes(), "image/png")})
    assert response.status_code == 413
    assert uploads == []


async def test_upload_mockup(api, uploads):
    image = "data:image/png;base64," + base64.b64encode(png_bytes()).decode()
    response = await api.post("/api/artwork/upload-mockup", json={"color": "Heather Grey", "image": image})
    assert response.status_code == 200
    assert uploads[0][:2] == ("swagco/mockups", "heather-grey")

    response = await api.post("/api/artwork/upload-mockup", json={"color": "Red", "image": "not a data url"})
    assert response.status_code == 400


# ===================================================================
# AI generation
# ===================================================================

async def test_generate_returns_image(api, monkeypatch):
    seen = {}

    async def fake_generate(prompt, reference_images):
        seen["prompt"], seen["refs"] = prompt, reference_images
        return "data:image/png;base64,iVBORw0KGgo=", "Here is a two-color crest."

    monkeypatch.setattr(artwork, "_generate_image", fake_generate)
    response = await api.post("/api/artwork/generate", json={
        "prompt": "Bold wolf mascot", "referenceImages": ["data:image/webp;base64,AAAA"],
    })
    assert response.status_code == 200
    assert response.json() == {"image": "data:image/png;base64,iVBORw0KGgo=",
                               "message": "Here is a two-color crest."}
    assert seen["refs"] == ["data:image/webp;base64,AAAA"]


async def test_generate_rate_limit_carries_retry_after(api, monkeypatch):
    async def rate_limited(prompt, reference_images):
        raise genai_errors.ClientError(429, {"error": {
            "code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED",
            "details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "36s"}],
        }})

    monkeypatch.setattr(artwork, "_generate_image", rate_limited)
    response = await api.post("/api/artwork/generate", json={"prompt": "wolf"})
    assert response.status_code == 429
    body = response.json()
    assert body["retry_after"] == 36
    assert body["is_rate_limit"] is True


async def test_generate_timeout_and_missing_image(api, monkeypatch):
    async def slow(prompt, reference_images):
        await asyncio.sleep(1)

    monkeypatch.setattr(settings, "AI_TIMEOUT_SECONDS", 0.01)
    monkeypatch.setattr(artwork, "_generate_image", slow)
    response = await api.post("/api/artwork/generate", json={"prompt": "wolf"})
    assert response.status_code == 504

    async def text_only(prompt, reference_images):
        return None, "I can only describe this."

    monkeypatch.setattr(artwork, "_generate_image", text_only)
    response = await api.post("/api/artwork/generate", json={"prompt": "wolf"})
    assert response.status_code == 502


async def test_generate_requires_api_key(api, monkeypatch):
    monkeypatch.setattr(settings, "GEMINI_API_KEY", "")
    response = await api.post("/api/artwork/generate", json={"prompt": "wolf"})
    assert response.status_code == 500


def test_parse_retry_after():
    details = {"error": {"details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "12s"}]}}
    assert artwork.parse_retry_after(details) == 12
    assert artwork.parse_retry_after({"error": {"details": []}}) is None
    assert artwork.parse_retry_after(None) is None


def test_reference_images_skip_unsupported_types():
    parts = artwork._reference_parts([
        "data:image/png;base64,iVBORw0KGgo=",
        "data:image/tiff;base64,AAAA",
        "https://example.com/ref.png",
    ])
    assert len(parts) == 1


# ===================================================================
# Background removal & vectorization
# ===================================================================

async def test_remove_background(api, monkeypatch):
    async def fake_remove_bg(image, mime_type):
        assert mime_type == "image/jpeg"
        return httpx.Response(200, content=b"\x89PNGcutout")

    monkeypatch.setattr(artwork, "_call_remove_bg", fake_remove_bg)
    payload = {"imageBase64": "data:image/jpeg;base64," + base64.b64encode(b"jpeg").decode()}
    response = await api.post("/api/artwork/remove-background", json=payload)
    assert response.status_code == 200
    assert response.json()["image"] == "data:image/png;base64," + base64.b64encode(b"\x89PNGcutout").decode()


async def test_remove_background_out_of_credits(api, monkeypatch):
    async def no_credits(image, mime_type):
        return httpx.Response(402, text="insufficient credits")

    monkeypatch.setattr(artwork, "_call_remove_bg", no_credits)
    response = await api.post("/api/artwork/remove-background", json={"imageBase64": "aGVsbG8="})
    assert response.status_code == 402


async def test_vectorize_counts_colors(api, monkeypatch):
    svg = (
        b'<svg><path fill="#FF0000"/><path fill="rgb(255, 0, 0)"/>'
        b'<path style="fill: #00ff00; stroke: none"/><path fill="none" stroke="#0000ff"/></svg>'
    )

    async def fake_vectorizer(file_name, content, content_type):
        return httpx.Response(200, content=svg)

    monkeypatch.setattr(artwork, "_call_vectorizer", fake_vectorizer)
    response = await api.post("/api/artwork/vectorize", files={"file": ("logo.png", png_bytes(), "image/png")})
    body = response.json()
    assert response.status_code == 200
    assert body["color_count"] == 3
    assert body["svg_size"] == len(svg)
    assert body["svg_data_url"].startswith("data:image/svg+xml;base64,")


async def test_vectorize_only_accepts_rasters(api):
    response = await api.post("/api/artwork/vectorize", files={"file": ("logo.svg", b"<svg/>", "image/svg+xml")})
    assert response.status_code == 400
