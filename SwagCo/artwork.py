# artwork.py
"""
Artwork services for the design step.

Handles:
- Temporary artwork uploads (Cloudinary), with pixel dimensions for rasters
- Garment mockup uploads for campaigns
- Screen-print-ready design generation (Gemini API)
- Background removal (remove.bg)
- Raster to SVG vectorization (Vectorizer.ai)
"""

import asyncio
import base64
import binascii
import json
import logging
import re
import uuid
from io import BytesIO
from typing import Any, List, Optional, Tuple

import cloudinary
import cloudinary.uploader
import cloudinary.utils
import httpx
from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse
from google import genai  # Gemini API
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ValidationError

from schemas import (
    ArtworkTransform, GenerateArtworkRequest, GeneratedImageResponse, PrintLocation,
    RemoveBackgroundRequest, TempUploadResponse, VectorizeResponse,
)
from settings import settings

# ===================================================================
# CONFIGURATION
# ===================================================================

log = logging.getLogger(__name__)

# Note: server.py mounts this router at "/api", so paths will be "/api/artwork/..."
router = APIRouter(prefix="/artwork", tags=["Artwork"])

if settings.CLOUDINARY_CLOUD_NAME:
    cloudinary.config(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        secure=True,  # Always use HTTPS URLs
    )
    log.info("Cloudinary SDK configured successfully.")
else:
    log.warning("CLOUDINARY_CLOUD_NAME not set; artwork uploads will fail.")

MAX_FILE_SIZE_BYTES = settings.MAX_UPLOAD_MB * 1024 * 1024
ALLOWED_UPLOAD_TYPES = {
    "image/png", "image/jpeg", "image/jpg",
    "application/pdf", "application/postscript", "image/svg+xml",
}
RASTER_TYPES = {"image/png", "image/jpeg", "image/jpg"}
REFERENCE_IMAGE_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

REMOVE_BG_URL = "https://api.remove.bg/v1.0/removebg"
VECTORIZER_URL = "https://vectorizer.ai/api/v1/vectorize"
DEFAULT_RETRY_AFTER = 45

SCREEN_PRINT_INSTRUCTIONS = """You are a graphic designer creating artwork for screen printing on t-shirts.

Every design you produce must be ready for screen printing:
- Use between 1 and 4 solid ink colors.
- No gradients, no halftones and no soft shadows.
- High contrast with clean, crisp edges.
- Bold, simple shapes and thick lines that survive printing on fabric.
- Keep every color clearly separable so each can be burned to its own screen.
- No photorealism; favour flat illustration, typography and iconography.
- Transparent or plain background around the design.
- Compose the artwork so it vectorizes cleanly.

If reference images are provided, use them for subject, style or layout,
but still follow the screen printing rules above."""

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$", re.DOTALL)


class MockupUpload(BaseModel):
    color: str
    image: str


# ===================================================================
# HELPERS
# ===================================================================

def parse_data_url(data_url: str) -> Tuple[str, bytes]:
    """Splits a base64 data URL into (mime_type, raw bytes). Raises ValueError."""
    match = _DATA_URL_RE.match(data_url.strip())
    if not match:
        raise ValueError("Not a base64 data URL")
    try:
        return match.group("mime").lower(), base64.b64decode(match.group("data"), validate=False)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def to_data_url(mime_type: str, data: bytes) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def image_dimensions(content: bytes) -> Tuple[Optional[int], Optional[int]]:
    """Pixel size of a raster image, or (None, None) when Pillow can't read it."""
    try:
        with Image.open(BytesIO(content)) as img:
            return img.width, img.height
    except (UnidentifiedImageError, OSError) as e:
        log.info(f"Could not read image dimensions: {e}")
        return None, None


def _normalize_color(color: str) -> str:
    color = color.strip().lower()
    rgb = re.match(r"rgba?\((\d+),\s*(\d+),\s*(\d+)", color)
    if rgb:
        return "#" + "".join(f"{int(c):02x}" for c in rgb.groups())
    return color


def count_svg_colors(svg_text: str) -> int:
    """Number of distinct fill/stroke colors in an SVG document."""
    colors = set()
    found = re.findall(r"(?:fill|stroke)=[\"']([^\"']+)[\"']", svg_text)
    for style in re.findall(r"style=[\"']([^\"']+)[\"']", svg_text):
        found.extend(re.findall(r"(?:fill|stroke):\s*([^;]+)", style))
    for color in found:
        color = color.strip().lower()
        if color in ("none", "transparent"):
            continue
        colors.add(_normalize_color(color))
    return len(colors)


def parse_retry_after(details: Any) -> Optional[int]:
    """Reads the RetryInfo delay ("36s") out of a Google API error payload."""
    if not isinstance(details, dict):
        return None
    error = details.get("error", details)
    for item in error.get("details", []) if isinstance(error, dict) else []:
        if "RetryInfo" in str(item.get("@type", "")):
            match = re.match(r"(\d+)", str(item.get("retryDelay", "")))
            if match:
                return int(match.group(1))
    return None


def _rate_limited(retry_after: Optional[int]) -> JSONResponse:
    wait = f"Please wait {retry_after} seconds and try again." if retry_after else "Please wait a moment and try again."
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "detail": f"AI generation rate limit reached. {wait}",
            "retry_after": retry_after or DEFAULT_RETRY_AFTER,
            "is_rate_limit": True,
        },
    )


async def _upload_to_cloudinary(data: bytes, folder: str, public_id_prefix: Optional[str] = None) -> str:
    """Uploads raw bytes to Cloudinary and returns the secure URL."""
    public_id = f"{public_id_prefix}_{uuid.uuid4()}" if public_id_prefix else f"{uuid.uuid4()}"

    def sync_upload(upload_data: BytesIO):
        return cloudinary.uploader.upload(
            upload_data,
            folder=folder,
            public_id=public_id,
            resource_type="auto",
            overwrite=True,
            unique_filename=False,  # We use UUIDs for uniqueness
        )

    try:
        upload_result = await asyncio.to_thread(sync_upload, BytesIO(data))
    except Exception as e:
        log.error(f"Error uploading file to Cloudinary: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to store the file.")

    secure_url = upload_result.get("secure_url")
    if not secure_url:
        log.warning(f"Cloudinary response missing 'secure_url'. Result: {upload_result}")
        stored_id = upload_result.get("public_id")
        if not stored_id:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Storage returned no URL.")
        secure_url = cloudinary.utils.cloudinary_url(
            stored_id,
            resource_type=upload_result.get("resource_type", "image"),
            version=upload_result.get("version"),
            secure=True,
        )[0]

    log.info(f"File uploaded to Cloudinary: {secure_url}")
    return secure_url


def _reference_parts(reference_images: List[str]) -> List[genai_types.Part]:
    parts = []
    for index, data_url in enumerate(reference_images):
        try:
            mime_type, data = parse_data_url(data_url)
        except ValueError as e:
            log.warning(f"Skipping reference image {index}: {e}")
            continue
        if mime_type not in REFERENCE_IMAGE_TYPES:
            log.warning(f"Skipping reference image {index}: unsupported type {mime_type}")
            continue
        parts.append(genai_types.Part.from_bytes(data=data, mime_type=mime_type))
    return parts


async def _generate_image(prompt: str, reference_images: List[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Calls the Gemini image model. Returns (image data URL, text reply);
    the image is None when the model answered with text only.
    """
    client = genai.Client(api_key=settings.GEMINI_API_KEY)
    contents: List[Any] = _reference_parts(reference_images)
    contents.append(f"Create a screen-print-ready t-shirt design: {prompt}")

    response = await client.aio.models.generate_content(
        model=settings.GEMINI_IMAGE_MODEL,
        contents=contents,
        config=genai_types.GenerateContentConfig(
            system_instruction=SCREEN_PRINT_INSTRUCTIONS,
            response_modalities=["TEXT", "IMAGE"],
        ),
    )

    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The request was blocked due to safety filters. Please try a different prompt.",
        )

    image, text = None, None
    for candidate in response.candidates or []:
        if str(getattr(candidate, "finish_reason", "")).endswith("SAFETY"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The request was blocked due to safety filters. Please try a different prompt.",
            )
        if not candidate.content or not candidate.content.parts:
            continue
        for part in candidate.content.parts:
            if part.text:
                text = part.text
            if part.inline_data and part.inline_data.data:
                image = to_data_url(part.inline_data.mime_type or "image/png", part.inline_data.data)
        break
    return image, text


async def _call_remove_bg(image: bytes, mime_type: str) -> httpx.Response:
    async with httpx.AsyncClient(timeout=settings.AI_TIMEOUT_SECONDS) as http:
        return await http.post(
            REMOVE_BG_URL,
            headers={"X-Api-Key": settings.REMOVE_BG_API_KEY},
            files={"image_file": ("image.png", image, mime_type)},
            data={"size": "auto", "format": "png"},
        )


async def _call_vectorizer(file_name: str, content: bytes, content_type: str) -> httpx.Response:
    async with httpx.AsyncClient(timeout=settings.AI_TIMEOUT_SECONDS) as http:
        return await http.post(
            VECTORIZER_URL,
            auth=(settings.VECTORIZER_API_ID, settings.VECTORIZER_API_SECRET),
            files={"image": (file_name, content, content_type)},
            data={"mode": "production"},
        )


# ===================================================================
# API ENDPOINTS
# ===================================================================

@router.post("/upload-temp", response_model=TempUploadResponse)
async def upload_temp_artwork(
    file: UploadFile = File(...),
    location: PrintLocation = Form(...),
    transform: Optional[str] = Form(None),
    is_vectorized: bool = Form(False),
):
    """Stores an artwork file before checkout and reports its pixel size."""
    content_type = (file.content_type or "").lower()
    if content_type not in ALLOWED_UPLOAD_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Unsupported file type. Use PNG, JPG, PDF, AI, EPS or SVG.",
        )

    content = await file.read()
    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large (max {settings.MAX_UPLOAD_MB}MB).",
        )
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file.")

    parsed_transform = None
    if transform:
        try:
            parsed_transform = ArtworkTransform.model_validate(json.loads(transform))
        except (ValueError, ValidationError):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid transform JSON.")

    width, height = (None, None)
    if content_type in RASTER_TYPES:
        width, height = image_dimensions(content)

    file_url = await _upload_to_cloudinary(content, folder="swagco/temp-artwork", public_id_prefix=location.value)
    return TempUploadResponse(
        file_url=file_url,
        file_name=file.filename or f"{location.value}-artwork",
        file_size=len(content),
        location=location,
        transform=parsed_transform,
        is_vectorized=is_vectorized,
        width=width,
        height=height,
    )


@router.post("/upload-mockup")
async def upload_mockup(payload: MockupUpload):
    try:
        mime_type, data = parse_data_url(payload.image)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Mockup must be a base64 data URL.")
    if not mime_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Mockup must be an image.")
    slug = re.sub(r"[^a-z0-9]+", "-", payload.color.lower()).strip("-") or "mockup"
    file_url = await _upload_to_cloudinary(data, folder="swagco/mockups", public_id_prefix=slug)
    return {"file_url": file_url}


@router.post("/generate", response_model=GeneratedImageResponse)
async def generate_artwork(payload: GenerateArtworkRequest):
    """
    Generates a design with 1-4 flat ink colors from a prompt and optional
    reference images (jpeg, png, gif or webp data URLs).

    Rate limits answer 429 with `retry_after` seconds and `is_rate_limit`.
    """
    if not settings.GEMINI_API_KEY:
        log.error("GEMINI_API_KEY not set; cannot generate artwork.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="AI generation is not configured.")

    log.info(f"Generating artwork ({len(payload.reference_images)} reference images): {payload.prompt[:80]}")
    try:
        image, text = await asyncio.wait_for(
            _generate_image(payload.prompt, payload.reference_images),
            timeout=settings.AI_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        log.warning(f"Artwork generation timed out after {settings.AI_TIMEOUT_SECONDS}s")
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                            detail="AI generation timed out. Please try again.")
    except genai_errors.APIError as e:
        log.error(f"Gemini API error {e.code}: {e.message}")
        if e.code == 429:
            return _rate_limited(parse_retry_after(e.details))
        message = (e.message or "").lower()
        if "safety" in message:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                detail="The request was blocked due to safety filters. Please try a different prompt.")
        if "api key" in message:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                                detail="AI generation is misconfigured.")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail="Failed to generate artwork. Please try again.")
    except httpx.RequestError as e:
        log.error(f"Network error reaching Gemini: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="Network error connecting to AI service. Please try again.")

    if not image:
        log.warning(f"Gemini returned no image. Text: {text}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to generate image. The model may not have produced an image output.",
        )
    return GeneratedImageResponse(image=image, message=text or "Design generated successfully")


@router.post("/remove-background", response_model=GeneratedImageResponse)
async def remove_background(payload: RemoveBackgroundRequest):
    if not settings.REMOVE_BG_API_KEY:
        log.error("REMOVE_BG_API_KEY not set; cannot remove backgrounds.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Background removal is not configured.")

    raw = payload.image_base64.strip()
    if not raw:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image data is required")
    try:
        if raw.startswith("data:"):
            mime_type, image = parse_data_url(raw)
        else:
            mime_type, image = "image/png", base64.b64decode(raw)
    except (ValueError, binascii.Error):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid image data format")

    try:
        response = await _call_remove_bg(image, mime_type)
    except httpx.TimeoutException:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Background removal timed out.")
    except httpx.RequestError as e:
        log.error(f"Network error reaching remove.bg: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to remove background.")

    if response.status_code == 402:
        log.error("remove.bg credits exhausted.")
        raise HTTPException(status_code=status.HTTP_402_PAYMENT_REQUIRED,
                            detail="Background removal credits exhausted.")
    if response.status_code != 200:
        log.error(f"remove.bg API error {response.status_code}: {response.text[:500]}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail="Failed to remove background. Please try again.")

    return GeneratedImageResponse(image=to_data_url("image/png", response.content),
                                  message="Background removed successfully")


@router.post("/vectorize", response_model=VectorizeResponse)
async def vectorize_artwork(file: UploadFile = File(...)):
    """Converts a PNG/JPG to SVG and counts its distinct colors."""
    if not settings.VECTORIZER_API_ID or not settings.VECTORIZER_API_SECRET:
        log.error("Vectorizer.ai credentials not set; cannot vectorize.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail="Vectorization is not configured.")

    content_type = (file.content_type or "").lower()
    if content_type not in RASTER_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Only PNG and JPG files can be vectorized")
    content = await file.read()
    if len(content) > MAX_FILE_SIZE_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                            detail=f"File too large (max {settings.MAX_UPLOAD_MB}MB).")

    try:
        response = await _call_vectorizer(file.filename or "artwork.png", content, content_type)
    except httpx.TimeoutException:
        raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Vectorization timed out.")
    except httpx.RequestError as e:
        log.error(f"Network error reaching Vectorizer.ai: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Vectorization failed.")

    if response.status_code != 200:
        log.error(f"Vectorizer.ai API error {response.status_code}: {response.text[:500]}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                            detail=f"Vectorization failed: {response.text[:200]}")

    svg = response.content
    color_count = count_svg_colors(svg.decode("utf-8", errors="replace"))
    log.info(f"Vectorized {file.filename}: {len(svg)} bytes, {color_count} colors")
    return VectorizeResponse(
        svg_data_url=to_data_url("image/svg+xml", svg),
        svg_size=len(svg),
        color_count=color_count,
    )
