# api_client.py
"""
HTTP client for the storefront backend.

Every boundary call the storefront core makes goes through
`StorefrontClient`. HTTP and transport failures are converted into the
`errors` taxonomy so callers only ever handle `StorefrontError`s.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from errors import RateLimitedError, ServiceError
from schemas import (
    ArtworkTransform, CampaignCreate, CampaignCreated, CampaignPriceResponse, CheckOrderResponse,
    DiscountValidateResponse, DraftIn, DraftOut, GarmentOut, GeneratedImageResponse, OrderCreate,
    PaymentIntentResponse, PendingOrderCreate, PrintConfig, PrintLocation, Quote, TempUploadResponse,
    VectorizeResponse,
)

log = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER = 45


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("message")
        if isinstance(detail, str):
            return detail
        if detail is not None:
            return str(detail)
    return f"HTTP {response.status_code}"


def _retry_after(response: httpx.Response) -> int:
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("retry_after") is not None:
            return int(body["retry_after"])
    except (ValueError, TypeError):
        pass
    header = response.headers.get("Retry-After")
    if header and header.isdigit():
        return int(header)
    return DEFAULT_RETRY_AFTER


def _json_body(method: str, path: str, response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        log.error(f"{method} {path} returned a non-JSON body ({response.status_code}).")
        raise ServiceError(f"Unexpected response from server (HTTP {response.status_code})",
                           status_code=response.status_code) from e


class StorefrontClient:
    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._http = httpx.AsyncClient(base_url=base_url, headers=headers, timeout=timeout, transport=transport)

    async def aclose(self):
        await self._http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    async def _request(self, method: str, path: str, *, allow_statuses: Tuple[int, ...] = (), **kwargs) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
            if response.status_code in allow_statuses:
                return _json_body(method, path, response)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            log.warning(f"{method} {path} failed with {e.response.status_code}: {message}")
            if e.response.status_code == 429:
                raise RateLimitedError(message, retry_after=_retry_after(e.response)) from e
            raise ServiceError(message, status_code=e.response.status_code) from e
        except httpx.RequestError as e:
            log.error(f"{method} {path} could not reach the server: {e}", exc_info=True)
            raise ServiceError(f"Network error: {e}") from e
        if response.status_code == 204 or not response.content:
            return None
        return _json_body(method, path, response)

    # --- catalog & pricing ---

    async def list_garments(self) -> List[GarmentOut]:
        data = await self._request("GET", "/api/garments")
        return [GarmentOut.model_validate(item) for item in data]

    async def get_garment(self, garment_id) -> GarmentOut:
        return GarmentOut.model_validate(await self._request("GET", f"/api/garments/{garment_id}"))

    async def fetch_quote(self, lines: Iterable[Tuple[str, int]], print_config: PrintConfig) -> Quote:
        lines = list(lines)
        payload: Dict[str, Any] = {"print_config": print_config.model_dump(mode="json")}
        if len(lines) == 1:
            payload["garment_id"] = str(lines[0][0])
            payload["quantity"] = lines[0][1]
        else:
            payload["garments"] = [{"garment_id": str(g), "quantity": q} for g, q in lines]
        return Quote.model_validate(await self._request("POST", "/api/quote", json=payload))

    async def validate_discount(self, code: str, subtotal: float) -> DiscountValidateResponse:
        data = await self._request(
            "POST", "/api/discount-codes/validate",
            json={"code": code, "subtotal": subtotal},
            allow_statuses=(400, 404),
        )
        if not isinstance(data, dict) or "valid" not in data:
            detail = data.get("detail") if isinstance(data, dict) else None
            raise ServiceError(str(detail or "Failed to validate discount code"), status_code=400)
        return DiscountValidateResponse.model_validate(data)

    # --- orders & payments ---

    async def create_order(self, order: OrderCreate) -> str:
        data = await self._request("POST", "/api/orders", json=order.model_dump(mode="json"))
        return data["id"]

    async def create_pending_order(self, order: PendingOrderCreate) -> str:
        data = await self._request("POST", "/api/pending-orders", json=order.model_dump(mode="json"))
        return data["id"]

    async def create_payment_intent(self, amount: float, order_id: Optional[str] = None,
                                    pending_order_id: Optional[str] = None,
                                    customer_email: Optional[str] = None) -> PaymentIntentResponse:
        payload = {"amount": amount, "customerEmail": customer_email}
        if order_id:
            payload["orderId"] = str(order_id)
        if pending_order_id:
            payload["pendingOrderId"] = str(pending_order_id)
        data = await self._request("POST", "/api/payments/create-intent", json=payload)
        return PaymentIntentResponse.model_validate(data)

    async def check_order(self, payment_intent_id: str) -> CheckOrderResponse:
        data = await self._request("GET", "/api/payments/check-order",
                                   params={"payment_intent_id": payment_intent_id})
        return CheckOrderResponse.model_validate(data)

    # --- artwork ---

    async def upload_temp_artwork(self, location: PrintLocation, file_name: str, content: bytes,
                                  content_type: str, transform: Optional[ArtworkTransform] = None,
                                  is_vectorized: bool = False) -> TempUploadResponse:
        data = {"location": PrintLocation(location).value, "is_vectorized": str(is_vectorized).lower()}
        if transform is not None:
            data["transform"] = transform.model_dump_json()
        files = {"file": (file_name, content, content_type)}
        result = await self._request("POST", "/api/artwork/upload-temp", data=data, files=files)
        return TempUploadResponse.model_validate(result)

    async def upload_mockup(self, color: str, image_data_url: str) -> str:
        result = await self._request("POST", "/api/artwork/upload-mockup",
                                     json={"color": color, "image": image_data_url})
        return result["file_url"]

    async def generate_artwork(self, prompt: str, reference_images: Optional[List[str]] = None) -> GeneratedImageResponse:
        payload = {"prompt": prompt, "referenceImages": reference_images or []}
        return GeneratedImageResponse.model_validate(
            await self._request("POST", "/api/artwork/generate", json=payload)
        )

    async def remove_background(self, image_base64: str) -> str:
        result = await self._request("POST", "/api/artwork/remove-background", json={"imageBase64": image_base64})
        return result["image"]

    async def vectorize(self, file_name: str, content: bytes, content_type: str) -> VectorizeResponse:
        files = {"file": (file_name, content, content_type)}
        return VectorizeResponse.model_validate(
            await self._request("POST", "/api/artwork/vectorize", files=files)
        )

    # --- campaigns ---

    async def calculate_campaign_prices(self, garment_ids: Iterable[str], print_config: PrintConfig) -> CampaignPriceResponse:
        payload = {"garment_ids": [str(g) for g in garment_ids], "print_config": print_config.model_dump(mode="json")}
        return CampaignPriceResponse.model_validate(
            await self._request("POST", "/api/campaigns/calculate-price", json=payload)
        )

    async def create_campaign(self, campaign: CampaignCreate) -> CampaignCreated:
        return CampaignCreated.model_validate(
            await self._request("POST", "/api/campaigns", json=campaign.model_dump(mode="json"))
        )

    # --- drafts ---

    async def save_draft(self, draft: DraftIn) -> DraftOut:
        return DraftOut.model_validate(
            await self._request("POST", "/api/order-drafts", json=draft.model_dump(mode="json"))
        )

    async def list_drafts(self) -> List[DraftOut]:
        return [DraftOut.model_validate(d) for d in await self._request("GET", "/api/order-drafts")]

    async def get_draft(self, draft_id) -> DraftOut:
        return DraftOut.model_validate(await self._request("GET", f"/api/order-drafts/{draft_id}"))

    async def delete_draft(self, draft_id):
        await self._request("DELETE", f"/api/order-drafts/{draft_id}")
