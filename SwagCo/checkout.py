# checkout.py
"""
Checkout / payment orchestrator.

Sequence for one submission:
1. validate the order (quantities, artwork, customer and shipping fields)
2. persist artwork to temporary storage, reusing saved records when the
   in-memory files are gone
3. create the pending order
4. create the deposit payment intent for the discounted deposit
5. hand the client secret to the payment form

Failures are recorded in `error` for display and re-raised. The
`submitting` flag blocks a second submission while one is in flight.
Nothing created along the way is cleaned up on failure.
"""

import base64
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from errors import (
    IssueKind, OrderValidationError, PaymentConfirmationError, ServiceError, StorefrontError, ValidationIssue,
)
from order_store import OrderConfigurationStore
from pricing import DiscountedTotals, apply_discount
from schemas import AppliedDiscount, ArtworkRecord, PendingOrderCreate
from settings import settings
from wizard import ConfigurationWizard

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentHandoff:
    client_secret: str
    payment_intent_id: str
    pending_order_id: str
    deposit_amount: float
    total: float
    balance_due: float


def decode_data_url(data_url: str) -> bytes:
    """Returns the payload of a base64 `data:` URL (or of a bare base64 string)."""
    _, _, encoded = data_url.partition(",") if data_url.startswith("data:") else ("", "", data_url)
    return base64.b64decode(encoded)


async def persist_artwork(store: OrderConfigurationStore, client) -> List[ArtworkRecord]:
    """
    Uploads in-memory artwork for every enabled location.

    Locations whose file handle was lost (page reload) fall back to the
    record saved by an earlier upload. Fresh uploads are written back to
    the store so a later retry can reuse them.
    """
    records = []
    for loc in store.enabled_locations():
        slot = store.artwork.get(loc)
        if slot is None:
            continue

        if slot.file is not None:
            local = slot.file
            uploaded = await client.upload_temp_artwork(
                loc, local.name, local.content, local.content_type, transform=slot.transform,
            )
            vector_url = None
            if slot.vectorized_svg:
                stem = os.path.splitext(local.name)[0]
                vector = await client.upload_temp_artwork(
                    loc, f"{stem}-vector.svg", decode_data_url(slot.vectorized_svg), "image/svg+xml",
                    transform=slot.transform, is_vectorized=True,
                )
                vector_url = vector.file_url
            record = ArtworkRecord(
                location=loc,
                file_url=uploaded.file_url,
                file_name=local.name,
                file_size=local.size,
                transform=slot.transform,
                vectorized_file_url=vector_url,
                is_vectorized=vector_url is not None,
                width=local.width or uploaded.width,
                height=local.height or uploaded.height,
            )
            store.set_artwork_record(loc, record)
        elif slot.record is not None:
            log.info(f"No file in memory for {loc.value}; reusing saved artwork.")
            record = slot.record.model_copy(update={"transform": slot.transform or slot.record.transform})
        else:
            continue
        records.append(record)
    return records


class CheckoutOrchestrator:
    def __init__(self, store: OrderConfigurationStore, client, wizard: Optional[ConfigurationWizard] = None,
                 customer_id: Optional[str] = None):
        self.store = store
        self.client = client
        self.wizard = wizard or ConfigurationWizard(store, client)
        self.customer_id = customer_id
        self.submitting = False
        self.error: Optional[str] = None

    # ===============================================================
    # Discounts
    # ===============================================================

    async def apply_discount_code(self, code: str) -> Optional[AppliedDiscount]:
        """Validates `code` against the current quote total. Returns None and sets `error` if rejected."""
        if self.store.quote is None:
            self.error = "Get a quote before applying a discount code"
            return None
        try:
            result = await self.client.validate_discount(code, self.store.quote.total)
        except StorefrontError as e:
            self.error = str(e)
            raise
        if not result.valid or result.discount is None:
            self.error = result.message or "Invalid discount code"
            self.store.clear_discount()
            return None
        discount = result.discount.model_copy(update={"discount_code_id": result.discount_code_id})
        self.store.set_discount(discount)
        self.error = None
        log.info(f"Discount {discount.code} applied: -{discount.discount_amount:.2f}")
        return discount

    def remove_discount(self):
        self.store.clear_discount()

    def discounted_totals(self) -> DiscountedTotals:
        quote = self.store.quote
        if quote is None:
            raise ServiceError("No quote available")
        amount = self.store.discount.discount_amount if self.store.discount else 0.0
        return apply_discount(quote, amount, settings.MINIMUM_CHARGE)

    # ===============================================================
    # Submission
    # ===============================================================

    async def submit(self) -> Optional[PaymentHandoff]:
        """Runs the checkout sequence. Returns None if a submission is already running."""
        if self.submitting:
            log.info("Checkout already in progress; ignoring resubmission.")
            return None

        self.submitting = True
        self.error = None
        try:
            issues = self.wizard.checkout_issues()
            if issues:
                raise OrderValidationError(issues)

            if self.store.quote is None and await self.wizard.refresh_quote() is None:
                raise ServiceError(self.wizard.quote_error or "Unable to calculate a quote")

            totals = self.discounted_totals()
            if totals.deposit <= 0:
                raise StorefrontError("Order total after discount must be greater than zero")

            artwork = await self.persist_artwork()
            pending_order_id = str(await self.client.create_pending_order(self.build_pending_order(artwork)))
            log.info(f"Pending order {pending_order_id} created.")

            intent = await self.client.create_payment_intent(
                totals.deposit,
                pending_order_id=pending_order_id,
                customer_email=self.store.customer.email,
            )
            log.info(f"Payment intent {intent.payment_intent_id} created for {totals.deposit:.2f}.")
            return PaymentHandoff(
                client_secret=intent.client_secret,
                payment_intent_id=intent.payment_intent_id,
                pending_order_id=pending_order_id,
                deposit_amount=totals.deposit,
                total=totals.total,
                balance_due=totals.balance,
            )
        except StorefrontError as e:
            self.error = str(e)
            log.warning(f"Checkout failed: {e}")
            raise
        finally:
            self.submitting = False

    async def persist_artwork(self) -> List[ArtworkRecord]:
        return await persist_artwork(self.store, self.client)

    def build_pending_order(self, artwork: List[ArtworkRecord]) -> PendingOrderCreate:
        store = self.store
        discount = store.discount
        try:
            return PendingOrderCreate(
                customer_id=self.customer_id,
                garment_id=store.garment_id,
                color_size_quantities=store.combined_color_size_quantities(),
                selected_garments=store.selected_garments_payload(),
                print_config=store.print_config,
                shipping_address=store.shipping_address,
                discount_code_id=discount.discount_code_id if discount else None,
                discount_amount=discount.discount_amount if discount else None,
                artwork_data=artwork,
                **store.customer.model_dump(),
            )
        except ValidationError as e:
            raise OrderValidationError([
                ValidationIssue(IssueKind.INVALID_FIELD, ".".join(str(p) for p in err["loc"]), err["msg"])
                for err in e.errors()
            ]) from e

    # ===============================================================
    # After the payment form
    # ===============================================================

    def handle_confirmation(self, result: Dict[str, Any]) -> str:
        """
        Takes the payment form's confirmation result and returns the
        confirmation page URL. Processor errors are raised with their
        message untouched.
        """
        error = result.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            self.error = message
            raise PaymentConfirmationError(message)
        intent_id = result.get("payment_intent_id") or (result.get("paymentIntent") or {}).get("id")
        return f"{settings.FRONTEND_URL}/order-confirmation?payment_intent={intent_id}"

    async def resolve_order(self, payment_intent_id: str) -> Optional[str]:
        """Looks up the final order for a paid intent; clears the store once it exists."""
        result = await self.client.check_order(payment_intent_id)
        if result.order_id is None:
            return None
        self.store.reset()
        return str(result.order_id)
