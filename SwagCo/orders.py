# orders.py
import asyncio
import logging
import uuid
from typing import Dict, List, Optional, Tuple

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from auth import get_optional_customer
from db import commit_or_500, get_db
from models import ArtworkFile, Customer, Order, PendingOrder
from pricing import PricingError, calculate_quote, round_currency
from quotes import get_app_config, load_catalog
from schemas import (
    CheckOrderResponse, CreatedResponse, OrderCreate, OrderOut, PaymentIntentRequest,
    PaymentIntentResponse, PendingOrderCreate, PrintConfig, Quote,
)
from settings import settings

# --- Configuration & Setup ---
log = logging.getLogger(__name__)
router = APIRouter(tags=["Orders"])
stripe.api_key = settings.STRIPE_SECRET_KEY

VECTOR_EXTENSIONS = (".svg", ".ai", ".eps")


# ===================================================================
# Pricing helpers
# ===================================================================

def count_quantities(color_size_quantities: Dict[str, Dict[str, int]]) -> int:
    return sum(max(0, int(n or 0)) for sizes in color_size_quantities.values() for n in sizes.values())


def order_lines(garment_id, color_size_quantities: Dict, selected_garments: Optional[Dict]) -> List[Tuple[str, int]]:
    """(garment_id, quantity) pairs for a stored order payload."""
    if selected_garments:
        lines = []
        for gid, selection in selected_garments.items():
            qty = count_quantities(selection.get("color_size_quantities") or {})
            if qty > 0:
                lines.append((str(gid), qty))
        return lines
    return [(str(garment_id), count_quantities(color_size_quantities))]


async def price_order(db: AsyncSession, lines: List[Tuple[str, int]], print_config: Dict) -> Quote:
    catalog = await load_catalog(db, [uuid.UUID(gid) for gid, _ in lines])
    try:
        return calculate_quote(catalog, lines, PrintConfig.model_validate(print_config))
    except PricingError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


async def _check_minimum(db: AsyncSession, lines: List[Tuple[str, int]]):
    config = await get_app_config(db)
    total = sum(qty for _, qty in lines)
    if total < config.min_order_quantity:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Minimum order quantity is {config.min_order_quantity}")


# ===================================================================
# Orders & pending orders
# ===================================================================

@router.post("/orders", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    customer: Optional[Customer] = Depends(get_optional_customer),
):
    """
    Order-first flow: the order exists before any payment and waits for
    its deposit. Prices are always computed here, never taken from the client.
    """
    data = payload.model_dump(mode="json")
    lines = order_lines(payload.garment_id, data["color_size_quantities"], data.get("selected_garments"))
    await _check_minimum(db, lines)
    quote = await price_order(db, lines, data["print_config"])

    order = Order(
        customer_id=customer.id if customer else None,
        customer_name=payload.customer_name,
        email=payload.email,
        phone=payload.phone,
        shipping_address=data["shipping_address"],
        organization_name=payload.organization_name,
        need_by_date=payload.need_by_date,
        garment_id=payload.garment_id,
        color_size_quantities=data["color_size_quantities"],
        selected_garments=data.get("selected_garments"),
        total_quantity=sum(qty for _, qty in lines),
        print_config=data["print_config"],
        total_cost=quote.total,
        deposit_amount=quote.deposit_amount,
        deposit_paid=False,
        balance_due=quote.balance_due,
        status="awaiting_deposit",
    )
    db.add(order)
    await commit_or_500(db, "order")
    log.info(f"Order {order.id} created for {order.total_quantity} shirts.")
    return CreatedResponse(id=order.id)


@router.post("/pending-orders", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_pending_order(
    payload: PendingOrderCreate,
    db: AsyncSession = Depends(get_db),
    customer: Optional[Customer] = Depends(get_optional_customer),
):
    """Stores the order content until its deposit succeeds. Unpaid rows are never reaped."""
    data = payload.model_dump(mode="json")
    lines = order_lines(payload.garment_id, data["color_size_quantities"], data.get("selected_garments"))
    await _check_minimum(db, lines)

    pending = PendingOrder(
        customer_id=customer.id if customer else payload.customer_id,
        customer_name=payload.customer_name,
        email=payload.email,
        phone=payload.phone,
        shipping_address=data["shipping_address"],
        organization_name=payload.organization_name or None,
        need_by_date=payload.need_by_date or None,
        garment_id=payload.garment_id,
        color_size_quantities=data["color_size_quantities"],
        selected_garments=data.get("selected_garments"),
        print_config=data["print_config"],
        artwork_data=data["artwork_data"] or None,
        discount_code_id=payload.discount_code_id,
        discount_amount=payload.discount_amount,
    )
    db.add(pending)
    await commit_or_500(db, "pending order")
    log.info(f"Pending order {pending.id} created.")
    return CreatedResponse(id=pending.id)


@router.get("/orders/{order_id}", response_model=OrderOut)
async def get_order(order_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Order).options(selectinload(Order.artwork_files)).where(Order.id == order_id)
    )
    order = result.scalars().first()
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


# ===================================================================
# Payments
# ===================================================================

@router.post("/payments/create-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(payload: PaymentIntentRequest, db: AsyncSession = Depends(get_db)):
    """
    Creates the deposit PaymentIntent.

    The intent's metadata references either an existing order or the pending
    order, which is how the webhook finds the order content after payment.
    """
    if not settings.STRIPE_SECRET_KEY:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Stripe is not configured.")

    metadata = {"payment_type": "deposit"}
    pending = None
    if payload.order_id:
        metadata["order_id"] = str(payload.order_id)
    elif payload.pending_order_id:
        pending = await db.get(PendingOrder, payload.pending_order_id)
        if pending is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Pending order not found")
        metadata["pending_order_id"] = str(payload.pending_order_id)
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Either orderId or pendingOrderId is required")

    try:
        intent = await asyncio.to_thread(
            stripe.PaymentIntent.create,
            amount=int(round(payload.amount * 100)),
            currency=settings.CURRENCY,
            metadata=metadata,
            receipt_email=payload.customer_email or None,
        )
    except stripe.StripeError as e:
        log.error(f"Stripe PaymentIntent creation failed: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Stripe error: {e.user_message or e}")

    if pending is not None:
        pending.stripe_payment_intent_id = intent["id"]
        await commit_or_500(db, "pending order")

    log.info(f"PaymentIntent {intent['id']} created for {payload.amount:.2f} {settings.CURRENCY}.")
    return PaymentIntentResponse(client_secret=intent["client_secret"], payment_intent_id=intent["id"])


@router.get("/payments/check-order", response_model=CheckOrderResponse)
async def check_order(payment_intent_id: str, db: AsyncSession = Depends(get_db)):
    """Resolves the final order created for a payment intent, if the webhook has run."""
    result = await db.execute(select(Order).where(Order.stripe_payment_intent_id == payment_intent_id))
    order = result.scalars().first()
    if order is None:
        return CheckOrderResponse(order_id=None, status="pending")
    return CheckOrderResponse(order_id=order.id, status=order.status)


# ===================================================================
# Stripe Webhook
# ===================================================================

async def materialize_pending_order(db: AsyncSession, pending: PendingOrder, intent) -> Order:
    """Turns a paid pending order into an `Order` plus its artwork rows."""
    lines = order_lines(pending.garment_id, pending.color_size_quantities, pending.selected_garments)
    quote = await price_order(db, lines, pending.print_config)

    total = max(0.0, round_currency(quote.total - (pending.discount_amount or 0.0)))
    deposit = round_currency(intent["amount"] / 100)
    order = Order(
        customer_id=pending.customer_id,
        customer_name=pending.customer_name,
        email=pending.email,
        phone=pending.phone,
        shipping_address=pending.shipping_address,
        organization_name=pending.organization_name,
        need_by_date=pending.need_by_date,
        garment_id=pending.garment_id,
        color_size_quantities=pending.color_size_quantities,
        selected_garments=pending.selected_garments,
        total_quantity=sum(qty for _, qty in lines),
        print_config=pending.print_config,
        total_cost=total,
        deposit_amount=deposit,
        deposit_paid=True,
        balance_due=max(0.0, round_currency(total - deposit)),
        discount_code_id=pending.discount_code_id,
        discount_amount=pending.discount_amount,
        status="pending_art_review",
        stripe_payment_intent_id=intent["id"],
        pending_order_id=pending.id,
    )
    for artwork in pending.artwork_data or []:
        if not artwork.get("file_url"):
            continue
        name = artwork.get("file_name") or "artwork"
        is_vector = name.lower().endswith(VECTOR_EXTENSIONS) or bool(artwork.get("vectorized_file_url"))
        order.artwork_files.append(ArtworkFile(
            location=artwork["location"],
            file_url=artwork["file_url"],
            vectorized_file_url=artwork.get("vectorized_file_url"),
            is_vector=is_vector,
            vectorization_status="not_needed" if is_vector else "pending",
            file_name=name,
            file_size=artwork.get("file_size"),
            transform=artwork.get("transform"),
        ))
    db.add(order)
    await db.delete(pending)
    return order


@router.post("/payments/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: AsyncSession = Depends(get_db),
):
    """
    Handles incoming webhooks from Stripe.
    - Verifies the webhook signature.
    - `payment_intent.succeeded` with a pending order creates the final order.
    - `payment_intent.succeeded` with an existing order marks the payment.
    Replayed events are ignored.
    """
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header.")

    try:
        payload = await request.body()
        event = stripe.Webhook.construct_event(
            payload=payload, sig_header=stripe_signature, secret=settings.STRIPE_WEBHOOK_SECRET
        )
    except ValueError as e:  # Invalid payload
        raise HTTPException(status_code=400, detail=f"Invalid payload: {e}")
    except stripe.SignatureVerificationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid signature: {e}")

    if event["type"] != "payment_intent.succeeded":
        return {"status": "ignored", "reason": f"Unhandled event type {event['type']}"}

    intent = event["data"]["object"]
    metadata = intent.get("metadata") or {}
    payment_type = metadata.get("payment_type", "deposit")

    existing = await db.execute(select(Order).where(Order.stripe_payment_intent_id == intent["id"]))
    if existing.scalars().first() is not None:
        return {"status": "success", "reason": "Already processed"}

    if metadata.get("pending_order_id") and payment_type == "deposit":
        pending = await db.get(PendingOrder, uuid.UUID(metadata["pending_order_id"]))
        if pending is None:
            log.error(f"Webhook: pending order {metadata['pending_order_id']} not found.")
            return {"status": "error", "reason": "Pending order not found"}
        order = await materialize_pending_order(db, pending, intent)
        await commit_or_500(db, "order")
        log.info(f"Webhook: order {order.id} created from pending order {pending.id}.")
        return {"status": "success", "order_id": str(order.id)}

    if metadata.get("order_id"):
        order = await db.get(Order, uuid.UUID(metadata["order_id"]))
        if order is None:
            return {"status": "error", "reason": f"Order {metadata['order_id']} not found"}
        if payment_type == "balance":
            order.balance_due = 0.0
        elif not order.deposit_paid:
            order.deposit_paid = True
            order.status = "pending_art_review"
            order.stripe_payment_intent_id = intent["id"]
        await commit_or_500(db, "order")
        log.info(f"Webhook: {payment_type} payment recorded for order {order.id}.")
        return {"status": "success", "order_id": str(order.id)}

    return {"status": "ignored", "reason": "No order reference in metadata"}
