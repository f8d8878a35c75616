# quotes.py
"""
Quote endpoint and catalog loading.

`load_catalog` snapshots the pricing tables into a `PricingCatalog` so the
pure functions in `pricing.py` can price an order; it is shared with the
campaign and order routes.
"""

import logging
import uuid
from typing import Iterable

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from db import get_db
from models import AppConfig, Garment, PricingTier
from pricing import (
    GarmentNotFoundError, PricedGarment, PricingCatalog, PricingError, PrintPrice, Tier,
    calculate_quote, default_tiers,
)
from schemas import Quote, QuoteRequest
from settings import settings

# --- Configuration & Setup ---
log = logging.getLogger(__name__)
router = APIRouter(tags=["Quotes"])


# ===================================================================
# Catalog loading
# ===================================================================

async def get_app_config(db: AsyncSession) -> AppConfig:
    """The stored app config row, or an unsaved one holding the settings defaults."""
    config = await db.get(AppConfig, 1)
    if config is None:
        config = AppConfig(
            id=1,
            deposit_percentage=settings.DEFAULT_DEPOSIT_PERCENTAGE,
            min_order_quantity=settings.MIN_ORDER_QUANTITY,
            max_ink_colors=settings.MAX_INK_COLORS,
        )
    return config


async def load_catalog(db: AsyncSession, garment_ids: Iterable[uuid.UUID]) -> PricingCatalog:
    result = await db.execute(select(PricingTier).options(selectinload(PricingTier.print_pricing)))
    rows = result.scalars().all()
    if rows:
        tiers = [
            Tier(
                name=row.name,
                min_qty=row.min_qty,
                max_qty=row.max_qty,
                garment_markup_percentage=row.garment_markup_percentage,
                print_prices={
                    p.num_colors: PrintPrice(p.num_colors, p.cost_per_shirt, p.setup_fee_per_screen)
                    for p in row.print_pricing
                },
            )
            for row in rows
        ]
    else:
        log.warning("No pricing tiers configured; using built-in defaults.")
        tiers = default_tiers()

    ids = list(garment_ids)
    garments = {}
    if ids:
        result = await db.execute(select(Garment).where(Garment.id.in_(ids), Garment.active.is_(True)))
        for garment in result.scalars().all():
            garments[str(garment.id)] = PricedGarment(
                id=str(garment.id),
                name=garment.name,
                base_cost=garment.base_cost,
                customer_price=garment.customer_price,
            )

    config = await get_app_config(db)
    return PricingCatalog(tiers=tiers, garments=garments, deposit_percentage=config.deposit_percentage)


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("/quote", response_model=Quote)
async def create_quote(payload: QuoteRequest, db: AsyncSession = Depends(get_db)):
    """Prices one garment (`garment_id` + `quantity`) or several (`garments`)."""
    if payload.garments:
        lines = [(g.garment_id, g.quantity) for g in payload.garments]
    elif payload.garment_id and payload.quantity is not None:
        lines = [(payload.garment_id, payload.quantity)]
    else:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail="Provide garment_id and quantity, or garments.")

    config = await get_app_config(db)
    quantity = sum(qty for _, qty in lines)
    if quantity < config.min_order_quantity:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f"Minimum order quantity is {config.min_order_quantity}")

    catalog = await load_catalog(db, [gid for gid, _ in lines])
    try:
        quote = calculate_quote(catalog, [(str(gid), qty) for gid, qty in lines], payload.print_config)
    except GarmentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PricingError as e:
        log.info(f"Quote rejected: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    log.info(f"Quote for {quantity} shirts: total {quote.total:.2f}")
    return quote
