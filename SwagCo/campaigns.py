# campaigns.py
"""
Group-order campaigns.

An organizer picks garments, colors and artwork; participants later order
from a shareable landing page at /campaigns/<slug>. Prices are per shirt at
the campaign pricing quantity, without setup fees.
"""

import logging
import random
import re
import string
import uuid
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_customer
from db import commit_or_500, get_db
from models import Campaign, Customer
from pricing import PricingError, campaign_price
from quotes import load_catalog
from schemas import (
    CampaignCreate, CampaignCreated, CampaignOut, CampaignPriceRequest, CampaignPriceResponse, PrintConfig,
)
from settings import settings

# --- Configuration & Setup ---
log = logging.getLogger(__name__)
router = APIRouter(prefix="/campaigns", tags=["Campaigns"])

SLUG_MAX_LENGTH = 50
SLUG_SUFFIX_LENGTH = 6
SLUG_ATTEMPTS = 5


# ===================================================================
# Helpers
# ===================================================================

def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].strip("-") or "campaign"


def make_slug(name: str) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=SLUG_SUFFIX_LENGTH))
    return f"{slugify(name)}-{suffix}"


async def _unique_slug(db: AsyncSession, name: str) -> str:
    for _ in range(SLUG_ATTEMPTS):
        slug = make_slug(name)
        result = await db.execute(select(Campaign.id).where(Campaign.slug == slug))
        if result.first() is None:
            return slug
        log.info(f"Campaign slug {slug} already taken; retrying.")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                        detail="Could not generate a unique campaign link")


async def price_garments(db: AsyncSession, garment_ids: List[uuid.UUID], print_config: PrintConfig) -> CampaignPriceResponse:
    catalog = await load_catalog(db, garment_ids)
    prices: Dict[str, float] = {}
    missing: List[str] = []
    for gid in garment_ids:
        try:
            prices[str(gid)] = campaign_price(catalog, str(gid), print_config, settings.CAMPAIGN_PRICING_QUANTITY)
        except PricingError:
            missing.append(str(gid))
    if missing:
        log.warning(f"Campaign pricing skipped unknown garments: {missing}")
    return CampaignPriceResponse(prices=prices, missing_garments=missing)


def _prices_look_stale(prices: List[float]) -> bool:
    """All zero, or every garment at the same price, means the client sent placeholders."""
    if not prices:
        return True
    return all(p <= 0 for p in prices) or (len(prices) > 1 and len(set(prices)) == 1)


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("/calculate-price", response_model=CampaignPriceResponse)
async def calculate_campaign_prices(payload: CampaignPriceRequest, db: AsyncSession = Depends(get_db)):
    return await price_garments(db, payload.garment_ids, payload.print_config)


@router.post("", response_model=CampaignCreated, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    payload: CampaignCreate,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """
    Creates an active campaign owned by the signed-in organizer.

    Garment prices are recomputed server-side when the submitted ones are
    all zero or all identical; `price_per_shirt` is the primary garment's.
    """
    configs = {
        gid: cfg.model_dump() for gid, cfg in (payload.garment_configs or {}).items()
    }
    if not configs:
        configs = {str(payload.garment_id): {"price": payload.price_per_shirt, "colors": payload.selected_colors}}

    if _prices_look_stale([cfg["price"] for cfg in configs.values()]):
        priced = await price_garments(db, [uuid.UUID(gid) for gid in configs], payload.print_config)
        if priced.missing_garments:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND,
                                detail=f"Garments not found: {', '.join(priced.missing_garments)}")
        for gid, price in priced.prices.items():
            configs[gid]["price"] = price

    primary = str(payload.garment_id)
    price_per_shirt = configs[primary]["price"] if primary in configs else next(iter(configs.values()))["price"]

    campaign = Campaign(
        slug=await _unique_slug(db, payload.name),
        organizer_id=customer.id,
        name=payload.name.strip(),
        deadline=payload.deadline,
        payment_style=payload.payment_style.value,
        status="active",
        garment_id=payload.garment_id,
        selected_colors=payload.selected_colors,
        garment_configs=configs,
        print_config=payload.print_config.model_dump(mode="json"),
        artwork_urls=payload.artwork_urls,
        artwork_transforms={k: v.model_dump() for k, v in payload.artwork_transforms.items()},
        price_per_shirt=price_per_shirt,
        organizer_name=payload.organizer_name or customer.name,
        organizer_email=payload.organizer_email or customer.email,
        mockup_image_url=payload.mockup_image_url,
        mockup_image_urls=payload.mockup_image_urls,
    )
    db.add(campaign)
    await commit_or_500(db, "campaign")
    await db.refresh(campaign)

    log.info(f"Campaign {campaign.slug} created by {customer.email} at {price_per_shirt:.2f}/shirt")
    return CampaignCreated(id=campaign.id, slug=campaign.slug)


@router.get("/{slug}", response_model=CampaignOut)
async def get_campaign(slug: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Campaign).where(Campaign.slug == slug))
    campaign = result.scalars().first()
    if campaign is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Campaign not found")
    return campaign
