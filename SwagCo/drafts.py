# drafts.py
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_customer
from db import commit_or_500, get_db
from models import Customer, Garment, OrderDraft
from schemas import DraftIn, DraftOut

# --- Configuration & Setup ---
log = logging.getLogger(__name__)
router = APIRouter(prefix="/order-drafts", tags=["Drafts"])


def draft_name(garment_name: Optional[str], colors: List[str]) -> str:
    """ "Navy Classic Tee Draft", or "Order Draft" when nothing is known yet."""
    garment_part = garment_name or "Order"
    if colors:
        return f"{colors[0]} {garment_part} Draft"
    return f"{garment_part} Draft"


async def _owned_draft(db: AsyncSession, draft_id: uuid.UUID, customer: Customer) -> OrderDraft:
    result = await db.execute(
        select(OrderDraft).where(OrderDraft.id == draft_id, OrderDraft.customer_id == customer.id)
    )
    draft = result.scalars().first()
    if draft is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    return draft


# --- API Endpoints ---

@router.get("", response_model=List[DraftOut])
async def list_drafts(customer: Customer = Depends(get_current_customer), db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(OrderDraft)
        .where(OrderDraft.customer_id == customer.id)
        .order_by(OrderDraft.updated_at.desc(), OrderDraft.created_at.desc())
    )
    return result.scalars().all()


@router.post("", response_model=DraftOut)
async def save_draft(
    payload: DraftIn,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    """Creates a draft, or overwrites the caller's draft `payload.draft_id`."""
    garment_name = None
    if payload.garment_id:
        garment = await db.get(Garment, payload.garment_id)
        garment_name = garment.name if garment else None

    if payload.draft_id:
        draft = await _owned_draft(db, payload.draft_id, customer)
    else:
        draft = OrderDraft(customer_id=customer.id)
        db.add(draft)

    draft.name = draft_name(garment_name, payload.selected_colors)
    draft.garment_id = payload.garment_id
    draft.selected_colors = payload.selected_colors
    draft.selected_garments = (
        {gid: sel.model_dump() for gid, sel in payload.selected_garments.items()}
        if payload.selected_garments else {}
    )
    draft.color_size_quantities = payload.color_size_quantities
    draft.print_config = payload.print_config.model_dump(mode="json")
    draft.artwork_file_records = {loc: rec.model_dump(mode="json") for loc, rec in payload.artwork_file_records.items()}
    draft.artwork_transforms = {loc: t.model_dump() for loc, t in payload.artwork_transforms.items()}
    draft.vectorized_svg_data = payload.vectorized_svg_data
    draft.customer_name = payload.customer_name or None
    draft.email = payload.email or None
    draft.phone = payload.phone or None
    draft.organization_name = payload.organization_name or None
    draft.need_by_date = payload.need_by_date or None
    draft.shipping_address = payload.shipping_address.model_dump() if payload.shipping_address else None
    draft.quote = payload.quote.model_dump(mode="json") if payload.quote else None
    draft.text_description = payload.text_description or None

    await commit_or_500(db, "draft")
    await db.refresh(draft)
    log.info(f"Draft {draft.id} saved for {customer.email}")
    return draft


@router.get("/{draft_id}", response_model=DraftOut)
async def get_draft(
    draft_id: uuid.UUID,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    return await _owned_draft(db, draft_id, customer)


@router.delete("/{draft_id}")
async def delete_draft(
    draft_id: uuid.UUID,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_db),
):
    draft = await _owned_draft(db, draft_id, customer)
    await db.delete(draft)
    await commit_or_500(db, "draft deletion")
    log.info(f"Draft {draft_id} deleted by {customer.email}")
    return {"success": True}
