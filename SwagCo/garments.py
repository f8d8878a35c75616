# garments.py
import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db
from models import Garment
from schemas import GarmentOut

# --- Configuration & Setup ---
log = logging.getLogger(__name__)
router = APIRouter(prefix="/garments", tags=["Garments"])


# --- API Endpoints ---

@router.get("", response_model=List[GarmentOut], summary="List active garments")
async def list_garments(category: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    """Returns the active catalog, optionally filtered by category, newest first."""
    query = select(Garment).where(Garment.active.is_(True))
    if category:
        query = query.where(Garment.category == category)
    result = await db.execute(query.order_by(Garment.created_at.desc(), Garment.name))
    garments = result.scalars().all()
    log.info(f"Serving {len(garments)} garments.")
    return garments


@router.get("/{garment_id}", response_model=GarmentOut)
async def get_garment(garment_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    garment = await db.get(Garment, garment_id)
    if not garment or not garment.active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Garment not found")
    return garment
