# discounts.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db
from models import DiscountCode
from pricing import discount_amount
from schemas import AppliedDiscount, DiscountType, DiscountValidateRequest, DiscountValidateResponse

# --- Configuration & Setup ---
log = logging.getLogger(__name__)
router = APIRouter(prefix="/discount-codes", tags=["Discounts"])


def _rejected(message: str) -> JSONResponse:
    body = DiscountValidateResponse(valid=False, message=message)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body.model_dump(mode="json"))


def is_expired(code: DiscountCode) -> bool:
    if code.expires_at is None:
        return False
    expires_at = code.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < datetime.now(timezone.utc)


# --- API Endpoints ---

@router.post("/validate", response_model=DiscountValidateResponse)
async def validate_discount_code(payload: DiscountValidateRequest, db: AsyncSession = Depends(get_db)):
    """
    Checks a discount code against a subtotal.

    Unknown, inactive and expired codes answer 400 with `valid: false`.
    Percentage discounts are rounded to cents; fixed discounts never exceed
    the subtotal.
    """
    normalized = payload.code.strip().upper()
    if not normalized:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Discount code is required")
    if payload.subtotal <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Valid subtotal is required")

    result = await db.execute(select(DiscountCode).where(DiscountCode.code == normalized))
    code = result.scalars().first()
    if code is None:
        return _rejected("Invalid discount code")
    if not code.active:
        return _rejected("This discount code is no longer active")
    if is_expired(code):
        return _rejected("This discount code has expired")

    discount_type = DiscountType(code.discount_type)
    amount = discount_amount(discount_type, code.discount_value, payload.subtotal)
    if discount_type == DiscountType.PERCENTAGE:
        message = f"{code.discount_value:g}% discount applied!"
    else:
        message = f"${amount:.2f} discount applied!"

    log.info(f"Discount code {normalized} validated: -{amount:.2f} on {payload.subtotal:.2f}")
    return DiscountValidateResponse(
        valid=True,
        discount=AppliedDiscount(
            code=code.code,
            discount_type=discount_type,
            discount_value=code.discount_value,
            discount_amount=amount,
        ),
        discount_code_id=code.id,
        message=message,
    )
