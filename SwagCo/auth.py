# auth.py
"""
Customer resolution from bearer tokens.

Tokens are issued by the external auth provider and signed with the shared
`JWT_SECRET`; this service only verifies them. The token subject is the
customer id. A `customers` row is created the first time a customer is seen.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_db
from models import Customer
from settings import settings

log = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


class TokenData(BaseModel):
    """Schema for data inside the JWT."""
    customer_id: uuid.UUID
    email: Optional[str] = None
    name: Optional[str] = None


# ===================================================================
# Utility Functions
# ===================================================================

def create_access_token(customer_id, email: Optional[str] = None, name: Optional[str] = None,
                        expires_delta: timedelta = timedelta(hours=1)) -> str:
    """Signs a token the same way the auth provider does. Used by tooling and tests."""
    claims = {
        "sub": str(customer_id),
        "email": email,
        "name": name,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> TokenData:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        return TokenData(customer_id=payload.get("sub"), email=payload.get("email"), name=payload.get("name"))
    except (JWTError, ValueError) as e:
        log.info(f"Rejected bearer token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def _ensure_customer(db: AsyncSession, data: TokenData) -> Customer:
    customer = await db.get(Customer, data.customer_id)
    if customer is None:
        if not data.email:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no email claim")
        log.info(f"Creating customer record for {data.customer_id}")
        customer = Customer(id=data.customer_id, email=data.email, name=data.name)
        db.add(customer)
        await db.commit()
        await db.refresh(customer)
    return customer


# ===================================================================
# Current Customer Dependencies
# ===================================================================

async def get_current_customer(
    token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Customer:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await _ensure_customer(db, decode_token(token))


async def get_optional_customer(
    token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Optional[Customer]:
    """Like `get_current_customer`, but guests get None instead of a 401."""
    if not token:
        return None
    return await _ensure_customer(db, decode_token(token))
