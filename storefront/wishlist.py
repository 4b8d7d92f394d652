# wishlist.py
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import User, WishlistItem
from storefront.products import ProductOut, get_product_or_404

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/wishlist", tags=["Wishlist"])


class WishlistIn(BaseModel):
    user_id: int
    product_id: int

    class Config:
        extra = "forbid"

class WishlistOut(BaseModel):
    id: int
    user_id: int
    product_id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class WishlistEntryOut(WishlistOut):
    """A wishlist entry with the saved product embedded."""
    product: ProductOut


async def ensure_user_exists(db: AsyncSession, user_id: int) -> None:
    if not await db.get(User, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")


@router.get("", response_model=List[WishlistOut])
async def list_wishlist(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(WishlistItem).order_by(WishlistItem.id))
    return result.scalars().all()


@router.get("/{user_id}", response_model=List[WishlistEntryOut])
async def get_user_wishlist(user_id: int, db: AsyncSession = Depends(get_db)):
    await ensure_user_exists(db, user_id)
    result = await db.execute(
        select(WishlistItem)
        .where(WishlistItem.user_id == user_id)
        .options(selectinload(WishlistItem.product))
        .order_by(WishlistItem.id)
    )
    return result.scalars().all()


@router.post("", response_model=WishlistOut, status_code=status.HTTP_201_CREATED)
async def add_to_wishlist(
    payload: WishlistIn,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    await ensure_user_exists(db, payload.user_id)
    await get_product_or_404(db, payload.product_id)

    existing = await db.execute(
        select(WishlistItem.id).where(
            WishlistItem.user_id == payload.user_id, WishlistItem.product_id == payload.product_id
        )
    )
    if existing.first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Product is already on this wishlist.")

    entry = WishlistItem(user_id=payload.user_id, product_id=payload.product_id)
    db.add(entry)
    await db.commit()
    logger.info(f"User {entry.user_id} saved product {entry.product_id}")
    return entry


@router.delete("/{user_id}/{product_id}")
async def remove_from_wishlist(
    user_id: int,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    result = await db.execute(
        select(WishlistItem).where(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
    )
    entry = result.scalars().first()
    if not entry:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist entry not found")

    await db.delete(entry)
    await db.commit()
    return {"message": "Product removed from wishlist", "user_id": user_id, "product_id": product_id}
