# slugs.py
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import Product
from storefront.products import ProductOut, get_product_or_404, normalize_unique_slug, slugify

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/slugs", tags=["Slugs"])


class SlugIn(BaseModel):
    product_id: int
    slug: str = Field(..., min_length=1, max_length=255, examples=["gaming-laptop"])

    class Config:
        extra = "forbid"

class SlugRename(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255)

    class Config:
        extra = "forbid"

class SlugOut(BaseModel):
    slug: str
    product_id: int


async def get_product_by_slug(db: AsyncSession, slug: str) -> Product:
    result = await db.execute(select(Product).where(Product.slug == slugify(slug)))
    product = result.scalars().first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Slug not found")
    return product


@router.get("", response_model=List[SlugOut])
async def list_slugs(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Product.slug, Product.id).where(Product.slug.is_not(None)).order_by(Product.slug)
    )
    return [SlugOut(slug=slug, product_id=product_id) for slug, product_id in result.all()]


@router.get("/{slug}", response_model=ProductOut)
async def get_product_for_slug(slug: str, db: AsyncSession = Depends(get_db)):
    """Resolves a human-readable path segment to its product."""
    return await get_product_by_slug(db, slug)


@router.post("", response_model=SlugOut, status_code=status.HTTP_201_CREATED)
async def bind_slug(
    payload: SlugIn,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Binds a slug to a product, replacing any slug the product had."""
    product = await get_product_or_404(db, payload.product_id)
    product.slug = await normalize_unique_slug(db, payload.slug, exclude_product_id=product.id)
    await db.commit()
    logger.info(f"Bound slug '{product.slug}' to product {product.id}")
    return SlugOut(slug=product.slug, product_id=product.id)


@router.put("/{slug}", response_model=SlugOut)
async def rename_slug(
    slug: str,
    payload: SlugRename,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    product = await get_product_by_slug(db, slug)
    product.slug = await normalize_unique_slug(db, payload.slug, exclude_product_id=product.id)
    await db.commit()
    return SlugOut(slug=product.slug, product_id=product.id)


@router.delete("/{slug}")
async def unbind_slug(
    slug: str,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    product = await get_product_by_slug(db, slug)
    product.slug = None
    await db.commit()
    return {"message": "Slug deleted successfully", "product_id": product.id}
