# categories.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import Category, Product
from storefront.products import ProductOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/categories", tags=["Categories"])


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Laptops"])

    class Config:
        extra = "forbid"
        str_strip_whitespace = True

class CategoryOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


async def get_category_or_404(db: AsyncSession, category_id: int) -> Category:
    category = await db.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return category


async def ensure_name_free(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    query = select(Category.id).where(func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A category with this name already exists.")


@router.get("", response_model=List[CategoryOut])
async def list_categories(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Category).order_by(Category.name))
    return result.scalars().all()


@router.get("/{category_id}", response_model=CategoryOut)
async def get_category(category_id: int, db: AsyncSession = Depends(get_db)):
    return await get_category_or_404(db, category_id)


@router.get("/{category_id}/products", response_model=List[ProductOut])
async def list_category_products(category_id: int, db: AsyncSession = Depends(get_db)):
    await get_category_or_404(db, category_id)
    result = await db.execute(select(Product).where(Product.category_id == category_id).order_by(Product.id))
    return result.scalars().all()


@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryIn,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    name = payload.name
    await ensure_name_free(db, name)

    category = Category(name=name)
    db.add(category)
    await db.commit()
    logger.info(f"Created category {category.id} ('{category.name}')")
    return category


@router.put("/{category_id}", response_model=CategoryOut)
async def update_category(
    category_id: int,
    payload: CategoryIn,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    category = await get_category_or_404(db, category_id)
    name = payload.name
    await ensure_name_free(db, name, exclude_id=category.id)

    category.name = name
    await db.commit()
    return category


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Deletes an empty category. A category that still groups products is kept (409)."""
    category = await get_category_or_404(db, category_id)

    product_count = await db.scalar(select(func.count(Product.id)).where(Product.category_id == category_id))
    if product_count:
        logger.info(f"Refused to delete category {category_id}: {product_count} product(s) attached")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category cannot be deleted while products belong to it.",
        )

    await db.delete(category)
    await db.commit()
    logger.info(f"Deleted category {category_id}")
    return {"message": "Category deleted successfully", "id": category_id}
