# search.py
"""
Product search.

Matching rules:
- `query` is a case-insensitive substring of the product name or description.
  A missing or blank query matches every product.
- `category` is a category id when numeric, otherwise a category name
  compared case-insensitively.
- `priceRange` is `"low-high"`; both bounds are inclusive.
Results come back ordered by product id.
"""
import logging
import math
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.db import get_db
from storefront.models import Category, Product
from storefront.products import ProductOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/search", tags=["Search"])


def parse_price_range(value: str) -> Tuple[float, float]:
    """Parses `"low-high"` into two floats, raising 400 when malformed or inverted."""
    low_text, sep, high_text = value.partition("-")
    try:
        if not sep:
            raise ValueError(value)
        low, high = float(low_text), float(high_text)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="priceRange must look like 'low-high', e.g. '0-100'.",
        )
    if math.isnan(low) or math.isnan(high):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="priceRange bounds must be numbers.")
    if low > high:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="priceRange lower bound exceeds upper bound.")
    return low, high


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@router.get("", response_model=List[ProductOut], summary="Search for products")
async def search_products(
    query: Optional[str] = Query(None, description="The search term for the product"),
    category: Optional[str] = Query(None, description="Optional category id or name to filter the search"),
    price_range: Optional[str] = Query(None, alias="priceRange", description='Optional price range, e.g. "0-100"'),
    db: AsyncSession = Depends(get_db),
):
    statement = select(Product)

    term = (query or "").strip()
    if term:
        pattern = f"%{escape_like(term.lower())}%"
        statement = statement.where(
            or_(
                func.lower(Product.name).like(pattern, escape="\\"),
                func.lower(func.coalesce(Product.description, "")).like(pattern, escape="\\"),
            )
        )

    if category is not None and category.strip():
        category = category.strip()
        if category.isascii() and category.isdigit():
            statement = statement.where(Product.category_id == int(category))
        else:
            statement = statement.join(Category, Product.category_id == Category.id).where(
                func.lower(Category.name) == category.lower()
            )

    if price_range is not None and price_range.strip():
        low, high = parse_price_range(price_range.strip())
        statement = statement.where(Product.price >= low, Product.price <= high)

    result = await db.execute(statement.order_by(Product.id))
    products = result.scalars().all()
    logger.info(f"Search query={term!r} category={category!r} priceRange={price_range!r} -> {len(products)} result(s)")
    return products
