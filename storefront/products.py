# products.py
import logging
import re
import unicodedata
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from storefront import storage
from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import Category, OrderProduct, Product

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/products", tags=["Products"])

SORT_ORDERS = {
    "defaultSort": (Product.id.asc(),),
    "titleAsc": (Product.name.asc(), Product.id.asc()),
    "titleDesc": (Product.name.desc(), Product.id.asc()),
    "lowPrice": (Product.price.asc(), Product.id.asc()),
    "highPrice": (Product.price.desc(), Product.id.asc()),
}


# --- Pydantic Schemas for Data Validation ---

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["New Product"])
    price: float = Field(..., ge=0, allow_inf_nan=False, examples=[100.5])
    description: Optional[str] = None
    in_stock: int = Field(1, ge=0)
    category_id: Optional[int] = None
    slug: Optional[str] = Field(None, max_length=255)

    class Config:
        extra = "forbid"

class ProductUpdate(BaseModel):
    """Partial update: only the fields present in the body are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255, examples=["Updated Product"])
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False, examples=[150.0])
    description: Optional[str] = None
    in_stock: Optional[int] = Field(None, ge=0)
    category_id: Optional[int] = None
    slug: Optional[str] = Field(None, max_length=255)

    class Config:
        extra = "forbid"

    @field_validator("name", "price", "in_stock")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

class ProductOut(BaseModel):
    """Defines the structure of a product returned by our API."""
    id: int
    name: str
    price: float
    description: Optional[str] = None
    in_stock: int
    category_id: Optional[int] = None
    slug: Optional[str] = None
    main_image: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Helpers shared with the other routers ---

def slugify(value: str) -> str:
    """Lower-cases and reduces `value` to `a-z`, `0-9` and single hyphens."""
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


async def get_product_or_404(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def ensure_category_exists(db: AsyncSession, category_id: Optional[int]) -> None:
    if category_id is not None and not await db.get(Category, category_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Category {category_id} not found")


async def slug_taken(db: AsyncSession, slug: str, exclude_product_id: Optional[int] = None) -> bool:
    query = select(Product.id).where(Product.slug == slug)
    if exclude_product_id is not None:
        query = query.where(Product.id != exclude_product_id)
    result = await db.execute(query)
    return result.first() is not None


async def normalize_unique_slug(db: AsyncSession, raw_slug: str, exclude_product_id: Optional[int] = None) -> str:
    """Normalizes a client-supplied slug; 400 if nothing is left, 409 if another product owns it."""
    slug = slugify(raw_slug)
    if not slug:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Slug must contain letters or digits.")
    if await slug_taken(db, slug, exclude_product_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Slug '{slug}' is already in use.")
    return slug


# --- API Endpoints ---

@router.get("", response_model=List[ProductOut], summary="Retrieve a list of products")
async def list_products(
    request: Request,
    category: Optional[int] = Query(None, description="Only products of this category id"),
    sort: Literal["defaultSort", "titleAsc", "titleDesc", "lowPrice", "highPrice"] = "defaultSort",
    page: Optional[int] = Query(None, ge=1, description="1-based page; omit to get every product"),
    db: AsyncSession = Depends(get_db),
):
    """Retrieve all products, optionally filtered by category, sorted and paged."""
    query = select(Product).order_by(*SORT_ORDERS[sort])
    if category is not None:
        query = query.where(Product.category_id == category)
    if page is not None:
        page_size = request.app.state.settings.PAGE_SIZE
        query = query.offset((page - 1) * page_size).limit(page_size)

    result = await db.execute(query)
    return result.scalars().all()


@router.get("/{product_id}", response_model=ProductOut, summary="Retrieve a product by ID")
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await get_product_or_404(db, product_id)


@router.post("", response_model=ProductOut, status_code=status.HTTP_201_CREATED, summary="Create a new product")
async def create_product(
    payload: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """
    Adds a new product to the catalog.

    A slug supplied by the client must be free (409 otherwise). Without one,
    a slug is derived from the name and suffixed with the product id when the
    plain form is already taken.
    """
    await ensure_category_exists(db, payload.category_id)

    data = payload.model_dump(exclude={"slug"})
    product = Product(**data)

    generated_base = None
    if payload.slug is not None:
        product.slug = await normalize_unique_slug(db, payload.slug)
    else:
        generated_base = slugify(payload.name) or None
        if generated_base and not await slug_taken(db, generated_base):
            product.slug = generated_base

    db.add(product)
    await db.flush()
    if generated_base and product.slug is None:
        product.slug = f"{generated_base}-{product.id}"

    await db.commit()
    logger.info(f"Created product {product.id} ('{product.name}')")
    return product


@router.put("/{product_id}", response_model=ProductOut, summary="Update an existing product")
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    product = await get_product_or_404(db, product_id)
    updates = payload.model_dump(exclude_unset=True)

    if "category_id" in updates:
        await ensure_category_exists(db, updates["category_id"])
    if updates.get("slug") is not None:
        updates["slug"] = await normalize_unique_slug(db, updates["slug"], exclude_product_id=product.id)

    for field, value in updates.items():
        setattr(product, field, value)

    await db.commit()
    logger.info(f"Updated product {product.id}: {sorted(updates)}")
    return product


@router.delete("/{product_id}", summary="Delete a product")
async def delete_product(
    request: Request,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """
    Removes a product together with its images and wishlist entries.
    Products that appear on an order are kept (409).
    """
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .options(selectinload(Product.images), selectinload(Product.wishlist_items))
    )
    product = result.scalars().first()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    ordered = await db.scalar(select(func.count(OrderProduct.id)).where(OrderProduct.product_id == product_id))
    if ordered:
        logger.info(f"Refused to delete product {product_id}: referenced by {ordered} order line(s)")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Product cannot be deleted because it appears on existing orders.",
        )

    stored_files = [image.image for image in product.images] + [product.main_image]
    await db.delete(product)
    await db.commit()

    upload_dir = request.app.state.settings.UPLOAD_DIR
    for filename in stored_files:
        storage.delete_file(upload_dir, filename)

    logger.info(f"Deleted product {product_id}")
    return {"message": "Product deleted successfully", "id": product_id}
