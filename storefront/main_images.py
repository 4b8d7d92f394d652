# main_images.py
"""The single distinguished image shown for a product in listings."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront import storage
from storefront.auth import require_writer
from storefront.db import get_db
from storefront.images import image_url
from storefront.models import Product
from storefront.products import get_product_or_404

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/main-image", tags=["Main image"])


class MainImageOut(BaseModel):
    product_id: int
    main_image: Optional[str] = None
    url: Optional[str] = None


def to_main_image_out(product: Product) -> MainImageOut:
    return MainImageOut(
        product_id=product.id,
        main_image=product.main_image,
        url=image_url(product.main_image) if product.main_image else None,
    )


async def store_main_image(request: Request, db: AsyncSession, product: Product, file: UploadFile) -> MainImageOut:
    """Saves `file` as the product's main image and removes the file it replaces."""
    settings = request.app.state.settings
    filename = await storage.save_upload(file, settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)

    previous = product.main_image
    product.main_image = filename
    try:
        await db.commit()
    except SQLAlchemyError:
        storage.delete_file(settings.UPLOAD_DIR, filename)
        raise

    storage.delete_file(settings.UPLOAD_DIR, previous)
    logger.info(f"Set main image of product {product.id} to {filename}")
    return to_main_image_out(product)


@router.get("/{product_id}", response_model=MainImageOut)
async def get_main_image(product_id: int, db: AsyncSession = Depends(get_db)):
    product = await get_product_or_404(db, product_id)
    return to_main_image_out(product)


@router.post("", response_model=MainImageOut, status_code=status.HTTP_201_CREATED)
async def upload_main_image(
    request: Request,
    product_id: int = Form(...),
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    product = await get_product_or_404(db, product_id)
    return await store_main_image(request, db, product, file)


@router.put("/{product_id}", response_model=MainImageOut)
async def replace_main_image(
    request: Request,
    product_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    product = await get_product_or_404(db, product_id)
    if not product.main_image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product has no main image to replace")
    return await store_main_image(request, db, product, file)


@router.delete("/{product_id}")
async def delete_main_image(
    request: Request,
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    product = await get_product_or_404(db, product_id)
    if not product.main_image:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product has no main image")

    filename = product.main_image
    product.main_image = None
    await db.commit()

    storage.delete_file(request.app.state.settings.UPLOAD_DIR, filename)
    return {"message": "Main image deleted successfully", "product_id": product_id}
