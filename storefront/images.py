# images.py
import logging
import os
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront import storage
from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import ProductImage
from storefront.products import get_product_or_404

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/images", tags=["Images"])


class ImageOut(BaseModel):
    id: int
    product_id: int
    image: str
    url: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def image_url(filename: str) -> str:
    return f"/api/images/file/{filename}"


def to_image_out(row: ProductImage) -> ImageOut:
    return ImageOut(
        id=row.id,
        product_id=row.product_id,
        image=row.image,
        url=image_url(row.image),
        created_at=row.created_at,
    )


async def get_image_or_404(db: AsyncSession, image_id: int) -> ProductImage:
    row = await db.get(ProductImage, image_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return row


@router.get("/file/{filename}")
async def get_image_file(request: Request, filename: str):
    """Serves an uploaded image from the upload folder."""
    file_path = storage.resolve_path(request.app.state.settings.UPLOAD_DIR, filename)
    if not os.path.exists(file_path):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return FileResponse(
        file_path,
        media_type=storage.media_type_for(filename),
        headers={"X-Content-Type-Options": "nosniff"},
    )


@router.get("/{product_id}", response_model=List[ImageOut])
async def list_product_images(product_id: int, db: AsyncSession = Depends(get_db)):
    await get_product_or_404(db, product_id)
    result = await db.execute(
        select(ProductImage).where(ProductImage.product_id == product_id).order_by(ProductImage.id)
    )
    return [to_image_out(row) for row in result.scalars().all()]


@router.post("", response_model=ImageOut, status_code=status.HTTP_201_CREATED)
async def upload_product_image(
    request: Request,
    product_id: int = Form(...),
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Uploads one more image for a product (multipart/form-data)."""
    await get_product_or_404(db, product_id)
    settings = request.app.state.settings
    filename = await storage.save_upload(file, settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)

    row = ProductImage(product_id=product_id, image=filename)
    db.add(row)
    try:
        await db.commit()
    except SQLAlchemyError:
        storage.delete_file(settings.UPLOAD_DIR, filename)
        raise

    logger.info(f"Added image {row.id} to product {product_id}")
    return to_image_out(row)


@router.put("/{image_id}", response_model=ImageOut)
async def replace_product_image(
    request: Request,
    image_id: int,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Replaces the stored file of an existing image; the old file is removed."""
    row = await get_image_or_404(db, image_id)
    settings = request.app.state.settings
    filename = await storage.save_upload(file, settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)

    previous = row.image
    row.image = filename
    try:
        await db.commit()
    except SQLAlchemyError:
        storage.delete_file(settings.UPLOAD_DIR, filename)
        raise

    storage.delete_file(settings.UPLOAD_DIR, previous)
    return to_image_out(row)


@router.delete("/{image_id}")
async def delete_product_image(
    request: Request,
    image_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    row = await get_image_or_404(db, image_id)
    filename = row.image
    await db.delete(row)
    await db.commit()

    storage.delete_file(request.app.state.settings.UPLOAD_DIR, filename)
    return {"message": "Image deleted successfully", "id": image_id}
