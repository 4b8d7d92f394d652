# order_products.py
"""Line items: the association between an order and the products it contains."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import Order, OrderProduct
from storefront.orders import OrderItemOut
from storefront.products import get_product_or_404

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/order-product", tags=["Order products"])


class OrderProductCreate(BaseModel):
    order_id: int
    product_id: int
    quantity: int = Field(1, ge=1)

    class Config:
        extra = "forbid"

class OrderProductUpdate(BaseModel):
    quantity: int = Field(..., ge=1)

    class Config:
        extra = "forbid"


async def get_line_or_404(db: AsyncSession, line_id: int) -> OrderProduct:
    line = await db.get(OrderProduct, line_id)
    if not line:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order line not found")
    return line


@router.get("", response_model=List[OrderItemOut])
async def list_order_products(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(OrderProduct).order_by(OrderProduct.id))
    return result.scalars().all()


@router.get("/{order_id}", response_model=List[OrderItemOut])
async def get_order_products(order_id: int, db: AsyncSession = Depends(get_db)):
    """Lists the line items of one order."""
    if not await db.get(Order, order_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    result = await db.execute(
        select(OrderProduct).where(OrderProduct.order_id == order_id).order_by(OrderProduct.id)
    )
    return result.scalars().all()


@router.post("", response_model=OrderItemOut, status_code=status.HTTP_201_CREATED)
async def add_order_product(
    payload: OrderProductCreate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    if not await db.get(Order, payload.order_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    product = await get_product_or_404(db, payload.product_id)

    existing = await db.execute(
        select(OrderProduct.id).where(
            OrderProduct.order_id == payload.order_id, OrderProduct.product_id == payload.product_id
        )
    )
    if existing.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This product is already on the order; update its quantity instead.",
        )

    line = OrderProduct(
        order_id=payload.order_id,
        product_id=product.id,
        quantity=payload.quantity,
        unit_price=product.price,
    )
    db.add(line)
    await db.commit()
    logger.info(f"Added product {product.id} x{line.quantity} to order {line.order_id}")
    return line


@router.put("/{line_id}", response_model=OrderItemOut)
async def update_order_product(
    line_id: int,
    payload: OrderProductUpdate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    line = await get_line_or_404(db, line_id)
    line.quantity = payload.quantity
    await db.commit()
    return line


@router.delete("/{line_id}")
async def delete_order_product(
    line_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Removes one line. An order keeps at least one line; delete the order instead (409)."""
    line = await get_line_or_404(db, line_id)
    remaining = await db.scalar(
        select(func.count(OrderProduct.id)).where(OrderProduct.order_id == line.order_id)
    )
    if remaining <= 1:
        logger.info(f"Refused to delete line {line_id}: it is the last line of order {line.order_id}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An order must keep at least one line; delete the order instead.",
        )
    await db.delete(line)
    await db.commit()
    return {"message": "Order line deleted successfully", "id": line_id}
