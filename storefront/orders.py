# orders.py
import logging
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from storefront.auth import require_writer
from storefront.db import get_db
from storefront.models import Order, OrderProduct, Product, User

# --- Configuration & Setup ---
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])

OrderStatus = Literal["processing", "shipped", "delivered", "cancelled"]


# --- Pydantic Schemas for Data Validation ---

class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(1, ge=1)

    class Config:
        extra = "forbid"

class OrderCreate(BaseModel):
    user_id: int
    status: OrderStatus = "processing"
    notes: Optional[str] = None
    items: List[OrderItemIn]

    class Config:
        extra = "forbid"

class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    notes: Optional[str] = None

    class Config:
        extra = "forbid"

    @field_validator("status")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

class OrderItemOut(BaseModel):
    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: float

    class Config:
        from_attributes = True

class OrderOut(BaseModel):
    id: int
    user_id: int
    status: str
    notes: Optional[str] = None
    total: float
    created_at: Optional[datetime] = None
    items: List[OrderItemOut]

    class Config:
        from_attributes = True


# --- Helpers ---

async def load_order(db: AsyncSession, order_id: int) -> Order:
    """Fetches an order with its line items eagerly loaded, or raises 404."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
        .execution_options(populate_existing=True)
    )
    order = result.scalars().first()
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


# --- API Endpoints ---

@router.get("", response_model=List[OrderOut])
async def list_orders(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Order).options(selectinload(Order.items)).order_by(Order.id))
    return result.scalars().all()


@router.get("/user/{user_id}", response_model=List[OrderOut])
async def list_user_orders(user_id: int, db: AsyncSession = Depends(get_db)):
    """Retrieves all orders placed by one user, newest first."""
    if not await db.get(User, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    result = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .options(selectinload(Order.items))  # Eager load items to avoid extra queries
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    return result.scalars().all()


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(order_id: int, db: AsyncSession = Depends(get_db)):
    return await load_order(db, order_id)


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """
    Creates an order and all of its line items in a single transaction.
    1. Validates the user and every product before anything is written.
    2. Merges repeated product ids by summing their quantities.
    3. Captures each product's current price on its line item.
    Any failure leaves the database untouched.
    """
    if not payload.items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="An order must contain at least one item.")
    if not await db.get(User, payload.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {payload.user_id} not found")

    quantities = {}
    for item in payload.items:
        quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

    result = await db.execute(select(Product).where(Product.id.in_(list(quantities))))
    products = {product.id: product for product in result.scalars().all()}
    missing = [product_id for product_id in quantities if product_id not in products]
    if missing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Products not found: {missing}")

    new_order = Order(
        user_id=payload.user_id,
        status=payload.status,
        notes=payload.notes,
        items=[
            OrderProduct(product_id=product_id, quantity=quantity, unit_price=products[product_id].price)
            for product_id, quantity in quantities.items()
        ],
    )
    db.add(new_order)
    await db.commit()

    logger.info(f"Created order {new_order.id} for user {new_order.user_id} with {len(new_order.items)} line(s)")
    return new_order


@router.put("/{order_id}", response_model=OrderOut)
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    order = await load_order(db, order_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(order, field, value)
    await db.commit()
    return order


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Deletes an order together with its line items."""
    order = await load_order(db, order_id)
    await db.delete(order)
    await db.commit()
    logger.info(f"Deleted order {order_id}")
    return {"message": "Order deleted successfully", "id": order_id}
