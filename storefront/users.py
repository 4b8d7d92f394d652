# users.py
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from storefront.auth import (
    UserOut, get_password_hash, get_user_by_email, normalize_email, oauth2_scheme, require_writer
)
from storefront.db import get_db
from storefront.models import Order, User

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["Users"])


# ===================================================================
# Pydantic Schemas
# ===================================================================

class UserCreate(BaseModel):
    """Schema for user registration request."""
    name: Optional[str] = Field(None, max_length=255, examples=["Jane Doe"])
    email: EmailStr = Field(..., examples=["jane.doe@example.com"])
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Literal["user", "admin"] = "user"

    class Config:
        extra = "forbid"

class UserUpdate(BaseModel):
    """
    Partial update of a user. The email is the lookup key and cannot change,
    so it is not accepted here.
    """
    name: Optional[str] = Field(None, max_length=255, examples=["Jane Smith"])
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[Literal["user", "admin"]] = None

    class Config:
        extra = "forbid"

    @field_validator("password", "role")
    @classmethod
    def reject_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ===================================================================
# API Endpoints
# ===================================================================

@router.get("", response_model=List[UserOut], summary="Retrieve all users")
async def list_users(db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(User).order_by(User.id))
    return result.scalars().all()


@router.get("/email/{email}", response_model=UserOut, summary="Retrieve a user by email")
async def get_user_by_email_address(email: str, db: AsyncSession = Depends(get_db)):
    user = await get_user_by_email(db, email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/{user_id}", response_model=UserOut, summary="Retrieve a user by ID")
async def get_user(user_id: int, db: AsyncSession = Depends(get_db)):
    return await get_user_or_404(db, user_id)


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED, summary="Create a new user")
async def create_user(
    request: Request,
    payload: UserCreate,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
):
    """
    Registers a user. Registration stays open even when writes are protected,
    but only an admin may then create another admin.
    - Rejects an email that is already registered (409).
    - Hashes the password, when one is given, before it is stored.
    """
    if payload.role != "user":
        await require_writer(request, token, db)

    email = normalize_email(payload.email)
    if await get_user_by_email(db, email):
        logger.info(f"Rejected duplicate registration for {email}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="An account with this email already exists.",
        )

    user = User(
        name=payload.name,
        email=email,
        hashed_password=get_password_hash(payload.password) if payload.password else None,
        role=payload.role,
    )
    db.add(user)
    await db.commit()
    logger.info(f"Created user {user.id}")
    return user


@router.put("/{user_id}", response_model=UserOut, summary="Update a user")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    user = await get_user_or_404(db, user_id)
    updates = payload.model_dump(exclude_unset=True)

    if "password" in updates:
        user.hashed_password = get_password_hash(updates.pop("password"))
    for field, value in updates.items():
        setattr(user, field, value)

    await db.commit()
    return user


@router.delete("/{user_id}", summary="Delete a user")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _writer=Depends(require_writer),
):
    """Deletes a user along with their orders and wishlist."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(
            selectinload(User.orders).selectinload(Order.items),
            selectinload(User.wishlist_items),
        )
    )
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    await db.delete(user)
    await db.commit()
    logger.info(f"Deleted user {user_id}")
    return {"message": "User deleted successfully", "id": user_id}
