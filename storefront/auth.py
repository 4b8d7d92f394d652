# auth.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from storefront.db import get_db
from storefront.models import User
from storefront.settings import Settings

log = logging.getLogger(__name__)

# ===================================================================
# Pydantic Schemas (Data Validation)
# ===================================================================

class UserOut(BaseModel):
    """Schema for safely exposing user data. Never carries the password hash."""
    id: int
    name: Optional[str] = None
    email: EmailStr
    role: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class Token(BaseModel):
    """Schema for the authentication token response."""
    access_token: str
    token_type: str = "bearer"


# ===================================================================
# Configuration
# ===================================================================

router = APIRouter(prefix="/auth", tags=["Auth"])

# scrypt is the default scheme; bcrypt hashes are still verified.
pwd_context = CryptContext(schemes=["scrypt", "bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ===================================================================
# Utility Functions
# ===================================================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifies a plain password against a hashed one."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hashes a plain password."""
    return pwd_context.hash(password)

def create_access_token(settings: Settings, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def normalize_email(email: str) -> str:
    return email.strip().lower()

async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Fetches a user from the database by email, ignoring case."""
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalars().first()


# ===================================================================
# Current User Dependencies
# ===================================================================

async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Dependency to get the current authenticated user from a bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception

    settings: Settings = request.app.state.settings
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
        user_id = int(payload.get("sub"))
    except (JWTError, TypeError, ValueError):
        raise credentials_exception

    user = await db.get(User, user_id)
    if user is None:
        raise credentials_exception
    return user


async def require_writer(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[User]:
    """
    Guards mutating endpoints.

    With `PROTECT_WRITES` off (the default) every caller may write; with it on,
    the caller must present a valid bearer token (401) of an admin user (403).
    """
    if not request.app.state.settings.PROTECT_WRITES:
        return None
    user = await get_current_user(request, token, db)
    if user.role != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return user


async def ensure_admin(session_maker: async_sessionmaker, settings: Settings) -> None:
    """Creates the configured admin account if it does not exist yet."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        return
    async with session_maker() as db:
        if await get_user_by_email(db, settings.ADMIN_EMAIL):
            log.info(f"Admin {settings.ADMIN_EMAIL} already exists.")
            return
        db.add(User(
            name="Administrator",
            email=normalize_email(settings.ADMIN_EMAIL),
            hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
            role="admin",
        ))
        await db.commit()
        log.info(f"Created admin {settings.ADMIN_EMAIL}")


# ===================================================================
# API Endpoints
# ===================================================================

@router.post("/login", response_model=Token)
async def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    """
    Handles user login and returns a JWT access token.
    Uses OAuth2PasswordRequestForm, expecting form-data (`username` is the email).
    """
    user = await get_user_by_email(db, form_data.username)
    if not user or not user.hashed_password or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(request.app.state.settings, data={"sub": str(user.id)})
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
async def read_users_me(current_user: User = Depends(get_current_user)):
    """Fetches the profile of the currently authenticated user."""
    return current_user
