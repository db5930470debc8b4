"""
Auth API Endpoints.

Registration, login and the caller's profile.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.core.database import get_db
from jewelry_shop.core.security import TokenUser, get_current_user
from jewelry_shop.modules.auth.service import AuthService, serialize_customer

router = APIRouter()


# ==================== Schemas ====================


class LoginRequest(BaseModel):
    """Login credentials."""

    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(BaseModel):
    """New customer account."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: str | None = None


# ==================== Endpoints ====================


@router.post("/login")
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Exchange email and password for an access token."""
    auth = AuthService(db)
    return await auth.login(request.email, request.password)


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Create a customer account and return an access token."""
    auth = AuthService(db)
    return await auth.register(
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
        phone=request.phone,
    )


@router.get("/profile")
async def profile(
    user: TokenUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """Get the authenticated customer."""
    auth = AuthService(db)
    customer = await auth.get_profile(user.id)
    return serialize_customer(customer)
