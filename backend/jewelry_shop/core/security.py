"""
Password hashing, JWT issuance and request authentication.

Roles are normalized into a single ``roles`` list claim when the token
is issued, so every guard checks the same representation.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from jewelry_shop.core.config import settings
from jewelry_shop.core.exceptions import UnauthorizedError

ADMIN_ROLE = "admin"
CUSTOMER_ROLE = "customer"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class TokenUser:
    """Authenticated principal recovered from a bearer token."""

    id: int
    email: str
    roles: list[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return ADMIN_ROLE in self.roles


# ==================== Passwords ====================


def hash_password(password: str) -> str:
    """Hash password with bcrypt (10 rounds)."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    """Check password against stored bcrypt hash."""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        return False


# ==================== Tokens ====================


def normalize_roles(role: str | list[str] | None) -> list[str]:
    """Turn a role string or list into a sorted, de-duplicated list."""
    if role is None:
        return [CUSTOMER_ROLE]
    if isinstance(role, str):
        role = [role]
    roles = sorted({r.strip().lower() for r in role if r and r.strip()})
    return roles or [CUSTOMER_ROLE]


def create_access_token(
    customer_id: int,
    email: str,
    role: str | list[str] | None,
    expires_minutes: int | None = None,
) -> str:
    """Issue a signed access token."""
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes or settings.jwt_access_token_expire_minutes
    )
    payload: dict[str, Any] = {
        "sub": str(customer_id),
        "email": email,
        "roles": normalize_roles(role),
        "exp": expire,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenUser:
    """
    Decode and validate an access token.

    Raises:
        UnauthorizedError: If the token is expired, malformed or incomplete
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Token has expired") from e
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected token: {e}")
        raise UnauthorizedError("Invalid token") from e

    try:
        customer_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise UnauthorizedError("Invalid token") from e

    return TokenUser(
        id=customer_id,
        email=payload.get("email", ""),
        roles=normalize_roles(payload.get("roles")),
    )


# ==================== Dependencies ====================


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenUser:
    """Require a valid bearer token."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    return decode_access_token(credentials.credentials)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> TokenUser | None:
    """Return the caller if a valid token was sent, otherwise None."""
    if credentials is None:
        return None
    return decode_access_token(credentials.credentials)


async def require_admin(
    user: TokenUser = Depends(get_current_user),
) -> TokenUser:
    """Require an authenticated admin."""
    if not user.is_admin:
        raise UnauthorizedError("You do not have admin privileges")
    return user
