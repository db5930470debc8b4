"""
Auth Module - Customer accounts.

Features:
- Registration with bcrypt password hashing
- Login with JWT access tokens
- Profile lookup
"""

from jewelry_shop.modules.auth.service import AuthService

__all__ = [
    "AuthService",
]
