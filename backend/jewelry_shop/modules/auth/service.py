"""
Auth Service - Customer accounts and token issuance.
"""

from datetime import datetime
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jewelry_shop.core.exceptions import BadRequestError, NotFoundError, UnauthorizedError
from jewelry_shop.core.security import create_access_token, hash_password, verify_password
from jewelry_shop.models.customer import Customer, Role


class AuthService:
    """
    Service for registering, authenticating and loading customers.

    Usage:
        auth = AuthService(db_session)
        result = await auth.login("jane@example.com", "secret")
    """

    def __init__(self, db: AsyncSession) -> None:
        """Initialize auth service with database session."""
        self.db = db

    async def get_customer(self, customer_id: int) -> Customer | None:
        """Get active customer by ID."""
        query = select(Customer).where(
            Customer.id == customer_id,
            Customer.deleted_at.is_(None),
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_customer_by_email(self, email: str) -> Customer | None:
        """Get active customer by email (case-insensitive)."""
        query = select(Customer).where(
            func.lower(Customer.email) == email.strip().lower(),
            Customer.deleted_at.is_(None),
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def create_customer(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        phone: str | None = None,
        role: Role = Role.CUSTOMER,
    ) -> Customer:
        """
        Create a customer account.

        Raises:
            BadRequestError: If the email is already registered
        """
        if await self.get_customer_by_email(email):
            raise BadRequestError("Email already in use")

        customer = Customer(
            first_name=first_name,
            last_name=last_name,
            email=email.strip().lower(),
            password_hash=hash_password(password),
            phone=phone,
            role=role.value,
        )
        self.db.add(customer)
        await self.db.flush()
        logger.info(f"Registered {role.value} account {customer.email}")
        return customer

    async def authenticate(self, email: str, password: str) -> Customer:
        """
        Check credentials and record the login time.

        Raises:
            UnauthorizedError: On unknown email or wrong password
        """
        customer = await self.get_customer_by_email(email)
        if not customer or not verify_password(password, customer.password_hash):
            raise UnauthorizedError("Invalid credentials")

        customer.last_login = datetime.utcnow()
        await self.db.flush()
        return customer

    async def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        phone: str | None = None,
    ) -> dict[str, Any]:
        """Create a customer account and log it in."""
        customer = await self.create_customer(
            first_name=first_name,
            last_name=last_name,
            email=email,
            password=password,
            phone=phone,
        )
        return self.issue_token(customer)

    async def login(self, email: str, password: str) -> dict[str, Any]:
        """Authenticate and issue an access token."""
        customer = await self.authenticate(email, password)
        return self.issue_token(customer)

    async def get_profile(self, customer_id: int) -> Customer:
        """Get the caller's own account."""
        customer = await self.get_customer(customer_id)
        if not customer:
            raise NotFoundError(f"Customer with ID {customer_id} not found")
        return customer

    def issue_token(self, customer: Customer) -> dict[str, Any]:
        """Build the login response for a customer."""
        return {
            "access_token": create_access_token(
                customer_id=customer.id,
                email=customer.email,
                role=customer.role,
            ),
            "token_type": "bearer",
            "user": serialize_customer(customer),
        }


def serialize_customer(customer: Customer) -> dict[str, Any]:
    """Public view of a customer account."""
    return {
        "id": customer.id,
        "email": customer.email,
        "first_name": customer.first_name,
        "last_name": customer.last_name,
        "phone": customer.phone,
        "role": customer.role,
    }
