import os
import tempfile
from decimal import Decimal

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="jewelry-uploads-")
os.environ["JWT_SECRET_KEY"] = "test-secret"
os.environ["MOMO_PARTNER_CODE"] = ""
os.environ["VIETQR_CLIENT_ID"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import jewelry_shop.models  # noqa: F401
from jewelry_shop.core.database import Base, get_db
from jewelry_shop.core.security import create_access_token
from jewelry_shop.main import app
from jewelry_shop.models.customer import Role
from jewelry_shop.modules.auth.service import AuthService
from jewelry_shop.modules.catalog.service import CatalogService


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ==================== Data ====================


async def make_customer(session_maker, email, role=Role.CUSTOMER, password="secret123"):
    async with session_maker() as session:
        customer = await AuthService(session).create_customer(
            first_name="Lan",
            last_name="Nguyen",
            email=email,
            password=password,
            role=role,
        )
        await session.commit()
    return customer


async def make_product(session_maker, sku, price="100.00", stock=10, **extra):
    data = {
        "name": f"Ring {sku}",
        "description": "Gold ring",
        "base_price": Decimal(price),
        "sku": sku,
        "stock_quantity": stock,
        "is_featured": False,
        **extra,
    }
    async with session_maker() as session:
        product = await CatalogService(session).create_product(data)
        await session.commit()
    return product


def auth_headers(customer) -> dict[str, str]:
    token = create_access_token(customer.id, customer.email, customer.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def customer(session_maker):
    return await make_customer(session_maker, "lan@example.com")


@pytest.fixture
async def other_customer(session_maker):
    return await make_customer(session_maker, "minh@example.com")


@pytest.fixture
async def admin(session_maker):
    return await make_customer(session_maker, "admin@example.com", role=Role.ADMIN)


@pytest.fixture
def customer_headers(customer):
    return auth_headers(customer)


@pytest.fixture
def other_headers(other_customer):
    return auth_headers(other_customer)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
async def ring(session_maker):
    return await make_product(session_maker, "RING-1", price="10.00", stock=5)


@pytest.fixture
async def necklace(session_maker):
    return await make_product(session_maker, "NECK-1", price="100.00", stock=2)


@pytest.fixture
def order_details():
    return {
        "full_name": "Lan Nguyen",
        "email": "lan@example.com",
        "phone": "0901234567",
        "address": "12 Hang Bac",
        "city": "Ha Noi",
        "postal_code": "100000",
        "notes": None,
    }
