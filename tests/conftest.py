from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from libs.auth.models import Role
from libs.common.config import get_settings
from libs.db.base import Base
from services.marketplace_service import models as _marketplace_models  # noqa: F401
from services.marketplace_service.schemas import ShippingAddress
from tests.factories import (
    BuyerFactory,
    ProductFactory,
    ProductVariantFactory,
    SellerFactory,
)
from tests.fakes import ADMIN_ID, FakeNotifier, FakeStripe, auth_headers

settings = get_settings()


@pytest_asyncio.fixture
async def test_engine():
    """
    A fresh database per test.

    In-memory SQLite shares one connection through StaticPool so every session
    sees the same schema; TEST_DATABASE_URL can point the suite at Postgres.
    """
    db_url = settings.DATABASE_URL
    if db_url.startswith("sqlite"):
        engine = create_async_engine(
            db_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(db_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a database session. Services commit for real; the engine fixture
    drops everything afterwards.
    """
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def stripe() -> FakeStripe:
    return FakeStripe()


@pytest_asyncio.fixture
async def catalog(db_session):
    """
    Two sellers and two buyers.

    seller (S1): shirt variant A (price 10, stock 10), shirt on sale (price 20,
    discounted 15, stock 4), cap (price 5, stock 3).
    other_seller (S2): mug (price 7, stock 5).
    """
    buyer = BuyerFactory.create(name="Chioma")
    other_buyer = BuyerFactory.create(name="Tunde")
    seller = SellerFactory.create(name="Ada")
    other_seller = SellerFactory.create(name="Bode")
    db_session.add_all([buyer, other_buyer, seller, other_seller])
    await db_session.flush()

    shirt = ProductFactory.create(seller_id=seller.id, name="Shirt", count_in_stock=14)
    cap = ProductFactory.create(seller_id=seller.id, name="Cap", count_in_stock=3)
    mug = ProductFactory.create(seller_id=other_seller.id, name="Mug", count_in_stock=5)
    db_session.add_all([shirt, cap, mug])
    await db_session.flush()

    shirt_a = ProductVariantFactory.create(
        product_id=shirt.id, size="M", color="Black", price=Decimal("10.00"), stock=10
    )
    shirt_sale = ProductVariantFactory.create(
        product_id=shirt.id,
        size="L",
        color="White",
        price=Decimal("20.00"),
        discounted_price=Decimal("15.00"),
        stock=4,
    )
    cap_v = ProductVariantFactory.create(
        product_id=cap.id, size=None, color="Red", price=Decimal("5.00"), stock=3
    )
    mug_v = ProductVariantFactory.create(
        product_id=mug.id, size=None, color="Blue", price=Decimal("7.00"), stock=5
    )
    db_session.add_all([shirt_a, shirt_sale, cap_v, mug_v])
    await db_session.commit()

    return SimpleNamespace(
        buyer=buyer,
        other_buyer=other_buyer,
        seller=seller,
        other_seller=other_seller,
        shirt=shirt,
        cap=cap,
        mug=mug,
        shirt_a=shirt_a,
        shirt_sale=shirt_sale,
        cap_v=cap_v,
        mug_v=mug_v,
    )


@pytest.fixture
def address() -> ShippingAddress:
    return ShippingAddress(
        street="12 Marina Road",
        city="Lagos",
        state="Lagos",
        country="Nigeria",
        postal_code="101001",
    )


@pytest_asyncio.fixture
async def client(db_session, notifier, stripe) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient with the app and overridden DB, notifier and payment
    provider dependencies. Auth goes through real signed tokens.
    """
    from libs.db.session import get_async_db
    from services.marketplace_service.app.main import app
    from services.marketplace_service.dependencies import (
        get_notifier,
        get_payment_provider,
    )

    app.dependency_overrides[get_async_db] = lambda: db_session
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_payment_provider] = lambda: stripe

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return auth_headers(ADMIN_ID, Role.ADMIN)
