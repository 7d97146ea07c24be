"""
Pytest configuration and fixtures for PaperDesk tests
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.core.clock import FrozenClock
from src.core.enums import IncrementType, OrderStatus, UserRole
from src.database.crud import create_user
from src.database.models import (
    AcademicLevel,
    AcademicRate,
    AdditionalFeature,
    Base,
    Language,
    Order,
    Subject,
    User,
)


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async_session_maker = async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    """Clock pinned to 2025-01-01 00:00 UTC"""
    return FrozenClock()


# ===========================
# USERS
# ===========================


@pytest.fixture
async def client_user(db_session) -> User:
    return await create_user(db_session, "client@example.com", "Test Client")


@pytest.fixture
async def other_client(db_session) -> User:
    return await create_user(db_session, "other@example.com", "Other Client")


@pytest.fixture
async def writer(db_session) -> User:
    return await create_user(db_session, "writer@example.com", "Test Writer", UserRole.WRITER)


@pytest.fixture
async def admin(db_session) -> User:
    return await create_user(db_session, "admin@example.com", "Test Admin", UserRole.ADMIN)


# ===========================
# CATALOG
# ===========================


@dataclass
class Catalog:
    """Seeded catalog rows"""

    college: AcademicLevel
    phd: AcademicLevel
    rate_24h: AcademicRate
    rate_72h: AcademicRate
    technical: Subject
    writing: Subject
    flat_subject: Subject
    english: Language
    spanish: Language
    plagiarism_report: AdditionalFeature
    top_writer: AdditionalFeature
    retired_feature: AdditionalFeature


@pytest.fixture
async def catalog(db_session) -> Catalog:
    """
    Small rate catalog

    College: 24h -> $12.00/page, 72h -> $10.00/page
    Technical +20%, Writing +0%, Flat subject "fixed 15" (x1.15)
    English +0%, Spanish +10%
    Plagiarism Report $9.99 flat, Top Writer +25%, one inactive feature
    """
    college = AcademicLevel(level="College", sort_order=1)
    phd = AcademicLevel(level="Ph.D", sort_order=2)
    db_session.add_all([college, phd])
    await db_session.flush()

    rate_24h = AcademicRate(
        academic_level_id=college.id, hours=24, label="24 hours", cost=Decimal("12.00")
    )
    rate_72h = AcademicRate(
        academic_level_id=college.id, hours=72, label="3 days", cost=Decimal("10.00")
    )

    technical = Subject(label="Technical", inc_type=IncrementType.PERCENT.value, amount=Decimal("20"))
    writing = Subject(label="Writing", inc_type=IncrementType.PERCENT.value, amount=Decimal("0"))
    flat_subject = Subject(label="Flat subject", inc_type=IncrementType.FIXED.value, amount=Decimal("15"))

    english = Language(label="English", inc_type=IncrementType.PERCENT.value, amount=Decimal("0"))
    spanish = Language(label="Spanish", inc_type=IncrementType.PERCENT.value, amount=Decimal("10"))

    plagiarism_report = AdditionalFeature(
        name="Plagiarism Report",
        inc_type=IncrementType.FIXED.value,
        amount=Decimal("9.99"),
        sort_order=1,
    )
    top_writer = AdditionalFeature(
        name="Top Writer",
        inc_type=IncrementType.PERCENT.value,
        amount=Decimal("25"),
        sort_order=0,
    )
    retired_feature = AdditionalFeature(
        name="Retired",
        inc_type=IncrementType.FIXED.value,
        amount=Decimal("5"),
        sort_order=2,
        is_active=False,
    )

    db_session.add_all(
        [
            rate_24h,
            rate_72h,
            technical,
            writing,
            flat_subject,
            english,
            spanish,
            plagiarism_report,
            top_writer,
            retired_feature,
        ]
    )
    await db_session.commit()

    return Catalog(
        college=college,
        phd=phd,
        rate_24h=rate_24h,
        rate_72h=rate_72h,
        technical=technical,
        writing=writing,
        flat_subject=flat_subject,
        english=english,
        spanish=spanish,
        plagiarism_report=plagiarism_report,
        top_writer=top_writer,
        retired_feature=retired_feature,
    )


@pytest.fixture
def order_data(catalog):
    """Factory for create_order payloads: College, Technical, English, 24h, 5 pages ($72.00)"""

    def build(**overrides) -> dict:
        data = {
            "title": "Thermodynamics essay",
            "academic_level_id": catalog.college.id,
            "service_type_id": catalog.technical.id,
            "language_id": catalog.english.id,
            "deadline_hours": 24,
            "pages": 5,
        }
        data.update(overrides)
        return data

    return build


@pytest.fixture
def make_order(db_session, client_user, catalog):
    """Factory inserting an order with an explicit price and status"""

    async def build(
        price: Decimal = Decimal("72.00"),
        status: OrderStatus = OrderStatus.PLACED,
        client: User = None,
    ) -> Order:
        order = Order(
            client_id=(client or client_user).id,
            title="Fixture order",
            academic_level_id=catalog.college.id,
            service_type_id=catalog.technical.id,
            language_id=catalog.english.id,
            deadline_hours=24,
            pages=5,
            words=1250,
            additional_features=[],
            price=price,
            status=status.value,
        )
        db_session.add(order)
        await db_session.commit()
        return order

    return build
