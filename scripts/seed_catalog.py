"""
Seed the rate catalog

Creates academic levels with their deadline rates, service types,
languages and add-on features. Safe to run multiple times - existing
rows (matched by name) are left alone.

Usage:
    python scripts/seed_catalog.py
"""
import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from loguru import logger

from config.logging import setup_logging
from src.core.enums import IncrementType
from src.database.engine import dispose_engine, get_session_maker
from src.database.models import AcademicLevel, AdditionalFeature, Language, Subject
from src.services.rate_catalog import RateCatalog


# Base price per page by deadline (hours)
LEVEL_RATES = {
    "High School": {336: "8.00", 168: "9.00", 72: "10.00", 48: "11.00", 24: "12.00", 12: "14.00"},
    "Undergraduate": {336: "10.00", 168: "11.00", 72: "12.00", 48: "13.00", 24: "15.00", 12: "18.00"},
    "Masters": {336: "12.00", 168: "13.00", 72: "15.00", 48: "17.00", 24: "19.00", 12: "22.00"},
    "Ph.D": {336: "15.00", 168: "16.00", 72: "18.00", 48: "20.00", 24: "23.00", 12: "27.00"},
}

SUBJECTS = [
    ("Writing from scratch", IncrementType.PERCENT, "0"),
    ("Editing / Proofreading", IncrementType.PERCENT, "0"),
    ("Technical subjects", IncrementType.PERCENT, "20"),
    ("Programming", IncrementType.PERCENT, "30"),
]

LANGUAGES = [
    ("English (US)", IncrementType.PERCENT, "0"),
    ("English (UK)", IncrementType.PERCENT, "0"),
    ("Spanish", IncrementType.PERCENT, "10"),
]

FEATURES = [
    ("Plagiarism Report", IncrementType.FIXED, "9.99", "Originality report delivered with the paper"),
    ("Top Writer", IncrementType.PERCENT, "25", "Order handled by a top-rated writer"),
    ("Abstract Page", IncrementType.FIXED, "14.99", None),
    ("Priority Support", IncrementType.PERCENT, "10", None),
]


async def seed_levels(session) -> None:
    for sort_order, (name, rates) in enumerate(LEVEL_RATES.items()):
        level = (
            await session.execute(select(AcademicLevel).where(AcademicLevel.level == name))
        ).scalar_one_or_none()

        if level is None:
            level = AcademicLevel(level=name, sort_order=sort_order, is_active=True)
            session.add(level)
            await session.commit()
            logger.info(f"Created academic level: {name}")

        for hours, cost in rates.items():
            if await RateCatalog.get_base_rate(session, level.id, hours) is None:
                await RateCatalog.create_rate(session, level.id, hours, Decimal(cost))


async def seed_modifiers(session) -> None:
    for model, rows in ((Subject, SUBJECTS), (Language, LANGUAGES)):
        for label, inc_type, amount in rows:
            exists = (
                await session.execute(select(model).where(model.label == label))
            ).scalar_one_or_none()
            if exists is None:
                session.add(model(label=label, inc_type=inc_type.value, amount=Decimal(amount)))
                logger.info(f"Created {model.__tablename__[:-1]}: {label}")

    for sort_order, (name, inc_type, amount, description) in enumerate(FEATURES):
        exists = (
            await session.execute(select(AdditionalFeature).where(AdditionalFeature.name == name))
        ).scalar_one_or_none()
        if exists is None:
            session.add(
                AdditionalFeature(
                    name=name,
                    description=description,
                    inc_type=inc_type.value,
                    amount=Decimal(amount),
                    sort_order=sort_order,
                )
            )
            logger.info(f"Created feature: {name}")

    await session.commit()


async def main():
    setup_logging()
    logger.info("Seeding rate catalog...")

    session_maker = get_session_maker()
    async with session_maker() as session:
        await seed_levels(session)
        await seed_modifiers(session)

    await dispose_engine()
    logger.info("Rate catalog seeded")


if __name__ == "__main__":
    asyncio.run(main())
