"""
Rate Catalog

Single place where "active" filtering of pricing inputs is enforced:
academic levels and their per-deadline rates, service types (subjects),
languages, additional features and legacy pricing presets.

Administrative mutations (rates, bulk adjust, presets) keep the soft-delete
rule: a rate is never hard-deleted and at most one non-deleted rate exists
per (level, hours).
"""

from decimal import Decimal
from typing import Dict, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import to_money
from src.core.enums import IncrementType
from src.core.errors import FieldError, InvalidInputError, NotFoundError
from src.database.models import (
    AcademicLevel,
    AcademicRate,
    AdditionalFeature,
    Language,
    PricingPreset,
    Subject,
)

MATRIX_SAMPLE_PAGES = (1, 5, 10)


class RateCatalog:
    """Lookup and admin operations over the pricing tables"""

    # ===========================
    # READ ACCESSORS
    # ===========================

    @staticmethod
    async def get_active_academic_levels(session: AsyncSession) -> List[AcademicLevel]:
        stmt = (
            select(AcademicLevel)
            .where(AcademicLevel.is_active.is_(True))
            .order_by(AcademicLevel.sort_order, AcademicLevel.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_academic_level(session: AsyncSession, level_id: int) -> Optional[AcademicLevel]:
        return await session.get(AcademicLevel, level_id)

    @staticmethod
    async def get_active_rates(
        session: AsyncSession, level_id: Optional[int] = None
    ) -> List[AcademicRate]:
        """
        Non-deleted rates, optionally for one level

        Args:
            session: Database session
            level_id: Restrict to this academic level

        Returns:
            Rates ordered by level then deadline hours
        """
        stmt = select(AcademicRate).where(AcademicRate.deleted.is_(False))
        if level_id is not None:
            stmt = stmt.where(AcademicRate.academic_level_id == level_id)
        stmt = stmt.order_by(AcademicRate.academic_level_id, AcademicRate.hours)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_base_rate(
        session: AsyncSession, level_id: int, hours: int
    ) -> Optional[AcademicRate]:
        """Non-deleted rate for (level, hours), None if absent"""
        stmt = select(AcademicRate).where(
            AcademicRate.academic_level_id == level_id,
            AcademicRate.hours == hours,
            AcademicRate.deleted.is_(False),
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_active_subjects(session: AsyncSession) -> List[Subject]:
        stmt = select(Subject).where(Subject.is_active.is_(True)).order_by(Subject.label)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_subject(session: AsyncSession, subject_id: int) -> Optional[Subject]:
        # Deactivated rows still resolve so existing orders keep their modifier
        return await session.get(Subject, subject_id)

    @staticmethod
    async def get_active_languages(session: AsyncSession) -> List[Language]:
        stmt = select(Language).where(Language.is_active.is_(True)).order_by(Language.label)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_language(session: AsyncSession, language_id: int) -> Optional[Language]:
        return await session.get(Language, language_id)

    @staticmethod
    async def get_active_features(session: AsyncSession) -> List[AdditionalFeature]:
        stmt = (
            select(AdditionalFeature)
            .where(AdditionalFeature.is_active.is_(True))
            .order_by(AdditionalFeature.sort_order, AdditionalFeature.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_feature(session: AsyncSession, feature_id: int) -> Optional[AdditionalFeature]:
        return await session.get(AdditionalFeature, feature_id)

    @staticmethod
    async def get_active_presets(session: AsyncSession) -> List[PricingPreset]:
        stmt = (
            select(PricingPreset)
            .where(PricingPreset.is_active.is_(True))
            .order_by(PricingPreset.academic_level, PricingPreset.service_type, PricingPreset.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def find_active_preset(
        session: AsyncSession,
        academic_level: str,
        service_type: str,
        deadline_type: str,
    ) -> Optional[PricingPreset]:
        stmt = select(PricingPreset).where(
            PricingPreset.academic_level == academic_level,
            PricingPreset.service_type == service_type,
            PricingPreset.deadline_type == deadline_type,
            PricingPreset.is_active.is_(True),
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    # ===========================
    # RATE ADMINISTRATION
    # ===========================

    @staticmethod
    async def create_rate(
        session: AsyncSession,
        academic_level_id: int,
        hours: int,
        cost: Decimal,
        label: Optional[str] = None,
    ) -> AcademicRate:
        """
        Create a rate for (level, hours)

        Args:
            session: Database session
            academic_level_id: Academic level ID
            hours: Deadline in hours (> 0)
            cost: Base price per page (>= 0)
            label: Display label, defaults to "<hours> hours"

        Returns:
            Created AcademicRate

        Raises:
            InvalidInputError: bad values or a non-deleted duplicate exists
            NotFoundError: unknown academic level
        """
        _validate_rate_values(hours, cost)

        if await session.get(AcademicLevel, academic_level_id) is None:
            raise NotFoundError("AcademicLevel", academic_level_id)

        if await RateCatalog.get_base_rate(session, academic_level_id, hours) is not None:
            raise InvalidInputError.single(
                "hours", f"A rate for {hours} hours already exists for this level"
            )

        rate = AcademicRate(
            academic_level_id=academic_level_id,
            hours=hours,
            cost=to_money(cost),
            label=label or f"{hours} hours",
            deleted=False,
        )
        session.add(rate)
        await session.commit()
        await session.refresh(rate)

        logger.info(f"Rate created: level={academic_level_id} hours={hours} cost=${rate.cost}")
        return rate

    @staticmethod
    async def _require_rate(session: AsyncSession, rate_id: int) -> AcademicRate:
        rate = await session.get(AcademicRate, rate_id)
        if rate is None or rate.deleted:
            raise NotFoundError("AcademicRate", rate_id)
        return rate

    @staticmethod
    async def update_rate(
        session: AsyncSession,
        rate_id: int,
        cost: Optional[Decimal] = None,
        hours: Optional[int] = None,
        label: Optional[str] = None,
    ) -> AcademicRate:
        rate = await RateCatalog._require_rate(session, rate_id)

        new_hours = rate.hours if hours is None else hours
        new_cost = rate.cost if cost is None else cost
        _validate_rate_values(new_hours, new_cost)

        if new_hours != rate.hours:
            existing = await RateCatalog.get_base_rate(session, rate.academic_level_id, new_hours)
            if existing is not None and existing.id != rate.id:
                raise InvalidInputError.single(
                    "hours", f"A rate for {new_hours} hours already exists for this level"
                )

        rate.hours = new_hours
        rate.cost = to_money(new_cost)
        if label is not None:
            rate.label = label

        await session.commit()
        logger.info(f"Rate {rate_id} updated: hours={rate.hours} cost=${rate.cost}")
        return rate

    @staticmethod
    async def soft_delete_rate(session: AsyncSession, rate_id: int) -> AcademicRate:
        """Flag a rate as deleted; existing orders keep their stored price"""
        rate = await RateCatalog._require_rate(session, rate_id)
        rate.deleted = True
        await session.commit()

        logger.info(f"Rate {rate_id} soft-deleted (level={rate.academic_level_id}, hours={rate.hours})")
        return rate

    @staticmethod
    async def bulk_adjust_rates(
        session: AsyncSession,
        mode: IncrementType,
        value: Decimal,
    ) -> int:
        """
        Adjust every non-deleted rate by a percentage or a flat amount

        Costs never go below zero.

        Args:
            session: Database session
            mode: percent or fixed
            value: Percentage points or money, may be negative

        Returns:
            Number of rates updated
        """
        mode = IncrementType(mode)
        value = Decimal(value)
        rates = await RateCatalog.get_active_rates(session)

        for rate in rates:
            if mode == IncrementType.PERCENT:
                new_cost = rate.cost * (Decimal(1) + value / Decimal(100))
            else:
                new_cost = rate.cost + value
            rate.cost = to_money(max(new_cost, Decimal(0)))

        await session.commit()
        logger.info(f"Bulk adjusted {len(rates)} rates ({mode.value} {value})")
        return len(rates)

    # ===========================
    # PRESET ADMINISTRATION
    # ===========================

    @staticmethod
    async def create_preset(
        session: AsyncSession,
        name: str,
        academic_level: str,
        service_type: str,
        deadline_type: str,
        base_price_per_page: Decimal,
        multiplier: Decimal = Decimal("1.00"),
    ) -> PricingPreset:
        errors = _preset_value_errors(base_price_per_page, multiplier)
        if errors:
            raise InvalidInputError(errors)

        existing = await RateCatalog.find_active_preset(
            session, academic_level, service_type, deadline_type
        )
        if existing is not None:
            raise InvalidInputError.single(
                "deadline_type",
                f"An active preset already exists for {academic_level}/{service_type}/{deadline_type}",
            )

        preset = PricingPreset(
            name=name,
            academic_level=academic_level,
            service_type=service_type,
            deadline_type=deadline_type,
            base_price_per_page=to_money(base_price_per_page),
            multiplier=Decimal(multiplier),
            is_active=True,
        )
        session.add(preset)
        await session.commit()
        await session.refresh(preset)

        logger.info(f"Preset created: {preset}")
        return preset

    @staticmethod
    async def update_preset(
        session: AsyncSession,
        preset_id: int,
        name: Optional[str] = None,
        base_price_per_page: Optional[Decimal] = None,
        multiplier: Optional[Decimal] = None,
    ) -> PricingPreset:
        preset = await session.get(PricingPreset, preset_id)
        if preset is None:
            raise NotFoundError("PricingPreset", preset_id)

        errors = _preset_value_errors(
            preset.base_price_per_page if base_price_per_page is None else base_price_per_page,
            preset.multiplier if multiplier is None else multiplier,
        )
        if errors:
            raise InvalidInputError(errors)

        if name is not None:
            preset.name = name
        if base_price_per_page is not None:
            preset.base_price_per_page = to_money(base_price_per_page)
        if multiplier is not None:
            preset.multiplier = Decimal(multiplier)

        await session.commit()
        logger.info(f"Preset {preset_id} updated")
        return preset

    @staticmethod
    async def deactivate_preset(session: AsyncSession, preset_id: int) -> PricingPreset:
        preset = await session.get(PricingPreset, preset_id)
        if preset is None:
            raise NotFoundError("PricingPreset", preset_id)

        preset.is_active = False
        await session.commit()
        logger.info(f"Preset {preset_id} deactivated")
        return preset

    @staticmethod
    async def get_pricing_matrix(session: AsyncSession) -> Dict[str, Dict[str, Dict[str, dict]]]:
        """
        Active presets as level -> service type -> deadline type

        Each cell carries the preset values and sample totals for 1, 5
        and 10 pages.
        """
        matrix: Dict[str, Dict[str, Dict[str, dict]]] = {}

        for preset in await RateCatalog.get_active_presets(session):
            cell = {
                "id": preset.id,
                "name": preset.name,
                "base_price_per_page": to_money(preset.base_price_per_page),
                "multiplier": preset.multiplier,
            }
            for pages in MATRIX_SAMPLE_PAGES:
                key = "total_price_1_page" if pages == 1 else f"total_price_{pages}_pages"
                cell[key] = to_money(preset.total_price(pages))

            matrix.setdefault(preset.academic_level, {}).setdefault(preset.service_type, {})[
                preset.deadline_type
            ] = cell

        return matrix


def _validate_rate_values(hours: int, cost: Decimal) -> None:
    errors = []
    if hours is None or int(hours) < 1:
        errors.append(FieldError("hours", "Deadline hours must be at least 1"))
    if cost is None or Decimal(cost) < 0:
        errors.append(FieldError("cost", "Cost must be zero or greater"))
    if errors:
        raise InvalidInputError(errors)


def _preset_value_errors(base_price_per_page: Decimal, multiplier: Decimal) -> List[FieldError]:
    errors = []
    if Decimal(base_price_per_page) < 0:
        errors.append(FieldError("base_price_per_page", "Base price must be zero or greater"))
    if Decimal(multiplier) <= 0:
        errors.append(FieldError("multiplier", "Multiplier must be greater than zero"))
    return errors
