"""
Pricing Engine

Turns order attributes into a price estimate:

    base_for_order = base_price * pages * service_multiplier * language_multiplier
    total          = base_for_order + sum(feature costs)

Quotes never fail because of missing catalog data: an absent
(level, deadline) rate falls back to the configured default base price,
unknown service types / languages count as x1.0 and unknown or inactive
features are skipped.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Sequence, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import DEFAULT_BASE_PRICE, to_money
from src.core.enums import IncrementType
from src.core.errors import FieldError, InvalidInputError
from src.database.models import Order
from src.services.rate_catalog import RateCatalog

ONE = Decimal(1)
HUNDRED = Decimal(100)


# ===========================
# FEATURE SELECTION
# ===========================


@dataclass(frozen=True)
class FeatureById:
    """Feature referenced by catalog id (resolved at pricing time)"""

    id: int


@dataclass(frozen=True)
class InlineFeature:
    """Feature carried by value, e.g. an order snapshot entry"""

    type: IncrementType
    amount: Decimal
    name: Optional[str] = None
    id: Optional[int] = None


FeatureSelection = Union[FeatureById, InlineFeature]


def normalize_features(raw: Optional[Iterable[Any]]) -> List[FeatureSelection]:
    """
    Convert loosely-typed feature input into FeatureSelection values

    Accepts ints, numeric strings, {"id": ...} dicts, {"type", "amount"}
    dicts and the dataclasses themselves.

    Args:
        raw: Feature list as received from the caller (None allowed)

    Returns:
        List of FeatureById / InlineFeature

    Raises:
        InvalidInputError: an entry has an unsupported shape or value
    """
    selections: List[FeatureSelection] = []
    errors: List[FieldError] = []

    for index, item in enumerate(raw or []):
        path = f"features[{index}]"

        if isinstance(item, (FeatureById, InlineFeature)):
            selections.append(item)
        elif isinstance(item, bool):
            errors.append(FieldError(path, "Feature must be an id or an object"))
        elif isinstance(item, int):
            selections.append(FeatureById(item))
        elif isinstance(item, str) and item.strip().isdigit():
            selections.append(FeatureById(int(item)))
        elif isinstance(item, dict) and "type" in item and "amount" in item:
            try:
                inc_type = IncrementType(item["type"])
                amount = Decimal(str(item["amount"]))
            except (ValueError, ArithmeticError):
                errors.append(FieldError(path, "Invalid feature type or amount"))
                continue
            if amount < 0:
                errors.append(FieldError(path, "Feature amount must be zero or greater"))
                continue
            selections.append(
                InlineFeature(inc_type, amount, name=item.get("name"), id=item.get("id"))
            )
        elif isinstance(item, dict) and "id" in item:
            try:
                selections.append(FeatureById(int(item["id"])))
            except (TypeError, ValueError):
                errors.append(FieldError(path, "Feature id must be an integer"))
        else:
            errors.append(FieldError(path, "Feature must be an id or an object"))

    if errors:
        raise InvalidInputError(errors)

    return selections


# ===========================
# RESULT TYPES
# ===========================


@dataclass(frozen=True)
class FeatureCost:
    name: Optional[str]
    type: IncrementType
    amount: Decimal
    cost: Decimal
    id: Optional[int] = None


@dataclass(frozen=True)
class PriceBreakdown:
    """Shown to the end user; base_cost + features_cost == total"""

    base_price: Decimal
    service_multiplier: Decimal
    language_multiplier: Decimal
    pages: int
    base_cost: Decimal
    features_cost: Decimal
    features: List[FeatureCost] = field(default_factory=list)
    used_default_base_price: bool = False


@dataclass(frozen=True)
class PriceEstimate:
    total: Decimal
    per_page: Decimal
    breakdown: PriceBreakdown


@dataclass(frozen=True)
class FeatureQuote:
    """Price of adding features to an existing order"""

    per_page: Decimal
    features: List[FeatureCost]
    total: Decimal

    def snapshots(self) -> List[dict]:
        return [
            {"id": f.id, "name": f.name, "type": f.type.value, "amount": str(f.amount)}
            for f in self.features
        ]


# ===========================
# PURE CALCULATION
# ===========================


def increment_multiplier(inc_type: Union[IncrementType, str], amount: Decimal) -> Decimal:
    """
    Multiplier for a service-type / language increment

    Both percent and fixed increments give 1 + amount/100: a fixed
    service-type or language increment is applied as a percentage.
    """
    inc_type = IncrementType(inc_type)
    if inc_type == IncrementType.PERCENT:
        return ONE + Decimal(amount) / HUNDRED
    return ONE + Decimal(amount) / HUNDRED


def feature_cost(feature: InlineFeature, base_for_order: Decimal) -> Decimal:
    if feature.type == IncrementType.FIXED:
        return to_money(feature.amount)
    return to_money(base_for_order * feature.amount / HUNDRED)


def calculate_price(
    base_price: Decimal,
    service_multiplier: Decimal,
    language_multiplier: Decimal,
    pages: int,
    features: Sequence[InlineFeature] = (),
    used_default_base_price: bool = False,
) -> PriceEstimate:
    """
    Combine resolved pricing inputs into an estimate (no I/O)

    Args:
        base_price: Base price per page
        service_multiplier: Service-type multiplier
        language_multiplier: Language multiplier
        pages: Page count (>= 1)
        features: Resolved features
        used_default_base_price: Flag carried into the breakdown

    Returns:
        PriceEstimate whose breakdown reconciles exactly with total
    """
    base_for_order = Decimal(base_price) * pages * service_multiplier * language_multiplier

    costs = [
        FeatureCost(
            name=f.name,
            type=f.type,
            amount=f.amount,
            cost=feature_cost(f, base_for_order),
            id=f.id,
        )
        for f in features
    ]

    base_cost = to_money(base_for_order)
    features_cost = to_money(sum((c.cost for c in costs), Decimal(0)))
    total = base_cost + features_cost

    breakdown = PriceBreakdown(
        base_price=to_money(base_price),
        service_multiplier=service_multiplier,
        language_multiplier=language_multiplier,
        pages=pages,
        base_cost=base_cost,
        features_cost=features_cost,
        features=costs,
        used_default_base_price=used_default_base_price,
    )
    return PriceEstimate(total=total, per_page=to_money(total / pages), breakdown=breakdown)


# ===========================
# SERVICE
# ===========================


class PricingService:
    """Catalog-backed price quotes"""

    def __init__(self, default_base_price: Decimal = DEFAULT_BASE_PRICE):
        self.default_base_price = Decimal(default_base_price)

    async def resolve_features(
        self, session: AsyncSession, selections: Sequence[FeatureSelection]
    ) -> List[InlineFeature]:
        """Resolve ids against the catalog, dropping unknown or inactive ones"""
        resolved: List[InlineFeature] = []

        for selection in selections:
            if isinstance(selection, InlineFeature):
                resolved.append(selection)
                continue

            feature = await RateCatalog.get_feature(session, selection.id)
            if feature is None or not feature.is_active:
                logger.debug(f"Skipping unknown or inactive feature {selection.id}")
                continue

            resolved.append(
                InlineFeature(
                    type=IncrementType(feature.inc_type),
                    amount=Decimal(feature.amount),
                    name=feature.name,
                    id=feature.id,
                )
            )

        return resolved

    async def estimate(
        self,
        session: AsyncSession,
        academic_level_id: int,
        service_type_id: Optional[int],
        deadline_hours: int,
        language_id: Optional[int],
        pages: int,
        features: Optional[Iterable[Any]] = None,
    ) -> PriceEstimate:
        """
        Quote a prospective order

        Args:
            session: Database session
            academic_level_id: Academic level ID
            service_type_id: Service type (subject) ID
            deadline_hours: Deadline in hours
            language_id: Language ID
            pages: Page count (>= 1)
            features: Feature ids or inline {type, amount} entries

        Returns:
            PriceEstimate (total, per_page, breakdown)
        """
        if pages is None or pages < 1:
            raise InvalidInputError.single("pages", "Pages must be at least 1")

        selections = normalize_features(features)

        rate = await RateCatalog.get_base_rate(session, academic_level_id, deadline_hours)
        if rate is not None:
            base_price = Decimal(rate.cost)
            used_default = False
        else:
            base_price = self.default_base_price
            used_default = True
            logger.debug(
                f"No rate for level={academic_level_id} hours={deadline_hours}, "
                f"using default ${base_price}"
            )

        service_multiplier = ONE
        if service_type_id is not None:
            subject = await RateCatalog.get_subject(session, service_type_id)
            if subject is not None:
                service_multiplier = increment_multiplier(subject.inc_type, subject.amount)

        language_multiplier = ONE
        if language_id is not None:
            language = await RateCatalog.get_language(session, language_id)
            if language is not None:
                language_multiplier = increment_multiplier(language.inc_type, language.amount)

        resolved = await self.resolve_features(session, selections)

        return calculate_price(
            base_price,
            service_multiplier,
            language_multiplier,
            pages,
            resolved,
            used_default_base_price=used_default,
        )

    async def effective_base_price_per_page(self, session: AsyncSession, order: Order) -> Decimal:
        """Per-page rate re-estimated from the order's stored attributes"""
        estimate = await self.estimate(
            session,
            order.academic_level_id,
            order.service_type_id,
            order.deadline_hours,
            order.language_id,
            order.pages,
            [FeatureById(fid) for fid in order.feature_ids()],
        )
        return estimate.per_page

    async def quote_additional_features(
        self,
        session: AsyncSession,
        order: Order,
        feature_ids: Iterable[Any],
    ) -> FeatureQuote:
        """
        Price new add-ons for an existing order

        Percent features are charged against effective per-page rate x pages.
        Features already on the order and unknown/inactive ids are skipped.
        """
        selections = [s for s in normalize_features(feature_ids) if isinstance(s, FeatureById)]
        existing = set(order.feature_ids())
        wanted = []
        for selection in selections:
            if selection.id not in existing:
                existing.add(selection.id)
                wanted.append(selection)

        per_page = await self.effective_base_price_per_page(session, order)
        base_for_order = per_page * order.pages

        costs = [
            FeatureCost(
                name=f.name,
                type=f.type,
                amount=f.amount,
                cost=feature_cost(f, base_for_order),
                id=f.id,
            )
            for f in await self.resolve_features(session, wanted)
        ]
        total = to_money(sum((c.cost for c in costs), Decimal(0)))
        return FeatureQuote(per_page=per_page, features=costs, total=total)

    async def preset_price(
        self,
        session: AsyncSession,
        academic_level: str,
        service_type: str,
        deadline_type: str,
        pages: int,
    ) -> Decimal:
        """Legacy flat lookup; 0.00 when no active preset matches"""
        preset = await RateCatalog.find_active_preset(
            session, academic_level, service_type, deadline_type
        )
        if preset is None:
            return to_money(0)
        return to_money(preset.total_price(pages))

    async def get_pricing_options(self, session: AsyncSession) -> dict:
        """Active catalog entries for building an order form"""
        return {
            "academic_levels": await RateCatalog.get_active_academic_levels(session),
            "rates": await RateCatalog.get_active_rates(session),
            "service_types": await RateCatalog.get_active_subjects(session),
            "languages": await RateCatalog.get_active_languages(session),
            "features": await RateCatalog.get_active_features(session),
        }
