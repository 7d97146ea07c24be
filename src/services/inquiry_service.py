"""
Inquiry Service

Free (non-billable) drafts that clients can price and later convert into
exactly one order. Conversion is a single unit of work: the new order at
`waiting_for_payment`, its first history row and the inquiry's converted
state commit together.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import (
    DEFAULT_PAPER_FORMAT,
    DEFAULT_SPACING,
    MAX_PAGES,
    MIN_PAGES,
    WORDS_PER_PAGE,
    words_for_pages,
)
from src.core.clock import Clock, SystemClock
from src.core.enums import FailureReason, InquiryStatus, OrderStatus
from src.core.errors import FieldError, InvalidInputError
from src.core.results import ServiceResult
from src.database.models import Inquiry, Order, OrderStatusHistory
from src.services.pricing_service import PricingService, normalize_features

REQUIRED_FOR_CONVERSION = ("academic_level_id", "service_type_id", "language_id", "deadline_hours")


class InquiryService:
    """Inquiry drafts, estimates and one-shot conversion"""

    def __init__(self, clock: Optional[Clock] = None, pricing: Optional[PricingService] = None):
        self.clock = clock or SystemClock()
        self.pricing = pricing or PricingService()

    async def create_inquiry(
        self, session: AsyncSession, client_id: int, data: Dict[str, Any]
    ) -> Inquiry:
        """
        Create a draft inquiry

        Paper attributes are optional; selected features are resolved
        against the catalog and stored as snapshots.

        Args:
            session: Database session
            client_id: Owning client
            data: title (required) plus optional paper attributes

        Returns:
            Inquiry in draft status
        """
        errors: List[FieldError] = []

        if not (data.get("title") or "").strip():
            errors.append(FieldError("title", "Title is required"))

        pages = data.get("pages", 1)
        if not isinstance(pages, int) or not MIN_PAGES <= pages <= MAX_PAGES:
            errors.append(FieldError("pages", f"Pages must be between {MIN_PAGES} and {MAX_PAGES}"))

        spacing = data.get("spacing", DEFAULT_SPACING)
        if spacing not in WORDS_PER_PAGE:
            errors.append(FieldError("spacing", "Spacing must be 'single' or 'double'"))

        deadline_hours = data.get("deadline_hours")
        if deadline_hours is not None and (not isinstance(deadline_hours, int) or deadline_hours < 1):
            errors.append(FieldError("deadline_hours", "Deadline must be at least 1 hour"))

        try:
            selections = normalize_features(data.get("features") or [])
        except InvalidInputError as e:
            errors.extend(e.errors)
            selections = []

        if errors:
            raise InvalidInputError(errors)

        resolved = await self.pricing.resolve_features(session, selections)

        inquiry = Inquiry(
            client_id=client_id,
            title=data["title"].strip(),
            description=data.get("description"),
            paper_type=data.get("paper_type"),
            academic_level_id=data.get("academic_level_id"),
            service_type_id=data.get("service_type_id"),
            language_id=data.get("language_id"),
            deadline_hours=deadline_hours,
            deadline_date=data.get("deadline_date"),
            pages=pages,
            words=words_for_pages(pages, spacing),
            spacing=spacing,
            paper_format=data.get("paper_format"),
            number_of_sources=data.get("number_of_sources", 0),
            additional_features=[
                {"id": f.id, "name": f.name, "type": f.type.value, "amount": str(f.amount)}
                for f in resolved
            ],
            client_notes=data.get("client_notes"),
            status=InquiryStatus.DRAFT.value,
        )
        session.add(inquiry)
        await session.commit()
        await session.refresh(inquiry)

        logger.info(f"Inquiry {inquiry.id} created for client {client_id}")
        return inquiry

    async def submit_inquiry(self, session: AsyncSession, inquiry: Inquiry) -> ServiceResult:
        """draft -> submitted"""
        if inquiry.status != InquiryStatus.DRAFT.value:
            return ServiceResult.fail(
                FailureReason.INVALID_STATUS,
                "Only draft inquiries can be submitted",
                current_status=inquiry.status,
            )

        inquiry.status = InquiryStatus.SUBMITTED.value
        inquiry.submitted_at = self.clock.now()
        await session.commit()

        logger.info(f"Inquiry {inquiry.id} submitted")
        return ServiceResult.ok("Inquiry submitted", inquiry=inquiry)

    async def estimate_inquiry(self, session: AsyncSession, inquiry: Inquiry) -> ServiceResult:
        """
        Price the inquiry and store the result as estimated_price

        Returns:
            ServiceResult with details["estimate"] holding the PriceEstimate
        """
        if inquiry.is_converted:
            return self._already_converted(inquiry)

        missing = [
            FieldError(name, "Required to estimate a price")
            for name in ("academic_level_id", "deadline_hours")
            if getattr(inquiry, name) is None
        ]
        if missing:
            raise InvalidInputError(missing)

        estimate = await self.pricing.estimate(
            session,
            inquiry.academic_level_id,
            inquiry.service_type_id,
            inquiry.deadline_hours,
            inquiry.language_id,
            inquiry.pages,
            inquiry.additional_features or [],
        )
        inquiry.estimated_price = estimate.total
        await session.commit()

        logger.info(f"Inquiry {inquiry.id} estimated at ${estimate.total}")
        return ServiceResult.ok("Price estimated", inquiry=inquiry, details={"estimate": estimate})

    @staticmethod
    def _already_converted(inquiry: Inquiry) -> ServiceResult:
        return ServiceResult.fail(
            FailureReason.ALREADY_CONVERTED,
            "Inquiry has already been converted to an order",
            order_id=inquiry.converted_to_order_id,
        )

    @staticmethod
    async def _lock_inquiry(session: AsyncSession, inquiry_id: int) -> Inquiry:
        stmt = (
            select(Inquiry)
            .where(Inquiry.id == inquiry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await session.execute(stmt)).scalar_one()

    async def convert_to_order(
        self,
        session: AsyncSession,
        inquiry: Inquiry,
        actor_id: Optional[int] = None,
    ) -> ServiceResult:
        """
        Turn an inquiry into a billable order (once)

        The order starts at waiting_for_payment with
        price = estimated_price, or 0.00 when the inquiry was never priced.

        Args:
            session: Database session
            inquiry: Inquiry to convert
            actor_id: User performing the conversion (defaults to the client)

        Returns:
            ServiceResult with order and inquiry; already_converted on a
            second call
        """
        inquiry = await self._lock_inquiry(session, inquiry.id)
        if inquiry.is_converted:
            logger.warning(f"Inquiry {inquiry.id} already converted to order {inquiry.converted_to_order_id}")
            await session.commit()
            return self._already_converted(inquiry)

        missing = [
            FieldError(name, "Required to convert to an order")
            for name in REQUIRED_FOR_CONVERSION
            if getattr(inquiry, name) is None
        ]
        if missing:
            await session.commit()
            raise InvalidInputError(missing)

        now = self.clock.now()
        actor_id = actor_id or inquiry.client_id

        try:
            order = Order(
                client_id=inquiry.client_id,
                title=inquiry.title,
                description=inquiry.description,
                paper_type=inquiry.paper_type,
                academic_level_id=inquiry.academic_level_id,
                service_type_id=inquiry.service_type_id,
                language_id=inquiry.language_id,
                deadline_hours=inquiry.deadline_hours,
                deadline_date=inquiry.deadline_date or now + timedelta(hours=inquiry.deadline_hours),
                pages=inquiry.pages,
                words=inquiry.words,
                spacing=inquiry.spacing,
                paper_format=inquiry.paper_format or DEFAULT_PAPER_FORMAT,
                number_of_sources=inquiry.number_of_sources,
                additional_features=list(inquiry.additional_features or []),
                client_notes=inquiry.client_notes,
                price=inquiry.estimated_price if inquiry.estimated_price is not None else Decimal("0.00"),
                status=OrderStatus.WAITING_FOR_PAYMENT.value,
            )
            session.add(order)
            await session.flush()

            session.add(
                OrderStatusHistory(
                    order_id=order.id,
                    previous_status=None,
                    status=OrderStatus.WAITING_FOR_PAYMENT.value,
                    changed_by=actor_id,
                    notes=f"Converted from inquiry #{inquiry.id}",
                    created_at=now,
                )
            )

            inquiry.status = InquiryStatus.CONVERTED.value
            inquiry.converted_at = now
            inquiry.converted_to_order_id = order.id
            await session.commit()

        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Converting inquiry {inquiry.id} failed")
            return ServiceResult.fail(
                FailureReason.INTEGRITY_ERROR, "Inquiry could not be converted, please retry"
            )

        logger.info(f"Inquiry {inquiry.id} converted to order {order.id} (${order.price})")
        return ServiceResult.ok("Inquiry converted to order", order=order, inquiry=inquiry)
