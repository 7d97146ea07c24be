"""
Order Lifecycle Service

Owns the order status state machine. `transition` is the only writer of
`Order.status` and appends exactly one OrderStatusHistory row per accepted
change. The wrappers (accept, assign, cancel, ...) add their preconditions
and delegate to `transition`.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.pricing import (
    DEFAULT_NUMBER_OF_SOURCES,
    DEFAULT_PAPER_FORMAT,
    DEFAULT_SPACING,
    MAX_PAGES,
    MIN_PAGES,
    WORDS_PER_PAGE,
    to_money,
    words_for_pages,
)
from src.core.clock import Clock, SystemClock
from src.core.enums import FailureReason, OrderStatus, UserRole
from src.core.errors import FieldError, InvalidInputError
from src.core.results import ServiceResult
from src.database.crud import get_latest_completed_payment, lock_order
from src.database.models import Order, OrderStatusHistory, User
from src.services.pricing_service import FeatureById, PricingService, normalize_features
from src.services.rate_catalog import RateCatalog

DEFAULT_TITLE = "Writer's choice"
RETRY_MESSAGE = "Order update could not be saved, please retry"


class OrderLifecycleService:
    """Order creation, status transitions and order queries"""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        pricing: Optional[PricingService] = None,
        settlement=None,
    ):
        self.clock = clock or SystemClock()
        self.pricing = pricing or PricingService()
        self._settlement = settlement

    @property
    def settlement(self):
        if self._settlement is None:
            from src.services.settlement_service import SettlementService

            self._settlement = SettlementService(clock=self.clock, lifecycle=self)
        return self._settlement

    # ===========================
    # CREATION
    # ===========================

    async def _validate_order_data(self, session: AsyncSession, data: Dict[str, Any]) -> List[FieldError]:
        errors: List[FieldError] = []

        lookups = (
            ("academic_level_id", RateCatalog.get_academic_level),
            ("service_type_id", RateCatalog.get_subject),
            ("language_id", RateCatalog.get_language),
        )
        for field_name, getter in lookups:
            value = data.get(field_name)
            if value is None:
                errors.append(FieldError(field_name, "This field is required"))
                continue
            row = await getter(session, value)
            if row is None or not row.is_active:
                errors.append(FieldError(field_name, "Unknown or inactive selection"))

        deadline_hours = data.get("deadline_hours")
        if not isinstance(deadline_hours, int) or deadline_hours < 1:
            errors.append(FieldError("deadline_hours", "Deadline must be at least 1 hour"))

        pages = data.get("pages")
        if not isinstance(pages, int) or not MIN_PAGES <= pages <= MAX_PAGES:
            errors.append(FieldError("pages", f"Pages must be between {MIN_PAGES} and {MAX_PAGES}"))

        spacing = data.get("spacing", DEFAULT_SPACING)
        if spacing not in WORDS_PER_PAGE:
            errors.append(FieldError("spacing", "Spacing must be 'single' or 'double'"))

        sources = data.get("number_of_sources", DEFAULT_NUMBER_OF_SOURCES)
        if not isinstance(sources, int) or sources < 0:
            errors.append(FieldError("number_of_sources", "Number of sources must be zero or greater"))

        return errors

    async def create_order(
        self,
        session: AsyncSession,
        client: User,
        data: Dict[str, Any],
    ) -> Order:
        """
        Price and create a new order at `placed`

        Args:
            session: Database session
            client: Owning client
            data: Order attributes (academic_level_id, service_type_id,
                language_id, deadline_hours, pages, features, ...)

        Returns:
            Created Order with price set and one history row

        Raises:
            InvalidInputError: missing/invalid attributes or inline features
        """
        errors = await self._validate_order_data(session, data)

        try:
            selections = normalize_features(data.get("features") or [])
        except InvalidInputError as e:
            errors.extend(e.errors)
            selections = []
        if any(not isinstance(s, FeatureById) for s in selections):
            errors.append(FieldError("features", "Features must reference catalog ids"))

        if errors:
            raise InvalidInputError(errors)

        estimate = await self.pricing.estimate(
            session,
            data["academic_level_id"],
            data["service_type_id"],
            data["deadline_hours"],
            data["language_id"],
            data["pages"],
            selections,
        )

        now = self.clock.now()
        spacing = data.get("spacing", DEFAULT_SPACING)
        order = Order(
            client_id=client.id,
            title=data.get("title") or DEFAULT_TITLE,
            description=data.get("description"),
            paper_type=data.get("paper_type"),
            academic_level_id=data["academic_level_id"],
            service_type_id=data["service_type_id"],
            language_id=data["language_id"],
            deadline_hours=data["deadline_hours"],
            deadline_date=data.get("deadline_date") or now + timedelta(hours=data["deadline_hours"]),
            pages=data["pages"],
            words=words_for_pages(data["pages"], spacing),
            spacing=spacing,
            paper_format=data.get("paper_format") or DEFAULT_PAPER_FORMAT,
            number_of_sources=data.get("number_of_sources", DEFAULT_NUMBER_OF_SOURCES),
            additional_features=[
                {"id": f.id, "name": f.name, "type": f.type.value, "amount": str(f.amount)}
                for f in estimate.breakdown.features
            ],
            client_notes=data.get("client_notes"),
            price=estimate.total,
            status=OrderStatus.PLACED.value,
        )

        try:
            session.add(order)
            await session.flush()
            session.add(
                OrderStatusHistory(
                    order_id=order.id,
                    previous_status=None,
                    status=OrderStatus.PLACED.value,
                    changed_by=client.id,
                    notes="Order placed by client",
                    created_at=now,
                )
            )
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Failed to create order for client {client.id}")
            raise

        logger.info(f"Order {order.id} created for client {client.id}: ${order.price}")
        return order

    # ===========================
    # TRANSITIONS
    # ===========================

    async def transition(
        self,
        session: AsyncSession,
        order: Order,
        new_status: Union[OrderStatus, str],
        actor_id: Optional[int],
        notes: Optional[str] = None,
        commit: bool = True,
    ) -> ServiceResult:
        """
        Change order status and append one history row

        Args:
            session: Database session
            order: Order to update
            new_status: Requested status
            actor_id: User performing the change
            notes: Free-text note stored on the history row
            commit: Commit immediately (False inside a larger unit)

        Returns:
            ServiceResult; invalid_status when the graph forbids the move
        """
        new_status = OrderStatus(new_status)
        current = order.status_enum

        if not current.can_transition_to(new_status):
            logger.warning(f"Order {order.id}: transition {current.value} -> {new_status.value} rejected")
            return ServiceResult.fail(
                FailureReason.INVALID_STATUS,
                f"Cannot change order status from {current.label} to {new_status.label}",
                current_status=current.value,
                requested_status=new_status.value,
            )

        try:
            order.status = new_status.value
            session.add(
                OrderStatusHistory(
                    order_id=order.id,
                    previous_status=current.value,
                    status=new_status.value,
                    changed_by=actor_id,
                    notes=notes,
                    created_at=self.clock.now(),
                )
            )
            await session.flush()

            if commit:
                await session.commit()

        except SQLAlchemyError:
            if not commit:
                raise
            await session.rollback()
            logger.exception(f"Order {order.id}: transition to {new_status.value} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        logger.info(f"Order {order.id}: {current.value} -> {new_status.value} (by {actor_id})")
        return ServiceResult.ok(f"Order status changed to {new_status.label}", order=order)

    @staticmethod
    def _require_status(order: Order, *allowed: OrderStatus) -> Optional[ServiceResult]:
        if order.status_enum in allowed:
            return None
        expected = ", ".join(s.value for s in allowed)
        return ServiceResult.fail(
            FailureReason.INVALID_STATUS,
            f"Order is {order.status_enum.label.lower()}, expected {expected}",
            current_status=order.status,
        )

    async def accept(
        self, session: AsyncSession, order: Order, admin: User, notes: Optional[str] = None
    ) -> ServiceResult:
        """Admin marks a placed order as active"""
        if not admin.is_admin:
            return ServiceResult.fail(FailureReason.FORBIDDEN, "Only admins can accept orders")

        await lock_order(session, order.id)
        failure = self._require_status(order, OrderStatus.PLACED)
        if failure:
            await session.commit()
            return failure

        if notes:
            order.admin_notes = notes
        return await self.transition(
            session, order, OrderStatus.ACTIVE, admin.id, notes or "Order accepted by admin"
        )

    async def assign(
        self, session: AsyncSession, order: Order, writer: User, actor: User
    ) -> ServiceResult:
        """Bind a writer to an active order"""
        if writer.role != UserRole.WRITER.value:
            raise InvalidInputError.single("writer_id", "User is not a writer")

        failure = self._require_status(order, OrderStatus.ACTIVE)
        if failure:
            return failure

        order.writer_id = writer.id
        return await self.transition(
            session, order, OrderStatus.ASSIGNED, actor.id, f"Assigned to writer #{writer.id}"
        )

    async def start_work(self, session: AsyncSession, order: Order, actor_id: int) -> ServiceResult:
        return await self.transition(session, order, OrderStatus.IN_PROGRESS, actor_id, "Work started")

    async def submit_work(
        self, session: AsyncSession, order: Order, actor_id: int, notes: Optional[str] = None
    ) -> ServiceResult:
        return await self.transition(
            session, order, OrderStatus.SUBMITTED, actor_id, notes or "Work submitted"
        )

    async def request_review(self, session: AsyncSession, order: Order, actor_id: int) -> ServiceResult:
        return await self.transition(
            session, order, OrderStatus.WAITING_FOR_REVIEW, actor_id, "Sent to client for review"
        )

    async def request_revision(
        self, session: AsyncSession, order: Order, actor_id: int, notes: Optional[str] = None
    ) -> ServiceResult:
        return await self.transition(
            session, order, OrderStatus.IN_REVISION, actor_id, notes or "Revision requested"
        )

    async def complete(
        self, session: AsyncSession, order: Order, actor_id: int, notes: Optional[str] = None
    ) -> ServiceResult:
        failure = self._require_status(order, OrderStatus.WAITING_FOR_REVIEW)
        if failure:
            return failure
        return await self.transition(
            session, order, OrderStatus.COMPLETED, actor_id, notes or "Order completed"
        )

    async def cancel(
        self,
        session: AsyncSession,
        order: Order,
        actor: User,
        reason: Optional[str] = None,
    ) -> ServiceResult:
        """
        Cancel a non-terminal order, refunding a completed payment first

        Refund and transition run in one unit of work.

        Args:
            session: Database session
            order: Order to cancel
            actor: Owning client or staff member
            reason: Stored on the history row

        Returns:
            ServiceResult; forbidden / invalid_status / integrity_error
        """
        if not (actor.is_staff or actor.id == order.client_id):
            return ServiceResult.fail(FailureReason.FORBIDDEN, "You cannot cancel this order")

        await lock_order(session, order.id)
        if order.status_enum.is_terminal:
            await session.commit()
            return ServiceResult.fail(
                FailureReason.INVALID_STATUS,
                f"Order is already {order.status_enum.label.lower()}",
                current_status=order.status,
            )

        refund = None
        try:
            if await get_latest_completed_payment(session, order.id) is not None:
                refund = await self.settlement.cancel_and_refund(session, order, commit=False)
                if not refund.success:
                    await session.commit()
                    return refund

            result = await self.transition(
                session,
                order,
                OrderStatus.CANCELLED,
                actor.id,
                reason or "Order cancelled",
                commit=False,
            )
            if not result.success:
                logger.error(f"Order {order.id}: cancel refused after refund: {result.message}")
                await session.rollback()
                await session.refresh(order)
                return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

            await session.commit()

        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Cancelling order {order.id} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        if refund is not None:
            return ServiceResult.ok(
                "Order cancelled and refund processed",
                order=order,
                payment=refund.payment,
                wallet_transaction=refund.wallet_transaction,
            )
        return ServiceResult.ok("Order cancelled", order=order)

    # ===========================
    # RE-PRICING
    # ===========================

    async def add_features(
        self,
        session: AsyncSession,
        order: Order,
        feature_ids: List[Any],
        actor_id: int,
    ) -> ServiceResult:
        """
        Add catalog features to an existing order

        New features are priced against the order's effective per-page
        rate; the snapshot is extended and the price increased. Only
        unpaid orders can be extended.
        """
        await lock_order(session, order.id)
        if not order.status_enum.requires_payment:
            await session.commit()
            return ServiceResult.fail(
                FailureReason.INVALID_STATUS,
                "Services can only be added to unpaid orders",
                current_status=order.status,
            )

        quote = await self.pricing.quote_additional_features(session, order, feature_ids)
        if not quote.features:
            await session.commit()
            raise InvalidInputError.single("features", "No new active features selected")

        try:
            order.price = to_money(Decimal(order.price) + quote.total)
            order.additional_features = list(order.additional_features or []) + quote.snapshots()
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            logger.exception(f"Adding features to order {order.id} failed")
            return ServiceResult.fail(FailureReason.INTEGRITY_ERROR, RETRY_MESSAGE)

        logger.info(
            f"Order {order.id}: added {len(quote.features)} features for ${quote.total} by {actor_id}"
        )
        return ServiceResult.ok(
            "Services added to order",
            order=order,
            details={"added_cost": quote.total, "per_page": quote.per_page},
        )

    # ===========================
    # QUERIES
    # ===========================

    @staticmethod
    async def get_status_history(session: AsyncSession, order_id: int) -> List[OrderStatusHistory]:
        stmt = (
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.id)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_client_orders(
        session: AsyncSession, client_id: int, status: Optional[OrderStatus] = None
    ) -> List[Order]:
        stmt = select(Order).where(Order.client_id == client_id)
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status).value)
        stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_orders_by_status(session: AsyncSession, status: OrderStatus) -> List[Order]:
        stmt = (
            select(Order)
            .where(Order.status == OrderStatus(status).value)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def get_order_statistics(session: AsyncSession) -> dict:
        """Order counts per status plus completed revenue"""
        rows = (
            await session.execute(
                select(Order.status, func.count(), func.sum(Order.price)).group_by(Order.status)
            )
        ).all()

        by_status = {status.value: 0 for status in OrderStatus}
        revenue = Decimal("0.00")
        for status, count, total in rows:
            by_status[status] = count
            if status == OrderStatus.COMPLETED.value:
                revenue = to_money(total or 0)

        return {
            "total_orders": sum(by_status.values()),
            "by_status": by_status,
            "awaiting_payment": by_status[OrderStatus.PLACED.value]
            + by_status[OrderStatus.WAITING_FOR_PAYMENT.value],
            "completed_revenue": revenue,
        }
