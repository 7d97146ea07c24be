"""
Database models for PaperDesk

SQLAlchemy 2.0 models with full type hints
"""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    String,
    Text,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Numeric,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.core.enums import (
    OrderStatus,
    InquiryStatus,
    PaymentStatus,
    UserRole,
    WalletTransactionType,
    WalletTransactionStatus,
)


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")

ZERO = Decimal("0.00")


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ===========================
# USERS
# ===========================


class User(Base):
    """
    User model

    Roles:
    - client: places orders and inquiries, owns a wallet
    - writer: works on assigned orders (staff)
    - admin: manages pricing and accepts orders (staff)
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    email: Mapped[str] = mapped_column(
        String(255), unique=True, index=True, nullable=False, comment="Login email"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Display name")
    role: Mapped[str] = mapped_column(
        String(20),
        default=UserRole.CLIENT.value,
        nullable=False,
        index=True,
        comment="Role: client, writer, admin",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Account enabled"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False,
        comment="Registration timestamp",
    )

    # Relationships
    wallet = relationship("Wallet", back_populates="user", uselist=False)
    orders = relationship(
        "Order", back_populates="client", foreign_keys="Order.client_id"
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.ADMIN.value, UserRole.WRITER.value)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


# ===========================
# RATE CATALOG
# ===========================


class AcademicLevel(Base):
    """Academic tier (High School, Undergraduate, Masters, Ph.D)"""

    __tablename__ = "academic_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    level: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, comment="Level name"
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    rates = relationship("AcademicRate", back_populates="academic_level")

    def __repr__(self) -> str:
        return f"<AcademicLevel(id={self.id}, level={self.level})>"


class AcademicRate(Base):
    """
    Base price per page for an (academic level, deadline hours) pair

    Rows are soft-deleted via `deleted` so historical pricing stays
    traceable. At most one non-deleted row per (level, hours).
    """

    __tablename__ = "academic_rates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    academic_level_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("academic_levels.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Academic level ID (foreign key)",
    )
    hours: Mapped[int] = mapped_column(Integer, nullable=False, comment="Deadline in hours")
    label: Mapped[str] = mapped_column(String(100), nullable=False, comment="e.g. '24 hours'")
    cost: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Base price per page"
    )
    deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True, comment="Soft delete flag"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    academic_level = relationship("AcademicLevel", back_populates="rates")

    __table_args__ = (
        Index("ix_academic_rates_level_hours", "academic_level_id", "hours"),
        CheckConstraint("cost >= 0", name="ck_academic_rates_cost_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<AcademicRate(id={self.id}, level={self.academic_level_id}, hours={self.hours}, cost=${self.cost})>"


class _IncrementMixin:
    """Shared shape of increment-carrying catalog rows"""

    inc_type: Mapped[str] = mapped_column(
        String(20), default="percent", nullable=False, comment="Increment type: percent, fixed"
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=ZERO, nullable=False, comment="Increment amount"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)


class Subject(_IncrementMixin, Base):
    """Service type / discipline modifier"""

    __tablename__ = "subjects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_subjects_amount_non_negative"),)

    def __repr__(self) -> str:
        return f"<Subject(id={self.id}, label={self.label}, {self.inc_type}={self.amount})>"


class Language(_IncrementMixin, Base):
    """Paper language modifier"""

    __tablename__ = "languages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (CheckConstraint("amount >= 0", name="ck_languages_amount_non_negative"),)

    def __repr__(self) -> str:
        return f"<Language(id={self.id}, label={self.label}, {self.inc_type}={self.amount})>"


class AdditionalFeature(_IncrementMixin, Base):
    """Optional add-on (Plagiarism Report, Top Writer, ...)"""

    __tablename__ = "additional_features"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_additional_features_amount_non_negative"),
    )

    def snapshot(self) -> dict:
        """Frozen copy stored on orders at selection time"""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.inc_type,
            "amount": str(self.amount),
        }

    def __repr__(self) -> str:
        return f"<AdditionalFeature(id={self.id}, name={self.name}, {self.inc_type}={self.amount})>"


class PricingPreset(Base):
    """
    Flat preset lookup used by the legacy pricing path

    Keyed by (academic_level, service_type, deadline_type) strings.
    """

    __tablename__ = "pricing_presets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    academic_level: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    deadline_type: Mapped[str] = mapped_column(String(50), nullable=False)
    base_price_per_page: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    multiplier: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("1.00"), nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    def total_price(self, pages: int) -> Decimal:
        return self.base_price_per_page * self.multiplier * pages

    def __repr__(self) -> str:
        return (
            f"<PricingPreset(id={self.id}, {self.academic_level}/{self.service_type}/"
            f"{self.deadline_type}, ${self.base_price_per_page} x{self.multiplier})>"
        )


# ===========================
# ORDERS
# ===========================


class Order(Base):
    """
    Order model - the billable unit of work

    `status` is written only by the order lifecycle service; every change
    appends one OrderStatusHistory row. `additional_features` is a
    snapshot list of {id, name, type, amount} taken at selection time.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
        comment="Owning client (foreign key)",
    )
    writer_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
        comment="Assigned writer (foreign key)",
    )

    # Paper attributes
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paper_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    academic_level_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("academic_levels.id"), nullable=False
    )
    service_type_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("subjects.id"), nullable=False
    )
    language_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("languages.id"), nullable=False
    )
    deadline_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    deadline_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pages: Mapped[int] = mapped_column(Integer, nullable=False)
    words: Mapped[int] = mapped_column(Integer, nullable=False)
    spacing: Mapped[str] = mapped_column(String(10), default="double", nullable=False)
    paper_format: Mapped[str] = mapped_column(String(20), default="APA", nullable=False)
    number_of_sources: Mapped[int] = mapped_column(Integer, default=2, nullable=False)
    additional_features: Mapped[list] = mapped_column(
        JSONType, default=list, nullable=False, comment="Feature snapshot list"
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, comment="Quoted price, fixed at creation"
    )
    status: Mapped[str] = mapped_column(
        String(30),
        default=OrderStatus.PLACED.value,
        nullable=False,
        index=True,
        comment="Lifecycle status",
    )

    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    # Relationships
    client = relationship("User", back_populates="orders", foreign_keys=[client_id])
    writer = relationship("User", foreign_keys=[writer_id])
    payments = relationship("Payment", back_populates="order")
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        order_by="OrderStatusHistory.id",
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_orders_price_non_negative"),
        CheckConstraint("pages >= 1", name="ck_orders_pages_positive"),
        Index("ix_orders_client_status", "client_id", "status"),
    )

    @property
    def status_enum(self) -> OrderStatus:
        return OrderStatus(self.status)

    def feature_ids(self) -> list[int]:
        """Ids from the feature snapshot"""
        return [f["id"] for f in (self.additional_features or []) if f.get("id") is not None]

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, client_id={self.client_id}, status={self.status}, price=${self.price})>"


class OrderStatusHistory(Base):
    """Append-only audit trail of order status changes"""

    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    previous_status: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False)
    changed_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    order = relationship("Order", back_populates="status_history")

    def __repr__(self) -> str:
        return f"<OrderStatusHistory(order_id={self.order_id}, {self.previous_status} -> {self.status})>"


class Inquiry(Base):
    """
    Non-billable draft with the same paper attributes as an order

    draft -> submitted -> converted; converted is terminal.
    """

    __tablename__ = "inquiries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    client_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paper_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    academic_level_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("academic_levels.id", ondelete="SET NULL"), nullable=True
    )
    service_type_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("subjects.id", ondelete="SET NULL"), nullable=True
    )
    language_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("languages.id", ondelete="SET NULL"), nullable=True
    )
    deadline_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deadline_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    pages: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    words: Mapped[int] = mapped_column(Integer, default=250, nullable=False)
    spacing: Mapped[str] = mapped_column(String(10), default="double", nullable=False)
    paper_format: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    number_of_sources: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    additional_features: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    client_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    estimated_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), default=InquiryStatus.DRAFT.value, nullable=False, index=True
    )

    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_to_order_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    @property
    def is_converted(self) -> bool:
        return self.status == InquiryStatus.CONVERTED.value

    def __repr__(self) -> str:
        return f"<Inquiry(id={self.id}, client_id={self.client_id}, status={self.status})>"


# ===========================
# WALLET LEDGER
# ===========================


class Wallet(Base):
    """
    Wallet model - cached balance backed by an append-only ledger

    `balance` is read-only from outside: it only moves through
    apply_credit/apply_debit, which also build the matching ledger row.
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
        comment="Owner (one wallet per user)",
    )

    _balance: Mapped[Decimal] = mapped_column(
        "balance",
        Numeric(10, 2),
        default=ZERO,
        nullable=False,
        comment="Cached balance = completed credits - completed debits",
    )
    currency: Mapped[str] = mapped_column(String(10), default="USD", nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    user = relationship("User", back_populates="wallet")
    transactions = relationship(
        "WalletTransaction",
        back_populates="wallet",
        order_by="WalletTransaction.id",
    )

    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),)

    def __init__(self, user_id: int, currency: str = "USD"):
        super().__init__(user_id=user_id, currency=currency)
        self._balance = ZERO

    @hybrid_property
    def balance(self) -> Decimal:
        return self._balance

    def has_sufficient_funds(self, amount: Decimal) -> bool:
        return self._balance >= amount

    def apply_credit(self, amount: Decimal, **fields) -> "WalletTransaction":
        self._balance = self._balance + amount
        return self._entry(WalletTransactionType.CREDIT, amount, **fields)

    def apply_debit(self, amount: Decimal, **fields) -> "WalletTransaction":
        if amount > self._balance:
            raise ValueError(f"Debit {amount} exceeds balance {self._balance}")
        self._balance = self._balance - amount
        return self._entry(WalletTransactionType.DEBIT, amount, **fields)

    def _entry(self, tx_type: WalletTransactionType, amount: Decimal, **fields) -> "WalletTransaction":
        return WalletTransaction(
            wallet_id=self.id,
            type=tx_type.value,
            amount=amount,
            status=WalletTransactionStatus.COMPLETED.value,
            **fields,
        )

    def __repr__(self) -> str:
        return f"<Wallet(id={self.id}, user_id={self.user_id}, balance=${self._balance})>"


class WalletTransaction(Base):
    """Ledger row (write-once)"""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    wallet_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    type: Mapped[str] = mapped_column(
        String(10), nullable=False, index=True, comment="Type: credit, debit"
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    order_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True, nullable=True
    )
    payment_method: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, comment="wallet, external, hybrid, refund"
    )
    status: Mapped[str] = mapped_column(
        String(20), default=WalletTransactionStatus.COMPLETED.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )

    wallet = relationship("Wallet", back_populates="transactions")

    __table_args__ = (CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),)

    def __repr__(self) -> str:
        return f"<WalletTransaction(id={self.id}, type={self.type}, amount=${self.amount}, status={self.status})>"


# ===========================
# PAYMENTS
# ===========================


class Payment(Base):
    """One row per settlement attempt against an order"""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True, comment="wallet, external, hybrid"
    )
    external_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True, comment="Gateway transaction ID"
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, completed, failed, refunded, cancelled",
    )
    payment_metadata: Mapped[Optional[dict]] = mapped_column(
        "metadata", JSONType, nullable=True, comment="Method-specific detail"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    order = relationship("Order", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, order_id={self.order_id}, method={self.payment_method}, status={self.status}, amount=${self.amount})>"


# ===========================
# LOYALTY
# ===========================


class Coupon(Base):
    """Discount coupon with activation window and usage cap"""

    __tablename__ = "coupons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    discount_type: Mapped[str] = mapped_column(
        String(20), default="percentage", nullable=False, comment="percentage, fixed"
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    minimum_order_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=ZERO, nullable=False
    )
    usage_limit: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, comment="NULL = unlimited"
    )
    used_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Coupon(code={self.code}, {self.discount_type}={self.discount_amount}, used={self.used_count})>"


class CouponUsage(Base):
    __tablename__ = "coupon_usages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    coupon_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True, nullable=True
    )
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (UniqueConstraint("coupon_id", "user_id", name="uq_coupon_user"),)

    def __repr__(self) -> str:
        return f"<CouponUsage(coupon_id={self.coupon_id}, user_id={self.user_id}, discount=${self.discount_amount})>"


class Reward(Base):
    """Loyalty points account (one per user)"""

    __tablename__ = "rewards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points_earned: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points_redeemed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_points_expired: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (CheckConstraint("points >= 0", name="ck_rewards_points_non_negative"),)

    def __repr__(self) -> str:
        return f"<Reward(user_id={self.user_id}, points={self.points})>"


class RewardTransaction(Base):
    __tablename__ = "reward_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="earned, redeemed, expired"
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    source_type: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, comment="order, referral, bonus, ..."
    )
    source_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (Index("ix_reward_transactions_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<RewardTransaction(user_id={self.user_id}, type={self.type}, points={self.points})>"
