"""
Core Enums - shared types for the pricing, payment and order stack.

Defines:
- OrderStatus: order lifecycle states and the allowed transition graph
- InquiryStatus: draft inquiry states
- PaymentMethod / PaymentStatus: settlement records
- IncrementType: catalog modifier kinds
- WalletTransactionType / WalletTransactionStatus: ledger rows
- FailureReason: typed business-rule outcomes
"""

from enum import Enum
from typing import FrozenSet


class OrderStatus(str, Enum):
    """Order lifecycle states.

    placed / waiting_for_payment -> active -> assigned -> in_progress
    -> submitted -> waiting_for_review -> completed, with in_revision
    re-entered from waiting_for_review. cancelled is reachable from any
    non-terminal state.
    """

    PLACED = "placed"  # Created by client, awaiting payment
    WAITING_FOR_PAYMENT = "waiting_for_payment"  # Converted from an inquiry
    ACTIVE = "active"  # Paid
    ASSIGNED = "assigned"  # Writer bound
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"  # Writer delivered
    WAITING_FOR_REVIEW = "waiting_for_review"  # Client reviewing delivery
    IN_REVISION = "in_revision"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)

    @property
    def requires_payment(self) -> bool:
        return self in PAYABLE_STATUSES

    @property
    def progress_stage(self) -> int:
        """Progress bar position (0-4), -1 when not shown"""
        return _PROGRESS_STAGES.get(self, -1)

    def allowed_next(self) -> FrozenSet["OrderStatus"]:
        """Statuses this status may transition to."""
        return _TRANSITIONS[self]

    def can_transition_to(self, new_status: "OrderStatus") -> bool:
        return new_status in _TRANSITIONS[self]


_NON_TERMINAL_CANCEL = frozenset({OrderStatus.CANCELLED})

_TRANSITIONS = {
    OrderStatus.PLACED: frozenset({OrderStatus.ACTIVE}) | _NON_TERMINAL_CANCEL,
    OrderStatus.WAITING_FOR_PAYMENT: frozenset({OrderStatus.ACTIVE}) | _NON_TERMINAL_CANCEL,
    OrderStatus.ACTIVE: frozenset({OrderStatus.ASSIGNED}) | _NON_TERMINAL_CANCEL,
    OrderStatus.ASSIGNED: frozenset({OrderStatus.IN_PROGRESS}) | _NON_TERMINAL_CANCEL,
    OrderStatus.IN_PROGRESS: frozenset({OrderStatus.SUBMITTED}) | _NON_TERMINAL_CANCEL,
    OrderStatus.SUBMITTED: frozenset({OrderStatus.WAITING_FOR_REVIEW}) | _NON_TERMINAL_CANCEL,
    OrderStatus.WAITING_FOR_REVIEW: frozenset(
        {OrderStatus.COMPLETED, OrderStatus.IN_REVISION}
    ) | _NON_TERMINAL_CANCEL,
    OrderStatus.IN_REVISION: frozenset({OrderStatus.SUBMITTED}) | _NON_TERMINAL_CANCEL,
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

PAYABLE_STATUSES = frozenset({OrderStatus.PLACED, OrderStatus.WAITING_FOR_PAYMENT})

_PROGRESS_STAGES = {
    OrderStatus.PLACED: 0,
    OrderStatus.WAITING_FOR_PAYMENT: 0,
    OrderStatus.ACTIVE: 1,
    OrderStatus.ASSIGNED: 1,
    OrderStatus.IN_PROGRESS: 2,
    OrderStatus.SUBMITTED: 3,
    OrderStatus.WAITING_FOR_REVIEW: 3,
    OrderStatus.COMPLETED: 4,
}


class InquiryStatus(str, Enum):
    """Inquiry states (converted is terminal)"""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    CONVERTED = "converted"


class PaymentMethod(str, Enum):
    """How an order was settled"""

    WALLET = "wallet"
    EXTERNAL = "external"  # External payment processor
    HYBRID = "hybrid"  # Wallet portion + external portion


class PaymentStatus(str, Enum):
    """Payment record status"""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class IncrementType(str, Enum):
    """Catalog modifier kind"""

    PERCENT = "percent"
    FIXED = "fixed"


class WalletTransactionType(str, Enum):
    """Ledger row direction"""

    CREDIT = "credit"
    DEBIT = "debit"


class WalletTransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class WalletPaymentMethod(str, Enum):
    """Source of a ledger movement"""

    WALLET = "wallet"
    EXTERNAL = "external"
    HYBRID = "hybrid"
    REFUND = "refund"


class UserRole(str, Enum):
    CLIENT = "client"
    WRITER = "writer"
    ADMIN = "admin"


class CouponDiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class RewardTransactionType(str, Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"
    EXPIRED = "expired"


class FailureReason(str, Enum):
    """Expected, user-facing business-rule outcomes"""

    INSUFFICIENT_FUNDS = "insufficient_funds"
    NO_COMPLETED_PAYMENT = "no_completed_payment"
    INVALID_STATUS = "invalid_status"
    ALREADY_CONVERTED = "already_converted"
    PROCESSOR_FAILURE = "processor_failure"
    INTEGRITY_ERROR = "integrity_error"
    COUPON_INVALID = "coupon_invalid"
    COUPON_ALREADY_USED = "coupon_already_used"
    INSUFFICIENT_POINTS = "insufficient_points"
    FORBIDDEN = "forbidden"
