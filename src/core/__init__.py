"""
Core module - shared types for the whole stack.
"""

from src.core.enums import (
    OrderStatus,
    InquiryStatus,
    PaymentMethod,
    PaymentStatus,
    IncrementType,
    WalletTransactionType,
    FailureReason,
)
from src.core.errors import FieldError, InvalidInputError, NotFoundError
from src.core.results import ServiceResult
from src.core.clock import Clock, SystemClock, FrozenClock

__all__ = [
    "OrderStatus",
    "InquiryStatus",
    "PaymentMethod",
    "PaymentStatus",
    "IncrementType",
    "WalletTransactionType",
    "FailureReason",
    "FieldError",
    "InvalidInputError",
    "NotFoundError",
    "ServiceResult",
    "Clock",
    "SystemClock",
    "FrozenClock",
]
