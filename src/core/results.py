"""
Typed outcome of a mutating service call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from src.core.enums import FailureReason


@dataclass
class ServiceResult:
    """Outcome of a settlement / lifecycle / conversion call

    success=False carries a FailureReason and a short human-readable
    message; details hold the context (amounts, statuses) needed to
    explain the failure to the end user.
    """

    success: bool
    message: str
    reason: Optional[FailureReason] = None
    details: Dict[str, Any] = field(default_factory=dict)

    # Populated on success, depending on the operation
    order: Any = None
    payment: Any = None
    wallet_transaction: Any = None
    inquiry: Any = None

    @classmethod
    def ok(cls, message: str, **kwargs) -> "ServiceResult":
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def fail(
        cls,
        reason: FailureReason,
        message: str,
        **details: Any,
    ) -> "ServiceResult":
        return cls(success=False, message=message, reason=reason, details=details)

    def __bool__(self) -> bool:
        return self.success
