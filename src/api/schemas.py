"""
Pydantic request/response models shared by the API routers
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.core.enums import FailureReason
from src.core.results import ServiceResult


# ===========================
# RESPONSE MODELS
# ===========================


class ActionResponse(BaseModel):
    """Generic mutation response"""

    success: bool
    message: str
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    writer_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    academic_level_id: int
    service_type_id: int
    language_id: int
    deadline_hours: int
    deadline_date: Optional[datetime] = None
    pages: int
    words: int
    spacing: str
    paper_format: str
    number_of_sources: int
    additional_features: List[Dict[str, Any]] = []
    price: Decimal
    status: str
    created_at: datetime


class StatusHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    previous_status: Optional[str] = None
    status: str
    changed_by: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: Decimal
    payment_method: str
    status: str
    external_transaction_id: Optional[str] = None
    payment_metadata: Optional[Dict[str, Any]] = Field(default=None, serialization_alias="metadata")


class WalletTransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    amount: Decimal
    description: str
    order_id: Optional[int] = None
    payment_method: Optional[str] = None
    status: str
    created_at: datetime


class InquiryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    title: str
    academic_level_id: Optional[int] = None
    service_type_id: Optional[int] = None
    language_id: Optional[int] = None
    deadline_hours: Optional[int] = None
    pages: int
    words: int
    estimated_price: Optional[Decimal] = None
    status: str
    converted_to_order_id: Optional[int] = None
    converted_at: Optional[datetime] = None


# ===========================
# RESULT MAPPING
# ===========================


FAILURE_STATUS_CODES = {
    FailureReason.INSUFFICIENT_FUNDS: 402,
    FailureReason.FORBIDDEN: 403,
    FailureReason.NO_COMPLETED_PAYMENT: 409,
    FailureReason.INVALID_STATUS: 409,
    FailureReason.ALREADY_CONVERTED: 409,
    FailureReason.COUPON_INVALID: 409,
    FailureReason.COUPON_ALREADY_USED: 409,
    FailureReason.INSUFFICIENT_POINTS: 409,
    FailureReason.PROCESSOR_FAILURE: 502,
    FailureReason.INTEGRITY_ERROR: 503,
}


def service_response(result: ServiceResult, data: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """
    Render a ServiceResult

    Success -> 200 with `data`; failure -> mapped status code with the
    reason in `error` and context in `details`.
    """
    if result.success:
        body = ActionResponse(success=True, message=result.message, data=data)
        return JSONResponse(status_code=200, content=body.model_dump(mode="json", by_alias=True))

    body = ActionResponse(
        success=False,
        message=result.message,
        error=result.reason.value if result.reason else None,
        details=result.details,
    )
    status_code = FAILURE_STATUS_CODES.get(result.reason, 400)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


def dump(model: type[BaseModel], obj: Any) -> Dict[str, Any]:
    """ORM object -> plain dict through a response model"""
    return model.model_validate(obj).model_dump(by_alias=True)
