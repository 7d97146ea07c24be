"""
Order API endpoints

Handles:
- Order creation and listing for clients
- Status transitions (staff; cancel also by the owning client)
- Adding services and coupons to an existing order
"""

from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user, require_admin, require_staff
from src.api.schemas import OrderOut, StatusHistoryOut, dump, service_response
from src.core.enums import OrderStatus
from src.database.crud import require_order, require_user
from src.database.engine import get_session
from src.database.models import Order, User
from src.services.coupon_service import CouponService
from src.services.order_service import OrderLifecycleService

router = APIRouter(prefix="/orders", tags=["orders"])

order_service = OrderLifecycleService()
coupon_service = CouponService()


# ===========================
# REQUEST MODELS
# ===========================


class CreateOrderRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    paper_type: Optional[str] = None
    academic_level_id: int
    service_type_id: int
    language_id: int
    deadline_hours: int = Field(ge=1)
    pages: int = Field(ge=1)
    spacing: str = "double"
    paper_format: Optional[str] = None
    number_of_sources: int = Field(default=2, ge=0)
    features: List[Union[int, Dict[str, Any]]] = []
    client_notes: Optional[str] = None


class NotesRequest(BaseModel):
    notes: Optional[str] = None


class AssignRequest(BaseModel):
    writer_id: int


class AddFeaturesRequest(BaseModel):
    feature_ids: List[int]


class ApplyCouponRequest(BaseModel):
    code: str


def ensure_order_access(order: Order, user: User) -> None:
    """Owner or staff only"""
    if not (user.is_staff or order.client_id == user.id):
        raise HTTPException(status_code=403, detail="Not your order")


# ===========================
# ORDERS
# ===========================


@router.post("", response_model=OrderOut, status_code=201)
async def create_order(
    request: CreateOrderRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a priced order at `placed`"""
    order = await order_service.create_order(session, user, request.model_dump(exclude_none=True))
    return OrderOut.model_validate(order)


@router.get("", response_model=List[OrderOut])
async def list_orders(
    status: Optional[OrderStatus] = None,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Own orders for clients; orders in `status` (default placed) for staff"""
    if user.is_staff:
        orders = await order_service.get_orders_by_status(session, status or OrderStatus.PLACED)
    else:
        orders = await order_service.get_client_orders(session, user.id, status)
    return [OrderOut.model_validate(o) for o in orders]


@router.get("/{order_id}", response_model=OrderOut)
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    order = await require_order(session, order_id)
    ensure_order_access(order, user)
    return OrderOut.model_validate(order)


@router.get("/{order_id}/history", response_model=List[StatusHistoryOut])
async def get_order_history(
    order_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    order = await require_order(session, order_id)
    ensure_order_access(order, user)
    history = await order_service.get_status_history(session, order.id)
    return [StatusHistoryOut.model_validate(h) for h in history]


# ===========================
# STATUS TRANSITIONS
# ===========================


@router.post("/{order_id}/status/accept")
async def accept_order(
    order_id: int,
    request: NotesRequest = NotesRequest(),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    order = await require_order(session, order_id)
    result = await order_service.accept(session, order, admin, request.notes)
    return service_response(result, {"order": dump(OrderOut, order)})


@router.post("/{order_id}/status/assign")
async def assign_order(
    order_id: int,
    request: AssignRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    order = await require_order(session, order_id)
    writer = await require_user(session, request.writer_id)
    result = await order_service.assign(session, order, writer, admin)
    return service_response(result, {"order": dump(OrderOut, order)})


_STAFF_TRANSITIONS = {
    "start": "start_work",
    "submit": "submit_work",
    "review": "request_review",
    "revision": "request_revision",
    "complete": "complete",
}


@router.post("/{order_id}/status/{action}")
async def change_order_status(
    order_id: int,
    action: str,
    request: NotesRequest = NotesRequest(),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """
    Staff transitions (start, submit, review, revision, complete) and cancel

    Cancel is also open to the owning client and refunds a completed
    payment to the wallet first.
    """
    order = await require_order(session, order_id)

    if action == "cancel":
        ensure_order_access(order, user)
        result = await order_service.cancel(session, order, user, request.notes)
        return service_response(result, {"order": dump(OrderOut, order)})

    method_name = _STAFF_TRANSITIONS.get(action)
    if method_name is None:
        raise HTTPException(status_code=404, detail=f"Unknown status action: {action}")

    await require_staff(user)

    method = getattr(order_service, method_name)
    if action in ("submit", "revision", "complete"):
        result = await method(session, order, user.id, request.notes)
    else:
        result = await method(session, order, user.id)
    return service_response(result, {"order": dump(OrderOut, order)})


# ===========================
# RE-PRICING
# ===========================


@router.post("/{order_id}/features")
async def add_order_features(
    order_id: int,
    request: AddFeaturesRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Add services to an order at its effective per-page rate"""
    order = await require_order(session, order_id)
    ensure_order_access(order, user)
    result = await order_service.add_features(session, order, request.feature_ids, user.id)
    return service_response(result, {"order": dump(OrderOut, order), **result.details})


@router.post("/{order_id}/coupon")
async def apply_coupon(
    order_id: int,
    request: ApplyCouponRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    order = await require_order(session, order_id)
    if order.client_id != user.id:
        raise HTTPException(status_code=403, detail="Not your order")
    result = await coupon_service.apply_to_order(session, request.code, order, user.id)
    return service_response(result, {"order": dump(OrderOut, order), **result.details})
