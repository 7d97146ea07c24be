"""
Inquiry API endpoints

Draft -> submitted -> (estimated) -> converted into an order, once.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import get_current_user
from src.api.pricing import EstimateResponse
from src.api.schemas import InquiryOut, OrderOut, dump, service_response
from src.database.crud import get_client_inquiries, require_inquiry
from src.database.engine import get_session
from src.database.models import Inquiry, User
from src.services.inquiry_service import InquiryService

router = APIRouter(prefix="/inquiries", tags=["inquiries"])

inquiry_service = InquiryService()


class CreateInquiryRequest(BaseModel):
    title: str
    description: Optional[str] = None
    paper_type: Optional[str] = None
    academic_level_id: Optional[int] = None
    service_type_id: Optional[int] = None
    language_id: Optional[int] = None
    deadline_hours: Optional[int] = Field(default=None, ge=1)
    deadline_date: Optional[datetime] = None
    pages: int = Field(default=1, ge=1)
    spacing: str = "double"
    paper_format: Optional[str] = None
    number_of_sources: int = Field(default=0, ge=0)
    features: List[Union[int, Dict[str, Any]]] = []
    client_notes: Optional[str] = None


async def _visible_inquiry(session: AsyncSession, inquiry_id: int, user: User) -> Inquiry:
    inquiry = await require_inquiry(session, inquiry_id)
    if not (user.is_staff or inquiry.client_id == user.id):
        raise HTTPException(status_code=403, detail="Not your inquiry")
    return inquiry


@router.post("", response_model=InquiryOut, status_code=201)
async def create_inquiry(
    request: CreateInquiryRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    inquiry = await inquiry_service.create_inquiry(session, user.id, request.model_dump(exclude_none=True))
    return InquiryOut.model_validate(inquiry)


@router.get("", response_model=List[InquiryOut])
async def list_inquiries(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    inquiries = await get_client_inquiries(session, user.id)
    return [InquiryOut.model_validate(i) for i in inquiries]


@router.get("/{inquiry_id}", response_model=InquiryOut)
async def get_inquiry(
    inquiry_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    inquiry = await _visible_inquiry(session, inquiry_id, user)
    return InquiryOut.model_validate(inquiry)


@router.post("/{inquiry_id}/submit")
async def submit_inquiry(
    inquiry_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    inquiry = await _visible_inquiry(session, inquiry_id, user)
    result = await inquiry_service.submit_inquiry(session, inquiry)
    return service_response(result, {"inquiry": dump(InquiryOut, inquiry)})


@router.post("/{inquiry_id}/estimate")
async def estimate_inquiry(
    inquiry_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Price the inquiry with the current catalog"""
    inquiry = await _visible_inquiry(session, inquiry_id, user)
    result = await inquiry_service.estimate_inquiry(session, inquiry)
    data = None
    if result.success:
        data = {
            "inquiry": dump(InquiryOut, inquiry),
            "estimate": EstimateResponse.model_validate(result.details["estimate"]).model_dump(),
        }
    return service_response(result, data)


@router.post("/{inquiry_id}/convert")
async def convert_inquiry(
    inquiry_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create the order for this inquiry (409 if already converted)"""
    inquiry = await _visible_inquiry(session, inquiry_id, user)
    result = await inquiry_service.convert_to_order(session, inquiry, actor_id=user.id)
    data = None
    if result.success:
        data = {"order": dump(OrderOut, result.order), "inquiry": dump(InquiryOut, result.inquiry)}
    return service_response(result, data)
