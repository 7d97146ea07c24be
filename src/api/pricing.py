"""
Pricing API endpoints

Public quote endpoints: callable without an identity.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import IncrementType
from src.database.engine import get_session
from src.services.pricing_service import PricingService

router = APIRouter(prefix="/pricing", tags=["pricing"])

pricing_service = PricingService()


# ===========================
# MODELS
# ===========================


class EstimateRequest(BaseModel):
    academic_level_id: int
    service_type_id: Optional[int] = None
    deadline_hours: int = Field(ge=1)
    language_id: Optional[int] = None
    pages: int = Field(ge=1)
    features: List[Union[int, Dict[str, Any]]] = []


class FeatureCostOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: Optional[str] = None
    type: IncrementType
    amount: Decimal
    cost: Decimal


class BreakdownOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    base_price: Decimal
    service_multiplier: Decimal
    language_multiplier: Decimal
    pages: int
    base_cost: Decimal
    features_cost: Decimal
    features: List[FeatureCostOut]
    used_default_base_price: bool


class EstimateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: Decimal
    per_page: Decimal
    breakdown: BreakdownOut


class CatalogItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    label: str
    inc_type: IncrementType
    amount: Decimal


class FeatureItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    inc_type: IncrementType
    amount: Decimal
    sort_order: int


class LevelItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level: str


class RateItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    academic_level_id: int
    hours: int
    label: str
    cost: Decimal


class PricingOptionsResponse(BaseModel):
    academic_levels: List[LevelItem]
    rates: List[RateItem]
    service_types: List[CatalogItem]
    languages: List[CatalogItem]
    features: List[FeatureItem]


# ===========================
# ENDPOINTS
# ===========================


@router.post("/estimate", response_model=EstimateResponse)
async def estimate_price(
    request: EstimateRequest,
    session: AsyncSession = Depends(get_session),
):
    """
    Quote a prospective order

    Missing catalog entries degrade to defaults; the breakdown reconciles
    exactly with the total.
    """
    estimate = await pricing_service.estimate(
        session,
        request.academic_level_id,
        request.service_type_id,
        request.deadline_hours,
        request.language_id,
        request.pages,
        request.features,
    )
    return EstimateResponse.model_validate(estimate)


@router.get("/options", response_model=PricingOptionsResponse)
async def pricing_options(session: AsyncSession = Depends(get_session)):
    """Active catalog entries for the order form"""
    options = await pricing_service.get_pricing_options(session)
    return PricingOptionsResponse.model_validate(options, from_attributes=True)


@router.get("/preset")
async def preset_price(
    academic_level: str,
    service_type: str,
    deadline_type: str,
    pages: int = Query(ge=1),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, str]:
    """Legacy preset lookup (0.00 when no preset matches)"""
    price = await pricing_service.preset_price(
        session, academic_level, service_type, deadline_type, pages
    )
    return {"price": str(price)}
