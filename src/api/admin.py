"""
Admin API endpoints

Rate table and preset management, coupons, platform statistics.
All routes require the admin role.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.auth import require_admin
from src.api.pricing import RateItem
from src.api.schemas import dump, service_response
from src.core.enums import CouponDiscountType, IncrementType
from src.core.results import ServiceResult
from src.database.engine import get_session
from src.services.coupon_service import CouponService
from src.services.order_service import OrderLifecycleService
from src.services.rate_catalog import RateCatalog
from src.services.settlement_service import SettlementService
from src.services.wallet_service import WalletService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# ===========================
# MODELS
# ===========================


class CreateRateRequest(BaseModel):
    academic_level_id: int
    hours: int = Field(ge=1)
    cost: Decimal = Field(ge=0)
    label: Optional[str] = None


class UpdateRateRequest(BaseModel):
    hours: Optional[int] = Field(default=None, ge=1)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    label: Optional[str] = None


class BulkAdjustRequest(BaseModel):
    mode: IncrementType
    value: Decimal


class CreatePresetRequest(BaseModel):
    name: str
    academic_level: str
    service_type: str
    deadline_type: str
    base_price_per_page: Decimal = Field(ge=0)
    multiplier: Decimal = Field(default=Decimal("1.00"), gt=0)


class UpdatePresetRequest(BaseModel):
    name: Optional[str] = None
    base_price_per_page: Optional[Decimal] = Field(default=None, ge=0)
    multiplier: Optional[Decimal] = Field(default=None, gt=0)


class PresetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    academic_level: str
    service_type: str
    deadline_type: str
    base_price_per_page: Decimal
    multiplier: Decimal
    is_active: bool


class CreateCouponRequest(BaseModel):
    code: str
    name: str
    discount_type: CouponDiscountType
    discount_amount: Decimal = Field(gt=0)
    minimum_order_amount: Decimal = Field(default=Decimal("0.00"), ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    description: Optional[str] = None


class CouponOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    discount_type: str
    discount_amount: Decimal
    minimum_order_amount: Decimal
    usage_limit: Optional[int] = None
    used_count: int
    is_active: bool


# ===========================
# RATE TABLE
# ===========================


@router.post("/pricing/rates", response_model=RateItem, status_code=201)
async def create_rate(request: CreateRateRequest, session: AsyncSession = Depends(get_session)):
    rate = await RateCatalog.create_rate(
        session, request.academic_level_id, request.hours, request.cost, request.label
    )
    return RateItem.model_validate(rate)


@router.patch("/pricing/rates/{rate_id}", response_model=RateItem)
async def update_rate(
    rate_id: int,
    request: UpdateRateRequest,
    session: AsyncSession = Depends(get_session),
):
    rate = await RateCatalog.update_rate(
        session, rate_id, cost=request.cost, hours=request.hours, label=request.label
    )
    return RateItem.model_validate(rate)


@router.delete("/pricing/rates/{rate_id}")
async def delete_rate(rate_id: int, session: AsyncSession = Depends(get_session)):
    """Soft delete: the row stays for historical orders"""
    rate = await RateCatalog.soft_delete_rate(session, rate_id)
    return service_response(ServiceResult.ok("Rate deleted"), {"rate": dump(RateItem, rate)})


@router.post("/pricing/rates/bulk-adjust")
async def bulk_adjust_rates(request: BulkAdjustRequest, session: AsyncSession = Depends(get_session)):
    """Shift every active rate by a percentage or a fixed amount"""
    updated = await RateCatalog.bulk_adjust_rates(session, request.mode, request.value)
    return service_response(ServiceResult.ok(f"{updated} rates updated"), {"updated": updated})


@router.get("/pricing/matrix")
async def pricing_matrix(session: AsyncSession = Depends(get_session)):
    matrix = await RateCatalog.get_pricing_matrix(session)
    return service_response(ServiceResult.ok("Pricing matrix"), {"matrix": matrix})


# ===========================
# PRESETS
# ===========================


@router.post("/pricing/presets", response_model=PresetOut, status_code=201)
async def create_preset(request: CreatePresetRequest, session: AsyncSession = Depends(get_session)):
    preset = await RateCatalog.create_preset(
        session,
        request.name,
        request.academic_level,
        request.service_type,
        request.deadline_type,
        request.base_price_per_page,
        request.multiplier,
    )
    return PresetOut.model_validate(preset)


@router.patch("/pricing/presets/{preset_id}", response_model=PresetOut)
async def update_preset(
    preset_id: int,
    request: UpdatePresetRequest,
    session: AsyncSession = Depends(get_session),
):
    preset = await RateCatalog.update_preset(
        session,
        preset_id,
        name=request.name,
        base_price_per_page=request.base_price_per_page,
        multiplier=request.multiplier,
    )
    return PresetOut.model_validate(preset)


@router.delete("/pricing/presets/{preset_id}", response_model=PresetOut)
async def deactivate_preset(preset_id: int, session: AsyncSession = Depends(get_session)):
    preset = await RateCatalog.deactivate_preset(session, preset_id)
    return PresetOut.model_validate(preset)


# ===========================
# COUPONS
# ===========================


@router.post("/coupons", response_model=CouponOut, status_code=201)
async def create_coupon(request: CreateCouponRequest, session: AsyncSession = Depends(get_session)):
    coupon = await CouponService.create_coupon(
        session,
        request.code,
        request.name,
        request.discount_type,
        request.discount_amount,
        minimum_order_amount=request.minimum_order_amount,
        usage_limit=request.usage_limit,
        starts_at=request.starts_at,
        expires_at=request.expires_at,
        description=request.description,
    )
    return CouponOut.model_validate(coupon)


# ===========================
# STATISTICS
# ===========================


@router.get("/stats")
async def platform_stats(session: AsyncSession = Depends(get_session)):
    """Orders, payments and wallets at a glance"""
    orders = await OrderLifecycleService.get_order_statistics(session)
    payments = await SettlementService.get_payment_statistics(session)
    by_method = await SettlementService.get_payments_by_method(session)
    wallets = await WalletService.get_all_wallet_statistics(session)
    return service_response(
        ServiceResult.ok("Platform statistics"),
        {
            "orders": orders,
            "payments": {**payments, "by_method": by_method},
            "wallets": wallets,
        },
    )
