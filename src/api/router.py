"""
Main API router
"""

from fastapi import APIRouter

from src.api.admin import router as admin_router
from src.api.inquiries import router as inquiries_router
from src.api.orders import router as orders_router
from src.api.payment import router as payment_router
from src.api.pricing import router as pricing_router
from src.api.wallet import router as wallet_router


router = APIRouter()

# Sub-routers carry their own prefixes
router.include_router(pricing_router)  # Public quotes and catalog
router.include_router(orders_router)
router.include_router(payment_router)  # Settlement under /orders/{id}/pay
router.include_router(wallet_router)  # Wallet and reward points
router.include_router(inquiries_router)
router.include_router(admin_router)  # Rates, presets, coupons, stats
