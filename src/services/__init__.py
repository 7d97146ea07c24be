"""Domain services: pricing, order lifecycle, settlement, wallet"""
from .coupon_service import CouponService
from .inquiry_service import InquiryService
from .order_service import OrderLifecycleService
from .pricing_service import PricingService
from .rate_catalog import RateCatalog
from .reward_service import RewardService
from .settlement_service import SettlementService
from .wallet_service import WalletService

__all__ = [
    'CouponService',
    'InquiryService',
    'OrderLifecycleService',
    'PricingService',
    'RateCatalog',
    'RewardService',
    'SettlementService',
    'WalletService',
]
