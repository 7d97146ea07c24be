"""
Pricing configuration for PaperDesk orders

All prices in the platform currency (config.CURRENCY)
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from config.config import DEFAULT_BASE_PRICE_PER_PAGE, MAX_PAGES_PER_ORDER


# Quoted when the catalog has no active rate for (academic level, deadline hours)
DEFAULT_BASE_PRICE: Decimal = DEFAULT_BASE_PRICE_PER_PAGE

MIN_PAGES = 1
MAX_PAGES = MAX_PAGES_PER_ORDER

# Words per page by line spacing
WORDS_PER_PAGE: Dict[str, int] = {
    "double": 250,
    "single": 500,
}
DEFAULT_SPACING = "double"

DEFAULT_PAPER_FORMAT = "APA"
DEFAULT_NUMBER_OF_SOURCES = 2

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """
    Quantize a value to two decimal places (half-up)

    Args:
        value: Decimal, int or numeric string

    Returns:
        Decimal with exactly two decimal places
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def words_for_pages(pages: int, spacing: str = DEFAULT_SPACING) -> int:
    """
    Get word count for a number of pages

    Unknown spacing falls back to double spacing.
    """
    return pages * WORDS_PER_PAGE.get(spacing, WORDS_PER_PAGE[DEFAULT_SPACING])
