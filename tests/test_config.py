"""
Unit tests for configuration
"""

import os
from decimal import Decimal

import pytest


def test_config_loading():
    """Test that configuration loads correctly"""
    from config.config import API_RATE_LIMIT, CURRENCY, MAX_PAGES_PER_ORDER
    from config.pricing import (
        DEFAULT_NUMBER_OF_SOURCES,
        DEFAULT_PAPER_FORMAT,
        DEFAULT_SPACING,
        MAX_PAGES,
        MIN_PAGES,
        WORDS_PER_PAGE,
    )

    assert CURRENCY == os.getenv("CURRENCY", "USD")
    assert API_RATE_LIMIT
    assert MIN_PAGES == 1
    assert MAX_PAGES == MAX_PAGES_PER_ORDER

    # Order defaults
    assert DEFAULT_SPACING == "double"
    assert DEFAULT_PAPER_FORMAT == "APA"
    assert DEFAULT_NUMBER_OF_SOURCES == 2
    assert WORDS_PER_PAGE == {"double": 250, "single": 500}


def test_default_base_price_parsing(monkeypatch):
    """DEFAULT_BASE_PRICE_PER_PAGE is read as a Decimal"""
    from importlib import reload
    import config.config as cfg

    monkeypatch.setenv("DEFAULT_BASE_PRICE_PER_PAGE", "12.50")
    reload(cfg)
    assert cfg.DEFAULT_BASE_PRICE_PER_PAGE == Decimal("12.50")

    monkeypatch.delenv("DEFAULT_BASE_PRICE_PER_PAGE")
    reload(cfg)
    assert isinstance(cfg.DEFAULT_BASE_PRICE_PER_PAGE, Decimal)


def test_validate_config():
    """Default configuration passes validation"""
    from config.config import validate_config

    assert validate_config() is True


def test_validate_config_rejects_bad_values(monkeypatch):
    """Invalid limits are reported together"""
    import config.config as cfg

    monkeypatch.setattr(cfg, "DEFAULT_BASE_PRICE_PER_PAGE", Decimal("-1"))
    monkeypatch.setattr(cfg, "MAX_PAGES_PER_ORDER", 0)

    with pytest.raises(ValueError) as exc_info:
        cfg.validate_config()

    message = str(exc_info.value)
    assert "DEFAULT_BASE_PRICE_PER_PAGE" in message
    assert "MAX_PAGES_PER_ORDER" in message


def test_to_money_rounds_half_up():
    """Money is quantized to cents, half-up"""
    from config.pricing import to_money

    assert to_money("2.345") == Decimal("2.35")
    assert to_money(Decimal("2.344")) == Decimal("2.34")
    assert to_money(7) == Decimal("7.00")
    assert str(to_money(Decimal("0.005"))) == "0.01"


def test_words_for_pages():
    """Word counts follow line spacing"""
    from config.pricing import words_for_pages

    assert words_for_pages(3) == 750
    assert words_for_pages(3, "single") == 1500
    assert words_for_pages(2, "unknown") == 500
