"""
Tests for the pricing engine
Covers the pure calculation, catalog-backed estimates and feature re-pricing
"""

import pytest
from decimal import Decimal

from config.pricing import to_money
from src.core.enums import IncrementType
from src.core.errors import InvalidInputError
from src.services.order_service import OrderLifecycleService
from src.services.pricing_service import (
    FeatureById,
    InlineFeature,
    PricingService,
    calculate_price,
    increment_multiplier,
    normalize_features,
)
from src.services.rate_catalog import RateCatalog


ONE = Decimal(1)


# ============================================================================
# PURE CALCULATION
# ============================================================================


def test_increment_multiplier_percent():
    """Percent increments scale by 1 + amount/100"""
    assert increment_multiplier(IncrementType.PERCENT, Decimal("20")) == Decimal("1.2")
    assert increment_multiplier("percent", Decimal("0")) == ONE


def test_increment_multiplier_fixed_is_applied_as_percent():
    """A fixed service/language increment of 15 behaves like +15%"""
    assert increment_multiplier(IncrementType.FIXED, Decimal("15")) == Decimal("1.15")


def test_calculate_price_without_features():
    """12.00/page x 5 pages x 1.2 = 72.00"""
    estimate = calculate_price(Decimal("12.00"), Decimal("1.2"), ONE, 5)

    assert estimate.total == Decimal("72.00")
    assert estimate.per_page == Decimal("14.40")
    assert estimate.breakdown.base_cost == Decimal("72.00")
    assert estimate.breakdown.features_cost == Decimal("0.00")
    assert estimate.breakdown.features == []


def test_calculate_price_fixed_and_percent_features():
    """Fixed features add a flat amount, percent features scale with the base"""
    features = [
        InlineFeature(IncrementType.FIXED, Decimal("9.99"), name="Plagiarism Report"),
        InlineFeature(IncrementType.PERCENT, Decimal("25"), name="Top Writer"),
    ]
    estimate = calculate_price(Decimal("12.00"), Decimal("1.2"), ONE, 5, features)

    costs = [f.cost for f in estimate.breakdown.features]
    assert costs == [Decimal("9.99"), Decimal("18.00")]
    assert estimate.breakdown.features_cost == Decimal("27.99")
    assert estimate.total == Decimal("99.99")
    assert estimate.per_page == Decimal("20.00")


def test_feature_cost_rounds_half_up_to_cents():
    """12.5% of 10.01 = 1.25125 -> 1.25"""
    features = [InlineFeature(IncrementType.PERCENT, Decimal("12.5"))]
    estimate = calculate_price(Decimal("10.01"), ONE, ONE, 1, features)

    assert estimate.breakdown.features[0].cost == Decimal("1.25")
    assert estimate.total == Decimal("11.26")


def test_breakdown_reconciles_with_total():
    """base_cost + features_cost == total for awkward prices"""
    features = [
        InlineFeature(IncrementType.PERCENT, Decimal("33")),
        InlineFeature(IncrementType.PERCENT, Decimal("7.5")),
        InlineFeature(IncrementType.FIXED, Decimal("4.99")),
    ]
    for base in (Decimal("9.99"), Decimal("13.37"), Decimal("17.01")):
        for pages in (1, 3, 7, 11):
            estimate = calculate_price(base, Decimal("1.15"), Decimal("1.1"), pages, features)
            breakdown = estimate.breakdown

            assert breakdown.base_cost + breakdown.features_cost == estimate.total
            assert sum(f.cost for f in breakdown.features) == breakdown.features_cost
            assert estimate.per_page == to_money(estimate.total / pages)


def test_price_is_monotonic_in_pages():
    """More pages never cost less"""
    features = [InlineFeature(IncrementType.PERCENT, Decimal("25"))]
    totals = [
        calculate_price(Decimal("12.00"), Decimal("1.2"), ONE, pages, features).total
        for pages in range(1, 31)
    ]
    assert totals == sorted(totals)


def test_price_is_monotonic_in_feature_amount():
    """A larger feature amount never lowers the total"""
    totals = [
        calculate_price(
            Decimal("12.00"),
            ONE,
            ONE,
            3,
            [InlineFeature(IncrementType.PERCENT, Decimal(amount))],
        ).total
        for amount in range(0, 101, 5)
    ]
    assert totals == sorted(totals)


# ============================================================================
# FEATURE NORMALIZATION
# ============================================================================


def test_normalize_features_accepts_mixed_shapes():
    """ids, numeric strings, id dicts and inline dicts are all accepted"""
    selections = normalize_features([1, "2", {"id": 3}, {"type": "percent", "amount": 10}])

    assert selections == [
        FeatureById(1),
        FeatureById(2),
        FeatureById(3),
        InlineFeature(IncrementType.PERCENT, Decimal("10")),
    ]


def test_normalize_features_none_is_empty():
    """No features -> empty list"""
    assert normalize_features(None) == []


def test_normalize_features_reports_every_bad_entry():
    """Each malformed entry produces its own field error"""
    with pytest.raises(InvalidInputError) as exc_info:
        normalize_features(
            [True, "abc", {"type": "bogus", "amount": 1}, {"type": "fixed", "amount": -1}]
        )

    fields = [e.field for e in exc_info.value.errors]
    assert fields == ["features[0]", "features[1]", "features[2]", "features[3]"]


# ============================================================================
# CATALOG-BACKED ESTIMATES
# ============================================================================


@pytest.mark.asyncio
async def test_estimate_basic_order(db_session, catalog):
    """College 24h $12, Technical +20%, English, 5 pages -> $72.00"""
    service = PricingService()
    estimate = await service.estimate(
        db_session,
        catalog.college.id,
        catalog.technical.id,
        24,
        catalog.english.id,
        5,
        [],
    )

    assert estimate.total == Decimal("72.00")
    assert estimate.per_page == Decimal("14.40")
    assert estimate.breakdown.base_price == Decimal("12.00")
    assert estimate.breakdown.service_multiplier == Decimal("1.2")
    assert estimate.breakdown.language_multiplier == ONE
    assert estimate.breakdown.used_default_base_price is False


@pytest.mark.asyncio
async def test_estimate_fixed_subject_increment(db_session, catalog):
    """Fixed subject increment of 15 prices as +15%: 12 x 5 x 1.15 = 69.00"""
    estimate = await PricingService().estimate(
        db_session, catalog.college.id, catalog.flat_subject.id, 24, catalog.english.id, 5
    )
    assert estimate.total == Decimal("69.00")


@pytest.mark.asyncio
async def test_estimate_language_multiplier(db_session, catalog):
    """Spanish +10% stacks with the subject multiplier"""
    estimate = await PricingService().estimate(
        db_session, catalog.college.id, catalog.technical.id, 24, catalog.spanish.id, 5
    )
    assert estimate.total == Decimal("79.20")


@pytest.mark.asyncio
async def test_estimate_with_catalog_features(db_session, catalog):
    """Top Writer +25% on a $72.00 base adds $18.00"""
    estimate = await PricingService().estimate(
        db_session,
        catalog.college.id,
        catalog.technical.id,
        24,
        catalog.english.id,
        5,
        [catalog.top_writer.id],
    )

    assert estimate.total == Decimal("90.00")
    assert estimate.per_page == Decimal("18.00")
    assert len(estimate.breakdown.features) == 1
    assert estimate.breakdown.features[0].id == catalog.top_writer.id
    assert estimate.breakdown.features[0].cost == Decimal("18.00")


@pytest.mark.asyncio
async def test_estimate_per_page_is_rounded(db_session, catalog):
    """81.99 / 5 = 16.398 -> 16.40"""
    estimate = await PricingService().estimate(
        db_session,
        catalog.college.id,
        catalog.technical.id,
        24,
        catalog.english.id,
        5,
        [catalog.plagiarism_report.id],
    )

    assert estimate.total == Decimal("81.99")
    assert estimate.per_page == Decimal("16.40")


@pytest.mark.asyncio
async def test_estimate_skips_unknown_and_inactive_features(db_session, catalog):
    """Unknown ids and inactive features contribute nothing"""
    estimate = await PricingService().estimate(
        db_session,
        catalog.college.id,
        catalog.technical.id,
        24,
        catalog.english.id,
        5,
        [catalog.retired_feature.id, 9999],
    )

    assert estimate.total == Decimal("72.00")
    assert estimate.breakdown.features == []


@pytest.mark.asyncio
async def test_estimate_inline_features(db_session, catalog):
    """Inline {type, amount} entries are priced without a catalog lookup"""
    estimate = await PricingService().estimate(
        db_session,
        catalog.college.id,
        catalog.technical.id,
        24,
        catalog.english.id,
        5,
        [{"type": "fixed", "amount": "5"}, {"type": "percent", "amount": "10"}],
    )

    assert estimate.breakdown.features_cost == Decimal("12.20")
    assert estimate.total == Decimal("84.20")


@pytest.mark.asyncio
async def test_estimate_falls_back_to_default_base_price(db_session, catalog):
    """No Ph.D 24h rate -> default $10.00/page: 10 x 5 x 1.2 = 60.00"""
    estimate = await PricingService().estimate(
        db_session, catalog.phd.id, catalog.technical.id, 24, catalog.english.id, 5
    )

    assert estimate.total == Decimal("60.00")
    assert estimate.breakdown.base_price == Decimal("10.00")
    assert estimate.breakdown.used_default_base_price is True


@pytest.mark.asyncio
async def test_estimate_uses_configured_default(db_session, catalog):
    """The fallback base price is configurable per service"""
    service = PricingService(default_base_price=Decimal("7.50"))
    estimate = await service.estimate(
        db_session, catalog.phd.id, catalog.technical.id, 24, catalog.english.id, 5
    )
    assert estimate.total == Decimal("45.00")


@pytest.mark.asyncio
async def test_estimate_unknown_modifiers_count_as_one(db_session, catalog):
    """Unknown or missing service type / language ids are x1.0"""
    service = PricingService()

    unknown = await service.estimate(db_session, catalog.college.id, 999, 24, 999, 5)
    missing = await service.estimate(db_session, catalog.college.id, None, 24, None, 5)

    assert unknown.total == Decimal("60.00")
    assert missing.total == Decimal("60.00")


@pytest.mark.asyncio
async def test_estimate_rejects_zero_pages(db_session, catalog):
    """pages < 1 is invalid input"""
    with pytest.raises(InvalidInputError) as exc_info:
        await PricingService().estimate(
            db_session, catalog.college.id, catalog.technical.id, 24, catalog.english.id, 0
        )

    assert exc_info.value.errors[0].field == "pages"


@pytest.mark.asyncio
async def test_soft_deleted_rate_reprices_new_estimates_only(db_session, catalog, client_user, order_data):
    """Deleting a rate sends new quotes to the default; existing orders keep their price"""
    lifecycle = OrderLifecycleService()
    order = await lifecycle.create_order(db_session, client_user, order_data())
    assert order.price == Decimal("72.00")

    await RateCatalog.soft_delete_rate(db_session, catalog.rate_24h.id)

    estimate = await PricingService().estimate(
        db_session, catalog.college.id, catalog.technical.id, 24, catalog.english.id, 5
    )
    assert estimate.breakdown.used_default_base_price is True
    assert estimate.total == Decimal("60.00")

    await db_session.refresh(order)
    assert order.price == Decimal("72.00")


# ============================================================================
# RE-PRICING AND PRESETS
# ============================================================================


@pytest.mark.asyncio
async def test_quote_additional_features(db_session, catalog, client_user, order_data):
    """New features are priced against the order's effective per-page rate"""
    order = await OrderLifecycleService().create_order(db_session, client_user, order_data())

    quote = await PricingService().quote_additional_features(
        db_session,
        order,
        [catalog.top_writer.id, catalog.plagiarism_report.id, catalog.retired_feature.id, 9999],
    )

    assert quote.per_page == Decimal("14.40")
    assert [f.id for f in quote.features] == [catalog.top_writer.id, catalog.plagiarism_report.id]
    assert quote.total == Decimal("27.99")
    assert [s["id"] for s in quote.snapshots()] == [catalog.top_writer.id, catalog.plagiarism_report.id]


@pytest.mark.asyncio
async def test_quote_skips_features_already_on_order(db_session, catalog, client_user, order_data):
    """A feature already in the snapshot is not charged twice"""
    order = await OrderLifecycleService().create_order(
        db_session, client_user, order_data(features=[catalog.top_writer.id])
    )

    quote = await PricingService().quote_additional_features(
        db_session, order, [catalog.top_writer.id, catalog.top_writer.id]
    )

    assert quote.features == []
    assert quote.total == Decimal("0.00")
    assert quote.per_page == Decimal("18.00")


@pytest.mark.asyncio
async def test_preset_price(db_session):
    """Preset total = base x multiplier x pages, 0.00 without a match"""
    await RateCatalog.create_preset(
        db_session,
        "Undergraduate essay",
        "undergraduate",
        "writing",
        "standard",
        Decimal("15.00"),
        Decimal("1.50"),
    )
    service = PricingService()

    assert await service.preset_price(db_session, "undergraduate", "writing", "standard", 4) == Decimal("90.00")
    assert await service.preset_price(db_session, "masters", "writing", "standard", 4) == Decimal("0.00")


@pytest.mark.asyncio
async def test_get_pricing_options(db_session, catalog):
    """Only active catalog rows are offered"""
    options = await PricingService().get_pricing_options(db_session)

    assert [level.level for level in options["academic_levels"]] == ["College", "Ph.D"]
    assert [rate.hours for rate in options["rates"]] == [24, 72]
    assert [s.label for s in options["service_types"]] == ["Flat subject", "Technical", "Writing"]
    assert [lang.label for lang in options["languages"]] == ["English", "Spanish"]
    assert [f.name for f in options["features"]] == ["Top Writer", "Plagiarism Report"]
