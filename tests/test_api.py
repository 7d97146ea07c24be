"""
End-to-end tests for the HTTP API
Runs the FastAPI app in-process against the test database session
"""

import pytest
from httpx import ASGITransport, AsyncClient

from api_server import app
from src.database.engine import get_session


def auth(user) -> dict:
    return {"X-User-Id": str(user.id)}


@pytest.fixture
async def api(db_session):
    """HTTP client bound to the test session"""

    async def override_session():
        yield db_session

    app.dependency_overrides[get_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def order_payload(catalog):
    return {
        "title": "Thermodynamics essay",
        "academic_level_id": catalog.college.id,
        "service_type_id": catalog.technical.id,
        "language_id": catalog.english.id,
        "deadline_hours": 24,
        "pages": 5,
    }


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================


@pytest.mark.asyncio
async def test_health(api):
    """Health check"""
    response = await api.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_estimate(api, catalog):
    """Quote for College 24h Technical English 5 pages"""
    response = await api.post(
        "/api/pricing/estimate",
        json={
            "academic_level_id": catalog.college.id,
            "service_type_id": catalog.technical.id,
            "deadline_hours": 24,
            "language_id": catalog.english.id,
            "pages": 5,
            "features": [catalog.top_writer.id],
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == "90.00"
    assert body["per_page"] == "18.00"
    assert body["breakdown"]["base_cost"] == "72.00"
    assert body["breakdown"]["features_cost"] == "18.00"
    assert body["breakdown"]["used_default_base_price"] is False


@pytest.mark.asyncio
async def test_estimate_rejects_zero_pages(api, catalog):
    """Request validation happens before pricing"""
    response = await api.post(
        "/api/pricing/estimate",
        json={"academic_level_id": catalog.college.id, "deadline_hours": 24, "pages": 0},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_pricing_options(api, catalog):
    """Active catalog for the order form"""
    response = await api.get("/api/pricing/options")

    assert response.status_code == 200
    body = response.json()
    assert [f["name"] for f in body["features"]] == ["Top Writer", "Plagiarism Report"]
    assert len(body["rates"]) == 2


# ============================================================================
# ORDERS
# ============================================================================


@pytest.mark.asyncio
async def test_create_order_requires_identity(api, order_payload):
    """No X-User-Id header -> 401"""
    response = await api.post("/api/orders", json=order_payload)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_and_read_order(api, client_user, other_client, order_payload):
    """Owners see their orders, other clients do not"""
    created = await api.post("/api/orders", json=order_payload, headers=auth(client_user))

    assert created.status_code == 201
    order = created.json()
    assert order["price"] == "72.00"
    assert order["status"] == "placed"

    own = await api.get(f"/api/orders/{order['id']}", headers=auth(client_user))
    foreign = await api.get(f"/api/orders/{order['id']}", headers=auth(other_client))
    assert own.status_code == 200
    assert foreign.status_code == 403

    history = await api.get(f"/api/orders/{order['id']}/history", headers=auth(client_user))
    assert [h["status"] for h in history.json()] == ["placed"]


@pytest.mark.asyncio
async def test_create_order_invalid_catalog_ids(api, client_user, order_payload):
    """Service-level validation errors come back as 422 with field errors"""
    response = await api.post(
        "/api/orders",
        json={**order_payload, "academic_level_id": 999},
        headers=auth(client_user),
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "invalid_input"
    assert [e["field"] for e in body["errors"]] == ["academic_level_id"]


@pytest.mark.asyncio
async def test_unknown_order(api, client_user):
    """Unknown ids -> 404"""
    response = await api.get("/api/orders/9999", headers=auth(client_user))

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


# ============================================================================
# PAYMENT AND WORKFLOW
# ============================================================================


@pytest.mark.asyncio
async def test_wallet_payment_flow(api, client_user, other_client, order_payload):
    """402 without funds, then top up and pay"""
    order_id = (await api.post("/api/orders", json=order_payload, headers=auth(client_user))).json()["id"]

    broke = await api.post(f"/api/orders/{order_id}/pay/wallet", headers=auth(client_user))
    assert broke.status_code == 402
    assert broke.json()["error"] == "insufficient_funds"
    assert broke.json()["details"]["required_amount"] == "72.00"

    options = await api.get(f"/api/orders/{order_id}/payment-options", headers=auth(client_user))
    assert [o["type"] for o in options.json()] == ["external_full"]

    topped = await api.post(
        "/api/wallet/top-up",
        json={"amount": "100.00", "external_transaction_id": "tx_1"},
        headers=auth(client_user),
    )
    assert topped.status_code == 200
    assert topped.json()["data"]["balance"] == "100.00"

    stranger = await api.post(f"/api/orders/{order_id}/pay/wallet", headers=auth(other_client))
    assert stranger.status_code == 403

    paid = await api.post(f"/api/orders/{order_id}/pay/wallet", headers=auth(client_user))
    assert paid.status_code == 200
    assert paid.json()["data"]["order"]["status"] == "active"
    assert paid.json()["data"]["payment"]["status"] == "completed"

    again = await api.post(f"/api/orders/{order_id}/pay/wallet", headers=auth(client_user))
    assert again.status_code == 409

    wallet = await api.get("/api/wallet", headers=auth(client_user))
    assert wallet.json()["balance"] == "28.00"
    assert wallet.json()["transaction_count"] == 2


@pytest.mark.asyncio
async def test_external_payment(api, client_user, order_payload):
    """External payment activates the order"""
    order_id = (await api.post("/api/orders", json=order_payload, headers=auth(client_user))).json()["id"]

    response = await api.post(
        f"/api/orders/{order_id}/pay/external",
        json={"external_transaction_id": "pi_123"},
        headers=auth(client_user),
    )

    assert response.status_code == 200
    payments = await api.get(f"/api/orders/{order_id}/payments", headers=auth(client_user))
    assert [p["payment_method"] for p in payments.json()] == ["external"]


@pytest.mark.asyncio
async def test_staff_workflow(api, client_user, writer, admin, order_payload):
    """Clients cannot drive staff transitions; staff can"""
    order_id = (await api.post("/api/orders", json=order_payload, headers=auth(client_user))).json()["id"]

    not_admin = await api.post(f"/api/orders/{order_id}/status/accept", headers=auth(writer))
    assert not_admin.status_code == 403

    accepted = await api.post(f"/api/orders/{order_id}/status/accept", headers=auth(admin))
    assert accepted.status_code == 200

    assigned = await api.post(
        f"/api/orders/{order_id}/status/assign",
        json={"writer_id": writer.id},
        headers=auth(admin),
    )
    assert assigned.status_code == 200
    assert assigned.json()["data"]["order"]["writer_id"] == writer.id

    by_client = await api.post(f"/api/orders/{order_id}/status/start", headers=auth(client_user))
    assert by_client.status_code == 403

    started = await api.post(f"/api/orders/{order_id}/status/start", headers=auth(writer))
    assert started.status_code == 200

    skipped = await api.post(f"/api/orders/{order_id}/status/complete", headers=auth(writer))
    assert skipped.status_code == 409
    assert skipped.json()["error"] == "invalid_status"

    unknown = await api.post(f"/api/orders/{order_id}/status/teleport", headers=auth(writer))
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_cancel_paid_order_refunds(api, client_user, order_payload):
    """Owner cancellation refunds the wallet"""
    order_id = (await api.post("/api/orders", json=order_payload, headers=auth(client_user))).json()["id"]
    await api.post("/api/wallet/top-up", json={"amount": "72.00"}, headers=auth(client_user))
    await api.post(f"/api/orders/{order_id}/pay/wallet", headers=auth(client_user))

    response = await api.post(
        f"/api/orders/{order_id}/status/cancel",
        json={"notes": "No longer needed"},
        headers=auth(client_user),
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Order cancelled and refund processed"
    wallet = await api.get("/api/wallet", headers=auth(client_user))
    assert wallet.json()["balance"] == "72.00"


@pytest.mark.asyncio
async def test_add_features_endpoint(api, client_user, catalog, order_payload):
    """Add-on services raise the order price"""
    order_id = (await api.post("/api/orders", json=order_payload, headers=auth(client_user))).json()["id"]

    response = await api.post(
        f"/api/orders/{order_id}/features",
        json={"feature_ids": [catalog.plagiarism_report.id]},
        headers=auth(client_user),
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["order"]["price"] == "81.99"
    assert data["added_cost"] == "9.99"


# ============================================================================
# INQUIRIES
# ============================================================================


@pytest.mark.asyncio
async def test_inquiry_conversion(api, client_user, other_client, order_payload):
    """Estimate, convert once, second conversion conflicts"""
    created = await api.post("/api/inquiries", json=order_payload, headers=auth(client_user))
    assert created.status_code == 201
    inquiry_id = created.json()["id"]

    foreign = await api.get(f"/api/inquiries/{inquiry_id}", headers=auth(other_client))
    assert foreign.status_code == 403

    estimated = await api.post(f"/api/inquiries/{inquiry_id}/estimate", headers=auth(client_user))
    assert estimated.status_code == 200
    assert estimated.json()["data"]["estimate"]["total"] == "72.00"

    converted = await api.post(f"/api/inquiries/{inquiry_id}/convert", headers=auth(client_user))
    assert converted.status_code == 200
    order = converted.json()["data"]["order"]
    assert order["status"] == "waiting_for_payment"
    assert order["price"] == "72.00"

    again = await api.post(f"/api/inquiries/{inquiry_id}/convert", headers=auth(client_user))
    assert again.status_code == 409
    assert again.json()["error"] == "already_converted"


# ============================================================================
# ADMIN
# ============================================================================


@pytest.mark.asyncio
async def test_admin_requires_admin_role(api, client_user, writer):
    """Clients and writers cannot reach admin endpoints"""
    assert (await api.get("/api/admin/stats", headers=auth(client_user))).status_code == 403
    assert (await api.get("/api/admin/stats", headers=auth(writer))).status_code == 403
    assert (await api.get("/api/admin/stats")).status_code == 401


@pytest.mark.asyncio
async def test_admin_rate_management(api, admin, catalog):
    """Create, duplicate and soft-delete rates"""
    created = await api.post(
        "/api/admin/pricing/rates",
        json={"academic_level_id": catalog.phd.id, "hours": 24, "cost": "20.00"},
        headers=auth(admin),
    )
    assert created.status_code == 201
    rate_id = created.json()["id"]

    duplicate = await api.post(
        "/api/admin/pricing/rates",
        json={"academic_level_id": catalog.phd.id, "hours": 24, "cost": "21.00"},
        headers=auth(admin),
    )
    assert duplicate.status_code == 422

    deleted = await api.delete(f"/api/admin/pricing/rates/{rate_id}", headers=auth(admin))
    assert deleted.status_code == 200

    stats = await api.get("/api/admin/stats", headers=auth(admin))
    assert stats.status_code == 200
