"""
Tests for the HTTP API.

Tests status mapping for coupon validation and the ranking, and CORS pre-flight.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from credit_panel.api.app import create_app
from credit_panel.config.loader import CouponConfig, PanelConfig
from credit_panel.core.errors import StoreError
from credit_panel.storage.models import Coupon, DiscountType, GenerationRecord


def make_coupon(**overrides) -> Coupon:
    fields = dict(
        id="c-1",
        code="WELCOME10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
    )
    fields.update(overrides)
    return Coupon(**fields)


@pytest.fixture
def store():
    """Mock store with one coupon and an empty generation log."""
    mock_store = MagicMock()
    mock_store.find_active_coupon.return_value = make_coupon()
    mock_store.list_banned_user_ids.return_value = set()
    mock_store.list_admin_user_ids.return_value = set()
    mock_store.list_negative_balance_user_ids.return_value = set()
    mock_store.fetch_generations.return_value = []
    mock_store.list_user_emails.return_value = {}
    return mock_store


@pytest.fixture
def client(store):
    return TestClient(create_app(store=store, config=PanelConfig()))


class TestValidateCoupon:
    """Test POST /validate-coupon."""

    def test_valid_coupon(self, client):
        response = client.post("/validate-coupon", json={"code": "welcome10", "amount": 100})

        assert response.status_code == 200
        assert response.json() == {
            "valid": True,
            "discount": 10.0,
            "final_amount": 90.0,
            "discount_type": "percentage",
            "discount_value": 10.0,
            "description": "10% off",
        }

    def test_business_rejection_is_200(self, client, store):
        """Verify an expired coupon is a normal response, not an error."""
        store.find_active_coupon.return_value = make_coupon(
            expires_at=datetime.now(timezone.utc) - timedelta(days=1)
        )
        response = client.post("/validate-coupon", json={"code": "WELCOME10", "amount": 100})

        assert response.status_code == 200
        assert response.json() == {"valid": False, "error": "Coupon expired"}

    def test_not_found_is_200(self, client, store):
        store.find_active_coupon.return_value = None
        response = client.post("/validate-coupon", json={"code": "NOPE", "amount": 100})

        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_floor_after_discount_is_200(self, client, store):
        store.find_active_coupon.return_value = make_coupon(
            discount_type=DiscountType.FIXED, discount_value=Decimal("50")
        )
        response = client.post("/validate-coupon", json={"code": "WELCOME10", "amount": 30})

        assert response.status_code == 200
        assert response.json() == {
            "valid": False,
            "error": "Minimum amount with this coupon is R$ 35,00",
        }

    def test_empty_code_is_400(self, client):
        response = client.post("/validate-coupon", json={"code": "  ", "amount": 100})

        assert response.status_code == 400
        assert response.json() == {"valid": False, "error": "Invalid coupon code"}

    def test_amount_below_minimum_is_400(self, client):
        response = client.post("/validate-coupon", json={"code": "WELCOME10", "amount": 2})

        assert response.status_code == 400
        assert response.json()["error"] == "Minimum amount is R$ 5,00"

    def test_missing_amount_is_400(self, client):
        response = client.post("/validate-coupon", json={"code": "WELCOME10"})
        assert response.status_code == 400

    def test_wrong_types_are_400(self, client):
        response = client.post("/validate-coupon", json={"code": "X", "amount": {"value": 1}})

        assert response.status_code == 400
        assert response.json()["valid"] is False

    def test_store_failure_is_500(self, client, store):
        store.find_active_coupon.side_effect = StoreError("down")
        response = client.post("/validate-coupon", json={"code": "WELCOME10", "amount": 100})

        assert response.status_code == 500
        assert response.json() == {"valid": False, "error": "Unable to validate coupon"}

    def test_unexpected_error_is_json_500(self, store):
        """Verify errors outside the store taxonomy still get the generic JSON body."""
        store.find_active_coupon.side_effect = RuntimeError("boom")
        client = TestClient(create_app(store=store, config=PanelConfig()), raise_server_exceptions=False)

        response = client.post(
            "/validate-coupon",
            json={"code": "WELCOME10", "amount": 100},
            headers={"Origin": "https://panel.example.com"}
        )

        assert response.status_code == 500
        assert response.json() == {"valid": False, "error": "Unable to validate coupon"}
        assert response.headers["access-control-allow-origin"] == "*"

    def test_configured_minimum(self, store):
        config = PanelConfig(coupons=CouponConfig(minimum_purchase=Decimal("20")))
        client = TestClient(create_app(store=store, config=config))

        response = client.post("/validate-coupon", json={"code": "WELCOME10", "amount": 15})

        assert response.status_code == 400
        assert "R$ 20,00" in response.json()["error"]


class TestResellerRanking:
    """Test /reseller-ranking."""

    def test_empty_ranking(self, client):
        response = client.get("/reseller-ranking")

        assert response.status_code == 200
        assert response.json() == {"ranking": []}

    def test_ranking_rows(self, client, store):
        store.fetch_generations.return_value = [
            GenerationRecord("u1", Decimal("120")),
            GenerationRecord("u2", Decimal("60.5")),
        ]
        store.list_user_emails.return_value = {"u1": "mariana@x.com", "u2": "ze@x.com"}

        response = client.post("/reseller-ranking")

        assert response.status_code == 200
        assert response.json() == {"ranking": [
            {"position": 1, "name": "Maria...", "credits": 120},
            {"position": 2, "name": "Ze...", "credits": 60.5},
        ]}

    def test_failure_is_500(self, client, store):
        store.list_banned_user_ids.side_effect = StoreError("down")
        response = client.get("/reseller-ranking")

        assert response.status_code == 500
        assert response.json() == {"error": "Ranking unavailable"}


class TestCors:
    """Test cross-origin handling."""

    def test_preflight(self, client, store):
        response = client.options(
            "/validate-coupon",
            headers={
                "Origin": "https://panel.example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type, apikey",
            }
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        store.find_active_coupon.assert_not_called()

    def test_simple_request_has_cors_header(self, client):
        response = client.get("/health", headers={"Origin": "https://panel.example.com"})

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.json()["status"] == "ok"
