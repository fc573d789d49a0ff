"""Tests for the FastAPI application."""

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from storefront import PaymentStyle
from storefront.api import create_app, status_for
from storefront.domain import Errors
from storefront.reconcile import Reconciler

from .conftest import WEBHOOK_SECRET, event_body, order_status, stock_of

USER = {"X-User-Id": "1"}
ADMIN = {"X-Admin-Key": "admin-secret"}


@pytest.fixture
async def client(shop):
    transport = httpx.ASGITransport(app=create_app(shop))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def add(client, product_id, quantity, headers=USER):
    return await client.post(
        "/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers
    )


class TestStatusMapping:
    def test_kinds(self):
        assert status_for(Errors.cart_not_found()) == 404
        assert status_for(Errors.unauthorized()) == 403
        assert status_for(Errors.invalid_quantity(0)) == 422
        assert status_for(Errors.invalid_payload()) == 400
        assert status_for(Errors.invalid_signature()) == 400
        assert status_for(Errors.insufficient_stock("X")) == 400
        assert status_for(Errors.processor_failure()) == 500
        assert status_for(Errors.integrity_failure()) == 500


class TestCartRoutes:
    async def test_empty_cart(self, client, products):
        response = await client.get("/cart", headers=USER)

        assert response.status_code == 200
        assert response.json()["items"] == []

    async def test_add_update_remove(self, client, products):
        response = await add(client, products["A"], 2)
        assert response.status_code == 201
        assert response.json()["subtotal"] == "20.00"

        response = await client.put(
            "/cart/items", json={"product_id": products["A"], "quantity": 3}, headers=USER
        )
        assert response.json()["items"][0]["quantity"] == 3

        response = await client.delete(f"/cart/items/{products['A']}", headers=USER)
        assert response.json()["items"] == []

    async def test_missing_identity(self, client, products):
        response = await client.get("/cart")

        assert response.status_code == 403
        assert response.json()["success"] is False
        assert response.json()["reason"] == "UNAUTHORIZED"

    async def test_zero_quantity(self, client, products):
        response = await add(client, products["A"], 0)
        assert response.status_code == 422

    async def test_unknown_product(self, client, products):
        response = await add(client, 9999, 1)

        assert response.status_code == 404
        assert response.json()["reason"] == "PRODUCT_NOT_FOUND"


class TestCheckoutRoutes:
    async def test_offline_checkout(self, client, shop, products):
        await add(client, products["A"], 2)
        await add(client, products["B"], 1)

        response = await client.post("/checkout", json={"notes": "ring twice"}, headers=USER)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["order"]["total"] == "25.00"
        assert body["order"]["status"] == "pending"
        assert body["payment"]["status"] == "pending"
        assert await stock_of(shop, products["A"]) == 3

    async def test_insufficient_stock(self, client, products):
        await add(client, products["B"], 10)

        response = await client.post("/checkout", json={}, headers=USER)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "reason": "INSUFFICIENT_STOCK",
            "message": "Insufficient stock for Gadget",
        }

    async def test_summary(self, client, products):
        await add(client, products["A"], 1)

        response = await client.get("/checkout/summary", headers=USER)

        assert response.status_code == 200
        assert response.json()["total"] == "11.00"

    async def test_orders(self, client, products):
        await add(client, products["A"], 1)
        order_id = (await client.post("/checkout", json={}, headers=USER)).json()["order"]["id"]

        listed = await client.get("/orders", headers=USER)
        assert [o["id"] for o in listed.json()] == [order_id]

        assert (await client.get(f"/orders/{order_id}", headers=USER)).status_code == 200
        assert (await client.get(f"/orders/{order_id}", headers={"X-User-Id": "2"})).status_code == 404


class TestRedirectRoutes:
    @pytest.fixture
    def settings(self, settings):
        return settings.with_(payment_style=PaymentStyle.REDIRECT, webhook_secret=WEBHOOK_SECRET)

    async def test_checkout_then_webhook(self, client, shop, processor, products):
        await add(client, products["A"], 1)
        response = await client.post("/checkout", json={}, headers=USER)
        assert response.status_code == 201
        body = response.json()
        session_id = body["payment_url"].rsplit("/", 1)[-1]

        payload = event_body("evt_1", "checkout.session.completed", {"id": session_id})
        response = await client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": processor.sign(payload, WEBHOOK_SECRET)},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "applied"
        assert await order_status(shop, body["order_id"]) == "processing"

    async def test_bad_signature(self, client, shop, processor, products):
        await add(client, products["A"], 1)
        body = (await client.post("/checkout", json={}, headers=USER)).json()
        session_id = body["payment_url"].rsplit("/", 1)[-1]

        payload = event_body("evt_1", "checkout.session.expired", {"id": session_id})
        response = await client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": processor.sign(payload, "whsec_other")},
        )

        assert response.status_code == 400
        assert response.json()["reason"] == "INVALID_SIGNATURE"
        assert await order_status(shop, body["order_id"]) == "pending"
        assert await stock_of(shop, products["A"]) == 4

    async def test_database_error_asks_for_redelivery(
        self, client, shop, processor, products, monkeypatch
    ):
        await add(client, products["A"], 1)
        body = (await client.post("/checkout", json={}, headers=USER)).json()
        session_id = body["payment_url"].rsplit("/", 1)[-1]

        async def locked(self, session, payment, payment_intent_id):
            raise OperationalError("UPDATE payments", {}, Exception("database is locked"))

        monkeypatch.setattr(Reconciler, "_complete_session", locked)
        payload = event_body("evt_1", "checkout.session.completed", {"id": session_id})
        response = await client.post(
            "/webhooks/stripe",
            content=payload,
            headers={"Stripe-Signature": processor.sign(payload, WEBHOOK_SECRET)},
        )

        assert response.status_code == 500
        assert response.json()["reason"] == "INTEGRITY_FAILURE"
        assert await order_status(shop, body["order_id"]) == "pending"

    async def test_verify_payment(self, client, processor, products):
        await add(client, products["A"], 1)
        body = (await client.post("/checkout", json={}, headers=USER)).json()
        session_id = body["payment_url"].rsplit("/", 1)[-1]

        unpaid = await client.post(
            "/checkout/verify-payment", json={"session_id": session_id}, headers=USER
        )
        assert unpaid.status_code == 400

        processor.pay(session_id)
        paid = await client.post(
            "/checkout/verify-payment", json={"session_id": session_id}, headers=USER
        )
        assert paid.status_code == 200
        assert paid.json()["order"]["status"] == "processing"


class TestAdminRoutes:
    async def place(self, client, products):
        await add(client, products["A"], 2)
        return (await client.post("/checkout", json={}, headers=USER)).json()["order"]["id"]

    async def test_requires_key(self, client, products):
        order_id = await self.place(client, products)

        response = await client.post(f"/admin/orders/{order_id}/mark-as-paid")
        assert response.status_code == 403

        response = await client.post(
            f"/admin/orders/{order_id}/mark-as-paid", headers={"X-Admin-Key": "wrong"}
        )
        assert response.status_code == 403

    async def test_mark_paid_and_refund(self, client, shop, products):
        order_id = await self.place(client, products)

        paid = await client.post(f"/admin/orders/{order_id}/mark-as-paid", headers=ADMIN)
        assert paid.json()["order"]["status"] == "paid"

        refunded = await client.post(
            f"/admin/orders/{order_id}/payment/refund", json={"reason": "returned"}, headers=ADMIN
        )
        assert refunded.status_code == 200
        assert refunded.json()["order"]["payment"]["status"] == "refunded"
        assert await stock_of(shop, products["A"]) == 5

    async def test_refund_pending_rejected(self, client, products):
        order_id = await self.place(client, products)

        response = await client.post(f"/admin/orders/{order_id}/payment/refund", headers=ADMIN)

        assert response.status_code == 400
        assert response.json()["reason"] == "REFUND_NOT_ALLOWED"

    async def test_cancel_twice(self, client, products):
        order_id = await self.place(client, products)

        first = await client.post(f"/admin/orders/{order_id}/cancel", headers=ADMIN)
        second = await client.post(f"/admin/orders/{order_id}/cancel", headers=ADMIN)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["reason"] == "ALREADY_CANCELLED"

    async def test_get_payment(self, client, products):
        order_id = await self.place(client, products)

        response = await client.get(f"/admin/orders/{order_id}/payment", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["amount"] == "20.00"
        assert (await client.get("/admin/orders/999/payment", headers=ADMIN)).status_code == 404

    async def test_cancel_stale(self, client, products):
        await self.place(client, products)

        response = await client.post("/admin/orders/cancel-stale", json={"days": 1}, headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == {"cancelled": [], "failed": []}
