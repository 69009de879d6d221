from datetime import datetime, timedelta, timezone

import pytest

from schemas import Transaction
from database import create_document
from tests.conftest import product_by_slug, signup, token_for


def test_low_stock_and_stats(client, admin_headers):
    low = client.get("/api/admin/inventory/low-stock", headers=admin_headers).json()
    assert {p["slug"] for p in low} == {"smart-watch-series-5", "non-stick-frying-pan"}

    stats = client.get("/api/admin/inventory", headers=admin_headers).json()
    assert stats["total_skus"] == 4
    assert stats["out_of_stock_skus"] == 1
    assert stats["low_stock_skus"] == 1
    assert stats["in_stock_skus"] == 3


def test_adjust_stock_records_history(client, admin_headers):
    watch = product_by_slug(client, "smart-watch-series-5")
    res = client.post(f"/api/admin/inventory/{watch['id']}/adjustments", json={"adjustment": 5, "reason": "restock"}, headers=admin_headers)
    assert res.status_code == 201
    assert res.json()["adjustment"] == 5
    assert product_by_slug(client, "smart-watch-series-5")["stock_quantity"] == 13

    res = client.post(f"/api/admin/inventory/{watch['id']}/adjustments", json={"adjustment": -20, "reason": "damaged"}, headers=admin_headers)
    assert res.status_code == 400
    assert product_by_slug(client, "smart-watch-series-5")["stock_quantity"] == 13

    history = client.get("/api/admin/inventory/history", params={"product_id": watch["id"]}, headers=admin_headers).json()
    assert [h["reason"] for h in history] == ["restock"]


def test_set_and_bulk_stock(client, admin_headers):
    pan = product_by_slug(client, "non-stick-frying-pan")
    tee = product_by_slug(client, "classic-cotton-tee")
    res = client.put(f"/api/admin/inventory/{pan['id']}/stock", json={"new_stock": 25}, headers=admin_headers)
    assert res.json()["stock_quantity"] == 25
    assert client.put(f"/api/admin/inventory/{pan['id']}/stock", json={"new_stock": -1}, headers=admin_headers).status_code == 400

    res = client.put(
        "/api/admin/inventory/stock",
        json=[{"product_id": tee["id"], "new_stock": 7}, {"product_id": "prod_nope", "new_stock": 1}],
        headers=admin_headers,
    )
    assert [p["id"] for p in res.json()] == [tee["id"]]


def test_export_inventory_csv(client, admin_headers):
    res = client.get("/api/admin/inventory/export", headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    lines = res.text.strip().splitlines()
    assert lines[0] == "Product Name,SKU,Category,Stock Quantity,Stock Status,Price"
    assert len(lines) == 5
    assert any("Out of Stock" in line for line in lines)


def test_review_moderation_updates_rating(client, user_headers, admin_headers):
    tee = product_by_slug(client, "classic-cotton-tee")
    res = client.post(f"/api/products/{tee['id']}/reviews", json={"rating": 4, "comment": "Comfy"}, headers=user_headers)
    assert res.status_code == 201
    review = res.json()
    assert review["status"] == "Pending"

    # pending reviews stay hidden from the storefront
    assert client.get(f"/api/products/{tee['id']}/reviews").json() == []

    res = client.patch(f"/api/admin/reviews/{review['id']}", json={"status": "Approved"}, headers=admin_headers)
    assert res.json()["status"] == "Approved"
    assert len(client.get(f"/api/products/{tee['id']}/reviews").json()) == 1
    tee = product_by_slug(client, "classic-cotton-tee")
    assert tee["rating"] == 4
    assert tee["review_count"] == 1

    res = client.post(f"/api/admin/reviews/{review['id']}/reply", json={"reply": "Thanks!"}, headers=admin_headers)
    assert res.json()["reply"] == "Thanks!"

    bad = client.patch(f"/api/admin/reviews/{review['id']}", json={"status": "Deleted"}, headers=admin_headers)
    assert bad.status_code == 400

    assert client.delete(f"/api/admin/reviews/{review['id']}", headers=admin_headers).status_code == 200
    assert product_by_slug(client, "classic-cotton-tee")["review_count"] == 0


def test_review_rating_bounds(client, user_headers):
    tee = product_by_slug(client, "classic-cotton-tee")
    res = client.post(f"/api/products/{tee['id']}/reviews", json={"rating": 6, "comment": "!!"}, headers=user_headers)
    assert res.status_code == 400
    res = client.post("/api/products/prod_nope/reviews", json={"rating": 5, "comment": "?"}, headers=user_headers)
    assert res.status_code == 404


def test_ticket_flow(client, user_headers, admin_headers):
    res = client.post("/api/tickets", json={"subject": "Late delivery", "description": "Where is it?", "priority": "High"}, headers=user_headers)
    assert res.status_code == 201
    ticket = res.json()
    assert ticket["status"] == "Open"

    client.post(f"/api/tickets/{ticket['id']}/replies", json={"message": "Any update?"}, headers=user_headers)
    client.post(f"/api/tickets/{ticket['id']}/replies", json={"message": "Shipped today"}, headers=admin_headers)
    detail = client.get(f"/api/tickets/{ticket['id']}", headers=user_headers).json()
    assert [r["message"] for r in detail["replies"]] == ["Any update?", "Shipped today"]

    signup(client, email="john@example.com", password="hunter22", full_name="John Doe")
    john = token_for(client, "john@example.com", "hunter22")
    assert client.get(f"/api/tickets/{ticket['id']}", headers=john).status_code == 404
    assert client.post(f"/api/tickets/{ticket['id']}/replies", json={"message": "hi"}, headers=john).status_code == 403

    res = client.patch(f"/api/admin/tickets/{ticket['id']}", json={"status": "In Progress"}, headers=admin_headers)
    assert res.json()["status"] == "In Progress"
    assert client.patch(f"/api/admin/tickets/{ticket['id']}", json={"status": "Lost"}, headers=admin_headers).status_code == 400

    high = client.get("/api/admin/tickets", params={"priority": "High"}, headers=admin_headers).json()
    assert [t["id"] for t in high] == [ticket["id"]]

    assert client.delete(f"/api/admin/tickets/{ticket['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/tickets/{ticket['id']}", headers=user_headers).status_code == 404


def test_ticket_order_must_belong_to_user(client, user_headers):
    res = client.post("/api/tickets", json={"subject": "x", "description": "y", "order_id": "order_nope"}, headers=user_headers)
    assert res.status_code == 400


def test_transactions_refund(client, admin_headers):
    completed = create_document("transaction", Transaction(order_id="order_1", amount=99.0, status="completed", payment_method="PayPal"))
    failed = create_document("transaction", Transaction(order_id="order_2", amount=10.0, status="failed", payment_method="Credit Card"))

    listed = client.get("/api/admin/transactions", headers=admin_headers).json()
    assert [t["id"] for t in listed] == [failed["id"], completed["id"]]
    only_paypal = client.get("/api/admin/transactions", params={"payment_method": "PayPal"}, headers=admin_headers).json()
    assert [t["id"] for t in only_paypal] == [completed["id"]]

    res = client.post(f"/api/admin/transactions/{completed['id']}/refund", headers=admin_headers)
    assert res.json()["status"] == "refunded"
    assert client.post(f"/api/admin/transactions/{failed['id']}/refund", headers=admin_headers).status_code == 409


def test_transaction_status_is_closed_set():
    with pytest.raises(ValueError):
        Transaction(order_id="order_1", amount=1, status="lost", payment_method="PayPal")


def test_offer_admin(client, admin_headers):
    now = datetime.now(timezone.utc)
    payload = {
        "title": "Diwali sale",
        "type": "seasonal",
        "discount_type": "fixed",
        "discount_value": 50,
        "valid_from": now.isoformat(),
        "valid_until": (now + timedelta(days=7)).isoformat(),
    }
    res = client.post("/api/admin/offers", json=payload, headers=admin_headers)
    assert res.status_code == 201
    offer_id = res.json()["id"]
    assert [o["id"] for o in client.get("/api/offers?type=seasonal").json()] == [offer_id]

    backwards = dict(payload, valid_from=payload["valid_until"], valid_until=payload["valid_from"])
    assert client.post("/api/admin/offers", json=backwards, headers=admin_headers).status_code == 400

    res = client.patch(f"/api/admin/offers/{offer_id}", json={"is_active": False}, headers=admin_headers)
    assert res.status_code == 200
    assert client.get("/api/offers?type=seasonal").json() == []
    assert len(client.get("/api/admin/offers", headers=admin_headers).json()) == 2

    assert client.delete(f"/api/admin/offers/{offer_id}", headers=admin_headers).status_code == 200


def test_user_management(client, user_headers, admin_headers):
    users = client.get("/api/admin/users", headers=admin_headers).json()
    assert all("password" not in u for u in users)
    jane = next(u for u in users if u["email"] == "jane@example.com")

    res = client.patch(f"/api/admin/users/{jane['id']}", json={"is_active": False}, headers=admin_headers)
    assert res.json()["is_active"] is False
    # tokens of deactivated accounts stop working
    assert client.get("/api/me", headers=user_headers).status_code == 403
    assert client.patch("/api/admin/users/user_nope", json={"is_active": True}, headers=admin_headers).status_code == 404


def test_dashboard_stats(client, user_headers, admin_headers):
    stats = client.get("/api/admin/stats", headers=admin_headers).json()
    assert stats == {"products": 4, "orders": 0, "users": 2, "revenue": 0, "low_stock_alerts": 2}

    top = client.get("/api/admin/top-categories", params={"limit": 2}, headers=admin_headers).json()
    assert len(top) == 2
    assert top[0]["sales"] >= top[1]["sales"]


def test_health_endpoint(client):
    res = client.get("/test")
    assert res.status_code == 200
    assert res.json()["backend"] == "✅ Running"


def test_transaction_admin_crud(client, user_headers, admin_headers):
    tee = product_by_slug(client, "classic-cotton-tee")
    order = client.post("/api/orders", json={"items": [{"product_id": tee["id"], "quantity": 1}]}, headers=user_headers).json()

    payload = {"order_id": order["id"], "amount": 19.99, "status": "completed", "payment_method": "UPI", "transaction_id": "upi_123"}
    res = client.post("/api/admin/transactions", json=payload, headers=admin_headers)
    assert res.status_code == 201
    txn = res.json()
    assert txn["id"].startswith("txn_")
    assert txn["currency"] == "INR"

    assert client.post("/api/admin/transactions", json=dict(payload, order_id="order_nope"), headers=admin_headers).status_code == 400
    assert client.post("/api/admin/transactions", json=dict(payload, status="lost"), headers=admin_headers).status_code == 400
    assert client.post("/api/admin/transactions", json=dict(payload, amount=-5), headers=admin_headers).status_code == 400

    res = client.patch(f"/api/admin/transactions/{txn['id']}", json={"status": "failed"}, headers=admin_headers)
    assert res.json()["status"] == "failed"
    assert client.get(f"/api/admin/transactions/{txn['id']}", headers=admin_headers).json()["status"] == "failed"
    assert client.patch("/api/admin/transactions/txn_nope", json={"status": "failed"}, headers=admin_headers).status_code == 404

    assert client.delete(f"/api/admin/transactions/{txn['id']}", headers=admin_headers).json() == {"ok": True}
    assert client.get(f"/api/admin/transactions/{txn['id']}", headers=admin_headers).status_code == 404
    # the pending one from order placement is still there
    assert len(client.get("/api/admin/transactions", params={"order_id": order["id"]}, headers=admin_headers).json()) == 1


def test_offer_rejects_invalid_fields(client, admin_headers):
    now = datetime.now(timezone.utc)
    payload = {
        "title": "Flash sale",
        "type": "seasonal",
        "discount_type": "bogus",
        "discount_value": 5,
        "valid_from": now.isoformat(),
        "valid_until": (now + timedelta(days=1)).isoformat(),
    }
    res = client.post("/api/admin/offers", json=payload, headers=admin_headers)
    assert res.status_code == 400
    assert res.json()["error"].startswith("discount_type")

    res = client.post("/api/admin/offers", json=dict(payload, discount_type="fixed", stackable=True), headers=admin_headers)
    assert res.status_code == 400

    offer = client.post("/api/admin/offers", json=dict(payload, discount_type="fixed"), headers=admin_headers).json()
    assert client.patch(f"/api/admin/offers/{offer['id']}", json={"title": None}, headers=admin_headers).status_code == 400
    assert client.patch(f"/api/admin/offers/{offer['id']}", json={"discount_type": "bogus"}, headers=admin_headers).status_code == 400
    assert client.get("/api/offers?type=seasonal").json()[0]["discount_type"] == "fixed"


def test_ticket_reply_management(client, user_headers, admin_headers):
    ticket = client.post("/api/tickets", json={"subject": "Refund", "description": "Wrong size"}, headers=user_headers).json()
    mine = client.post(f"/api/tickets/{ticket['id']}/replies", json={"message": "Any news?"}, headers=user_headers).json()
    staff = client.post(f"/api/tickets/{ticket['id']}/replies", json={"message": "Looking into it"}, headers=admin_headers).json()

    res = client.get(f"/api/tickets/{ticket['id']}/replies", headers=user_headers)
    assert [r["id"] for r in res.json()] == [mine["id"], staff["id"]]

    res = client.patch(f"/api/tickets/{ticket['id']}/replies/{mine['id']}", json={"message": "Any news, please?"}, headers=user_headers)
    assert res.json()["message"] == "Any news, please?"
    # customers cannot touch staff replies, admins can touch any
    assert client.patch(f"/api/tickets/{ticket['id']}/replies/{staff['id']}", json={"message": "x"}, headers=user_headers).status_code == 403
    assert client.delete(f"/api/tickets/{ticket['id']}/replies/{mine['id']}", headers=admin_headers).json() == {"ok": True}
    assert client.delete(f"/api/tickets/{ticket['id']}/replies/{mine['id']}", headers=admin_headers).status_code == 404

    signup(client, email="john@example.com", password="hunter22", full_name="John Doe")
    john = token_for(client, "john@example.com", "hunter22")
    assert client.get(f"/api/tickets/{ticket['id']}/replies", headers=john).status_code == 404
    assert [r["id"] for r in client.get(f"/api/tickets/{ticket['id']}/replies", headers=admin_headers).json()] == [staff["id"]]


def test_admin_user_detail(client, user_headers, admin_headers):
    tee = product_by_slug(client, "classic-cotton-tee")
    client.post("/api/orders", json={"items": [{"product_id": tee["id"], "quantity": 1}]}, headers=user_headers)
    client.post(
        "/api/me/addresses",
        json={"full_name": "Jane Smith", "street_address": "12 MG Road", "city": "Bengaluru", "state": "KA",
              "postal_code": "560001", "country": "India", "phone": "9876543210"},
        headers=user_headers,
    )
    jane = next(u for u in client.get("/api/admin/users", headers=admin_headers).json() if u["email"] == "jane@example.com")

    detail = client.get(f"/api/admin/users/{jane['id']}", headers=admin_headers).json()
    assert "password" not in detail
    assert detail["order_count"] == 1
    assert len(detail["orders"]) == 1
    assert [a["city"] for a in detail["addresses"]] == ["Bengaluru"]
    assert client.get("/api/admin/users/user_nope", headers=admin_headers).status_code == 404
