from datetime import datetime, timedelta, timezone

import pytest

from tests.conftest import product_by_slug


@pytest.fixture
def sales(client, user_headers):
    headphones = product_by_slug(client, "wireless-noise-cancelling-headphones")
    tee = product_by_slug(client, "classic-cotton-tee")
    lines = [{"product_id": headphones["id"], "quantity": 1}, {"product_id": tee["id"], "quantity": 3}]
    res = client.post("/api/orders", json={"items": lines}, headers=user_headers)
    assert res.status_code == 201
    return res.json()


def test_sales_trends_default_window(client, admin_headers, sales):
    res = client.get("/api/admin/reports/sales-trends", headers=admin_headers)
    assert res.status_code == 200
    rows = res.json()
    assert len(rows) == 30
    today = datetime.now(timezone.utc).date().isoformat()
    assert rows[-1]["date"] == today
    assert rows[-1] == {"date": today, "revenue": sales["total"], "orders": 1, "units": 4, "customers": 1}
    assert all(r["orders"] == 0 for r in rows[:-1])


def test_sales_trends_by_category(client, admin_headers, sales):
    fashion = client.get("/api/categories/fashion").json()
    rows = client.get(
        "/api/admin/reports/sales-trends",
        params={"category_id": fashion["id"]},
        headers=admin_headers,
    ).json()
    assert rows[-1]["revenue"] == round(3 * 19.99, 2)
    assert rows[-1]["units"] == 3


def test_sales_trends_range(client, admin_headers, sales):
    today = datetime.now(timezone.utc).date()
    params = {"from": (today - timedelta(days=6)).isoformat(), "to": today.isoformat()}
    rows = client.get("/api/admin/reports/sales-trends", params=params, headers=admin_headers).json()
    assert len(rows) == 7

    backwards = {"from": params["to"], "to": params["from"]}
    assert client.get("/api/admin/reports/sales-trends", params=backwards, headers=admin_headers).status_code == 400
    assert client.get("/api/admin/reports/sales-trends", params={"from": "soon"}, headers=admin_headers).status_code == 400


def test_cancelled_orders_do_not_count(client, admin_headers, sales):
    client.patch(f"/api/admin/orders/{sales['id']}", json={"status": "cancelled"}, headers=admin_headers)
    rows = client.get("/api/admin/reports/sales-trends", headers=admin_headers).json()
    assert rows[-1]["revenue"] == 0
    breakdown = client.get("/api/admin/reports/revenue-breakdown", headers=admin_headers).json()
    assert all(r["revenue"] == 0 for r in breakdown)


def test_revenue_breakdown_by_category(client, admin_headers, sales):
    breakdown = client.get("/api/admin/reports/revenue-breakdown", headers=admin_headers).json()
    assert [(r["name"], r["revenue"]) for r in breakdown[:2]] == [
        ("Headphones", 179.0),
        ("Fashion", round(3 * 19.99, 2)),
    ]
    assert len(breakdown) == 4


def test_customer_growth_counts_new_customers(client, admin_headers, user_headers):
    rows = client.get("/api/admin/reports/customer-growth", headers=admin_headers).json()
    assert len(rows) == 12
    assert rows[-1]["month"] == datetime.now(timezone.utc).strftime("%Y-%m")
    # the seeded admin is not a customer
    assert rows[-1]["new_users"] == 1
    assert sum(r["new_users"] for r in rows) == 1

    rows = client.get("/api/admin/reports/customer-growth", params={"months": 3}, headers=admin_headers).json()
    assert len(rows) == 3


def test_reports_are_admin_only(client, user_headers):
    for path in ("sales-trends", "revenue-breakdown", "customer-growth"):
        assert client.get(f"/api/admin/reports/{path}", headers=user_headers).status_code == 403
