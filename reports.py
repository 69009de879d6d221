"""
Admin dashboard figures.

Sales figures come from stored orders; cancelled orders never count.
Dates are UTC calendar days.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from catalog import LOW_STOCK_THRESHOLD
from database import collection, get_documents
from errors import ValidationError
from schemas import OrderStatus

TREND_DAYS = 30
MAX_TREND_DAYS = 366
GROWTH_MONTHS = 12


def get_stats() -> Dict[str, Any]:
    revenue = sum(o.get("total", 0) for o in collection("order").find({}, {"total": 1}))
    return {
        "products": collection("product").count_documents({}),
        "orders": collection("order").count_documents({}),
        "users": collection("user").count_documents({}),
        "revenue": round(revenue, 2),
        "low_stock_alerts": collection("product").count_documents({"stock_quantity": {"$lt": LOW_STOCK_THRESHOLD}}),
    }


def get_top_categories(limit: int = 5) -> List[Dict[str, Any]]:
    """Categories ranked by the value of the stock they hold."""
    value: Dict[str, float] = {}
    for p in get_documents("product"):
        price = p.get("discounted_price") or p.get("base_price", 0)
        cid = p.get("category_id")
        value[cid] = value.get(cid, 0) + price * p.get("stock_quantity", 0)
    ranked = [
        {"id": c["id"], "name": c["name"], "sales": round(value.get(c["id"], 0), 2)}
        for c in get_documents("category")
    ]
    ranked.sort(key=lambda r: r["sales"], reverse=True)
    return ranked[:limit]


def _day(value: datetime) -> date:
    # Mongo hands back naive UTC datetimes
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def _date_range(start: Optional[date], end: Optional[date]):
    end = end or datetime.now(timezone.utc).date()
    start = start or end - timedelta(days=TREND_DAYS - 1)
    if start > end:
        raise ValidationError("from must not be after to")
    if (end - start).days >= MAX_TREND_DAYS:
        raise ValidationError(f"Date range is limited to {MAX_TREND_DAYS} days")
    return start, end


def _sold_orders(start: date, end: date) -> List[Dict[str, Any]]:
    orders = collection("order").find(
        {"status": {"$ne": OrderStatus.CANCELLED.value}},
        {"_id": 0, "user_id": 1, "items": 1, "created_at": 1},
    )
    return [o for o in orders if start <= _day(o["created_at"]) <= end]


def _product_categories() -> Dict[str, Optional[str]]:
    return {p["id"]: p.get("category_id") for p in collection("product").find({}, {"id": 1, "category_id": 1})}


def get_sales_trends(
    start: Optional[date] = None,
    end: Optional[date] = None,
    category_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """One row per day from start to end, zero-filled.

    With a category, only items of that category count and an order counts
    when it holds at least one of them.
    """
    start, end = _date_range(start, end)
    categories = _product_categories() if category_id else {}
    rows = {}
    for i in range((end - start).days + 1):
        day = start + timedelta(days=i)
        rows[day] = {"date": day.isoformat(), "revenue": 0.0, "orders": 0, "units": 0, "customers": set()}

    for order in _sold_orders(start, end):
        items = order.get("items", [])
        if category_id:
            items = [i for i in items if categories.get(i["product_id"]) == category_id]
            if not items:
                continue
        row = rows[_day(order["created_at"])]
        row["revenue"] += sum(i["price"] * i["quantity"] for i in items)
        row["units"] += sum(i["quantity"] for i in items)
        row["orders"] += 1
        row["customers"].add(order["user_id"])

    return [
        dict(row, revenue=round(row["revenue"], 2), customers=len(row["customers"]))
        for row in rows.values()
    ]


def get_revenue_breakdown(start: Optional[date] = None, end: Optional[date] = None) -> List[Dict[str, Any]]:
    """Revenue of sold items per category, highest first."""
    start, end = _date_range(start, end)
    categories = _product_categories()
    revenue: Dict[Optional[str], float] = {}
    for order in _sold_orders(start, end):
        for item in order.get("items", []):
            cid = categories.get(item["product_id"])
            revenue[cid] = revenue.get(cid, 0) + item["price"] * item["quantity"]

    breakdown = [
        {"id": c["id"], "name": c["name"], "revenue": round(revenue.pop(c["id"], 0), 2)}
        for c in get_documents("category")
    ]
    leftover = sum(revenue.values())
    if leftover:
        # items whose product or category is gone
        breakdown.append({"id": None, "name": "Uncategorized", "revenue": round(leftover, 2)})
    breakdown.sort(key=lambda r: r["revenue"], reverse=True)
    return breakdown


def _month_start(day: date, back: int) -> date:
    month = day.year * 12 + day.month - 1 - back
    return date(month // 12, month % 12 + 1, 1)


def get_customer_growth(months: int = GROWTH_MONTHS) -> List[Dict[str, Any]]:
    """New customer accounts per calendar month, oldest month first."""
    today = datetime.now(timezone.utc).date()
    counts = {_month_start(today, back): 0 for back in range(months - 1, -1, -1)}
    first = min(counts)
    for user in collection("user").find({"is_admin": {"$ne": True}}, {"_id": 0, "created_at": 1}):
        day = _day(user["created_at"])
        if day >= first:
            counts[_month_start(day, 0)] += 1
    return [{"month": m.strftime("%Y-%m"), "new_users": n} for m, n in counts.items()]
