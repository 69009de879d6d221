"""
Demo data for POST /api/seed.
"""
import os
from datetime import datetime, timedelta, timezone

from auth import get_password_hash, normalize_email
from database import collection, create_document
from schemas import Category, Offer, Product, User

COLLECTIONS = [
    "category", "product", "user", "order", "review",
    "offer", "transaction", "ticket", "ticket_reply", "stock_adjustment", "address",
]

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

CATEGORIES = [
    {"name": "Electronics", "slug": "electronics", "description": "Phones, audio and gadgets", "image_url": "/cat-electronics.jpg", "display_order": 1},
    {"name": "Fashion", "slug": "fashion", "description": "Clothing and accessories", "image_url": "/cat-fashion.jpg", "display_order": 2},
    {"name": "Home & Kitchen", "slug": "home-kitchen", "description": "Cookware and decor", "image_url": "/cat-home.jpg", "display_order": 3},
    {"name": "Headphones", "slug": "headphones", "description": "Wired and wireless", "image_url": "/cat-headphones.jpg", "display_order": 4, "parent": "electronics"},
]

PRODUCTS = [
    {
        "name": "Wireless Noise Cancelling Headphones",
        "slug": "wireless-noise-cancelling-headphones",
        "description": "Over-ear headphones with 30 hour battery life.",
        "category": "headphones",
        "base_price": 199.0,
        "actual_MRP": 249.0,
        "discounted_price": 179.0,
        "percentage_discount": 28,
        "images": ["/prod-headphones-1.jpg"],
        "tags": ["audio", "wireless", "bluetooth"],
        "stock_quantity": 42,
        "is_featured": True,
        "is_hot_deal": True,
        "brand": "Sonic",
        "sku": "SN-WH-01",
    },
    {
        "name": "Smart Watch Series 5",
        "slug": "smart-watch-series-5",
        "description": "Fitness tracking, heart rate and notifications.",
        "category": "electronics",
        "base_price": 299.0,
        "images": ["/prod-watch-1.jpg"],
        "tags": ["wearable", "fitness"],
        "stock_quantity": 8,
        "is_new_arrival": True,
        "brand": "Tick",
        "sku": "TK-SW-05",
    },
    {
        "name": "Classic Cotton Tee",
        "slug": "classic-cotton-tee",
        "description": "Soft cotton tee in five colours.",
        "category": "fashion",
        "base_price": 19.99,
        "images": ["/prod-tee-1.jpg"],
        "tags": ["shirt", "cotton"],
        "stock_quantity": 120,
        "is_featured": True,
        "variants": [{"name": "Size", "values": ["S", "M", "L", "XL"]}],
        "sku": "FS-TEE-01",
    },
    {
        "name": "Non-stick Frying Pan",
        "slug": "non-stick-frying-pan",
        "description": "28cm pan, induction ready.",
        "category": "home-kitchen",
        "base_price": 34.5,
        "images": ["/prod-pan-1.jpg"],
        "tags": ["cookware", "kitchen"],
        "stock_quantity": 0,
        "is_new_arrival": True,
        "sku": "HK-PAN-28",
    },
]


def seed():
    """Wipe every collection and load the demo catalog plus an admin account."""
    for name in COLLECTIONS:
        collection(name).delete_many({})

    by_slug = {}
    for data in CATEGORIES:
        data = dict(data)
        parent = data.pop("parent", None)
        cat = Category(parent_id=by_slug[parent]["id"] if parent else None, **data)
        by_slug[cat.slug] = create_document("category", cat)

    for data in PRODUCTS:
        data = dict(data)
        category = data.pop("category")
        create_document("product", Product(category_id=by_slug[category]["id"], **data))

    now = datetime.now(timezone.utc)
    create_document("offer", Offer(
        title="10% off with HDFC cards",
        description="Instant discount on credit card EMI",
        type="bank",
        discount_type="percentage",
        discount_value=10,
        valid_from=now,
        valid_until=now + timedelta(days=30),
        min_purchase=100,
    ))

    create_document("user", User(
        email=normalize_email(ADMIN_EMAIL),
        password=get_password_hash(ADMIN_PASSWORD),
        full_name="Store Admin",
        is_admin=True,
    ))

    return {
        "categories": len(CATEGORIES),
        "products": len(PRODUCTS),
        "offers": 1,
        "users": 1,
    }
