"""
Catalog data access: categories, products, search and inventory.

Product filters are combined with AND; absent filters select everything.
Results keep insertion order.
"""
import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from database import (
    collection,
    create_document,
    delete_document,
    get_document,
    get_documents,
    update_document,
)
from errors import ConflictError, NotFoundError, ValidationError
from schemas import (
    Category,
    CategoryIn,
    CategoryUpdate,
    Product,
    ProductUpdate,
    StockAdjustment,
    StockUpdate,
    apply_changes,
    build,
)

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 10


# Categories

def get_categories(limit: Optional[int] = None) -> List[Dict[str, Any]]:
    return get_documents("category", limit=limit, sort=[("display_order", 1), ("_id", 1)])


def get_category_by_slug(slug: str) -> Dict[str, Any]:
    cat = get_document("category", {"slug": slug})
    if not cat:
        raise NotFoundError("Category not found")
    return cat


def _check_parent(category_id: Optional[str], parent_id: Optional[str]) -> None:
    """Parent must exist and must not be the category itself or one of its descendants."""
    if parent_id is None:
        return
    seen = set()
    current = parent_id
    while current is not None:
        if current == category_id:
            raise ValidationError("Category hierarchy cannot contain a cycle")
        if current in seen:
            break
        seen.add(current)
        parent = get_document("category", {"id": current})
        if not parent:
            raise ValidationError(f"Parent category {current} does not exist")
        current = parent.get("parent_id")


def create_category(data: CategoryIn) -> Dict[str, Any]:
    _check_parent(None, data.parent_id)
    try:
        return create_document("category", Category(**data.model_dump()))
    except DuplicateKeyError:
        raise ConflictError("Category slug already exists")


def update_category(category_id: str, changes: CategoryUpdate) -> Dict[str, Any]:
    current = get_document("category", {"id": category_id})
    if not current:
        raise NotFoundError("Category not found")
    data = changes.model_dump(exclude_unset=True)
    cat = apply_changes(Category, current, data)
    if "parent_id" in data:
        _check_parent(category_id, cat.parent_id)
    try:
        return update_document("category", category_id, {k: v for k, v in cat.model_dump().items() if k in data})
    except DuplicateKeyError:
        raise ConflictError("Category slug already exists")


def get_category_tree() -> List[Dict[str, Any]]:
    """Categories nested under their parents, each level in display order."""
    cats = get_categories()
    nodes = {c["id"]: dict(c, children=[]) for c in cats}
    roots = []
    for c in cats:
        parent = nodes.get(c.get("parent_id"))
        (parent["children"] if parent else roots).append(nodes[c["id"]])
    return roots


def delete_category(category_id: str) -> None:
    if not get_document("category", {"id": category_id}):
        raise NotFoundError("Category not found")
    if collection("category").count_documents({"parent_id": category_id}):
        raise ConflictError("Category has subcategories")
    if collection("product").count_documents({"category_id": category_id}):
        raise ConflictError("Category has products")
    delete_document("category", category_id)


# Products

def product_filter(
    category_id: Optional[str] = None,
    is_featured: Optional[bool] = None,
    is_new_arrival: Optional[bool] = None,
    is_hot_deal: Optional[bool] = None,
) -> Dict[str, Any]:
    filter_q: Dict[str, Any] = {}
    if category_id:
        filter_q["category_id"] = category_id
    if is_featured is not None:
        filter_q["is_featured"] = is_featured
    if is_new_arrival is not None:
        filter_q["is_new_arrival"] = is_new_arrival
    if is_hot_deal is not None:
        filter_q["is_hot_deal"] = is_hot_deal
    return filter_q


def get_products(
    category_id: Optional[str] = None,
    is_featured: Optional[bool] = None,
    is_new_arrival: Optional[bool] = None,
    is_hot_deal: Optional[bool] = None,
    skip: int = 0,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    filter_q = product_filter(category_id, is_featured, is_new_arrival, is_hot_deal)
    return get_documents("product", filter_q, limit=limit, skip=skip)


def get_product_by_slug(slug: str) -> Dict[str, Any]:
    prod = get_document("product", {"slug": slug})
    if not prod:
        raise NotFoundError("Product not found")
    return prod


def get_product(product_id: str) -> Dict[str, Any]:
    prod = get_document("product", {"id": product_id})
    if not prod:
        raise NotFoundError("Product not found")
    return prod


def search_products(q: Optional[str] = None) -> List[Dict[str, Any]]:
    """Case-insensitive substring match on name, description and tags.

    An empty or missing query matches every product.
    """
    if not q or not q.strip():
        return get_documents("product")
    pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
    return get_documents(
        "product",
        {"$or": [{"name": pattern}, {"description": pattern}, {"tags": pattern}]},
    )


def _check_category(category_id: Optional[str]) -> None:
    if category_id and not get_document("category", {"id": category_id}):
        raise ValidationError(f"Category {category_id} does not exist")


def create_product(data: Dict[str, Any]) -> Dict[str, Any]:
    data = {k: v for k, v in data.items() if k not in ("id", "created_at", "updated_at")}
    product = build(Product, data)
    _check_category(product.category_id)
    try:
        return create_document("product", product)
    except DuplicateKeyError:
        raise ConflictError("Product slug already exists")


def update_product(product_id: str, changes: ProductUpdate) -> Dict[str, Any]:
    current = get_document("product", {"id": product_id})
    if not current:
        raise NotFoundError("Product not found")
    data = changes.model_dump(exclude_unset=True)
    product = apply_changes(Product, current, data)
    if "category_id" in data:
        _check_category(product.category_id)
    try:
        return update_document("product", product_id, {k: v for k, v in product.model_dump().items() if k in data})
    except DuplicateKeyError:
        raise ConflictError("Product slug already exists")


def delete_product(product_id: str) -> None:
    if not delete_document("product", product_id):
        raise NotFoundError("Product not found")


# Inventory

def get_low_stock_products(threshold: int = LOW_STOCK_THRESHOLD) -> List[Dict[str, Any]]:
    return get_documents("product", {"stock_quantity": {"$lte": threshold}})


def update_stock(product_id: str, new_stock: int) -> Dict[str, Any]:
    if new_stock < 0:
        raise ValidationError("Stock cannot be negative")
    prod = update_document("product", product_id, {"stock_quantity": new_stock})
    if not prod:
        raise NotFoundError("Product not found")
    return prod


def bulk_update_stock(updates: List[StockUpdate]) -> List[Dict[str, Any]]:
    """Set stock for several products; unknown ids are skipped."""
    updated = []
    for u in updates:
        prod = update_document("product", u.product_id, {"stock_quantity": u.new_stock})
        if prod:
            updated.append(prod)
    return updated


def adjust_stock(product_id: str, adjustment: int, reason: str, created_by: Optional[str] = None) -> Dict[str, Any]:
    """Apply a signed stock delta and record it. Stock never drops below zero."""
    get_product(product_id)
    query: Dict[str, Any] = {"id": product_id}
    if adjustment < 0:
        query["stock_quantity"] = {"$gte": -adjustment}
    res = collection("product").update_one(query, {"$inc": {"stock_quantity": adjustment}})
    if res.matched_count == 0:
        raise ValidationError("Adjustment would make stock negative")
    record = StockAdjustment(product_id=product_id, adjustment=adjustment, reason=reason, created_by=created_by)
    logger.info("Stock of %s adjusted by %d (%s)", product_id, adjustment, reason)
    return create_document("stock_adjustment", record)


def get_stock_history(product_id: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    filter_q = {"product_id": product_id} if product_id else {}
    return get_documents("stock_adjustment", filter_q, limit=limit, sort=[("created_at", -1), ("_id", -1)])


def get_inventory_stats() -> Dict[str, Any]:
    products = collection("product")
    return {
        "total_skus": products.count_documents({}),
        "in_stock_skus": products.count_documents({"stock_quantity": {"$gt": 0}}),
        "low_stock_skus": products.count_documents({"stock_quantity": {"$gt": 0, "$lte": LOW_STOCK_THRESHOLD}}),
        "out_of_stock_skus": products.count_documents({"stock_quantity": 0}),
        "recent_movements": get_stock_history(limit=5),
    }


def stock_status(quantity: int) -> str:
    if quantity == 0:
        return "Out of Stock"
    if quantity < LOW_STOCK_THRESHOLD:
        return "Low Stock"
    return "In Stock"


def export_inventory() -> str:
    names = {c["id"]: c["name"] for c in get_documents("category")}
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["Product Name", "SKU", "Category", "Stock Quantity", "Stock Status", "Price"])
    for p in get_documents("product"):
        qty = p.get("stock_quantity", 0)
        writer.writerow([
            p["name"],
            p.get("sku") or p["id"],
            names.get(p.get("category_id"), "N/A"),
            qty,
            stock_status(qty),
            f"{p['base_price']:.2f}",
        ])
    return buf.getvalue()
