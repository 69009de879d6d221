import logging
from typing import Any, Dict, List, Optional

import transactions
from database import collection, create_document, get_document, get_documents, update_document
from errors import NotFoundError, ValidationError
from schemas import Address, Order, OrderCreate, OrderItem, OrderStatus

logger = logging.getLogger(__name__)


def get_orders(user_id: str) -> List[Dict[str, Any]]:
    """Orders of one user, oldest first."""
    if not user_id:
        raise ValidationError("User id is required")
    return get_documents("order", {"user_id": user_id})


def get_user_order_count(user_id: str) -> int:
    return collection("order").count_documents({"user_id": user_id})


def get_order(order_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
    filter_q = {"id": order_id}
    if user_id is not None:
        filter_q["user_id"] = user_id
    order = get_document("order", filter_q)
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders(status: Optional[OrderStatus] = None) -> List[Dict[str, Any]]:
    filter_q = {"status": OrderStatus(status).value} if status else {}
    return get_documents("order", filter_q)


def get_recent_orders(limit: int = 5) -> List[Dict[str, Any]]:
    return get_documents("order", limit=limit, sort=[("created_at", -1), ("_id", -1)])


def unit_price(product: Dict[str, Any]) -> float:
    discounted = product.get("discounted_price")
    return discounted if discounted is not None else product["base_price"]


def place_order(user_id: str, payload: OrderCreate) -> Dict[str, Any]:
    """Price the cart from the catalog, store a pending order and its pending transaction."""
    shipping_address = payload.shipping_address
    if shipping_address is None and payload.address_id:
        saved = get_document("address", {"id": payload.address_id, "user_id": user_id})
        if not saved:
            raise ValidationError("Address not found for this user")
        shipping_address = Address(**{k: saved[k] for k in Address.model_fields})

    items = []
    for line in payload.items:
        product = get_document("product", {"id": line.product_id})
        if not product or not product.get("is_active", True):
            raise ValidationError(f"Product {line.product_id} is not available")
        if product.get("stock_quantity", 0) < line.quantity:
            raise ValidationError(f"Not enough stock for {product['name']}")
        items.append(OrderItem(product_id=product["id"], name=product["name"], quantity=line.quantity, price=unit_price(product)))

    total = round(sum(item.price * item.quantity for item in items), 2)
    order = Order(
        user_id=user_id,
        items=items,
        total=total,
        shipping_address=shipping_address,
        payment_method=payload.payment_method,
        delivery_method=payload.delivery_method,
    )
    doc = create_document("order", order)
    transactions.record_for_order(doc)
    logger.info("Order %s placed by %s for %.2f", doc["id"], user_id, total)
    return doc


def update_order_status(order_id: str, status: OrderStatus) -> Dict[str, Any]:
    order = update_document("order", order_id, {"status": OrderStatus(status).value})
    if not order:
        raise NotFoundError("Order not found")
    return order
