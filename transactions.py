"""
Payment transactions.

Placing an order records a pending transaction for its total; admins can
also record, update and remove transactions by hand.
"""
import logging
from typing import Any, Dict, List, Optional

from database import create_document, delete_document, get_document, get_documents, update_document
from errors import ConflictError, NotFoundError, ValidationError
from schemas import Transaction, TransactionIn, TransactionStatus, TransactionStatusUpdate

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "Cash on Delivery"


def get_transactions(
    order_id: Optional[str] = None,
    status: Optional[TransactionStatus] = None,
    payment_method: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Newest first."""
    filter_q: Dict[str, Any] = {}
    if order_id:
        filter_q["order_id"] = order_id
    if status:
        filter_q["status"] = TransactionStatus(status).value
    if payment_method:
        filter_q["payment_method"] = payment_method
    return get_documents("transaction", filter_q, sort=[("created_at", -1), ("_id", -1)])


def get_transaction(transaction_id: str) -> Dict[str, Any]:
    txn = get_document("transaction", {"id": transaction_id})
    if not txn:
        raise NotFoundError("Transaction not found")
    return txn


def record_for_order(order: Dict[str, Any]) -> Dict[str, Any]:
    txn = Transaction(
        order_id=order["id"],
        amount=order["total"],
        payment_method=order.get("payment_method") or DEFAULT_PAYMENT_METHOD,
    )
    return create_document("transaction", txn)


def create_transaction(data: TransactionIn) -> Dict[str, Any]:
    if not get_document("order", {"id": data.order_id}):
        raise ValidationError(f"Order {data.order_id} does not exist")
    doc = create_document("transaction", Transaction(**data.model_dump()))
    logger.info("Transaction %s recorded for order %s", doc["id"], data.order_id)
    return doc


def update_transaction(transaction_id: str, changes: TransactionStatusUpdate) -> Dict[str, Any]:
    get_transaction(transaction_id)
    data = changes.model_dump(exclude_unset=True, mode="json")
    return update_document("transaction", transaction_id, data)


def refund(transaction_id: str) -> Dict[str, Any]:
    txn = get_transaction(transaction_id)
    if txn["status"] != TransactionStatus.COMPLETED.value:
        raise ConflictError(f"Cannot refund a {txn['status']} transaction")
    return update_document("transaction", transaction_id, {"status": TransactionStatus.REFUNDED.value})


def delete_transaction(transaction_id: str) -> None:
    if not delete_document("transaction", transaction_id):
        raise NotFoundError("Transaction not found")
