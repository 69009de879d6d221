import logging
from typing import Any, Dict, List, Optional

from database import collection, create_document, delete_document, get_document, get_documents, now, update_document
from errors import NotFoundError
from schemas import Review, ReviewIn, ReviewStatus

logger = logging.getLogger(__name__)


def get_reviews(product_id: Optional[str] = None, status: Optional[ReviewStatus] = None) -> List[Dict[str, Any]]:
    filter_q = {}
    if product_id:
        filter_q["product_id"] = product_id
    if status:
        filter_q["status"] = ReviewStatus(status).value
    return get_documents("review", filter_q, sort=[("created_at", -1), ("_id", -1)])


def get_product_reviews(product_id: str) -> List[Dict[str, Any]]:
    """Storefront view: approved reviews only."""
    return get_reviews(product_id, ReviewStatus.APPROVED)


def refresh_rating(product_id: str) -> None:
    approved = get_documents("review", {"product_id": product_id, "status": ReviewStatus.APPROVED.value})
    avg = round(sum(r["rating"] for r in approved) / len(approved), 2) if approved else 0
    collection("product").update_one(
        {"id": product_id}, {"$set": {"rating": avg, "review_count": len(approved)}}
    )


def add_review(product_id: str, user_id: str, data: ReviewIn) -> Dict[str, Any]:
    if not get_document("product", {"id": product_id}):
        raise NotFoundError("Product not found")
    review = Review(product_id=product_id, user_id=user_id, rating=data.rating, comment=data.comment)
    return create_document("review", review)


def update_review_status(review_id: str, status: ReviewStatus) -> Dict[str, Any]:
    review = update_document("review", review_id, {"status": ReviewStatus(status).value})
    if not review:
        raise NotFoundError("Review not found")
    refresh_rating(review["product_id"])
    logger.info("Review %s marked %s", review_id, review["status"])
    return review


def reply_to_review(review_id: str, reply: str) -> Dict[str, Any]:
    review = update_document("review", review_id, {"reply": reply, "reply_date": now()})
    if not review:
        raise NotFoundError("Review not found")
    return review


def delete_review(review_id: str) -> None:
    review = get_document("review", {"id": review_id})
    if not review:
        raise NotFoundError("Review not found")
    delete_document("review", review_id)
    refresh_rating(review["product_id"])
