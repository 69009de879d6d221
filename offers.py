from typing import Any, Dict, List, Optional

from database import create_document, delete_document, get_document, get_documents, update_document
from errors import NotFoundError
from schemas import Offer, apply_changes, build


def get_offers(offer_type: Optional[str] = None, active_only: bool = True) -> List[Dict[str, Any]]:
    filter_q: Dict[str, Any] = {}
    if active_only:
        filter_q["is_active"] = True
    if offer_type:
        filter_q["type"] = offer_type
    return get_documents("offer", filter_q)


def create_offer(data: Dict[str, Any]) -> Dict[str, Any]:
    data = {k: v for k, v in data.items() if k not in ("id", "created_at", "updated_at")}
    return create_document("offer", build(Offer, data))


def update_offer(offer_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    current = get_document("offer", {"id": offer_id})
    if not current:
        raise NotFoundError("Offer not found")
    changes = {k: v for k, v in changes.items() if k not in ("id", "created_at", "updated_at")}
    offer = apply_changes(Offer, current, changes)
    return update_document("offer", offer_id, offer.model_dump(exclude={"id"}))


def delete_offer(offer_id: str) -> None:
    if not delete_document("offer", offer_id):
        raise NotFoundError("Offer not found")
