"""
Per-user address book.

At most one address per user is the default; marking another one as
default clears the flag on the rest.
"""
import logging
from typing import Any, Dict, List

from database import collection, create_document, delete_document, get_document, get_documents, update_document
from errors import NotFoundError
from schemas import AddressIn, AddressUpdate, SavedAddress, apply_changes

logger = logging.getLogger(__name__)


def get_addresses(user_id: str) -> List[Dict[str, Any]]:
    return get_documents("address", {"user_id": user_id})


def get_address(address_id: str, user_id: str) -> Dict[str, Any]:
    addr = get_document("address", {"id": address_id, "user_id": user_id})
    if not addr:
        raise NotFoundError("Address not found")
    return addr


def _clear_default(user_id: str) -> None:
    collection("address").update_many({"user_id": user_id, "is_default": True}, {"$set": {"is_default": False}})


def create_address(user_id: str, data: AddressIn) -> Dict[str, Any]:
    addr = SavedAddress(user_id=user_id, **data.model_dump())
    # the first address a user saves becomes the default
    if not addr.is_default and not collection("address").count_documents({"user_id": user_id}):
        addr.is_default = True
    if addr.is_default:
        _clear_default(user_id)
    return create_document("address", addr)


def update_address(address_id: str, user_id: str, changes: AddressUpdate) -> Dict[str, Any]:
    current = get_address(address_id, user_id)
    data = changes.model_dump(exclude_unset=True)
    addr = apply_changes(SavedAddress, current, data)
    if data.get("is_default"):
        _clear_default(user_id)
    return update_document("address", address_id, {k: v for k, v in addr.model_dump().items() if k in data})


def delete_address(address_id: str, user_id: str) -> None:
    addr = get_address(address_id, user_id)
    delete_document("address", address_id)
    if addr.get("is_default"):
        # hand the default over to the oldest remaining address
        rest = get_documents("address", {"user_id": user_id}, limit=1)
        if rest:
            update_document("address", rest[0]["id"], {"is_default": True})
    logger.info("Address %s of %s deleted", address_id, user_id)
