"""Visibility-scoped access decisions for collections and items.

Every function here is pure: it looks only at the rows it is given and never
touches the database. Callers decide whether a denial is reported as not-found
(the actor cannot see the collection at all) or as unauthorized.
"""

from __future__ import annotations

from typing import Literal, Optional

from models.collection import Collection
from models.collection_item import CollectionItem


Operation = Literal["read", "write", "upvote"]


def can_access(actor_id: Optional[str], collection: Optional[Collection], operation: Operation) -> bool:
    """Return whether ``actor_id`` may perform ``operation`` on ``collection``."""
    if collection is None or not collection.is_active:
        return False
    is_owner = actor_id is not None and actor_id == collection.user_id
    if operation in ("read", "upvote"):
        return collection.visibility == "public" or is_owner
    if operation == "write":
        return is_owner
    return False


def can_read_item(actor_id: Optional[str], item: CollectionItem, collection: Optional[Collection]) -> bool:
    if not item.is_active:
        return False
    return can_access(actor_id, collection, "read")


def can_modify_item(actor_id: Optional[str], item: CollectionItem, collection: Optional[Collection]) -> bool:
    """Collection owners may edit any item in it; creators may edit their own."""
    if not can_read_item(actor_id, item, collection):
        return False
    if can_access(actor_id, collection, "write"):
        return True
    return actor_id is not None and actor_id == item.user_id
