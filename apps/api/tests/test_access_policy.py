import pytest

from models.collection import Collection
from models.collection_item import CollectionItem
from services.access_policy import can_access, can_modify_item, can_read_item


OWNER = "owner-user"
OTHER = "other-user"


def _collection(visibility: str, state: str = "active") -> Collection:
    return Collection(id="c1", user_id=OWNER, name="links", visibility=visibility, workflow_state=state)


def _item(user_id: str = OWNER, state: str = "active") -> CollectionItem:
    return CollectionItem(
        id="i1",
        collection_id="c1",
        user_id=user_id,
        collection_item_data_id="d1",
        workflow_state=state,
    )


@pytest.mark.parametrize(
    "visibility, actor, operation, expected",
    [
        ("public", OWNER, "read", True),
        ("public", OTHER, "read", True),
        ("public", None, "read", True),
        ("private", OWNER, "read", True),
        ("private", OTHER, "read", False),
        ("private", None, "read", False),
        ("public", OWNER, "write", True),
        ("public", OTHER, "write", False),
        ("private", OTHER, "write", False),
        ("public", OTHER, "upvote", True),
        ("private", OTHER, "upvote", False),
    ],
)
def test_collection_access_matrix(visibility, actor, operation, expected):
    assert can_access(actor, _collection(visibility), operation) is expected


def test_deleted_or_missing_collection_grants_nothing():
    deleted = _collection("public", state="deleted")
    assert can_access(OWNER, deleted, "read") is False
    assert can_access(OWNER, deleted, "write") is False
    assert can_access(OWNER, None, "read") is False


def test_item_read_inherits_collection_and_item_state():
    public = _collection("public")
    assert can_read_item(OTHER, _item(), public) is True
    assert can_read_item(OTHER, _item(), _collection("private")) is False
    assert can_read_item(OWNER, _item(state="deleted"), public) is False


def test_item_creator_can_modify_own_item_in_someone_elses_public_collection():
    public = _collection("public")
    assert can_modify_item(OTHER, _item(user_id=OTHER), public) is True
    assert can_modify_item(OTHER, _item(user_id=OWNER), public) is False
    assert can_modify_item(OWNER, _item(user_id=OTHER), public) is True
    assert can_access(OTHER, public, "write") is False
