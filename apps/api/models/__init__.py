"""Models package."""

from .user import User
from .attachment import Attachment
from .collection import Collection
from .collection_item import CollectionItem
from .collection_item_data import CollectionItemData
from .collection_item_upvote import CollectionItemUpvote
