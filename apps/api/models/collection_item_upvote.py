"""Upvote membership: at most one per (item data, user)."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from database import Base


class CollectionItemUpvote(Base):
    __tablename__ = "collection_item_upvotes"
    __table_args__ = (
        UniqueConstraint("collection_item_data_id", "user_id", name="uq_collection_item_upvotes_data_user"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    collection_item_data_id = Column(
        String,
        ForeignKey("collection_item_datas.id"),
        nullable=False,
        index=True,
    )
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    data = relationship("CollectionItemData", back_populates="upvotes")
    user = relationship("User", back_populates="upvotes")
