"""CollectionItem model: a curated link entry inside a collection."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CollectionItem(Base):
    """Single item in a collection, pointing at shared CollectionItemData."""

    __tablename__ = "collection_items"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    collection_id = Column(String, ForeignKey("collections.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    collection_item_data_id = Column(
        String,
        ForeignKey("collection_item_datas.id"),
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=True)
    workflow_state = Column(String, nullable=False, default="active", index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    collection = relationship("Collection", back_populates="items")
    user = relationship("User", back_populates="collection_items")
    data = relationship("CollectionItemData", back_populates="items")

    @property
    def is_active(self) -> bool:
        return self.workflow_state == "active"
