"""CollectionItemData model: deduplicated link metadata shared across items."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


class CollectionItemData(Base):
    """Shared metadata for one distinct link, reference-counted by its items."""

    __tablename__ = "collection_item_datas"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    link_url = Column(String, nullable=False, unique=True, index=True)
    item_type = Column(String, nullable=False, default="url")
    post_count = Column(Integer, nullable=False, default=0)
    upvote_count = Column(Integer, nullable=False, default=0)
    # Provenance anchor; plain column because the data row is written before its root item.
    root_item_id = Column(String, nullable=True, index=True)
    image_attachment_id = Column(String, ForeignKey("attachments.id"), nullable=True)
    image_pending = Column(Boolean, nullable=False, default=True, index=True)
    html_preview = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship("CollectionItem", back_populates="data")
    upvotes = relationship("CollectionItemUpvote", back_populates="data")
    image_attachment = relationship("Attachment")
