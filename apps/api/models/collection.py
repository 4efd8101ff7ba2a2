"""Collection model for user-curated link sets."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base


COLLECTION_VISIBILITIES = ("private", "public")


class Collection(Base):
    """Named, visibility-scoped container of items owned by one user."""

    __tablename__ = "collections"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    visibility = Column(String, nullable=False, default="private")
    workflow_state = Column(String, nullable=False, default="active", index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="collections")
    # Items are looked up through the relation only; collection deletion never cascades.
    items = relationship("CollectionItem", back_populates="collection")

    @property
    def is_active(self) -> bool:
        return self.workflow_state == "active"
