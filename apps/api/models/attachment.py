"""Stored attachment (preview images) model."""

from sqlalchemy import Column, String, DateTime, Integer
from sqlalchemy.sql import func
import secrets
import uuid

from database import Base


class Attachment(Base):
    """Binary blob persisted by the attachment store."""

    __tablename__ = "attachments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    uuid = Column(String, nullable=False, unique=True, default=lambda: secrets.token_hex(20))
    context = Column(String, nullable=False, default="account_default")
    content_type = Column(String, nullable=True)
    file_path = Column(String, nullable=False)
    file_size_bytes = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
