"""
Bookmark SQLModel for CyberHub
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import UniqueConstraint
from sqlmodel import Field

from cyberhub.infrastructure.db.models.base import BaseModel


class Bookmark(BaseModel, table=True):
    """A resource saved by a user. One bookmark per (user, resource)."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        UniqueConstraint("user_id", "resource_id", name="uq_bookmarks_user_resource"),
    )

    user_id: UUID = Field(foreign_key="profiles.id", ondelete="CASCADE", index=True, nullable=False)
    resource_id: UUID = Field(foreign_key="resources.id", ondelete="CASCADE", nullable=False)
    notes: Optional[str] = Field(default=None, max_length=2000)
