"""
Resource SQLModel for CyberHub

Catalog entries (courses, articles, tools, ...). ``is_premium`` decides
whether a resource is free or pro content.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from cyberhub.infrastructure.db.models.base import BaseModel


class ResourceType(str, Enum):
    """Kinds of catalog resources."""
    COURSE = "course"
    ARTICLE = "article"
    VIDEO = "video"
    TOOL = "tool"
    COMMUNITY = "community"
    DOCUMENTATION = "documentation"
    CHEAT_SHEET = "cheat_sheet"
    PODCAST = "podcast"
    THREAT = "threat"
    BREACH = "breach"


class DifficultyLevel(str, Enum):
    """Resource difficulty."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ResourceBase(SQLModel):
    """Fields shared between the table and read schemas."""

    title: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, unique=True, index=True)
    description: str = Field(default="")
    resource_type: ResourceType = Field(default=ResourceType.ARTICLE)
    difficulty_level: DifficultyLevel = Field(default=DifficultyLevel.BEGINNER)
    url: Optional[str] = Field(default=None)
    estimated_time_minutes: Optional[int] = Field(default=None, ge=0)
    is_premium: bool = Field(default=False, index=True)
    is_featured: bool = Field(default=False)


class Resource(BaseModel, ResourceBase, table=True):
    """Resources table."""

    __tablename__ = "resources"

    content: Optional[str] = Field(default=None)
    is_published: bool = Field(default=False, index=True)
    published_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class ResourceRead(ResourceBase):
    """Catalog listing schema; ``locked`` is computed per caller."""

    id: UUID
    published_at: Optional[datetime] = None
    locked: bool = False


class ResourceDetail(ResourceRead):
    """Single resource with its body."""

    content: Optional[str] = None
