from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import DEFAULT_STATUS, PostChanges

TITLE_MIN_LENGTH = 3


def _check_title(v: str) -> str:
    if len(v) < TITLE_MIN_LENGTH:
        raise ValueError(f"Title must be at least {TITLE_MIN_LENGTH} characters")
    return v


# PUBLIC_INTERFACE
class PostCreate(BaseModel):
    """
    Schema for creating a new post.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Welcome to the Blog",
                "content": "This is the first post.",
                "author": "Admin",
                "status": "draft",
            }
        }
    )

    title: str = Field(..., description="Post title, at least 3 characters")
    content: str = Field(..., description="Post body")
    author: str = Field(..., description="Author name")
    status: str = Field(default=DEFAULT_STATUS, description="Publication status, 'draft' when omitted")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v:
            raise ValueError("Content cannot be empty")
        return v

    @field_validator("author")
    @classmethod
    def validate_author(cls, v: str) -> str:
        if not v:
            raise ValueError("Author cannot be empty")
        return v


# PUBLIC_INTERFACE
class PostUpdate(BaseModel):
    """
    Schema for updating an existing post.
    All fields are optional; only provided, non-null fields are applied.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "content": "Updated body",
                "status": "published",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Post title, at least 3 characters")
    content: Optional[str] = Field(default=None, description="Post body")
    author: Optional[str] = Field(default=None, description="Author name")
    status: Optional[str] = Field(default=None, description="Publication status")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        """
        Only validated when present in the request.
        """
        if v is None:
            return v
        return _check_title(v)

    def to_changes(self) -> PostChanges:
        return PostChanges(
            title=self.title,
            content=self.content,
            author=self.author,
            status=self.status,
        )


# PUBLIC_INTERFACE
class PostOut(BaseModel):
    """
    Schema returned by the API for a post.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Welcome to the Blog",
                "content": "This is the first post.",
                "author": "Admin",
                "status": "draft",
                "created_at": "2025-01-25T10:15:30.123456Z",
                "updated_at": "2025-01-25T10:15:30.123456Z",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the post")
    title: str = Field(..., description="Post title")
    content: str = Field(..., description="Post body")
    author: str = Field(..., description="Author name")
    status: str = Field(..., description="Publication status")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class PaginatedPosts(BaseModel):
    """
    Envelope for paginated list responses.
    """

    data: List[PostOut] = Field(..., description="Posts on the requested page, newest first")
    page: int = Field(..., description="Effective page number (1-based)")
    per_page: int = Field(..., description="Effective page size (1..100)")
    total: int = Field(..., description="Total number of posts")


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable error message")
    status: int = Field(..., description="HTTP status code")
