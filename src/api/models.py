from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional, TypedDict

DEFAULT_STATUS = "draft"


# PUBLIC_INTERFACE
class PostEntity(TypedDict):
    """
    A lightweight domain model representing a blog post as stored in the
    relational backend.

    Fields:
    - id: Unique integer identifier assigned by the store
    - title: Title (at least 3 characters, validated in schemas)
    - content: Body text
    - author: Author name
    - status: Free-form publication status, 'draft' by default
    - created_at: UTC creation timestamp (datetime)
    - updated_at: UTC last update timestamp (datetime)
    """

    id: int
    title: str
    content: str
    author: str
    status: str
    created_at: datetime
    updated_at: datetime


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class PostChanges:
    """
    Partial update of a post. Each attribute is either a new value or None,
    meaning "leave unchanged".
    """

    title: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    status: Optional[str] = None

    def supplied(self) -> dict[str, str]:
        """Return only the fields that carry a new value."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    def apply_to(self, entity: PostEntity, updated_at: datetime) -> PostEntity:
        """Merge supplied fields over `entity` and stamp `updated_at`."""
        merged = entity.copy()
        merged.update(self.supplied())  # type: ignore[typeddict-item]
        merged["updated_at"] = updated_at
        return merged
