from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Tuple

from fastapi import Request

from .models import DEFAULT_STATUS, PostChanges, PostEntity


# PUBLIC_INTERFACE
class PostRepository(ABC):
    """Abstract repository contract for post storage backends.

    Storage faults are raised as errors.StorageError.
    """

    @abstractmethod
    def create(self, title: str, content: str, author: str, status: str = DEFAULT_STATUS) -> PostEntity:
        """Insert a post; the store assigns id, created_at and updated_at."""

    @abstractmethod
    def get(self, post_id: int) -> PostEntity:
        """Return a post by id. Raise errors.NotFoundError if absent."""

    @abstractmethod
    def update(self, post_id: int, changes: PostChanges) -> PostEntity:
        """
        Apply the supplied fields of `changes`, refresh updated_at and return the
        stored post. Raise errors.NotFoundError if absent.
        """

    @abstractmethod
    def delete(self, post_id: int) -> int:
        """Delete a post by id and return the number of rows removed."""

    @abstractmethod
    def count(self) -> int:
        """Return the total number of posts."""

    @abstractmethod
    def list(self, page: int, per_page: int) -> Tuple[List[PostEntity], int]:
        """
        Return one page of posts and the total count.
        - Ordered by created_at descending, id descending on ties
        - offset = (page - 1) * per_page, limit = per_page
        - A page past the end is empty
        """

    def close(self) -> None:
        """Release held resources."""


# PUBLIC_INTERFACE
def get_repository(request: Request) -> PostRepository:
    """
    FastAPI dependency returning the repository created at application startup.
    """
    return request.app.state.repository
