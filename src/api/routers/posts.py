from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..errors import NotFoundError
from ..repositories import PostRepository, get_repository
from ..schemas import ErrorResponse, PaginatedPosts, PostCreate, PostOut, PostUpdate
from ..utils import normalize_pagination, pagination_envelope

router = APIRouter(tags=["posts"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Validation error"},
    404: {"model": ErrorResponse, "description": "Post not found"},
    500: {"model": ErrorResponse, "description": "Storage failure"},
}


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=PaginatedPosts,
    summary="List Posts",
    description=(
        "List posts newest first.\n\n"
        "Query parameters:\n"
        "- page: 1-based page number; values below 1 are treated as 1\n"
        "- per_page: page size, clamped into 1..100 (default 10)"
    ),
    responses={400: _ERRORS[400], 500: _ERRORS[500]},
)
def list_posts(
    page: Optional[int] = Query(None, description="Page number (1-based)"),
    per_page: Optional[int] = Query(None, description="Items per page (1..100)"),
    repo: PostRepository = Depends(get_repository),
) -> PaginatedPosts:
    """
    List posts with pagination.
    """
    effective_page, effective_per_page = normalize_pagination(page, per_page)
    items, total = repo.list(effective_page, effective_per_page)
    envelope = pagination_envelope(
        items=[PostOut(**it) for it in items],
        total=total,
        page=effective_page,
        per_page=effective_per_page,
    )
    return PaginatedPosts(**envelope)


# PUBLIC_INTERFACE
@router.get(
    "/{post_id}",
    response_model=PostOut,
    summary="Get Post",
    responses={400: _ERRORS[400], 404: _ERRORS[404], 500: _ERRORS[500]},
)
def get_post(post_id: int, repo: PostRepository = Depends(get_repository)) -> PostOut:
    """
    Retrieve a single post by its ID.
    """
    return PostOut(**repo.get(post_id))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=PostOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Post",
    responses={400: _ERRORS[400], 500: _ERRORS[500]},
)
def create_post(payload: PostCreate, repo: PostRepository = Depends(get_repository)) -> PostOut:
    created = repo.create(
        title=payload.title,
        content=payload.content,
        author=payload.author,
        status=payload.status,
    )
    return PostOut(**created)


# PUBLIC_INTERFACE
@router.put(
    "/{post_id}",
    response_model=PostOut,
    summary="Update Post",
    description="Partially update a post. Omitted or null fields keep their stored values.",
    responses=_ERRORS,
)
def update_post(
    post_id: int,
    payload: PostUpdate,
    repo: PostRepository = Depends(get_repository),
) -> PostOut:
    updated = repo.update(post_id, payload.to_changes())
    return PostOut(**updated)


# PUBLIC_INTERFACE
@router.delete(
    "/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Post",
    responses={400: _ERRORS[400], 404: _ERRORS[404], 500: _ERRORS[500]},
)
def delete_post(post_id: int, repo: PostRepository = Depends(get_repository)) -> None:
    """
    Delete a post. Returns 204 on success, 404 if not found.
    """
    if repo.delete(post_id) == 0:
        raise NotFoundError("Post not found")
    return None
