"""Post endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from .. import schemas
from ..actor import Actor
from ..auth import get_current_actor
from ..deps import get_orchestrator
from ..orchestrator import MutationOrchestrator

router = APIRouter(prefix="/post", tags=["Posts"])


@router.post("", response_model=schemas.Post, status_code=status.HTTP_201_CREATED)
def create_post(
    payload: schemas.PostCreate,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.Post:
    """Create a post; followers and mentioned users are notified."""
    return orchestrator.create_post(actor, payload)


@router.get("/{sqid}", response_model=schemas.Post)
def get_post(
    sqid: str,
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.Post:
    return orchestrator.get_post(sqid)


@router.patch("/{sqid}", response_model=schemas.Post)
def update_post(
    sqid: str,
    payload: schemas.PostUpdate,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.Post:
    return orchestrator.update_post(actor, sqid, payload)


@router.delete("/{sqid}", response_model=schemas.DeleteResult)
def delete_post(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.DeleteResult:
    """Soft-delete a post. It stays recoverable until the reaper purges it."""
    return orchestrator.delete_post(actor, sqid)


@router.post("/{sqid}/recover", response_model=schemas.DeleteResult)
def recover_post(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.DeleteResult:
    return orchestrator.recover_post(actor, sqid)


@router.post("/{sqid}/like", response_model=schemas.LikeToggleResult)
def toggle_post_like(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.LikeToggleResult:
    """Like the post, or unlike it if already liked."""
    return orchestrator.toggle_like(actor, "post", sqid)


@router.get("/{sqid}/like", response_model=schemas.LikeToggleResult)
def get_post_like_status(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.LikeToggleResult:
    return orchestrator.like_status(actor, "post", sqid)


@router.get("/{sqid}/likes", response_model=schemas.LikeList)
def list_post_likes(
    sqid: str,
    limit: int = Query(50, ge=1, le=200),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.LikeList:
    """Users who liked the post, most recent first, with the total count."""
    return orchestrator.list_likes("post", sqid, limit=limit)
