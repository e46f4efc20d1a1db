"""Comment endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from .. import schemas
from ..actor import Actor
from ..auth import get_current_actor
from ..deps import get_orchestrator
from ..orchestrator import MutationOrchestrator

router = APIRouter(tags=["Comments"])


@router.get("/post/{sqid}/comments", response_model=list[schemas.Comment])
def list_comments(
    sqid: str,
    limit: int = Query(50, ge=1, le=200),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> list[schemas.Comment]:
    return orchestrator.list_comments(sqid, limit=limit)


@router.post(
    "/post/{sqid}/comments",
    response_model=schemas.Comment,
    status_code=status.HTTP_201_CREATED,
)
def create_comment(
    sqid: str,
    payload: schemas.CommentCreate,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.Comment:
    """Comment on a post; the post owner and mentioned users are notified."""
    return orchestrator.create_comment(actor, sqid, payload)


@router.patch("/comment/{sqid}", response_model=schemas.Comment)
def update_comment(
    sqid: str,
    payload: schemas.CommentUpdate,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.Comment:
    return orchestrator.update_comment(actor, sqid, payload)


@router.delete("/comment/{sqid}", response_model=schemas.DeleteResult)
def delete_comment(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.DeleteResult:
    return orchestrator.delete_comment(actor, sqid)


@router.post("/comment/{sqid}/like", response_model=schemas.LikeToggleResult)
def toggle_comment_like(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.LikeToggleResult:
    return orchestrator.toggle_like(actor, "comment", sqid)


@router.get("/comment/{sqid}/like", response_model=schemas.LikeToggleResult)
def get_comment_like_status(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.LikeToggleResult:
    return orchestrator.like_status(actor, "comment", sqid)


@router.get("/comment/{sqid}/likes", response_model=schemas.LikeList)
def list_comment_likes(
    sqid: str,
    limit: int = Query(50, ge=1, le=200),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.LikeList:
    return orchestrator.list_likes("comment", sqid, limit=limit)
