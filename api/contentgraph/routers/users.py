"""User, follow and role endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from .. import schemas
from ..actor import Actor
from ..auth import get_current_actor
from ..deps import get_orchestrator
from ..orchestrator import MutationOrchestrator

router = APIRouter(prefix="/user", tags=["Users"])


@router.get("/me/mentions", response_model=list[schemas.Mention])
def list_my_mentions(
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> list[schemas.Mention]:
    """Posts and comments that mention the current user, newest first."""
    return orchestrator.list_mentions(actor, limit=limit)


@router.get("/{sqid}", response_model=schemas.UserProfile)
def get_user(
    sqid: str,
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.UserProfile:
    return orchestrator.get_user(sqid)


@router.post("/{sqid}/follow", response_model=schemas.FollowToggleResult)
def toggle_follow(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.FollowToggleResult:
    """Follow the user, or unfollow if already following."""
    return orchestrator.toggle_follow(actor, sqid)


@router.get("/{sqid}/follow", response_model=schemas.FollowToggleResult)
def get_follow_status(
    sqid: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.FollowToggleResult:
    return orchestrator.follow_status(actor, sqid)


@router.get("/{sqid}/followers", response_model=list[schemas.UserSummary])
def list_followers(
    sqid: str,
    limit: int = Query(50, ge=1, le=200),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> list[schemas.UserSummary]:
    return orchestrator.list_followers(sqid, limit=limit)


@router.get("/{sqid}/following", response_model=list[schemas.UserSummary])
def list_following(
    sqid: str,
    limit: int = Query(50, ge=1, le=200),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> list[schemas.UserSummary]:
    return orchestrator.list_following(sqid, limit=limit)


@router.delete("/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.delete_user(actor)


@router.put("/{sqid}/roles", status_code=status.HTTP_204_NO_CONTENT)
def assign_role(
    sqid: str,
    payload: schemas.RoleAssignment,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.assign_role(actor, sqid, payload.role)


@router.delete("/{sqid}/roles/{role}", status_code=status.HTTP_204_NO_CONTENT)
def remove_role(
    sqid: str,
    role: str,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.remove_role(actor, sqid, role)


@router.post("/recover", response_model=schemas.UserProfile)
def recover_user(
    payload: schemas.RecoverUserRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.UserProfile:
    """Restore a soft-deleted account under its original handle."""
    return orchestrator.recover_user(actor, payload.handle)
