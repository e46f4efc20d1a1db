"""Notification endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .. import schemas
from ..actor import Actor
from ..auth import get_current_actor
from ..deps import get_orchestrator
from ..orchestrator import MutationOrchestrator

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=schemas.Page[schemas.Notification])
def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    cursor: int | None = Query(None, ge=1),
    unread_only: bool = False,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.Page[schemas.Notification]:
    return orchestrator.list_notifications(
        actor, limit=limit, cursor=cursor, unread_only=unread_only
    )


@router.get("/unread-count", response_model=schemas.CountResponse)
def unread_count(
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.CountResponse:
    return schemas.CountResponse(count=orchestrator.unread_count(actor))


@router.post("/mark-read", response_model=schemas.CountResponse)
def mark_read(
    payload: schemas.MarkReadRequest,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.CountResponse:
    return schemas.CountResponse(count=orchestrator.mark_notifications_read(actor, payload.ids))


@router.post("/mark-all-read", response_model=schemas.CountResponse)
def mark_all_read(
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> schemas.CountResponse:
    return schemas.CountResponse(count=orchestrator.mark_all_notifications_read(actor))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    actor: Actor = Depends(get_current_actor),
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
) -> None:
    if not orchestrator.delete_notification(actor, notification_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
