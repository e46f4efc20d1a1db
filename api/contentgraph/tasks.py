from __future__ import annotations

import logging
import os
from typing import Any

from celery import Celery

from . import settings

logger = logging.getLogger(__name__)

DEFAULT_REDIS = "redis://cache:6379/0"

celery_app = Celery(
    "contentgraph",
    broker=os.getenv("CELERY_BROKER_URL", DEFAULT_REDIS),
    backend=os.getenv("CELERY_RESULT_BACKEND", DEFAULT_REDIS),
)

celery_app.conf.update(
    task_default_queue="default",
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    result_expires=3600,
    worker_max_tasks_per_child=100,
    beat_schedule={
        "reap-soft-deleted-posts": {
            "task": "contentgraph.tasks.reap_soft_deleted_posts",
            # Checked hourly; the durable marker still enforces REAPER_INTERVAL_SECONDS
            "schedule": 3600.0,
        },
    },
    timezone="UTC",
)


@celery_app.task(name="contentgraph.tasks.reap_soft_deleted_posts", bind=True)
def reap_soft_deleted_posts(self) -> dict[str, Any]:
    """
    Periodic task that purges soft-deleted posts past the retention window.

    Shares the due-check with the request-time trigger, so running both never
    purges twice within one interval.
    """
    from .services.reaper import ReaperService

    try:
        result = ReaperService.run_if_due()
    except Exception as e:
        logger.error("Reaper task failed: %s", e, exc_info=True)
        raise

    if result is None:
        logger.info("Reaper not due yet (interval %ss)", settings.REAPER_INTERVAL_SECONDS)
        return {"status": "skipped", "message": "Reaper not due"}

    return {
        "status": "success",
        "posts": result.posts,
        "comments": result.comments,
        "likes": result.likes,
        "mentions": result.mentions,
        "notifications": result.notifications,
    }
