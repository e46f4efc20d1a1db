from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from . import schemas
from .errors import (
    ConflictError,
    ContentGraphError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from .routers import comments, notifications, posts, users

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

# Domain error -> (HTTP status, problem title). Anything else is a 500.
ERROR_STATUS: dict[type[ContentGraphError], tuple[int, str]] = {
    ValidationError: (status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed"),
    ConflictError: (status.HTTP_409_CONFLICT, "Conflict"),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "Not found"),
    PermissionDeniedError: (status.HTTP_403_FORBIDDEN, "Forbidden"),
}


def problem_for(exc: ContentGraphError) -> tuple[int, schemas.Problem]:
    for error_type, (code, title) in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return code, schemas.Problem(title=title, status=code, detail=exc.message)
    # WriteError and ContractError: details stay in the logs
    code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return code, schemas.Problem(title="Internal error", status=code, detail="The operation was rolled back")


app = FastAPI(
    title="Content Graph API",
    version="1.0.0",
    description="Posts, comments, likes, follows, mentions and notifications",
)


@app.exception_handler(ContentGraphError)
async def content_graph_error_handler(request: Request, exc: ContentGraphError) -> JSONResponse:
    code, problem = problem_for(exc)
    return JSONResponse(status_code=code, content=problem.model_dump())


@app.get("/health", tags=["System"])
def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(posts.router)
app.include_router(comments.router)
app.include_router(users.router)
app.include_router(notifications.router)
