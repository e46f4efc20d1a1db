from __future__ import annotations

from typing import Generator

from sqlalchemy.orm import Session

from .db import get_session
from .orchestrator import MutationOrchestrator


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_orchestrator() -> MutationOrchestrator:
    return MutationOrchestrator()
