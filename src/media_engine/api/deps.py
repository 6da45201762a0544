"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from media_engine.db.session import get_session
from media_engine.services.orchestrator import JobOrchestrator

# Database session dependency
SessionDep = Annotated[Session, Depends(get_session)]


@lru_cache
def get_orchestrator() -> JobOrchestrator:
    """Get the shared job orchestrator instance."""
    return JobOrchestrator()


OrchestratorDep = Annotated[JobOrchestrator, Depends(get_orchestrator)]
