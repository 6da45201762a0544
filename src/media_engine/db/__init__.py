"""Database layer."""

from media_engine.db.models import (
    Base,
    CategoryProfileModel,
    MediaVideoCandidateModel,
    MediaVideoJobModel,
)
from media_engine.db.session import (
    commit_or_raise,
    get_session,
    get_session_context,
    init_db,
)

__all__ = [
    "Base",
    "commit_or_raise",
    "get_session",
    "get_session_context",
    "init_db",
    # Models
    "CategoryProfileModel",
    "MediaVideoCandidateModel",
    "MediaVideoJobModel",
]
