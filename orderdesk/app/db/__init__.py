from .session import (
    dispose_engine,
    get_engine,
    get_session,
    run_migrations,
    session_scope,
)

__all__ = [
    "dispose_engine",
    "get_engine",
    "get_session",
    "run_migrations",
    "session_scope",
]
