"""Database utilities for the progress service."""

from .session import (
    build_engine,
    dispose_engine,
    get_engine,
    make_session_factory,
    session_scope,
)

__all__ = [
    "build_engine",
    "dispose_engine",
    "get_engine",
    "make_session_factory",
    "session_scope",
]
