"""Observability helpers."""

from .errors import capture_exception, init_sentry  # re-export
from .queries import add_query_logger
from .transitions import TransitionContext, TransitionEmitter

__all__ = [
    "capture_exception",
    "init_sentry",
    "add_query_logger",
    "TransitionContext",
    "TransitionEmitter",
]
