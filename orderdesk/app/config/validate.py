"""Startup settings validation utilities."""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from config import DEFAULT_SECRET_KEY, STORE_WRITE_ROLE, Settings, roles_from

logger = logging.getLogger("api.config")


def _mask(value: str) -> str:
    """Return a masked representation of ``value`` for logging."""
    if len(value) <= 4:
        return "*" * len(value)
    return value[:2] + "*" * (len(value) - 4) + value[-2:]


def validate_on_boot(settings: Settings) -> None:
    """Validate the settings the service cannot run safely without.

    Logs masked values for audit and raises :class:`RuntimeError` when a
    production deployment is misconfigured.
    """

    parsed = urlparse(settings.database_url)
    if not parsed.scheme:
        raise RuntimeError("database_url must be a valid URL")
    logger.info("database_url scheme=%s", parsed.scheme)
    logger.info("secret_key=%s", _mask(settings.secret_key))

    if settings.reason_max_length < 1:
        raise RuntimeError("reason_max_length must be positive")
    if settings.min_mutation_role.value not in roles_from(STORE_WRITE_ROLE):
        # row-level security only lets these roles write
        raise RuntimeError(
            f"min_mutation_role must be at least {STORE_WRITE_ROLE.value}"
        )

    if settings.environment != "prod":
        return
    if settings.secret_key == DEFAULT_SECRET_KEY or len(settings.secret_key) < 32:
        raise RuntimeError("secret_key must be set to at least 32 characters in prod")
    if parsed.scheme.startswith("sqlite"):
        raise RuntimeError("sqlite is not supported in prod")
    if not settings.error_dsn:
        logger.warning("error_dsn not set in prod; errors will only be logged")
