"""SQLAlchemy-backed repository implementations.

This module also exposes ``TenantScope``, a tiny helper that binds the
authenticated user to the current transaction so Postgres row-level
security policies can see it, plus role ranking shared by the repositories.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from config import StaffRole

ROLE_RANK: dict[str, int] = {role.value: rank for rank, role in enumerate(StaffRole)}


def role_at_least(role: str | None, minimum: StaffRole | str) -> bool:
    """Return ``True`` when ``role`` ranks at or above ``minimum``."""

    if role is None or role not in ROLE_RANK:
        return False
    floor = minimum.value if isinstance(minimum, StaffRole) else minimum
    return ROLE_RANK[role] >= ROLE_RANK[floor]


class TenantScope:
    """Helpers keeping repository calls scoped to the calling user."""

    @staticmethod
    async def bind_user(session: AsyncSession, user_id: str) -> None:
        """Expose ``user_id`` to RLS policies for the current transaction.

        On dialects without row-level security this is a no-op; the
        repositories join ``restaurant_staff`` explicitly instead.

        Raises
        ------
        AssertionError
            If ``user_id`` is blank.
        """

        if not user_id:
            raise AssertionError("user_id required")
        bind = session.bind
        if bind is None or bind.dialect.name != "postgresql":
            return
        await session.execute(
            text("SELECT set_config('app.current_user_id', :uid, true)"),
            {"uid": user_id},
        )


__all__ = ["ROLE_RANK", "TenantScope", "role_at_least"]
