# services/collect/access.py
"""
App-level access control.

An admin may operate on every app; a child_admin only on the apps granted to
them through user_app_access. The grant list is read on every request because
admins can change it at any time.
"""

from typing import Optional

from fastapi import Depends

from services.collect.auth import CurrentUser, get_current_user
from shared.database import Database, get_db
from shared.errors import ForbiddenError


class AppScope:
    """Which apps the current caller may see"""

    unrestricted = False

    def allows(self, app_id: str) -> bool:
        raise NotImplementedError

    def require(self, app_id: str) -> str:
        """Return app_id if visible, else raise ForbiddenError"""
        if not self.allows(app_id):
            raise ForbiddenError("Access denied for this app")
        return app_id

    def app_filter(self, app_id: Optional[str] = None) -> Optional[list[str]]:
        """
        The app ids a query must be limited to.

        An explicit app_id is access-checked and returned alone. Without one the
        result is None (no limit) or the granted list, which may be empty.
        """
        raise NotImplementedError


class Unrestricted(AppScope):
    unrestricted = True

    def allows(self, app_id: str) -> bool:
        return True

    def app_filter(self, app_id: Optional[str] = None) -> Optional[list[str]]:
        return [app_id] if app_id else None

    def __repr__(self):
        return "Unrestricted()"


class RestrictedTo(AppScope):
    def __init__(self, app_ids):
        self.app_ids = frozenset(app_ids)

    def allows(self, app_id: str) -> bool:
        return app_id in self.app_ids

    def app_filter(self, app_id: Optional[str] = None) -> Optional[list[str]]:
        if app_id:
            return [self.require(app_id)]
        return sorted(self.app_ids)

    def __repr__(self):
        return f"RestrictedTo({sorted(self.app_ids)})"


async def granted_app_ids(db: Database, user_id: str) -> list[str]:
    rows = await db.fetch_all(
        "SELECT app_id FROM user_app_access WHERE user_id = $1 ORDER BY app_id", user_id
    )
    return [row["app_id"] for row in rows]


async def resolve_scope(db: Database, user: CurrentUser) -> AppScope:
    if user.role == "admin":
        return Unrestricted()
    return RestrictedTo(await granted_app_ids(db, user.id))


async def get_app_scope(
    current_user: CurrentUser = Depends(get_current_user),
    db: Database = Depends(get_db),
) -> AppScope:
    """FastAPI dependency resolving the caller's scope for this request"""
    return await resolve_scope(db, current_user)
