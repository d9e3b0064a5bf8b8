"""
Admin lookups.

Admins are rows in the `admins` table. The `admins:` section of config.yml
only seeds an empty table on first start.
"""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cronwatch.config import AdminsConfig
from cronwatch.core.errors import NotFound, PermissionDenied
from cronwatch.core.logging import get_logger
from cronwatch.models.admin import Admin
from cronwatch.services.activity import log_activity

logger = get_logger(__name__)


async def is_admin(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(select(Admin.user_id).where(Admin.user_id == user_id))
    return result.first() is not None


async def is_super_admin(db: AsyncSession, user_id: str) -> bool:
    result = await db.execute(
        select(Admin.user_id).where(Admin.user_id == user_id, Admin.is_super_admin.is_(True))
    )
    return result.first() is not None


async def list_admins(db: AsyncSession) -> list[Admin]:
    """List admins, super-admins first, then by date added."""
    result = await db.execute(
        select(Admin).order_by(Admin.is_super_admin.desc(), Admin.added_at, Admin.user_id)
    )
    return list(result.scalars().all())


async def add_admin(db: AsyncSession, user_id: str, actor: str | None = None) -> Admin:
    """Grant admin rights. Re-adding an existing admin is a no-op."""
    existing = await db.get(Admin, user_id)
    if existing is not None:
        return existing

    admin = Admin(user_id=user_id, is_super_admin=False)
    db.add(admin)
    await db.flush()

    await log_activity(db, "admin_added", actor=actor, detail=f"user={user_id}")
    return admin


async def remove_admin(db: AsyncSession, user_id: str, actor: str | None = None) -> None:
    """
    Revoke admin rights.

    Raises:
        NotFound: if the user is not an admin
        PermissionDenied: if the user is a super-admin
    """
    admin = await db.get(Admin, user_id)
    if admin is None:
        raise NotFound("User is not an admin")
    if admin.is_super_admin:
        raise PermissionDenied("Cannot remove a super-admin")

    await db.delete(admin)
    await db.flush()

    await log_activity(db, "admin_removed", actor=actor, detail=f"user={user_id}")


async def seed_admins(db: AsyncSession, seed: AdminsConfig) -> int:
    """
    Insert configured admins when the table is empty.

    Returns:
        Number of admins inserted (0 when the table already had rows)
    """
    count = (await db.execute(select(func.count()).select_from(Admin))).scalar() or 0
    if count > 0:
        return 0

    inserted = 0
    for user_id in dict.fromkeys(seed.super_admins):
        db.add(Admin(user_id=user_id, is_super_admin=True))
        inserted += 1
    for user_id in dict.fromkeys(seed.admins):
        if user_id in seed.super_admins:
            continue
        db.add(Admin(user_id=user_id, is_super_admin=False))
        inserted += 1
    await db.flush()

    if inserted:
        logger.bind(count=inserted).info("admins_seeded")
    return inserted
