"""Owner Directory — id -> name/email lookup used to populate swap results."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slotswap.core.domain_types import OwnerInfo, UserId
from slotswap.models.user import User


class SqlOwnerDirectory:
    """Reads owner identities from the users table (display only)."""

    async def lookup(
        self, db: AsyncSession, user_ids: set[UserId],
    ) -> dict[UserId, OwnerInfo]:
        if not user_ids:
            return {}
        result = await db.execute(
            select(User.id, User.name, User.email).where(User.id.in_(user_ids)),
        )
        return {
            row.id: OwnerInfo(id=row.id, name=row.name, email=row.email)
            for row in result.all()
        }
