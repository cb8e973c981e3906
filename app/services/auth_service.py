import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.security import verify_password
from app.models.user import User, UserRole
from app.repositories.user_repo import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.users = UserRepository(db)

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        user = await self.users.get_user_by_username(username)
        if not user or not verify_password(password, user.password_hash):
            return None
        return user

    async def bootstrap_super_admin(self) -> Optional[User]:
        """Create the first super admin from settings on an empty user table."""
        if not settings.BOOTSTRAP_ADMIN_USERNAME or not settings.BOOTSTRAP_ADMIN_PASSWORD:
            return None
        if await self.users.count() > 0:
            return None

        user = await self.users.create_user(
            username=settings.BOOTSTRAP_ADMIN_USERNAME,
            password=settings.BOOTSTRAP_ADMIN_PASSWORD,
            name=settings.BOOTSTRAP_ADMIN_NAME,
            role=UserRole.SUPER_ADMIN
        )
        logger.info("Bootstrap super admin created: %s", user.username)
        return user
