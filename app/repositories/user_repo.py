from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.security import hash_password
from app.models.base import parse_object_id
from app.models.user import User, UserRole


class UserRepository:
    """User database operations."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.collection = db["users"]

    async def create_user(
        self,
        username: str,
        password: str,
        name: str,
        role: UserRole = UserRole.ADMIN
    ) -> User:
        """Create a new user."""
        user = User(
            username=username,
            password_hash=hash_password(password),
            name=name,
            role=role
        )
        await self.collection.insert_one(user.to_document())
        return user

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Get user by username."""
        user = await self.collection.find_one({"username": username})
        if user:
            return User(**user)
        return None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        """Get user by ID."""
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        user = await self.collection.find_one({"_id": oid})
        if user:
            return User(**user)
        return None

    async def count(self) -> int:
        return await self.collection.count_documents({})
