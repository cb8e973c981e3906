from enum import Enum

from pydantic import Field

from app.models.base import MongoModel


class UserRole(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"


class User(MongoModel):
    """Back-office staff account."""
    username: str = Field(..., min_length=1, max_length=100)
    password_hash: str
    name: str = Field(..., min_length=1, max_length=100)
    role: UserRole = UserRole.ADMIN

    @property
    def display_name(self) -> str:
        """Name recorded on ledger entries as `recordedBy`."""
        return self.name or self.username

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN
