"""User entity module.

- User / UserPatch / UserStatus: domain models
- table: mapping between the entity and its stored item
- UserRepository: data access layer
"""

from .entity import User, UserPatch, UserStatus
from .repository import UserRepository

__all__ = ["User", "UserPatch", "UserStatus", "UserRepository"]
