"""Entities organized by business concept.

Each entity package holds its domain model (entity.py) and its stored
representation (table.py); users also carry the repository.
"""

from .core.email import Email
from .core.user import User, UserPatch, UserRepository, UserStatus

__all__ = ["Email", "User", "UserPatch", "UserRepository", "UserStatus"]
