"""Email entity module."""

from .entity import Email

__all__ = ["Email"]
