"""Shared pytest fixtures."""

from .http import *  # noqa: F401,F403
from .services import *  # noqa: F401,F403
from .storage import *  # noqa: F401,F403
