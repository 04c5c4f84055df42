"""Core application infrastructure.

Exports configuration settings to simplify import paths inside tests
(e.g. `from bookkeeper.core import settings`).
"""

from .config import settings  # noqa: F401
