"""
Core Components

Configuration and logging setup.
"""

from dbadmin.core.config import Settings, get_settings
from dbadmin.core.logging import configure_logging

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
]
