"""
Logging configuration.

Records emitted while a registry-managed connection is in use carry a
``connection_id`` attribute; everything else renders it as '-'.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(connection_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ConnectionIdFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "connection_id"):
            record.connection_id = "-"
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """
    Install the dbadmin log format on the root logger.

    Args:
        level: Log level name; defaults to Settings.log_level
    """
    if level is None:
        from dbadmin.core.config import get_settings
        level = get_settings().log_level

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    for handler in logging.root.handlers:
        if not any(isinstance(f, ConnectionIdFilter) for f in handler.filters):
            handler.addFilter(ConnectionIdFilter())
