"""
Core Components

Configuration and logging setup.
"""

from recordql.core.config import settings, Settings
from recordql.core.log_config import configure_logging, QueryIdFilter

__all__ = [
    "settings",
    "Settings",
    "configure_logging",
    "QueryIdFilter",
]
