"""
Logging Configuration

Installs a root handler whose format carries the id of the query being
executed, so warnings raised deep inside a nested subquery can be traced back
to the ``execute()`` call that produced them.
"""

import logging
from typing import Optional

from recordql.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(query_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class QueryIdFilter(logging.Filter):
    """Guarantee every record has a ``query_id`` attribute for the formatter."""

    def filter(self, record):
        if not hasattr(record, "query_id"):
            record.query_id = "-"
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging for applications embedding the engine.

    Args:
        level: Log level name. Defaults to ``settings.log_level``.
    """
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
    )

    for handler in logging.root.handlers:
        if not any(isinstance(f, QueryIdFilter) for f in handler.filters):
            handler.addFilter(QueryIdFilter())
