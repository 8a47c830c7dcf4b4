"""
Logging setup.

Every logger handed out here lives under the ``parley`` namespace, which
carries the one stream handler of the application.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_root = logging.getLogger("parley")


def setup_logger(name: str = "parley", level: Optional[str] = None) -> logging.Logger:
    """Get a logger, attaching the ``parley`` handler on first use; ``level`` sets the namespace level."""
    if not _root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _root.addHandler(handler)
        _root.setLevel(logging.INFO)
    if level:
        _root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logging.getLogger(name)
