"""API routers."""

from parley.api import uploads, ws

__all__ = ["uploads", "ws"]
