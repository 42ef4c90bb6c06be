"""
Middleware Package
==================

Starlette middleware shared by the prep API.
"""

from .security import SecurityHeadersMiddleware

__all__ = [
    "SecurityHeadersMiddleware",
]
