"""Platform REST API module."""

from .client import TOKEN_EXPIRED_CODES, PlatformClient

__all__ = ["PlatformClient", "TOKEN_EXPIRED_CODES"]
