"""Reply context module."""

from .resolver import ReplyContextResolver

__all__ = ["ReplyContextResolver"]
