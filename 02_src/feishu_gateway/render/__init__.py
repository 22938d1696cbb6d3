"""Reply rendering module."""

from .policy import (
    RenderFormat,
    RenderPolicy,
    RenderedReply,
    build_markdown_card,
    flatten_tables,
)

__all__ = [
    "RenderFormat",
    "RenderPolicy",
    "RenderedReply",
    "build_markdown_card",
    "flatten_tables",
]
