"""Pipeline orchestrator module."""

from .context import (
    build_context_payload,
    build_history_entry,
    format_history_block,
    format_reply_block,
)
from .orchestrator import GatewayPipeline

__all__ = [
    "GatewayPipeline",
    "build_context_payload",
    "build_history_entry",
    "format_history_block",
    "format_reply_block",
]
