"""RenderPolicy implementation."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..models import RenderMode

DEFAULT_LONG_TEXT_THRESHOLD = 500
MIN_PARAGRAPH_BREAKS = 3

_FENCED_CODE = re.compile(r"```[\s\S]*?```")
_TABLE = re.compile(r"\|.+\|[\r\n]+\|[-:| ]+\|")
_LINK = re.compile(r"\[.+\]\(.+\)")
_TABLE_ROW = re.compile(r"^\s*\|.*\|\s*$")
_SEPARATOR_ROW = re.compile(r"^\s*\|[-:| ]+\|\s*$")


class RenderFormat(str, Enum):
    """Delivery representation of a reply."""

    PLAIN = "plain"
    RICH = "rich"


@dataclass
class RenderedReply:
    """Reply text ready for the sender."""

    format: RenderFormat
    text: str
    card: dict[str, Any] | None = None


def build_markdown_card(text: str) -> dict[str, Any]:
    """Interactive card with a single markdown element."""
    return {
        "config": {"wide_screen_mode": True},
        "elements": [{"tag": "markdown", "content": text}],
    }


def _split_cells(row: str) -> list[str]:
    return [cell.strip() for cell in row.strip().strip("|").split("|")]


def _format_table(rows: list[str]) -> list[str]:
    cells = [_split_cells(row) for row in rows if not _SEPARATOR_ROW.match(row)]
    if not cells:
        return []

    columns = max(len(row) for row in cells)
    for row in cells:
        row.extend([""] * (columns - len(row)))
    widths = [max(len(row[i]) for row in cells) for i in range(columns)]

    lines = ["  ".join(c.ljust(w) for c, w in zip(cells[0], widths)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for row in cells[1:]:
        lines.append("  ".join(c.ljust(w) for c, w in zip(row, widths)).rstrip())
    return lines


def flatten_tables(text: str) -> str:
    """Rewrite markdown table blocks as fixed-width columns without pipes."""
    lines = text.split("\n")
    output: list[str] = []
    i = 0
    while i < len(lines):
        is_table = (
            i + 1 < len(lines)
            and _TABLE_ROW.match(lines[i])
            and _SEPARATOR_ROW.match(lines[i + 1])
        )
        if not is_table:
            output.append(lines[i])
            i += 1
            continue

        block = []
        while i < len(lines) and _TABLE_ROW.match(lines[i]):
            block.append(lines[i])
            i += 1
        output.extend(_format_table(block))

    return "\n".join(output)


class RenderPolicy:
    """Chooses plain text or a markdown card for outbound replies."""

    def __init__(
        self,
        mode: RenderMode = RenderMode.AUTO,
        long_text_threshold: int = DEFAULT_LONG_TEXT_THRESHOLD,
    ):
        self.mode = mode
        self.long_text_threshold = long_text_threshold

    def classify(self, text: str) -> RenderFormat:
        if (
            _FENCED_CODE.search(text)
            or _TABLE.search(text)
            or _LINK.search(text)
            or len(text) > self.long_text_threshold
            or text.count("\n\n") >= MIN_PARAGRAPH_BREAKS
        ):
            return RenderFormat.RICH
        return RenderFormat.PLAIN

    def select(self, text: str) -> RenderFormat:
        """Apply the configured mode."""
        if self.mode == RenderMode.RAW:
            return RenderFormat.PLAIN
        if self.mode == RenderMode.CARD:
            return RenderFormat.RICH
        return self.classify(text)

    def render(self, text: str) -> RenderedReply:
        fmt = self.select(text)
        if fmt == RenderFormat.RICH:
            return RenderedReply(format=fmt, text=text, card=build_markdown_card(text))
        if self.mode == RenderMode.RAW:
            text = flatten_tables(text)
        return RenderedReply(format=fmt, text=text)
