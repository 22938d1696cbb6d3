"""Message content extraction helpers."""

import json
import re
from dataclasses import dataclass
from typing import Any, Iterable

from ..models import Mention, MessageKind

# Platform message_type -> normalized kind
MESSAGE_KINDS = {
    "text": MessageKind.TEXT,
    "post": MessageKind.POST,
    "image": MessageKind.IMAGE,
    "file": MessageKind.FILE,
    "audio": MessageKind.AUDIO,
    "media": MessageKind.VIDEO,
    "sticker": MessageKind.STICKER,
    "interactive": MessageKind.CARD,
    "share_chat": MessageKind.SHARED_CHAT,
    "share_user": MessageKind.SHARED_USER,
}

MEDIA_PLACEHOLDERS = {
    MessageKind.IMAGE: "<media:image>",
    MessageKind.FILE: "<media:file>",
    MessageKind.AUDIO: "<media:audio>",
    MessageKind.VIDEO: "<media:video>",
    MessageKind.STICKER: "<media:sticker>",
}

POST_LOCALES = ("zh_cn", "en_us", "ja_jp")

_WHITESPACE = re.compile(r"\s+")


@dataclass
class ExtractedContent:
    """Text and media attributes pulled out of a message body."""

    text: str | None = None
    image_key: str | None = None
    file_key: str | None = None
    file_name: str | None = None


def extract_content(message_type: str, raw_content: str) -> ExtractedContent:
    """
    Extract plain text and media references from raw message content.

    Never raises: content that is not valid JSON, or not the expected shape,
    falls back to the raw content string as text.
    """
    kind = MESSAGE_KINDS.get(message_type, MessageKind.OTHER)

    try:
        content = json.loads(raw_content)
    except (TypeError, ValueError):
        return ExtractedContent(text=raw_content)

    if not isinstance(content, dict):
        return ExtractedContent(text=raw_content)

    if kind == MessageKind.TEXT:
        text = content.get("text")
        return ExtractedContent(text=text if isinstance(text, str) else raw_content)

    if kind == MessageKind.POST:
        return ExtractedContent(text=extract_post_text(content))

    if kind == MessageKind.CARD:
        return ExtractedContent(text=extract_card_text(content))

    if kind in MEDIA_PLACEHOLDERS:
        return ExtractedContent(
            text=MEDIA_PLACEHOLDERS[kind],
            image_key=content.get("image_key"),
            file_key=content.get("file_key"),
            file_name=content.get("file_name"),
        )

    if kind == MessageKind.SHARED_CHAT:
        return ExtractedContent(text=f"[Shared chat: {content.get('chat_id', '')}]")

    if kind == MessageKind.SHARED_USER:
        return ExtractedContent(text=f"[Shared user: {content.get('user_id', '')}]")

    return ExtractedContent(text=raw_content)


def _find_post_body(content: dict[str, Any]) -> dict[str, Any] | None:
    # Three shapes: {locale: {...}}, {title, content}, {post: {locale: {...}}}
    for locale in POST_LOCALES:
        body = content.get(locale)
        if isinstance(body, dict) and isinstance(body.get("content"), list):
            return body

    if isinstance(content.get("content"), list):
        return content

    nested = content.get("post")
    if isinstance(nested, dict):
        return _find_post_body(nested)

    return None


def _post_token(element: Any) -> str | None:
    if not isinstance(element, dict):
        return None
    tag = element.get("tag")
    if tag in ("text", "a") and element.get("text"):
        return str(element["text"])
    if tag == "at" and element.get("user_name"):
        return f"@{element['user_name']}"
    return None


def extract_post_text(content: dict[str, Any]) -> str:
    """
    Flatten rich-text ("post") content.

    The title is the first line. Within a line, text, link text and
    @user_name tokens are joined by a single space; non-empty lines are
    joined by a newline.
    """
    body = _find_post_body(content)
    if body is None:
        return ""

    lines: list[str] = []
    title = body.get("title")
    if isinstance(title, str) and title:
        lines.append(title)

    for line in body.get("content") or []:
        if not isinstance(line, list):
            continue
        tokens = [token for token in map(_post_token, line) if token]
        if tokens:
            lines.append(" ".join(tokens))

    return "\n".join(lines)


def extract_card_text(content: dict[str, Any]) -> str:
    """Header title, then markdown and div texts in document order."""
    texts: list[str] = []

    header = content.get("header")
    if isinstance(header, dict):
        title = header.get("title")
        if isinstance(title, dict) and title.get("content"):
            texts.append(str(title["content"]))

    elements = content.get("elements")
    if isinstance(elements, list):
        for element in elements:
            if not isinstance(element, dict):
                continue
            if element.get("tag") == "markdown" and element.get("content"):
                texts.append(str(element["content"]))
            elif element.get("tag") == "div":
                text = element.get("text")
                if isinstance(text, dict) and text.get("content"):
                    texts.append(str(text["content"]))

    return "\n".join(texts)


def resolve_platform_id(ids: dict[str, Any] | None) -> str:
    """Pick open_id, then user_id, then union_id."""
    if not ids:
        return ""
    return ids.get("open_id") or ids.get("user_id") or ids.get("union_id") or ""


def parse_mentions(raw_mentions: Iterable[Any] | None) -> tuple[Mention, ...]:
    mentions = []
    for raw in raw_mentions or ():
        if not isinstance(raw, dict) or not raw.get("key"):
            continue
        mentions.append(
            Mention(
                placeholder=raw["key"],
                target_id=resolve_platform_id(raw.get("id")),
                display_name=raw.get("name") or "",
            )
        )
    return tuple(mentions)


def _longest_first(mentions: Iterable[Mention]) -> list[Mention]:
    # "@_user_1" must not clobber "@_user_10"
    return sorted(mentions, key=lambda m: len(m.placeholder), reverse=True)


def replace_mention_placeholders(text: str | None, mentions: Iterable[Mention]) -> str | None:
    """Substitute every placeholder with @name."""
    if not text:
        return text
    for mention in _longest_first(mentions):
        text = text.replace(mention.placeholder, f"@{mention.display_name}")
    return text


def strip_mentions(text: str, mentions: Iterable[Mention]) -> str:
    """Remove every placeholder and collapse whitespace."""
    if not text:
        return text
    mentions = tuple(mentions)
    if not mentions:
        return text
    for mention in _longest_first(mentions):
        text = text.replace(mention.placeholder, " ")
    return _WHITESPACE.sub(" ", text).strip()
