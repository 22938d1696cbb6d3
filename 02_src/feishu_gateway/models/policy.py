"""Access-control and rendering policy models."""

from dataclasses import dataclass, field
from enum import Enum


class DmPolicy(str, Enum):
    """Who may message the responder directly."""

    OPEN = "open"
    PAIRING = "pairing"
    ALLOWLIST = "allowlist"
    DISABLED = "disabled"


class GroupPolicy(str, Enum):
    """Which groups the responder listens to."""

    OPEN = "open"
    ALLOWLIST = "allowlist"
    DISABLED = "disabled"


class RenderMode(str, Enum):
    """Outbound rendering mode."""

    AUTO = "auto"
    RAW = "raw"
    CARD = "card"


@dataclass(frozen=True)
class GroupConfig:
    """Per-group overrides."""

    enabled: bool = True
    name: str | None = None


@dataclass(frozen=True)
class AccountPolicy:
    """Per-account access-control snapshot. Never mutated by the pipeline."""

    dm_policy: DmPolicy = DmPolicy.PAIRING
    group_policy: GroupPolicy = GroupPolicy.ALLOWLIST
    allow_from: frozenset[str] = frozenset()
    require_mention: bool = True
    groups: dict[str, GroupConfig] = field(default_factory=dict)
