"""AccessGate implementation."""

from dataclasses import dataclass
from enum import Enum

from ..logging_config import get_logger
from ..models import AccountPolicy, BotIdentity, DmPolicy, GroupPolicy, InboundEvent

logger = get_logger(__name__)

EVERYONE_PLACEHOLDER = "@_all"


class GateReason(str, Enum):
    """Why an event was allowed or denied."""

    DM_OPEN = "dm_open"
    DM_ALLOWED = "dm_allowed"
    DM_DISABLED = "dm_disabled"
    DM_NOT_ALLOWED = "dm_not_allowed"
    PAIRING_PENDING = "pairing_pending"
    GROUP_DISABLED = "group_disabled"
    GROUP_NOT_ALLOWED = "group_not_allowed"
    MENTIONED = "mentioned"
    MENTION_NOT_REQUIRED = "mention_not_required"
    MENTION_UNVERIFIABLE = "mention_unverifiable"
    NOT_MENTIONED = "not_mentioned"


@dataclass(frozen=True)
class GateDecision:
    """Allow/deny verdict for one event."""

    allow: bool
    reason: GateReason
    was_mentioned: bool = False


def _normalize_name(name: str) -> str:
    return name.strip().casefold()


def is_mentioned(event: InboundEvent, identity: BotIdentity | None) -> bool:
    """Check whether the event tags the responder or everyone."""
    for mention in event.mentions:
        if mention.placeholder == EVERYONE_PLACEHOLDER or mention.target_id == "all":
            return True
        if identity is None:
            continue
        if identity.open_id and mention.target_id == identity.open_id:
            return True
        if (
            identity.name
            and mention.display_name
            and _normalize_name(mention.display_name) == _normalize_name(identity.name)
        ):
            return True

    # Name typed into the text next to other mentions
    if event.mentions and identity is not None and identity.name:
        if f"@{_normalize_name(identity.name)}" in event.body.casefold():
            return True
    return False


class AccessGate:
    """
    Decides whether an event may reach the responder.

    evaluate() is a pure function of its inputs apart from logging: it does
    no I/O and mutates nothing.
    """

    def evaluate(
        self,
        event: InboundEvent,
        policy: AccountPolicy,
        identity: BotIdentity | None = None,
    ) -> GateDecision:
        if event.is_group:
            return self._evaluate_group(event, policy, identity)
        return self._evaluate_direct(event, policy)

    def _evaluate_direct(
        self, event: InboundEvent, policy: AccountPolicy
    ) -> GateDecision:
        if policy.dm_policy == DmPolicy.DISABLED:
            return GateDecision(allow=False, reason=GateReason.DM_DISABLED)

        if policy.dm_policy == DmPolicy.OPEN:
            return GateDecision(allow=True, reason=GateReason.DM_OPEN)

        if not policy.allow_from or event.sender_id in policy.allow_from:
            return GateDecision(allow=True, reason=GateReason.DM_ALLOWED)

        # Pairing approval happens out of band
        if policy.dm_policy == DmPolicy.PAIRING:
            return GateDecision(allow=False, reason=GateReason.PAIRING_PENDING)
        return GateDecision(allow=False, reason=GateReason.DM_NOT_ALLOWED)

    def _evaluate_group(
        self,
        event: InboundEvent,
        policy: AccountPolicy,
        identity: BotIdentity | None,
    ) -> GateDecision:
        if policy.group_policy == GroupPolicy.DISABLED:
            return GateDecision(allow=False, reason=GateReason.GROUP_DISABLED)

        group = policy.groups.get(event.conversation_id)
        if group is not None and not group.enabled:
            return GateDecision(allow=False, reason=GateReason.GROUP_DISABLED)

        if (
            policy.group_policy == GroupPolicy.ALLOWLIST
            and policy.groups
            and group is None
        ):
            return GateDecision(allow=False, reason=GateReason.GROUP_NOT_ALLOWED)

        mentioned = is_mentioned(event, identity)
        if mentioned:
            return GateDecision(
                allow=True, reason=GateReason.MENTIONED, was_mentioned=True
            )

        if not policy.require_mention:
            return GateDecision(allow=True, reason=GateReason.MENTION_NOT_REQUIRED)

        if identity is None or not identity.resolved:
            logger.warning(
                "Bot identity unavailable; allowing group message %s in %s "
                "without mention check",
                event.event_id,
                event.conversation_id,
            )
            return GateDecision(allow=True, reason=GateReason.MENTION_UNVERIFIABLE)

        return GateDecision(allow=False, reason=GateReason.NOT_MENTIONED)
