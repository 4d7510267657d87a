"""
Types for the per-group moderation state machine.

- `PeraturanState`: whether moderation is on for a group, and the rules text
  it judges against.
- `WarnRecord`: one row of the warning ledger.
- `WarnChange`: before/after counts of one increment, used to decide who removes.
- `ModerationMode` / `ModerationJudgment`: request mode and parsed verdict of
  the judgment collaborator. Judgments are never persisted.
- `ModerationCommand`: admin commands, parsed from text with aliases.
- `ModerationOutcome`: what the engine did with one message, for logs and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(slots=True)
class PeraturanState:
    """Moderation switch and rules for one group.

    A group is only evaluated when ``enabled`` is set *and* ``rules_text``
    is non-empty; see :attr:`is_active`.
    """

    group_id: str
    enabled: bool = False
    rules_text: str = ""
    updated_at: int = 0

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.rules_text.strip())


@dataclass(slots=True)
class WarnRecord:
    """Warning count of one user in one group.

    Attributes:
        group_id: Group the warnings were issued in.
        user_id: Warned user, string-normalised.
        count: Current warnings, ``0 <= count <= threshold``.
        last_reason: Reason attached to the most recent change.
        updated_at: Unix seconds of the most recent change.
    """

    group_id: str
    user_id: str
    count: int = 0
    last_reason: str = ""
    updated_at: int = 0


@dataclass(frozen=True, slots=True)
class WarnChange:
    """Ledger count before and after one violation was recorded."""

    previous: int
    count: int
    threshold: int

    @property
    def breached(self) -> bool:
        """True only for the change that moved the count onto the threshold."""
        return self.previous < self.threshold <= self.count


class ModerationMode(Enum):
    """What the judgment collaborator is asked to decide."""

    WARN = "WARN"
    REDEEM = "REDEEM"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ModerationJudgment:
    """Parsed verdict for one message."""

    violation: bool = False
    reason: str = ""
    redeem_granted: bool = False


class ModerationCommand(Enum):
    """Admin sub-commands of ``!peraturan``."""

    ON = "on"
    OFF = "off"
    SYNC = "sync"
    STATUS = "status"
    RULES = "rules"
    CLEAR = "clear"
    HELP = "help"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> "ModerationCommand":
        """Parse the first token of ``text``: empty input is HELP, an unrecognised token UNKNOWN."""
        tokens = text.strip().lower().split()
        if not tokens:
            return cls.HELP
        token = _COMMAND_ALIASES.get(tokens[0], tokens[0])
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN


_COMMAND_ALIASES = {
    "reload": "sync",
    "enable": "on",
    "disable": "off",
    "reset": "clear",
    "list": "rules",
}


class ModerationOutcome(Enum):
    """Result of evaluating one message against a group's rules."""

    SKIPPED = "skipped"
    CLEAN = "clean"
    WARNED = "warned"
    REMOVED = "removed"
    REMOVAL_FAILED = "removal_failed"
    REDEEMED = "redeemed"
    REDEEM_DENIED = "redeem_denied"
    REDEEM_NOTHING = "redeem_nothing"
    AT_LIMIT = "at_limit"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def replied(self) -> bool:
        """Whether the engine sent a user-visible message for this outcome."""
        return self not in (
            ModerationOutcome.SKIPPED,
            ModerationOutcome.CLEAN,
            ModerationOutcome.AT_LIMIT,
            ModerationOutcome.ERROR,
        )
