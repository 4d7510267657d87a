"""
Handler categories and the per-message gating decision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet


class HandlerCategory(Enum):
    """Coarse class of a feature handler, used by the gating policy."""

    COMMAND = "command"
    PRIORITY = "priority"
    NON_COMMAND = "non_command"
    ATTACHMENT = "attachment"
    VOICE = "voice"

    def __str__(self) -> str:
        return self.value


class DispatchResult(Enum):
    """How the dispatcher disposed of one message."""

    IGNORED = "ignored"
    VETOED = "vetoed"
    CLAIMED = "claimed"
    FALLBACK = "fallback"
    UNHANDLED = "unhandled"
    MODERATED = "moderated"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class GatingDecision:
    """Permissions computed once per message.

    ``vetoed`` is the reply-without-trigger veto: when set, every other flag
    is false. ``priority_matches`` names the content patterns the body
    matched, so priority handlers can ask whether their own pattern fired.
    """

    vetoed: bool = False
    allow_command_features: bool = True
    allow_non_command_features: bool = False
    allow_priority_features: bool = False
    allow_attachment_features: bool = False
    allow_voice_features: bool = False
    allow_fallback_responder: bool = False
    priority_matches: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def veto(cls) -> "GatingDecision":
        return cls(vetoed=True, allow_command_features=False)

    def permits(self, category: HandlerCategory) -> bool:
        if self.vetoed:
            return False
        match category:
            case HandlerCategory.COMMAND:
                return self.allow_command_features
            case HandlerCategory.PRIORITY:
                return self.allow_priority_features
            case HandlerCategory.NON_COMMAND:
                return self.allow_non_command_features
            case HandlerCategory.ATTACHMENT:
                return self.allow_attachment_features
            case HandlerCategory.VOICE:
                return self.allow_voice_features
        return False

    def priority_matched(self, name: str) -> bool:
        return name in self.priority_matches
