"""
Gating policy: which categories of feature may look at a message.

Rules, evaluated in order:

1. A reply to quoted content that carries neither a command nor the trigger
   is vetoed outright. No feature runs and the fallback stays silent.
2. In a group, an image/video message with neither command nor trigger may
   not be consumed by attachment features. Its caption can still reach
   priority features.
3. Non-command features run in direct chats, or in groups when the trigger
   word is present.
4. Priority features additionally run in groups without the trigger when the
   body matches one of the configured content patterns.

The decision is computed once per message and handed to every handler.
"""

from __future__ import annotations

import re
from typing import Mapping, Pattern, Union

from elaina.datatypes.chat_datatypes import AttachmentKind
from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision

GROUP_MODE_MANUAL = "manual"
GROUP_MODE_AUTO = "auto"

PatternSpec = Union[str, Pattern[str]]


def compile_patterns(patterns: Mapping[str, PatternSpec]) -> dict[str, Pattern[str]]:
    """Compile ``name -> regex`` pairs once; already-compiled patterns pass through."""
    compiled = {}
    for name, pattern in patterns.items():
        compiled[name] = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
    return compiled


def matched_patterns(text: str, patterns: Mapping[str, PatternSpec]) -> frozenset[str]:
    found = set()
    for name, pattern in patterns.items():
        regex = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern, re.IGNORECASE)
        if regex.search(text or ""):
            found.add(name)
    return frozenset(found)


def gate(
    envelope: MessageEnvelope,
    *,
    priority_patterns: Mapping[str, PatternSpec] | None = None,
    group_mode: str = GROUP_MODE_MANUAL,
) -> GatingDecision:
    """Compute the :class:`GatingDecision` for one envelope."""
    addressed = envelope.is_command or envelope.has_trigger

    if envelope.is_reply and not addressed:
        return GatingDecision.veto()

    direct = not envelope.is_group
    allow_non_command = direct or envelope.has_trigger

    visual = envelope.attachment_kind in (AttachmentKind.IMAGE, AttachmentKind.VIDEO)
    attachment_vetoed = envelope.is_group and visual and not addressed

    matches = matched_patterns(envelope.raw_text, priority_patterns or {})

    return GatingDecision(
        vetoed=False,
        allow_command_features=True,
        allow_non_command_features=allow_non_command,
        allow_priority_features=allow_non_command or bool(matches),
        allow_attachment_features=allow_non_command and not attachment_vetoed,
        allow_voice_features=True,
        allow_fallback_responder=direct or envelope.has_trigger or group_mode == GROUP_MODE_AUTO,
        priority_matches=matches,
    )
