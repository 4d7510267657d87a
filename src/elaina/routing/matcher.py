"""
Trigger-word and command detection.

Two independent questions are asked of every message body:

- is it a command? The stripped text starts with the prefix character and
  has a token right after it (``!help``, ``!peraturan on``).
- does it mention the trigger? The trigger word appears anywhere in the
  text as a whole word, case-insensitively ("please elaina help", "ELAINA,").

Both may be true at once (``!elaina persona 2``); nothing here decides
which one wins.
"""

from __future__ import annotations

import re

from elaina.datatypes.envelope_datatypes import CommandMatch

# Words that ask the bot to answer the quoted message itself.
REPLY_CUE_PATTERN = re.compile(r"\b(balas(in|lah)?|reply|jawab(in|lah)?|answer)(\s+(ini|this))?\b", re.IGNORECASE)


def parse_command(raw_text: str, prefix: str = "!") -> tuple[str, str] | None:
    """Return ``(command, args)`` or None when the text is not a command.

    The command is case-folded; ``args`` keeps the user's casing.
    """
    text = raw_text.strip()
    if not text.startswith(prefix):
        return None
    body = text[len(prefix):]
    parts = body.split(maxsplit=1)
    # A bare prefix, or a prefix followed by whitespace, is not a command.
    if not parts or body[:1].isspace():
        return None
    command = parts[0].casefold()
    args = parts[1].strip() if len(parts) > 1 else ""
    return command, args


class TriggerMatcher:
    """Pre-compiled trigger detection for one trigger word.

    Args:
        trigger_word: The word that addresses the bot.
        prefix: Single command prefix character.
    """

    def __init__(self, trigger_word: str, prefix: str = "!") -> None:
        trigger_word = trigger_word.strip()
        if not trigger_word:
            raise ValueError("trigger word cannot be empty")
        self.trigger_word = trigger_word
        self.prefix = prefix
        self._pattern = re.compile(rf"(?<!\w){re.escape(trigger_word)}(?!\w)", re.IGNORECASE)

    def has_trigger(self, text: str) -> bool:
        return bool(self._pattern.search(text or ""))

    def strip_trigger(self, text: str) -> str:
        """Remove every trigger occurrence plus the punctuation glued to it."""
        cleaned = self._pattern.sub(" ", text or "")
        cleaned = re.sub(r"^[\s,.:;!?]+", "", cleaned)
        return re.sub(r"\s{2,}", " ", cleaned).strip()

    def classify(self, raw_text: str) -> CommandMatch:
        parsed = parse_command(raw_text or "", self.prefix)
        has_trigger = self.has_trigger(raw_text)
        if parsed is None:
            return CommandMatch(has_trigger=has_trigger)
        command, args = parsed
        return CommandMatch(is_command=True, command=command, args=args, has_trigger=has_trigger)

    @staticmethod
    def has_reply_cue(text: str) -> bool:
        return bool(REPLY_CUE_PATTERN.search(text or ""))


def classify(raw_text: str, trigger_word: str, prefix: str = "!") -> CommandMatch:
    """One-off classification; long-lived callers should keep a :class:`TriggerMatcher`."""
    return TriggerMatcher(trigger_word, prefix).classify(raw_text)
