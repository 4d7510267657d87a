"""Detection of warning-reduction ("redeem") requests.

Which messages count as a redeem request is a policy decision, so the engine
takes any callable matching :class:`RedeemPredicate`. The default asks for
the bot's name plus one of the configured keywords.
"""

from __future__ import annotations

import re
from typing import Iterable, Protocol

DEFAULT_REDEEM_KEYWORDS = ("mengurangi warn", "kurangi warn", "kurangin warn", "reduce my warn")


class RedeemPredicate(Protocol):
    def __call__(self, text: str, bot_name: str) -> bool:
        ...


class KeywordRedeemPredicate:
    """Bot name mentioned AND at least one keyword present, both case-insensitive."""

    def __init__(self, keywords: Iterable[str] = DEFAULT_REDEEM_KEYWORDS) -> None:
        self.keywords = tuple(k.strip().lower() for k in keywords if k and k.strip())

    def __call__(self, text: str, bot_name: str) -> bool:
        if not text or not bot_name:
            return False
        lower = text.lower()
        if not re.search(rf"(?<!\w){re.escape(bot_name.lower())}(?!\w)", lower):
            return False
        return any(keyword in lower for keyword in self.keywords)

    def __repr__(self) -> str:
        return f"KeywordRedeemPredicate(keywords={self.keywords!r})"
