"""
Type-safe wrappers for chat and user identifiers.

Transports hand out identifiers in different shapes (Discord snowflakes are
ints, most JSON payloads carry them as strings). These wrappers normalise
them to strings once, so stores and comparisons never mix the two forms.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class ChatKind(Enum):
    """Whether a conversation is one-to-one or a multi-member group."""

    DIRECT = "direct"
    GROUP = "group"

    def __str__(self) -> str:
        return self.value


class AttachmentKind(Enum):
    """Media carried by a message, reduced to what routing cares about."""

    NONE = "none"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"

    def __str__(self) -> str:
        return self.value


class UserID:
    """
    Opaque, string-normalised user identifier.

    Example:
        >>> uid = UserID(123456789012345678)
        >>> str(uid)
        '123456789012345678'
        >>> uid == "123456789012345678"
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "UserID"]) -> None:
        if isinstance(value, UserID):
            self._value = value._value
        elif isinstance(value, (int, str)) and not isinstance(value, bool):
            text = str(value).strip()
            if not text:
                raise ValueError("UserID cannot be empty")
            self._value = text
        else:
            raise ValueError(f"Cannot create UserID from {type(value).__name__}: {value}")

    def to_int(self) -> int:
        """Convert to an integer for transports that address users numerically."""
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"UserID({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, UserID):
            return self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int) and not isinstance(other, bool):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


@dataclass(frozen=True, slots=True)
class ChatID:
    """Identifier of a conversation plus its kind.

    Attributes:
        value: The chat (channel) identifier as a string.
        kind: Direct or group conversation.
        group_id: For group chats, the group the chat belongs to. Moderation
            state is keyed by this value so it spans every channel of a group.
    """

    value: str
    kind: ChatKind
    group_id: str | None = None

    @classmethod
    def direct(cls, value: Union[str, int]) -> "ChatID":
        return cls(str(value), ChatKind.DIRECT)

    @classmethod
    def group(cls, value: Union[str, int], group_id: Union[str, int, None] = None) -> "ChatID":
        return cls(str(value), ChatKind.GROUP, str(group_id if group_id is not None else value))

    @property
    def is_group(self) -> bool:
        return self.kind is ChatKind.GROUP

    def to_int(self) -> int:
        return int(self.value)

    def __str__(self) -> str:
        return self.value
