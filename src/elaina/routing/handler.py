"""
Base class for features that take part in the handler chain.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory


class MessageHandler(ABC):
    """
    One feature in the ordered chain.

    ``try_handle`` returns True to claim the message, which stops the chain.
    A handler sends its reply *before* returning True, and any handler that
    has already sent something user-visible (an error included) must claim.
    Handlers never mutate the envelope.
    """

    name: str = "handler"
    category: HandlerCategory = HandlerCategory.NON_COMMAND

    @abstractmethod
    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} category={self.category}>"


class FallbackHandler(ABC):
    """The conversational responder that answers when nothing else claimed."""

    @abstractmethod
    async def respond(self, envelope: MessageEnvelope) -> bool:
        """Answer the message. Returns True when a reply was sent."""
        ...
