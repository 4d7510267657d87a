"""
Exception hierarchy shared across Elaina.

Transport, judgment, and model failures each get their own type so callers
can decide which ones are user-visible and which are abandoned silently.
"""

from __future__ import annotations


class ElainaError(Exception):
    """Base class for every error raised by Elaina itself."""


class ConfigurationError(ElainaError):
    """A required setting or credential is missing or invalid."""


class TransportError(ElainaError):
    """The chat transport rejected or failed an operation (send, download, removal)."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class LLMError(ElainaError):
    """Every configured key failed for a generative model request."""


class JudgmentError(ElainaError):
    """The moderation judgment service could not produce a verdict."""


class JudgmentParseError(JudgmentError):
    """The judgment service answered, but no valid verdict could be extracted."""

    def __init__(self, message: str, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)
