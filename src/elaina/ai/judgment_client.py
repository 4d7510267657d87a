"""
Moderation judgment over an OpenAI-compatible chat completion endpoint.

The request carries the group's rules, the bot's name, the sender and the
message; the model answers ``{"violation": bool, "reason": str, "redeem": bool}``.
Answers are parsed defensively by :mod:`elaina.moderation.moderation_parsing`.
"""

from __future__ import annotations

from typing import Any

import openai
from openai import AsyncOpenAI

from elaina.configuration.ai_settings import AISettings
from elaina.datatypes.moderation_datatypes import ModerationJudgment, ModerationMode
from elaina.moderation.moderation_parsing import parse_judgment
from elaina.util.errors import JudgmentError
from elaina.util.logger import get_logger

logger = get_logger("judgment_client")


def build_moderation_prompt(*, mode: ModerationMode, rules: str, bot_name: str, message: str, user_id: str) -> str:
    return (
        f"Mode: {mode}\n"
        f"Bot: {bot_name}\n"
        f"User: {user_id}\n"
        f"Group rules:\n{rules.strip()}\n"
        f"Message:\n{message.strip()}"
    )


class JudgmentClient:
    """
    Judgment collaborator for :class:`~elaina.moderation.moderation_engine.ModerationEngine`.

    Args:
        api_key: Credential for the judgment endpoint; empty means not ready.
        base_url: OpenAI-compatible endpoint.
        model: Model name.
        system_prompt: Instructions describing the WARN/REDEEM modes.
        timeout: Per-request timeout in seconds.
        client: Pre-built client, used instead of constructing ``AsyncOpenAI``.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str,
        model: str,
        system_prompt: str,
        timeout: float = 45.0,
        client: Any = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._model = model
        self._system_prompt = system_prompt
        self._timeout = timeout
        self._client = client
        if self._client is None and self._api_key:
            self._client = AsyncOpenAI(api_key=self._api_key, base_url=base_url, max_retries=0)
        if not self.ready:
            logger.warning("[JUDGMENT] No judgment API key configured; moderation cannot be enabled")

    @classmethod
    def from_settings(cls, settings: AISettings) -> "JudgmentClient":
        return cls(
            settings.judgment_api_key,
            base_url=settings.base_url,
            model=settings.judgment_model,
            system_prompt=settings.judgment_prompt,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def ready(self) -> bool:
        return self._client is not None

    async def evaluate(
        self,
        *,
        mode: ModerationMode,
        rules: str,
        bot_name: str,
        message: str,
        user_id: str,
    ) -> ModerationJudgment:
        """
        Ask for a verdict on one message.

        Raises:
            JudgmentError: not configured, or the request failed.
            JudgmentParseError: the answer held no valid verdict.
        """
        if not self.ready:
            raise JudgmentError("judgment API key is not configured")

        prompt = build_moderation_prompt(mode=mode, rules=rules, bot_name=bot_name, message=message, user_id=user_id)
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=0,
                timeout=self._timeout,
            )
        except openai.OpenAIError as exc:
            raise JudgmentError(f"judgment request failed: {exc}") from exc

        raw = (response.choices[0].message.content or "") if response.choices else ""
        judgment = parse_judgment(raw)
        logger.debug("[JUDGMENT] %s verdict for %s: %s", mode, user_id, judgment)
        return judgment
