"""Generative model access for the conversational features.

Uses an OpenAI-compatible endpoint through ``AsyncOpenAI``. Every request is
tried once per configured API key, starting at the ring's current key and
moving on whenever a key fails.

- `ask_text`: system prompt + user text -> reply text.
- `ask_vision`: adds one inline image to the request.
- `transcribe`: sends an audio clip and asks for a verbatim transcript.
"""

from __future__ import annotations

import base64
from typing import Any, Callable, Dict, List

import openai
from openai import AsyncOpenAI

from elaina.ai.key_ring import ApiKeyRing
from elaina.configuration.ai_settings import AISettings
from elaina.util.errors import LLMError
from elaina.util.logger import get_logger

logger = get_logger("llm_engine")

TRANSCRIBE_INSTRUCTION = (
    "Transcribe this audio verbatim in its original language. "
    "Return only the transcript, without commentary."
)

_AUDIO_FORMATS = {
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/flac": "flac",
    "audio/aac": "aac",
    "audio/mp4": "aac",
}

ClientFactory = Callable[[str], Any]


class LLMEngine:
    """
    Text, vision and transcription requests with per-client key rotation.

    Args:
        settings: The ``ai_settings`` section.
        client_factory: Builds a client for one API key. Defaults to
            ``AsyncOpenAI`` against ``settings.base_url``.
    """

    def __init__(self, settings: AISettings, client_factory: ClientFactory | None = None) -> None:
        self._settings = settings
        self._model_name = settings.model_name
        self._timeout = settings.request_timeout_seconds
        self._keys = ApiKeyRing(settings.api_keys)
        self._client_factory = client_factory or self._default_client
        self._clients: Dict[str, Any] = {}
        logger.info(
            "[LLM ENGINE] Initialized with base_url=%s, model=%s, %d key(s)",
            settings.base_url,
            self._model_name,
            len(self._keys),
        )

    def _default_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._settings.base_url, max_retries=0)

    @property
    def ready(self) -> bool:
        return bool(self._keys)

    @property
    def keys(self) -> ApiKeyRing:
        return self._keys

    def _client_for(self, key: str) -> Any:
        client = self._clients.get(key)
        if client is None:
            client = self._clients[key] = self._client_factory(key)
        return client

    async def _complete(self, messages: List[Dict[str, Any]], purpose: str) -> str:
        if not self._keys:
            raise LLMError("no API key configured")

        last_error: Exception | None = None
        for key in self._keys.attempt_order():
            try:
                response = await self._client_for(key).chat.completions.create(
                    model=self._model_name,
                    messages=messages,
                    timeout=self._timeout,
                )
            except openai.OpenAIError as exc:
                last_error = exc
                logger.warning("[LLM ENGINE] %s request failed on key ...%s: %s", purpose, key[-4:], exc)
                self._keys.mark_failed(key)
                continue

            content = (response.choices[0].message.content or "").strip() if response.choices else ""
            if content:
                return content
            last_error = LLMError("empty response")
            logger.warning("[LLM ENGINE] %s request returned no content on key ...%s", purpose, key[-4:])
            self._keys.mark_failed(key)

        raise LLMError(f"{purpose} request failed on every key: {last_error}")

    async def ask_text(self, system: str, user: str) -> str:
        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": user})
        return await self._complete(messages, "text")

    async def ask_vision(self, system: str, prompt: str, image: bytes, mime: str = "image/jpeg") -> str:
        data_url = f"data:{mime or 'image/jpeg'};base64,{base64.b64encode(image).decode('ascii')}"
        messages: List[Dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append(
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt or "Describe this image."},
                    {"type": "image_url", "image_url": {"url": data_url}},
                ],
            }
        )
        return await self._complete(messages, "vision")

    async def transcribe(self, audio: bytes, mime: str = "audio/ogg") -> str:
        audio_format = _AUDIO_FORMATS.get((mime or "").split(";")[0].strip().lower(), "ogg")
        messages: List[Dict[str, Any]] = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": TRANSCRIBE_INSTRUCTION},
                    {
                        "type": "input_audio",
                        "input_audio": {"data": base64.b64encode(audio).decode("ascii"), "format": audio_format},
                    },
                ],
            }
        ]
        return await self._complete(messages, "transcribe")
