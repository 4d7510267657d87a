"""
TikTok link relay.

Any message carrying a TikTok URL is resolved through the TikWM API and
answered with direct links to the watermark-free video, the audio track, or
the photo slides. Runs at priority: in groups it fires even without the
trigger word.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List

import requests

from elaina.datatypes.envelope_datatypes import MessageEnvelope
from elaina.datatypes.routing_datatypes import GatingDecision, HandlerCategory
from elaina.features.base import TransportHandler
from elaina.transport.ports import ChatTransport
from elaina.util.http_utils import fetch_json
from elaina.util.logger import get_logger

logger = get_logger("tiktok_link")

TIKWM_API_URL = "https://www.tikwm.com/api/"
FAILURE_TEXT = "Sorry, failed to fetch TikTok media."

TIKTOK_URL_PATTERN = re.compile(
    r"https?://(?:vt\.|vm\.)?tiktok\.com/[^\s]+"
    r"|https?://(?:www\.|m\.)?tiktok\.com/(?:@[A-Za-z0-9._-]+/video/\d+|v/[^\s]+|[^\s]+)",
    re.IGNORECASE,
)

MAX_SLIDES = 10


def find_tiktok_url(text: str) -> str | None:
    match = TIKTOK_URL_PATTERN.search(text or "")
    return match.group(0).rstrip(").,>") if match else None


def format_media_reply(data: Dict[str, Any]) -> str:
    """Render the ``data`` object of a TikWM response as a reply.

    Raises:
        ValueError: The response carries neither a video, audio nor slides.
    """
    play = data.get("hdplay") or data.get("play") or ""
    music = data.get("music") or ""
    images: List[str] = [url for url in (data.get("images") or []) if isinstance(url, str)]
    if not (play or music or images):
        raise ValueError("no media in response")

    lines = []
    title = (data.get("title") or "").strip()
    if title:
        lines.append(f"**{title}**")
    if images:
        lines.append(f"🖼️ Slides ({len(images)}):")
        lines.extend(images[:MAX_SLIDES])
        if len(images) > MAX_SLIDES:
            lines.append(f"... (+{len(images) - MAX_SLIDES} more)")
    elif play:
        lines.append(f"🎬 Video (no watermark): {play}")
    if music:
        lines.append(f"🎵 Audio: {music}")
    return "\n".join(lines)


class TikTokLinkHandler(TransportHandler):

    name = "tiktok"
    category = HandlerCategory.PRIORITY

    def __init__(self, transport: ChatTransport, *, api_url: str = TIKWM_API_URL, timeout: float = 20.0) -> None:
        super().__init__(transport)
        self.api_url = api_url
        self.timeout = timeout

    async def resolve(self, url: str) -> str:
        payload = await fetch_json(self.api_url, params={"url": url, "hd": 1}, timeout=self.timeout)
        if not isinstance(payload, dict) or payload.get("code", 0) != 0:
            raise ValueError(f"api error: {payload.get('msg') if isinstance(payload, dict) else payload!r}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise ValueError("missing data object")
        return format_media_reply(data)

    async def try_handle(self, envelope: MessageEnvelope, gating: GatingDecision) -> bool:
        url = find_tiktok_url(envelope.raw_text)
        if url is None:
            return False

        try:
            text = await self.resolve(url)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("[TIKTOK] Could not resolve %s: %s", url, exc)
            await self.reply(envelope, FAILURE_TEXT)
            return True

        await self.reply(envelope, text)
        logger.info("[TIKTOK] Relayed %s in %s", url, envelope.chat_id)
        return True
