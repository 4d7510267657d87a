"""Rules text handling: normalisation, previews, and discovery of rules channels.

A group's rules come from its description. Discord guilds often leave the
description empty and post their rules in a ``#rules`` style channel, so
:func:`collect_rules_text` gathers text from channels whose name looks like
one; the Discord transport uses that as the description fallback.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, List

import discord

from elaina.util.logger import get_logger

logger = get_logger("rules")


RULE_CHANNEL_PATTERN = re.compile(
    "(guidelines|regulations|policy|policies|server[-_]?rules|rules|peraturan)",
    re.IGNORECASE,
)
"""Heuristic regex used to discover channels that likely contain group rules."""


def sanitize_rules(text: str | None) -> str:
    """Trim every line and drop blank ones."""
    lines = (line.strip() for line in (text or "").splitlines())
    return "\n".join(line for line in lines if line)


def rule_lines(text: str | None) -> List[str]:
    return [line for line in sanitize_rules(text).splitlines() if line]


def preview_lines(text: str | None, limit: int = 6) -> List[str]:
    """First ``limit`` rule lines, plus an ellipsis line when more exist."""
    lines = rule_lines(text)
    if len(lines) <= limit:
        return lines
    return lines[:limit] + [f"... (+{len(lines) - limit} more)"]


def _extract_embed_text(embed: Any) -> List[str]:
    texts = []
    if isinstance(getattr(embed, "description", None), str) and embed.description.strip():
        texts.append(embed.description.strip())
    for embed_field in getattr(embed, "fields", None) or ():
        value = getattr(embed_field, "value", None)
        if not isinstance(value, str) or not value.strip():
            continue
        texts.append(f"{embed_field.name}: {value}".strip() if embed_field.name else value.strip())
    return texts


def is_rules_channel(channel: Any) -> bool:
    name = getattr(channel, "name", None)
    if not isinstance(name, str):
        return False
    return RULE_CHANNEL_PATTERN.search(name) is not None


async def _collect_channel_messages(channel: Any) -> List[str]:
    """Message and embed text of one channel, oldest first.

    A channel the bot cannot read is logged and skipped.
    """
    messages = []
    try:
        async for message in channel.history(oldest_first=True, limit=100):
            if isinstance(message.content, str) and (text := message.content.strip()):
                messages.append(text)
            for embed in message.embeds:
                messages.extend(_extract_embed_text(embed))
    except discord.Forbidden:
        logger.warning("[RULES] No permission to read rules channel: %s", channel.name)
    except discord.HTTPException as exc:
        logger.warning("[RULES] Error fetching rules from channel %s: %s", channel.name, exc)
    return messages


async def collect_rules_text(guild: Any) -> str:
    """Rules text gathered from every rules-like text channel of ``guild``.

    Returns an empty string when no such channel has any text.
    """
    all_messages: List[str] = []
    for channel in getattr(guild, "text_channels", None) or ():
        if is_rules_channel(channel):
            all_messages.extend(await _collect_channel_messages(channel))
            await asyncio.sleep(0)

    if not all_messages:
        logger.debug("[RULES] No rule-like content discovered in guild %s", getattr(guild, "name", "?"))
        return ""

    logger.debug("[RULES] Collected %d rule messages in guild %s", len(all_messages), getattr(guild, "name", "?"))
    return "\n\n".join(all_messages)
