"""
Assembles the runtime object graph from the application configuration.

Handler order matters: the first handler that claims a message wins.
"""

from __future__ import annotations

from dataclasses import dataclass

from elaina.ai.judgment_client import JudgmentClient
from elaina.ai.llm_engine import LLMEngine
from elaina.configuration.app_configuration import AppConfig
from elaina.database.db_connection import ConnectionManager
from elaina.features.core_commands import CoreCommandHandler
from elaina.features.fallback import FallbackResponder
from elaina.features.moderation_commands import ModerationCommandHandler
from elaina.features.tagall import TagAllHandler
from elaina.features.tiktok_link import TikTokLinkHandler
from elaina.features.vision import VisionHandler
from elaina.features.voice_note import VoiceNoteHandler
from elaina.moderation.moderation_engine import ModerationEngine
from elaina.moderation.redeem import KeywordRedeemPredicate
from elaina.routing.dispatcher import Dispatcher
from elaina.routing.matcher import TriggerMatcher
from elaina.services.chat_state_service import ChatStateService
from elaina.services.memory_service import ConversationMemory
from elaina.services.moderation_store import ModerationStore
from elaina.transport.ports import ChatTransport
from elaina.util.logger import get_logger

logger = get_logger("wiring")

MODERATION_COMMAND_NAMES = ("peraturan", "rules")


@dataclass(slots=True)
class Runtime:
    dispatcher: Dispatcher
    matcher: TriggerMatcher
    llm: LLMEngine
    moderation: ModerationEngine | None


def build_runtime(
    config: AppConfig,
    transport: ChatTransport,
    connection: ConnectionManager,
    *,
    llm: LLMEngine | None = None,
    judgment: JudgmentClient | None = None,
) -> Runtime:
    """Build the dispatcher and everything it talks to."""
    ai_settings = config.ai_settings
    llm = llm or LLMEngine(ai_settings)
    if not llm.ready:
        logger.warning("[WIRING] No LLM API keys configured; AI features will apologise instead of answering.")

    matcher = TriggerMatcher(config.trigger_word, config.command_prefix)
    chat_state = ChatStateService(connection)
    memory = ConversationMemory(
        connection,
        turns=config.memory_turns,
        char_budget=config.memory_char_budget,
        bot_name=config.bot_name,
    )

    moderation = None
    if config.moderation_enabled:
        moderation = ModerationEngine(
            ModerationStore(connection),
            judgment or JudgmentClient.from_settings(ai_settings),
            transport,
            bot_name=config.bot_name,
            warn_threshold=config.warn_threshold,
            redeem_predicate=KeywordRedeemPredicate(config.redeem_keywords),
            evaluation_timeout=config.evaluation_timeout_seconds,
            command_names=MODERATION_COMMAND_NAMES,
        )

    handlers = []
    if moderation is not None:
        handlers.append(ModerationCommandHandler(moderation, MODERATION_COMMAND_NAMES))
    handlers += [
        CoreCommandHandler(
            transport,
            chat_state,
            bot_name=config.bot_name,
            trigger_word=config.trigger_word,
            prefix=config.command_prefix,
        ),
        TagAllHandler(transport, trigger_word=config.trigger_word, prefix=config.command_prefix),
        TikTokLinkHandler(transport),
        VisionHandler(transport, llm, matcher),
        VoiceNoteHandler(transport, llm, names=(config.trigger_word, config.bot_name), bot_name=config.bot_name),
    ]

    fallback = FallbackResponder(transport, llm, chat_state, memory, matcher, prompts=ai_settings.personas)
    dispatcher = Dispatcher(
        handlers,
        transport,
        fallback=fallback,
        moderation=moderation,
        priority_patterns=config.priority_patterns,
        group_mode=config.group_mode,
        handler_timeout=config.handler_timeout_seconds,
    )
    return Runtime(dispatcher=dispatcher, matcher=matcher, llm=llm, moderation=moderation)
