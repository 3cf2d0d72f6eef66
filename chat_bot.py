#!/usr/bin/env python3
"""Conversational Discord bot.

Replies to messages in the configured channel using a rolling per-channel
history window. Send "reset" to clear the channel's memory.
"""

from __future__ import annotations

import logging

from relaybot.config import Config
from relaybot.errors import ConfigurationError
from relaybot.logging_setup import configure_logging
from relaybot.pipeline.conversation import ConversationPipeline
from relaybot.sessions.history import SessionStore
from relaybot.synthesis.llm_client import LLMClient
from relaybot.synthesis.synthesizer import Synthesizer
from relaybot.triggers.chat_trigger import RelayChatClient

logger = logging.getLogger(__name__)


def build_client(config: Config) -> RelayChatClient:
    llm = LLMClient(
        config.llm_provider,
        api_key=config.llm_api_key,
        model=config.ai_model,
        base_url=config.llm_base_url or None,
        timeout=config.llm_timeout,
    )
    pipeline = ConversationPipeline(
        SessionStore(max_turns=config.max_turns),
        Synthesizer(llm, timeout=config.llm_timeout),
        max_output_tokens=config.chat_max_output_tokens,
        reply_limit=config.message_char_limit,
        allowed_channel_id=config.allowed_channel_id or None,
    )
    return RelayChatClient(pipeline)


def main() -> int:
    configure_logging()
    try:
        config = Config.from_env("chat")
    except ConfigurationError as e:
        logger.error(f"Configuration error:\n{e}")
        return 1
    configure_logging(config.log_level, config.log_file)

    logger.info("Starting chat bot (model=%s, max_turns=%d)", config.ai_model, config.max_turns)
    if config.allowed_channel_id:
        logger.info("Restricted to channel %s", config.allowed_channel_id)

    client = build_client(config)
    client.run(config.discord_token, log_handler=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
