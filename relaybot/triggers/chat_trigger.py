"""Discord gateway trigger for the conversational pipeline."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import discord

from relaybot.pipeline.conversation import ConversationPipeline, InboundMessage

logger = logging.getLogger(__name__)


def to_inbound(message: Any, bot_user: Optional[Any] = None) -> InboundMessage:
    author = message.author
    is_bot = bool(getattr(author, "bot", False)) or (bot_user is not None and author == bot_user)
    return InboundMessage(
        author_id=str(getattr(author, "id", "")),
        channel_id=str(message.channel.id),
        content=message.content or "",
        is_bot=is_bot,
    )


class RelayChatClient(discord.Client):
    def __init__(self, pipeline: ConversationPipeline, *, typing_timeout: float = 5.0, **options: Any):
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents, **options)
        self.pipeline = pipeline
        self.typing_timeout = typing_timeout

    async def on_ready(self) -> None:
        logger.info("Logged in as %s", self.user)

    async def on_message(self, message: discord.Message) -> None:
        inbound = to_inbound(message, self.user)
        if not self.pipeline.qualifies(inbound):
            return

        async def reply(text: str) -> None:
            await message.reply(text, allowed_mentions=discord.AllowedMentions.none(), mention_author=False)

        # One typing ping; Discord shows it for ~10s or until the reply lands.
        # Best effort; a failed ping never blocks the reply.
        if not self.pipeline.is_reset(inbound.content):
            try:
                await asyncio.wait_for(message.channel.typing(), timeout=self.typing_timeout)
            except Exception as e:
                logger.debug("Typing indicator failed in %s: %s", inbound.channel_id, e)

        await self.pipeline.handle(inbound, reply)
