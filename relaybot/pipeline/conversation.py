"""Event-triggered conversational pipeline.

One run per qualifying inbound message:
- "reset" clears the channel's history and acknowledges, no model call
- otherwise: read window -> synthesize -> append user + assistant turns,
  all under the channel's session lock
Every qualifying message gets a reply: content, a no-text notice or an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from relaybot.errors import EmptyOutputError
from relaybot.formatting.bounded_text import DEFAULT_MESSAGE_LIMIT, bound_text
from relaybot.sessions.history import ConversationTurn, SessionStore
from relaybot.synthesis.prompts import CHAT_ASSISTANT, InstructionTemplate
from relaybot.synthesis.synthesizer import Synthesizer

logger = logging.getLogger(__name__)

RESET_ACK = "Memory cleared for this channel."
NO_TEXT_NOTICE = "The model returned no text."

Reply = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class InboundMessage:
    author_id: str
    channel_id: str
    content: str
    is_bot: bool = False


class ConversationPipeline:
    def __init__(
        self,
        store: SessionStore,
        synthesizer: Synthesizer,
        *,
        instruction: InstructionTemplate = CHAT_ASSISTANT,
        max_output_tokens: int = 400,
        reply_limit: int = DEFAULT_MESSAGE_LIMIT,
        allowed_channel_id: Optional[str] = None,
        reset_command: str = "reset",
    ):
        self.store = store
        self.synthesizer = synthesizer
        self.instruction = instruction
        self.max_output_tokens = max_output_tokens
        self.reply_limit = reply_limit
        self.allowed_channel_id = allowed_channel_id or None
        self.reset_command = reset_command.strip().lower()

    def qualifies(self, msg: InboundMessage) -> bool:
        if msg.is_bot:
            return False
        if self.allowed_channel_id and str(msg.channel_id) != str(self.allowed_channel_id):
            return False
        return bool((msg.content or "").strip())

    def is_reset(self, text: str) -> bool:
        return text.strip().lower() == self.reset_command

    async def respond(self, msg: InboundMessage) -> Optional[str]:
        """Produce the reply text for `msg`, or None when it does not qualify.

        Synthesis errors other than empty output propagate to `handle`.
        """
        if not self.qualifies(msg):
            return None
        text = msg.content.strip()
        key = str(msg.channel_id)

        async with self.store.lock(key) as session:
            if self.is_reset(text):
                session.reset()
                return RESET_ACK

            request = session.build_request(text)
            try:
                reply_text = await self.synthesizer.synthesize(
                    self.instruction,
                    messages=[t.as_message() for t in request],
                    max_output_tokens=self.max_output_tokens,
                )
            except EmptyOutputError:
                logger.warning("Model returned no text for channel %s", key)
                return NO_TEXT_NOTICE

            session.append(ConversationTurn(role="user", content=text))
            session.append(ConversationTurn(role="assistant", content=reply_text))

        return bound_text(reply_text, self.reply_limit)

    async def handle(self, msg: InboundMessage, reply: Reply) -> None:
        """Run behind the failure boundary; never raises."""
        if not self.qualifies(msg):
            return
        try:
            text = await self.respond(msg)
            if text is not None:
                await reply(text)
        except Exception as e:
            logger.error("Conversation run failed for channel %s: %s", msg.channel_id, e, exc_info=True)
            try:
                await reply(bound_text(f"Error: {e}", self.reply_limit))
            except Exception as notify_err:
                logger.error("Failed to send error notice to channel %s: %s", msg.channel_id, notify_err)
