"""Bounded generative transformation.

A synthesis call always carries:
- a fixed instruction template (system directive + optional user wrapper)
- an explicit output token budget
- a wall-clock timeout
Empty output is an error, never a silent empty message.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from relaybot.errors import EmptyOutputError, SynthesisError
from relaybot.formatting.bounded_text import bound_text
from relaybot.ingestion.record_types import NormalizedRecord, SignalPayload
from relaybot.synthesis.llm_client import Completion, LLMClient
from relaybot.synthesis.prompts import InstructionTemplate

logger = logging.getLogger(__name__)


@dataclass
class DigestRequest:
    instruction: Optional[InstructionTemplate]
    size_limit: int
    source_records: List[NormalizedRecord] = field(default_factory=list)
    signals: List[SignalPayload] = field(default_factory=list)


def serialize_digest_input(request: DigestRequest) -> str:
    """Compact text form of ranked records and raw signals for the model."""
    parts: List[str] = []
    for i, r in enumerate(request.source_records, 1):
        ts = r.timestamp.isoformat(timespec="minutes") if r.timestamp else "unknown_time"
        parts.append(f"[{i}] {r.title} | {ts} | {r.link}")
    for sig in request.signals:
        payload = sig.payload
        if isinstance(payload, str):
            parts.append(payload.strip())
        else:
            parts.append(json.dumps(payload, separators=(",", ":"), default=str, ensure_ascii=False))
    return "\n".join(p for p in parts if p)


def extract_text(completion: Completion) -> str:
    """Concatenate text-bearing segments in order; everything else is ignored."""
    texts = [seg.text for seg in completion.content if seg.type == "text" and seg.text]
    return "\n".join(texts).strip()


class Synthesizer:
    def __init__(self, client: LLMClient, *, timeout: float = 60.0):
        self.client = client
        self.timeout = timeout

    async def synthesize(
        self,
        instruction: InstructionTemplate,
        *,
        messages: Optional[Sequence[Dict[str, str]]] = None,
        input_text: Optional[str] = None,
        max_output_tokens: int,
        max_chars: Optional[int] = None,
    ) -> str:
        if max_output_tokens <= 0:
            raise ValueError("max_output_tokens must be positive")
        if messages is None:
            if not input_text:
                raise SynthesisError("Nothing to synthesize: empty input")
            messages = [{"role": "user", "content": instruction.render(input_text)}]

        try:
            completion = await asyncio.wait_for(
                self.client.complete(
                    system=instruction.system,
                    messages=messages,
                    max_output_tokens=max_output_tokens,
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise SynthesisError(f"Model call timed out after {self.timeout:.0f}s") from e
        except SynthesisError:
            raise
        except Exception as e:
            raise SynthesisError(f"Model call failed: {e}") from e

        text = extract_text(completion)
        if not text:
            raise EmptyOutputError("Model returned no text")
        if completion.truncated:
            logger.warning(
                "%s output hit the %d token budget and was cut short by the model",
                instruction.name,
                max_output_tokens,
            )
        if max_chars is not None and len(text) > max_chars:
            logger.warning("%s output is %d chars, bounding to %d", instruction.name, len(text), max_chars)
            text = bound_text(text, max_chars)
        return text
