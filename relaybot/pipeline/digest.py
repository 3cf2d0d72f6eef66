"""Generic time-triggered digest pipeline.

ingest -> dedup/rank -> (synthesize | list) -> format -> deliver

Variants differ only by their DigestPipelineSpec (sources, instruction
template, header, limits), never by code path.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence
from zoneinfo import ZoneInfo

from relaybot.delivery.webhook import WebhookSink, make_payload
from relaybot.errors import DeliveryError, RelayError
from relaybot.formatting.bounded_text import DEFAULT_MESSAGE_LIMIT
from relaybot.formatting.digest_format import (
    NO_ITEMS_NOTICE,
    digest_header,
    format_message,
    render_record_lines,
)
from relaybot.ingestion.ingestors import BaseSource, Ingestor
from relaybot.pipeline.retry import retry_async
from relaybot.ranking.dedup import reduce_records
from relaybot.synthesis.prompts import InstructionTemplate
from relaybot.synthesis.synthesizer import DigestRequest, Synthesizer, serialize_digest_input

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DigestPipelineSpec:
    name: str
    sources: Sequence[BaseSource]
    header_label: str
    instruction: Optional[InstructionTemplate] = None
    output_limit: int = DEFAULT_MESSAGE_LIMIT
    max_items: int = 10
    max_output_tokens: int = 500
    timezone: str = "UTC"
    dated_header: bool = True


@dataclass
class RunOutcome:
    status: str  # "delivered", "empty" or "failed"
    item_count: int = 0
    delivered: bool = False
    content: Optional[str] = None
    error: Optional[BaseException] = field(default=None, repr=False)


class DigestPipeline:
    def __init__(
        self,
        spec: DigestPipelineSpec,
        *,
        sink: WebhookSink,
        synthesizer: Optional[Synthesizer] = None,
        ingestor: Optional[Ingestor] = None,
        request_timeout: float = 15.0,
        retry_attempts: int = 2,
        retry_delay: float = 2.0,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if spec.instruction is not None and synthesizer is None:
            raise ValueError(f"Pipeline {spec.name!r} has an instruction template but no synthesizer")
        self.spec = spec
        self.sink = sink
        self.synthesizer = synthesizer
        self.ingestor = ingestor or Ingestor(spec.sources, timeout=request_timeout)
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self.clock = clock
        self.tz = ZoneInfo(spec.timezone)

    def _header(self) -> str:
        if not self.spec.dated_header:
            return self.spec.header_label
        return digest_header(self.spec.header_label, self.clock(), self.tz)

    async def _deliver(self, content: str) -> None:
        payload = make_payload(content, self.spec.output_limit)
        await retry_async(
            lambda: self.sink.deliver(payload),
            attempts=self.retry_attempts,
            base_delay=self.retry_delay,
            should_retry=lambda e: isinstance(e, DeliveryError) and e.retryable,
            label=f"[{self.spec.name}] delivery",
        )

    async def run_once(self) -> RunOutcome:
        """One full run. Ingestion, synthesis and delivery errors propagate."""
        spec = self.spec
        result = await self.ingestor.fetch()
        records = reduce_records(result.records, spec.max_items)
        logger.info(
            "[%s] %d raw record(s) reduced to %d; %d signal(s)",
            spec.name,
            len(result.records),
            len(records),
            len(result.signals),
        )

        if not records and not result.signals:
            content = format_message(self._header(), [NO_ITEMS_NOTICE], spec.output_limit)
            await self._deliver(content)
            return RunOutcome(status="empty", delivered=True, content=content)

        body_lines: List[str]
        if spec.instruction is not None:
            request = DigestRequest(
                instruction=spec.instruction,
                size_limit=spec.output_limit,
                source_records=records,
                signals=result.signals,
            )
            text = await self.synthesizer.synthesize(
                spec.instruction,
                input_text=serialize_digest_input(request),
                max_output_tokens=spec.max_output_tokens,
                max_chars=request.size_limit,
            )
            body_lines = [text]
        else:
            body_lines = render_record_lines(records, self.tz)
            if result.signals:
                if body_lines:
                    body_lines.append("")
                raw = DigestRequest(instruction=None, size_limit=spec.output_limit, signals=result.signals)
                body_lines.append(serialize_digest_input(raw))

        content = format_message(self._header(), body_lines, spec.output_limit)
        await self._deliver(content)
        return RunOutcome(status="delivered", item_count=len(records), delivered=True, content=content)

    async def run_isolated(self) -> RunOutcome:
        """run_once behind the failure boundary: logs and never raises."""
        started = time.monotonic()
        logger.info("[%s] tick %s", self.spec.name, datetime.now(timezone.utc).isoformat(timespec="seconds"))
        try:
            outcome = await self.run_once()
        except RelayError as e:
            logger.error("[%s] run failed: %s", self.spec.name, e, exc_info=True)
            return RunOutcome(status="failed", error=e)
        except Exception as e:
            logger.error("[%s] unexpected error in run: %s", self.spec.name, e, exc_info=True)
            return RunOutcome(status="failed", error=e)
        logger.info(
            "[%s] run %s in %.1fs (%d item(s))",
            self.spec.name,
            outcome.status,
            time.monotonic() - started,
            outcome.item_count,
        )
        return outcome
