"""Shared ingestion data types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional


@dataclass(frozen=True)
class NormalizedRecord:
    """Canonical ingested item.

    Records are immutable once produced and live only for the duration of a run.
    """

    title: str
    link: str
    timestamp: Optional[datetime] = None
    source_name: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return bool((self.title or "").strip()) and bool((self.link or "").strip())


@dataclass(frozen=True)
class SignalPayload:
    """Arbitrary serializable payload from a structured-signal provider."""

    source_name: str
    payload: Any


@dataclass(frozen=True)
class SourceFailure:
    source_name: str
    error: str


@dataclass
class SourceBatch:
    records: List[NormalizedRecord] = field(default_factory=list)
    signals: List[SignalPayload] = field(default_factory=list)


@dataclass
class IngestResult:
    records: List[NormalizedRecord] = field(default_factory=list)
    signals: List[SignalPayload] = field(default_factory=list)
    failures: List[SourceFailure] = field(default_factory=list)
