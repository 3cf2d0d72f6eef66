"""Error taxonomy shared by every pipeline stage.

- ConfigurationError is fatal at startup.
- IngestionError / SynthesisError / DeliveryError are per-run and are caught
  at the run boundary.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class RelayError(Exception):
    """Base class for relaybot errors."""


class ConfigurationError(RelayError, ValueError):
    """Required configuration missing or invalid."""

    def __init__(self, problems: Sequence[str]):
        self.problems: List[str] = list(problems)
        msg = "Configuration validation failed:\n" + "\n".join(f"  - {p}" for p in self.problems)
        super().__init__(msg)


class IngestionError(RelayError):
    """Every configured source was unreachable or unparsable."""

    def __init__(self, message: str, failures: Optional[Sequence[object]] = None):
        self.failures = list(failures or [])
        super().__init__(message)


class SynthesisError(RelayError):
    """Model transport failure or empty model output."""


class EmptyOutputError(SynthesisError):
    """The model answered but produced no text-bearing segments."""


class DeliveryError(RelayError):
    """Non-2xx response or transport failure while delivering."""

    def __init__(self, status_code: Optional[int], body: str = ""):
        self.status_code = status_code
        self.body = body or ""
        if status_code is None:
            msg = f"Webhook delivery failed: {self.body}"
        else:
            msg = f"Webhook delivery failed {status_code}: {self.body}"
        super().__init__(msg)

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500
