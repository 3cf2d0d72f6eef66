"""Environment-driven configuration with validation.

Values come from the process environment (and a .env file via python-dotenv).
Validation collects every problem and raises a single ConfigurationError so a
misconfigured deployment fails at startup, never mid-run.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter
from dotenv import load_dotenv

from relaybot.errors import ConfigurationError
from relaybot.formatting.bounded_text import DEFAULT_MESSAGE_LIMIT, MAX_MESSAGE_LIMIT, MIN_MESSAGE_LIMIT
from relaybot.ingestion.ingestors import default_feeds
from relaybot.synthesis.llm_client import DEFAULT_MODEL, PROVIDERS

logger = logging.getLogger(__name__)

MODES = ("chat", "digest")
VARIANTS = ("research", "news", "brief")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, errors: List[str]) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        errors.append(f"{name} must be an integer (got {raw!r})")
        return default


def _env_float(name: str, default: float, errors: List[str]) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        errors.append(f"{name} must be a number (got {raw!r})")
        return default


def parse_feed_urls(raw: str) -> List[Tuple[str, str]]:
    """Parse `name=url,name=url` (names optional) into (name, url) pairs."""
    feeds: List[Tuple[str, str]] = []
    for chunk in (raw or "").split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, sep, url = chunk.partition("=")
        if sep and not name.strip().lower().startswith(("http://", "https://")):
            feeds.append((name.strip() or url.strip(), url.strip()))
        else:
            feeds.append((chunk, chunk))
    return feeds


@dataclass
class Config:
    """Settings for both entry points; `mode` selects which ones are required."""

    mode: str = "digest"

    # Chat gateway
    discord_token: str = ""
    allowed_channel_id: str = ""

    # Webhook delivery
    discord_webhook_url: str = ""
    webhook_username: str = ""

    # Model
    llm_provider: str = "anthropic"
    anthropic_api_key: str = ""
    openai_api_key: str = ""
    llm_base_url: str = ""
    ai_model: str = DEFAULT_MODEL
    chat_max_output_tokens: int = 400
    digest_max_output_tokens: int = 500

    # Conversation window
    max_turns: int = 10

    # Schedule
    interval_minutes: int = 30
    cron_expression: str = ""
    timezone: str = "UTC"
    run_on_boot: bool = True

    # Digest
    digest_variant: str = "research"
    feeds: List[Tuple[str, str]] = field(default_factory=default_feeds)
    digest_max_items: int = 10
    message_char_limit: int = DEFAULT_MESSAGE_LIMIT

    # I/O budgets
    request_timeout: float = 15.0
    llm_timeout: float = 60.0
    delivery_retry_attempts: int = 2
    delivery_retry_delay: float = 2.0

    # Logging
    log_level: str = "INFO"
    log_file: str = "relaybot.log"

    @classmethod
    def from_env(cls, mode: str = "digest", *, dotenv: bool = True) -> "Config":
        """Load and validate configuration from environment variables"""
        if dotenv:
            load_dotenv()
        errors: List[str] = []
        feed_raw = os.getenv("FEED_URLS", "")
        config = cls(
            mode=mode,
            discord_token=os.getenv("DISCORD_TOKEN", "").strip(),
            allowed_channel_id=os.getenv("ALLOWED_CHANNEL_ID", "").strip(),
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL", "").strip(),
            webhook_username=os.getenv("WEBHOOK_USERNAME", "").strip(),
            llm_provider=(os.getenv("LLM_PROVIDER") or "anthropic").strip().lower(),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY", "").strip(),
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            llm_base_url=os.getenv("LLM_BASE_URL", "").strip(),
            ai_model=(os.getenv("AI_MODEL") or DEFAULT_MODEL).strip(),
            chat_max_output_tokens=_env_int("CHAT_MAX_OUTPUT_TOKENS", 400, errors),
            digest_max_output_tokens=_env_int("DIGEST_MAX_OUTPUT_TOKENS", 500, errors),
            max_turns=_env_int("MAX_TURNS", 10, errors),
            interval_minutes=_env_int("WORKER_INTERVAL_MINUTES", 30, errors),
            cron_expression=os.getenv("DIGEST_CRON", "").strip(),
            timezone=(os.getenv("DIGEST_TIMEZONE") or "UTC").strip(),
            run_on_boot=_env_bool("RUN_ON_BOOT", True),
            digest_variant=(os.getenv("DIGEST_VARIANT") or "research").strip().lower(),
            feeds=parse_feed_urls(feed_raw) if feed_raw.strip() else default_feeds(),
            digest_max_items=_env_int("DIGEST_MAX_ITEMS", 10, errors),
            message_char_limit=_env_int("MESSAGE_CHAR_LIMIT", DEFAULT_MESSAGE_LIMIT, errors),
            request_timeout=_env_float("REQUEST_TIMEOUT", 15.0, errors),
            llm_timeout=_env_float("LLM_TIMEOUT", 60.0, errors),
            delivery_retry_attempts=_env_int("DELIVERY_RETRY_ATTEMPTS", 2, errors),
            delivery_retry_delay=_env_float("DELIVERY_RETRY_DELAY", 2.0, errors),
            log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
            log_file=os.getenv("LOG_FILE", "relaybot.log").strip(),
        )
        config._validate(errors)
        return config

    @property
    def uses_synthesis(self) -> bool:
        return self.mode == "chat" or self.digest_variant in ("research", "brief")

    @property
    def llm_api_key(self) -> Optional[str]:
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key or None
        return self.openai_api_key or None

    def _validate(self, errors: Optional[List[str]] = None) -> None:
        """Validate configuration values"""
        errors = list(errors or [])

        if self.mode not in MODES:
            errors.append(f"Unknown mode {self.mode!r} (expected one of {', '.join(MODES)})")

        if self.mode == "chat" and not self.discord_token:
            errors.append("DISCORD_TOKEN is required")

        if self.mode == "digest":
            if not self.discord_webhook_url:
                errors.append("DISCORD_WEBHOOK_URL is required")
            elif not self.discord_webhook_url.startswith("https://"):
                errors.append("DISCORD_WEBHOOK_URL must be an https:// URL")
            if self.digest_variant not in VARIANTS:
                errors.append(f"DIGEST_VARIANT must be one of {', '.join(VARIANTS)}")
            if self.digest_variant in ("news", "brief") and not self.feeds:
                errors.append("FEED_URLS resolved to no feeds")
            if self.cron_expression:
                if not croniter.is_valid(self.cron_expression):
                    errors.append(f"DIGEST_CRON is not a valid cron expression: {self.cron_expression!r}")
            elif self.interval_minutes < 1:
                errors.append("WORKER_INTERVAL_MINUTES must be >= 1")
            if self.digest_max_items < 1:
                errors.append("DIGEST_MAX_ITEMS must be >= 1")

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"DIGEST_TIMEZONE is not a known timezone: {self.timezone!r}")

        if self.uses_synthesis:
            if self.llm_provider not in PROVIDERS:
                errors.append(f"LLM_PROVIDER must be one of {', '.join(PROVIDERS)}")
            elif not self.llm_api_key:
                key_var = "ANTHROPIC_API_KEY" if self.llm_provider == "anthropic" else "OPENAI_API_KEY"
                errors.append(f"{key_var} is required for provider {self.llm_provider}")
            if self.llm_provider == "openai-compatible" and not self.llm_base_url:
                errors.append("LLM_BASE_URL is required for the openai-compatible provider")
            if not self.ai_model:
                errors.append("AI_MODEL must not be empty")

        if not (MIN_MESSAGE_LIMIT <= self.message_char_limit <= MAX_MESSAGE_LIMIT):
            errors.append(f"MESSAGE_CHAR_LIMIT should be between {MIN_MESSAGE_LIMIT} and {MAX_MESSAGE_LIMIT}")
        if self.max_turns < 1:
            errors.append("MAX_TURNS must be >= 1")
        if self.chat_max_output_tokens < 1 or self.digest_max_output_tokens < 1:
            errors.append("Max output token budgets must be >= 1")
        if not (1 <= self.request_timeout <= 300):
            errors.append("REQUEST_TIMEOUT should be between 1 and 300 seconds")
        if not (1 <= self.llm_timeout <= 600):
            errors.append("LLM_TIMEOUT should be between 1 and 600 seconds")
        if not (1 <= self.delivery_retry_attempts <= 5):
            errors.append("DELIVERY_RETRY_ATTEMPTS should be between 1 and 5")

        if errors:
            raise ConfigurationError(errors)

        logger.info("Configuration validated successfully (mode=%s)", self.mode)
