#!/usr/bin/env python3
"""Scheduled digest worker.

Runs the configured digest variant (research / news / brief) on a fixed
interval or a cron expression and posts each digest to the Discord webhook.

    python digest_worker.py          # scheduled
    python digest_worker.py --once   # single run, then exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from typing import Optional, Sequence

from relaybot.config import Config
from relaybot.delivery.webhook import WebhookSink
from relaybot.errors import ConfigurationError
from relaybot.logging_setup import configure_logging
from relaybot.pipeline.digest import DigestPipeline
from relaybot.pipeline.variants import build_spec
from relaybot.synthesis.llm_client import LLMClient
from relaybot.synthesis.synthesizer import Synthesizer
from relaybot.triggers.time_trigger import TimeTrigger

logger = logging.getLogger(__name__)


def build_pipeline(config: Config) -> DigestPipeline:
    spec = build_spec(config)
    synthesizer = None
    if spec.instruction is not None:
        llm = LLMClient(
            config.llm_provider,
            api_key=config.llm_api_key,
            model=config.ai_model,
            base_url=config.llm_base_url or None,
            timeout=config.llm_timeout,
        )
        synthesizer = Synthesizer(llm, timeout=config.llm_timeout)
    sink = WebhookSink(
        config.discord_webhook_url,
        timeout=config.request_timeout,
        username=config.webhook_username or None,
        limit=config.message_char_limit,
    )
    return DigestPipeline(
        spec,
        sink=sink,
        synthesizer=synthesizer,
        request_timeout=config.request_timeout,
        retry_attempts=config.delivery_retry_attempts,
        retry_delay=config.delivery_retry_delay,
    )


def build_trigger(config: Config, pipeline: DigestPipeline) -> TimeTrigger:
    return TimeTrigger(
        pipeline.run_isolated,
        interval_minutes=None if config.cron_expression else config.interval_minutes,
        cron=config.cron_expression or None,
        timezone_name=config.timezone,
        run_on_boot=config.run_on_boot,
        name=pipeline.spec.name,
    )


async def serve(config: Config) -> None:
    pipeline = build_pipeline(config)
    trigger = build_trigger(config, pipeline)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, trigger.stop)
        except NotImplementedError:
            # Windows: KeyboardInterrupt still ends asyncio.run
            pass

    await trigger.run()


async def run_once(config: Config) -> int:
    outcome = await build_pipeline(config).run_isolated()
    return 0 if outcome.status != "failed" else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--once", action="store_true", help="run a single digest and exit")
    args = parser.parse_args(argv)

    configure_logging()
    try:
        config = Config.from_env("digest")
    except ConfigurationError as e:
        logger.error(f"Configuration error:\n{e}")
        return 1
    configure_logging(config.log_level, config.log_file)

    mode = (os.environ.get("INGEST_MODE") or "").lower().strip()
    logger.info("Starting digest worker (variant=%s)", config.digest_variant)
    try:
        if args.once or mode == "once":
            return asyncio.run(run_once(config))
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
