"""Digest variants expressed purely as configuration."""

from __future__ import annotations

from typing import List

from relaybot.config import Config
from relaybot.ingestion.ingestors import BaseSource, FeedSource, StaticSignalSource
from relaybot.pipeline.digest import DigestPipelineSpec
from relaybot.synthesis.prompts import DEFAULT_RESEARCH_INPUT, HEADLINE_BRIEF, RESEARCH_DIGEST


def _feed_sources(config: Config) -> List[BaseSource]:
    return [FeedSource(name, url) for name, url in config.feeds]


def build_spec(config: Config) -> DigestPipelineSpec:
    variant = config.digest_variant
    common = dict(
        output_limit=config.message_char_limit,
        max_items=config.digest_max_items,
        max_output_tokens=config.digest_max_output_tokens,
        timezone=config.timezone,
    )
    if variant == "research":
        return DigestPipelineSpec(
            name="research",
            sources=[StaticSignalSource("research-input", DEFAULT_RESEARCH_INPUT)],
            header_label="🧠 **Research Digest**",
            instruction=RESEARCH_DIGEST,
            dated_header=False,
            **common,
        )
    if variant == "news":
        return DigestPipelineSpec(
            name="news",
            sources=_feed_sources(config),
            header_label="📰 **Top Stories**",
            **common,
        )
    if variant == "brief":
        return DigestPipelineSpec(
            name="brief",
            sources=_feed_sources(config),
            header_label="🗞️ **Headline Brief**",
            instruction=HEADLINE_BRIEF,
            **common,
        )
    raise ValueError(f"Unknown digest variant: {variant!r}")
