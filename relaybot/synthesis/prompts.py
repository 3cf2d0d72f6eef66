"""Fixed instruction templates.

Templates are part of the code, never editable by chat users.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InstructionTemplate:
    name: str
    system: str
    user_template: Optional[str] = None

    def render(self, input_text: str) -> str:
        if not self.user_template:
            return input_text
        return self.user_template.replace("{input}", input_text).strip()


CHAT_ASSISTANT = InstructionTemplate(
    name="chat_assistant",
    system=(
        "You are a helpful Discord assistant. Be concise, accurate, and safe. "
        "Do not request or store personal data, passwords, or API keys."
    ),
)


RESEARCH_DIGEST = InstructionTemplate(
    name="research_digest",
    system="You produce neutral market research digests.",
    user_template="""
You are a neutral research synthesis agent.

Rules:
- Do NOT give financial advice
- Do NOT say buy or sell
- Focus on themes, disagreement, and uncertainty
- Be concise and analytical

Discussion input:
{input}

Output format:
- 4 bullet summary
- 3 "threads to watch"
- 2 risks or open questions
""",
)


HEADLINE_BRIEF = InstructionTemplate(
    name="headline_brief",
    system="You summarize news headlines into short, neutral briefs.",
    user_template="""
Summarize the headlines below for a chat channel.

Rules:
- Do NOT give financial advice or directive recommendations
- Group related stories into themes; mention uncertainty where it exists
- Refer to stories by their [number]; do not invent facts not in the list
- Keep it under 250 words

Headlines (newest first):
{input}
""",
)


# Stub research input used until a real discussion feed is wired in.
DEFAULT_RESEARCH_INPUT = """
Agents are discussing current market themes:

- Debate over AI infrastructure spending sustainability
- Mixed views on NVDA valuation versus earnings growth
- Concerns about rate sensitivity impacting growth equities
- Divergence between mega-cap tech and small-cap recovery
- Caution around speculative AI-adjacent companies

Use this as raw discussion input.
""".strip()
