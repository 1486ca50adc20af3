"""Text generation through the Claude Agent SDK: single turn, no tools."""

from __future__ import annotations

import logging
from typing import Optional

from claude_agent_sdk import AssistantMessage, ClaudeAgentOptions, ClaudeSDKClient, TextBlock

from interplay.config.settings import Settings

from .base import TextGeneratorBase

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a search marketing analyst. Follow the output format in the user "
    "message exactly and respond with JSON only."
)


class ClaudeTextGenerator(TextGeneratorBase):
    def __init__(self, settings: Optional[Settings] = None, system_prompt: str = SYSTEM_PROMPT):
        self._settings = settings or Settings()
        self._system_prompt = system_prompt

    def _options(self) -> ClaudeAgentOptions:
        return ClaudeAgentOptions(
            system_prompt=self._system_prompt,
            model=self._settings.anthropic_model,
            max_turns=1,
            allowed_tools=[],
        )

    async def generate(self, prompt: str) -> str:
        chunks: list[str] = []
        async with ClaudeSDKClient(self._options()) as client:
            await client.query(prompt)
            async for msg in client.receive_response():
                if isinstance(msg, AssistantMessage):
                    for block in msg.content:
                        if isinstance(block, TextBlock):
                            chunks.append(block.text)
        text = "".join(chunks)
        logger.info(f"Generated {len(text)} chars with {self._settings.anthropic_model}")
        return text
