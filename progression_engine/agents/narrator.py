# ABOUTME: OpenAI-backed narrative generator invoked once per tier selection.
# ABOUTME: Applies tier system prompt, temperature and tool list; maps API failures to TransientAIFailure.

from typing import Any

from loguru import logger
from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from progression_engine.config.prompts import TIER_SYSTEM_PROMPTS, TIER_TEMPERATURES
from progression_engine.config.settings import Settings
from progression_engine.exceptions import TransientAIFailure
from progression_engine.models.tiers import TierSelection


def format_context(context: dict[str, Any] | None) -> str:
    """Render campaign context as a short preamble for the user message"""
    if not context:
        return ""

    lines = []
    if context.get("campaign_name"):
        lines.append(f"Campaign: {context['campaign_name']}")
    if context.get("current_round") is not None:
        lines.append(f"Round: {context['current_round']}")
    if context.get("current_chapter") is not None:
        lines.append(f"Chapter: {context['current_chapter']}")
    if context.get("summary"):
        lines.append(f"Story so far: {context['summary']}")
    return "\n".join(lines)


class OpenAINarrator:
    """
    Narrative generator using OpenAI chat completions.

    Does not retry: failures surface as TransientAIFailure so the caller
    decides whether to back off (see workers.llm_retry).
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1200,
        timeout: float = 30.0
    ):
        """
        Initialize narrator.

        Args:
            client: AsyncOpenAI client instance
            model: OpenAI model to use (default: gpt-4o-mini)
            max_tokens: Completion token cap
            timeout: Request timeout in seconds
        """
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAINarrator":
        """Build a narrator with its own AsyncOpenAI client from settings"""
        client = AsyncOpenAI(api_key=settings.openai_api_key)
        return cls(
            client,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
            timeout=settings.ai_timeout_seconds,
        )

    async def generate_narrative(
        self,
        prompt: str,
        selection: TierSelection,
        context: dict[str, Any] | None = None
    ) -> str:
        """
        Generate narration for the selected tier.

        Args:
            prompt: Player or host message
            selection: Tier routing decision (tier and permitted tools)
            context: Campaign context (name, round, chapter, summary)

        Returns:
            Generated text

        Raises:
            TransientAIFailure: When the OpenAI call fails
        """
        preamble = format_context(context)
        user_prompt = f"{preamble}\n\n{prompt}" if preamble else prompt
        system_prompt = TIER_SYSTEM_PROMPTS[selection.tier]

        if selection.tools:
            system_prompt += f"\nAVAILABLE TOOLS: {', '.join(sorted(selection.tools))}\n"

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=TIER_TEMPERATURES[selection.tier],
                max_tokens=self.max_tokens,
                timeout=self.timeout,
            )
        except (APIError, APITimeoutError, RateLimitError) as e:
            logger.bind(tier=selection.tier.value).warning(
                f"Narration call failed: {type(e).__name__}: {e}"
            )
            raise TransientAIFailure(f"OpenAI API call failed: {e}") from e

        return response.choices[0].message.content or ""
