# ABOUTME: AI summarizer turning summary obligations into ordinary or chapter summary text.
# ABOUTME: Loads the covered transcript, fills the matching prompt, and calls the OpenAI client.

from collections.abc import Awaitable, Callable

from openai import APIError, APITimeoutError, AsyncOpenAI, RateLimitError

from progression_engine.config.prompts import build_summary_prompt
from progression_engine.exceptions import SummarizationFailure
from progression_engine.models.summaries import SummaryObligation

SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that creates concise campaign summaries for D&D games."
SUMMARY_TEMPERATURE = 0.3

TranscriptLoader = Callable[[SummaryObligation], Awaitable[str]]
PreviousSummaryLoader = Callable[[str], Awaitable[str | None]]


class AISummarizer:
    """Summarizer backed by OpenAI chat completions"""

    def __init__(
        self,
        client: AsyncOpenAI,
        load_transcript: TranscriptLoader,
        load_previous_summary: PreviousSummaryLoader | None = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 400
    ):
        """
        Initialize summarizer.

        Args:
            client: AsyncOpenAI client instance
            load_transcript: Returns the log text an obligation covers
            load_previous_summary: Returns the latest ordinary summary for a campaign
            model: OpenAI model to use
            max_tokens: Completion token cap
        """
        self.client = client
        self.load_transcript = load_transcript
        self.load_previous_summary = load_previous_summary
        self.model = model
        self.max_tokens = max_tokens

    async def summarize(self, obligation: SummaryObligation) -> str:
        """
        Generate summary text for an obligation.

        Raises:
            SummarizationFailure: When there is nothing to summarize or the call fails
        """
        transcript = await self.load_transcript(obligation)
        if not transcript.strip():
            raise SummarizationFailure(
                f"No messages for rounds {obligation.start_round}-{obligation.end_round}"
            )

        previous = None
        if self.load_previous_summary is not None:
            previous = await self.load_previous_summary(obligation.campaign_id)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": build_summary_prompt(obligation, transcript, previous)},
                ],
                temperature=SUMMARY_TEMPERATURE,
                max_tokens=self.max_tokens,
            )
        except (APIError, APITimeoutError, RateLimitError) as e:
            raise SummarizationFailure(f"Summary generation failed: {e}") from e

        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise SummarizationFailure("Summary generation returned no text")
        return text
