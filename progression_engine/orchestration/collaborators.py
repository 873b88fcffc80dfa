# ABOUTME: Protocols for the external collaborators the engine consumes: credits, storage, summaries, narration.
# ABOUTME: Also provides an in-memory credit ledger with free rounds for single-process use and tests.

from typing import Any, Protocol

from loguru import logger

from progression_engine.models.progression import CampaignProgress, CreditResult
from progression_engine.models.summaries import SummaryCheckpoint, SummaryObligation
from progression_engine.models.tiers import TierSelection

FREE_ROUNDS_LIMIT = 5


class CreditLedger(Protocol):
    """Charges one round credit per advance"""

    async def consume_round_credit(self, campaign_id: str) -> CreditResult: ...


class ProgressStore(Protocol):
    """Durable campaign progress, summary checkpoints and generated summaries"""

    async def load_progress(self, campaign_id: str) -> CampaignProgress | None: ...

    async def save_progress(
        self,
        campaign_id: str,
        expected: CampaignProgress | None,
        progress: CampaignProgress
    ) -> bool:
        """Compare-and-set: write only if the stored progress equals expected"""
        ...

    async def load_checkpoint(self, campaign_id: str) -> SummaryCheckpoint: ...

    async def save_checkpoint(self, campaign_id: str, checkpoint: SummaryCheckpoint) -> None: ...

    async def save_summary(self, campaign_id: str, obligation: SummaryObligation, text: str) -> None: ...


class Summarizer(Protocol):
    """Produces summary text for an obligation (usually via the AI service)"""

    async def summarize(self, obligation: SummaryObligation) -> str: ...


class NarrativeGenerator(Protocol):
    """AI generation service; invoked once per tier selection"""

    async def generate_narrative(
        self,
        prompt: str,
        selection: TierSelection,
        context: dict[str, Any] | None = None
    ) -> str: ...


class InMemoryCreditLedger:
    """
    Credit ledger kept in process memory.

    Each campaign gets FREE_ROUNDS_LIMIT free rounds, then spends purchased
    credits.
    """

    def __init__(self, free_rounds: int = FREE_ROUNDS_LIMIT):
        self.free_rounds = free_rounds
        self._free_used: dict[str, int] = {}
        self._balances: dict[str, int] = {}

    def add_credits(self, campaign_id: str, amount: int) -> int:
        """
        Top up a campaign's paid credits.

        Returns:
            New credit balance

        Raises:
            ValueError: If amount is not positive
        """
        if amount < 1:
            raise ValueError(f"Credit amount must be positive, got {amount}")
        self._balances[campaign_id] = self._balances.get(campaign_id, 0) + amount
        logger.info(f"Added {amount} credits to campaign {campaign_id}")
        return self._balances[campaign_id]

    def free_rounds_remaining(self, campaign_id: str) -> int:
        return max(0, self.free_rounds - self._free_used.get(campaign_id, 0))

    def balance(self, campaign_id: str) -> int:
        return self._balances.get(campaign_id, 0)

    async def consume_round_credit(self, campaign_id: str) -> CreditResult:
        free_left = self.free_rounds_remaining(campaign_id)
        if free_left > 0:
            self._free_used[campaign_id] = self._free_used.get(campaign_id, 0) + 1
            return CreditResult(ok=True, type="free", remaining=free_left - 1)

        balance = self.balance(campaign_id)
        if balance > 0:
            self._balances[campaign_id] = balance - 1
            return CreditResult(ok=True, type="paid", remaining=balance - 1)

        return CreditResult(ok=False, remaining=0, error="no_credits")
