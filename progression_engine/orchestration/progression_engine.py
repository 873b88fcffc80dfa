# ABOUTME: Host-facing facade of the session progression engine: dice, round advances, summaries, tiers, rate limits.
# ABOUTME: Serializes advances per campaign, charges credits before mutating, and isolates summary failures.

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from loguru import logger
from redis import Redis
from redis.asyncio import Redis as AsyncRedis

from progression_engine.config.settings import Settings, get_settings
from progression_engine.exceptions import (
    CampaignNotFound,
    ConcurrentAdvanceConflict,
    NoCredits,
    ProgressionError,
    RateLimited,
    TransientAIFailure,
)
from progression_engine.models.dice_models import (
    CompoundRollResult,
    DiceExpression,
    RollResult,
)
from progression_engine.models.progression import (
    AdvanceRoundResult,
    CampaignProgress,
)
from progression_engine.models.rate_limit import RateLimitDecision
from progression_engine.models.summaries import (
    SummaryCheckpoint,
    SummaryKind,
    SummaryObligation,
)
from progression_engine.models.tiers import NarrationResult, TierContext, TierSelection
from progression_engine.models.tool_results import DiceRollToolResult
from progression_engine.orchestration.collaborators import (
    CreditLedger,
    InMemoryCreditLedger,
    NarrativeGenerator,
    ProgressStore,
    Summarizer,
)
from progression_engine.orchestration.rate_limiter import (
    RateLimiter,
    build_key,
    create_rate_limiter,
)
from progression_engine.orchestration.state_machine import ProgressionStateMachine
from progression_engine.orchestration.stores import InMemoryProgressStore, RedisProgressStore
from progression_engine.orchestration.summarization import (
    SummarizationScheduler,
    should_summarize,
)
from progression_engine.orchestration.tier_selector import select_tier
from progression_engine.orchestration.tool_handlers import execute_dice_tool
from progression_engine.utils.dice import RandomSource, parse_dice_notation, roll_dice
from progression_engine.utils.logging import log_round_event, log_summary_operation

ADVANCE_SCOPE = "advance"
NARRATION_SCOPE = "narration"


class ProgressionEngine:
    """
    Session progression engine wired to its external collaborators.

    Round advances for one campaign run one at a time inside this process
    (asyncio.Lock per campaign) and are persisted with a compare-and-set on
    the stored progress, so concurrent advances across processes can't skip
    or double-increment a round.
    """

    def __init__(
        self,
        store: ProgressStore,
        credit_ledger: CreditLedger,
        rate_limiter: RateLimiter | None = None,
        summarizer: Summarizer | None = None,
        narrator: NarrativeGenerator | None = None,
        settings: Settings | None = None,
        rng: RandomSource | None = None
    ):
        """
        Initialize engine.

        Args:
            store: Campaign progress and summary storage
            credit_ledger: Charges one credit per round advance
            rate_limiter: Admission control (default: in-memory)
            summarizer: Generates summary text; without one, obligations are
                only returned to the caller
            narrator: AI generation service used by narrate()
            settings: Engine settings (default: get_settings())
            rng: Random source for dice (default: the random module)
        """
        self.settings = settings or get_settings()
        self.store = store
        self.credit_ledger = credit_ledger
        self.rate_limiter = rate_limiter or create_rate_limiter(
            "memory",
            purge_interval_ms=self.settings.rate_limit_purge_interval_ms,
            purge_grace_ms=self.settings.rate_limit_purge_grace_ms,
        )
        self.summarizer = summarizer
        self.narrator = narrator
        self.rng = rng
        self.scheduler = SummarizationScheduler(
            threshold=self.settings.summary_threshold,
            rounds_per_chapter=self.settings.rounds_per_chapter,
        )
        # Locks exist only while a campaign has a holder or waiter
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @asynccontextmanager
    async def _campaign_lock(self, campaign_id: str) -> AsyncIterator[None]:
        """Hold the campaign's lock; the lock is dropped when no one holds or awaits it"""
        lock = self._locks.setdefault(campaign_id, asyncio.Lock())
        self._lock_users[campaign_id] = self._lock_users.get(campaign_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[campaign_id] -= 1
            if self._lock_users[campaign_id] == 0:
                del self._lock_users[campaign_id]
                del self._locks[campaign_id]

    # ========================================================================
    # Stateless operations
    # ========================================================================

    def parse_dice(self, notation: str) -> DiceExpression:
        """Parse one dice expression (raises InvalidNotation)"""
        return parse_dice_notation(notation)

    def roll_dice(self, notation: str) -> RollResult | CompoundRollResult:
        """Parse and roll dice notation (raises InvalidNotation)"""
        return roll_dice(notation, self.rng)

    def check_rate_limit(self, key: str, max_requests: int, window_ms: int) -> RateLimitDecision:
        return self.rate_limiter.check_and_consume(key, max_requests, window_ms)

    def should_summarize(self, pending_message_count: int, threshold: int | None = None) -> bool:
        if threshold is None:
            threshold = self.settings.summary_threshold
        return should_summarize(pending_message_count, threshold)

    def select_tier(self, user_input: str, context: TierContext | None = None) -> TierSelection:
        return select_tier(user_input, context, self.settings.director_round_interval)

    def run_dice_tool(self, arguments: dict[str, Any]) -> DiceRollToolResult:
        """Execute a roll_dice tool call from the AI with the engine's random source"""
        return execute_dice_tool(arguments, self.rng)

    # ========================================================================
    # Campaign lifecycle
    # ========================================================================

    async def create_campaign(
        self,
        campaign_id: str,
        target_rounds: int | None = None,
        rounds_per_chapter: int | None = None
    ) -> CampaignProgress:
        """
        Store initial progress for a new campaign (round 1, not started).

        Raises:
            ConcurrentAdvanceConflict: If the campaign already has progress
        """
        machine = ProgressionStateMachine.new_campaign(
            campaign_id,
            target_rounds=target_rounds or self.settings.default_target_rounds,
            rounds_per_chapter=rounds_per_chapter or self.settings.rounds_per_chapter,
        )
        async with self._campaign_lock(campaign_id):
            if not await self.store.save_progress(campaign_id, None, machine.progress):
                raise ConcurrentAdvanceConflict(f"Campaign {campaign_id} already exists")
        logger.info(f"Created campaign {campaign_id} with {machine.progress.target_rounds} target rounds")
        return machine.progress

    async def start(self, campaign_id: str) -> CampaignProgress:
        return await self._lifecycle(campaign_id, "start")

    async def pause(self, campaign_id: str) -> CampaignProgress:
        return await self._lifecycle(campaign_id, "pause")

    async def resume(self, campaign_id: str) -> CampaignProgress:
        return await self._lifecycle(campaign_id, "resume")

    async def _lifecycle(self, campaign_id: str, transition: str) -> CampaignProgress:
        async with self._campaign_lock(campaign_id):
            current = await self._load(campaign_id)
            machine = ProgressionStateMachine(current, campaign_id)
            getattr(machine, transition)()

            if not await self.store.save_progress(campaign_id, current, machine.progress):
                raise ConcurrentAdvanceConflict(
                    f"Campaign {campaign_id} changed during {transition}"
                )
            return machine.progress

    async def get_progress(self, campaign_id: str) -> CampaignProgress:
        return await self._load(campaign_id)

    async def _load(self, campaign_id: str) -> CampaignProgress:
        progress = await self.store.load_progress(campaign_id)
        if progress is None:
            raise CampaignNotFound(f"Campaign {campaign_id} not found")
        return progress

    # ========================================================================
    # Messages & summaries
    # ========================================================================

    async def record_message(self, campaign_id: str, message_id: str) -> SummaryCheckpoint:
        """Count a new campaign log entry toward the next ordinary summary"""
        async with self._campaign_lock(campaign_id):
            checkpoint = await self.store.load_checkpoint(campaign_id)
            checkpoint = self.scheduler.record_message(checkpoint, message_id)
            await self.store.save_checkpoint(campaign_id, checkpoint)
            return checkpoint

    async def _run_obligation(self, obligation: SummaryObligation) -> str | None:
        """
        Generate and store one summary, best effort.

        Timeouts and failures are logged and swallowed; they never affect the
        round advance that produced the obligation.
        """
        if self.summarizer is None:
            return None

        try:
            text = await asyncio.wait_for(
                self.summarizer.summarize(obligation),
                timeout=self.settings.ai_timeout_seconds,
            )
            await self.store.save_summary(obligation.campaign_id, obligation, text)
        except TimeoutError:
            logger.bind(campaign_id=obligation.campaign_id, kind=obligation.kind.value).warning(
                f"Summary generation timed out after {self.settings.ai_timeout_seconds}s"
            )
            return None
        except Exception as e:
            logger.bind(campaign_id=obligation.campaign_id, kind=obligation.kind.value).error(
                f"Summarization failed: {type(e).__name__}: {e}"
            )
            return None

        log_summary_operation(
            "stored",
            obligation.campaign_id,
            obligation.kind.value,
            start_round=obligation.start_round,
            end_round=obligation.end_round,
        )
        return text

    # ========================================================================
    # Round advancement
    # ========================================================================

    async def advance_round(
        self,
        campaign_id: str,
        progress: CampaignProgress | None = None,
        actor_id: str | None = None
    ) -> AdvanceRoundResult:
        """
        Advance a campaign by exactly one round.

        Order: rate limit -> stale-read check -> lifecycle check -> credit
        charge -> transition -> compare-and-set -> summaries (best effort).
        The compare-and-set after the charge only loses to writers in other
        processes.

        Args:
            campaign_id: Campaign identifier
            progress: Progress the caller read; the advance is refused before
                any credit is charged unless the store still holds it
                (default: the stored progress)
            actor_id: Requesting actor, used for rate limiting

        Returns:
            AdvanceRoundResult (summaries present only when generated in time)

        Raises:
            RateLimited: If the actor advanced too recently
            CampaignNotFound: If no progress is stored
            CampaignComplete: If the campaign already reached its target
            InvalidPhaseTransition: If the campaign is not active
            NoCredits: If the credit ledger refuses the charge
            ConcurrentAdvanceConflict: If the stored progress changed meanwhile
        """
        if actor_id is not None:
            key = build_key(actor_id, campaign_id, ADVANCE_SCOPE)
            decision = self.check_rate_limit(
                key,
                self.settings.round_advance_rate_limit_max,
                self.settings.round_advance_rate_limit_window_ms,
            )
            if not decision.allowed:
                raise RateLimited(key, decision.reset_time)

        async with self._campaign_lock(campaign_id):
            current = await self._load(campaign_id)
            if progress is not None and progress != current:
                raise ConcurrentAdvanceConflict(
                    f"Campaign {campaign_id} progress changed since round {progress.current_round} was read"
                )
            machine = ProgressionStateMachine(current, campaign_id)
            machine.ensure_can_advance()

            credit = await self.credit_ledger.consume_round_credit(campaign_id)
            if not credit.ok:
                logger.bind(campaign_id=campaign_id).warning(
                    f"Round advance refused: {credit.error or 'no credits'}"
                )
                raise NoCredits(campaign_id, credit)

            advance = machine.advance_round()

            if not await self.store.save_progress(campaign_id, current, machine.progress):
                logger.bind(campaign_id=campaign_id, round=advance.round).error(
                    f"Round advance lost compare-and-set after charging a {credit.type} credit"
                )
                raise ConcurrentAdvanceConflict(
                    f"Campaign {campaign_id} progress changed since round {current.current_round} was read"
                )

            obligations: list[SummaryObligation] = []
            try:
                checkpoint = await self.store.load_checkpoint(campaign_id)
                plan = self.scheduler.plan(
                    campaign_id,
                    checkpoint,
                    advance=advance,
                    rounds_per_chapter=current.rounds_per_chapter,
                )
                if plan.checkpoint != checkpoint:
                    await self.store.save_checkpoint(campaign_id, plan.checkpoint)
                obligations = plan.obligations
            except Exception as e:
                logger.bind(campaign_id=campaign_id).error(
                    f"Summary scheduling failed: {type(e).__name__}: {e}"
                )

        result = AdvanceRoundResult(
            round=advance.round,
            chapter=advance.chapter,
            is_complete=advance.is_complete,
            crossed_chapter_boundary=advance.crossed_chapter_boundary,
            credit_type=credit.type,
            credits_remaining=credit.remaining,
            summary_obligations=obligations,
        )

        for obligation in obligations:
            text = await self._run_obligation(obligation)
            if obligation.kind == SummaryKind.CHAPTER:
                result.chapter_summary = text
            else:
                result.summary = text

        log_round_event(
            "Round advance completed",
            campaign_id=campaign_id,
            round_number=result.round,
            chapter=result.chapter,
            credit_type=result.credit_type,
            summaries=len(obligations),
        )
        return result

    # ========================================================================
    # Narration
    # ========================================================================

    async def narrate(
        self,
        user_input: str,
        context: TierContext | None = None,
        actor_id: str | None = None
    ) -> NarrationResult:
        """
        Route a narration request to its tier and generate the response.

        Args:
            user_input: Player or host message
            context: Read-only campaign context for tier selection
            actor_id: Requesting actor, used for rate limiting

        Returns:
            NarrationResult with text and tier selection

        Raises:
            RateLimited: If the actor exceeded the narration limit
            TransientAIFailure: If generation failed or timed out (not retried)
            ProgressionError: If no narrator is configured
        """
        context = context or TierContext()

        if actor_id is not None and context.campaign_id is not None:
            key = build_key(actor_id, context.campaign_id, NARRATION_SCOPE)
            decision = self.check_rate_limit(
                key,
                self.settings.narration_rate_limit_max,
                self.settings.narration_rate_limit_window_ms,
            )
            if not decision.allowed:
                raise RateLimited(key, decision.reset_time)

        if self.narrator is None:
            raise ProgressionError("No narrative generator configured")

        selection = self.select_tier(user_input, context)
        logger.bind(
            campaign_id=context.campaign_id,
            tier=selection.tier.value,
            reason=selection.reason.value,
        ).info(f"Narration routed to {selection.tier.value}")

        context_payload: dict[str, Any] = context.model_dump(exclude_none=True)
        try:
            text = await asyncio.wait_for(
                self.narrator.generate_narrative(user_input, selection, context_payload),
                timeout=self.settings.ai_timeout_seconds,
            )
        except TimeoutError as e:
            raise TransientAIFailure(
                f"{selection.tier.value} generation timed out after {self.settings.ai_timeout_seconds}s"
            ) from e

        return NarrationResult(text=text, selection=selection)


def build_engine(
    settings: Settings | None = None,
    redis_client: Redis | None = None,
    async_redis_client: AsyncRedis | None = None,
    credit_ledger: CreditLedger | None = None,
    summarizer: Summarizer | None = None,
    narrator: NarrativeGenerator | None = None
) -> ProgressionEngine:
    """
    Build an engine from settings.

    rate_limit_backend="redis" shares both rate limit windows and campaign
    progress through Redis; "memory" keeps everything in this process.

    Args:
        settings: Engine settings (default: get_settings())
        redis_client: Sync client for the rate limiter (default: from redis_url)
        async_redis_client: Asyncio client for the progress store
            (default: from redis_url)
        credit_ledger: Credit ledger (default: in-memory)
        summarizer: Summary generator, optional
        narrator: Narrative generator, optional
    """
    settings = settings or get_settings()

    if settings.rate_limit_backend == "redis":
        if redis_client is None:
            redis_client = Redis.from_url(settings.redis_url, decode_responses=False)
        if async_redis_client is None:
            async_redis_client = AsyncRedis.from_url(settings.redis_url, decode_responses=False)
        store: ProgressStore = RedisProgressStore(async_redis_client)
    else:
        store = InMemoryProgressStore()

    rate_limiter = create_rate_limiter(
        settings.rate_limit_backend,
        redis_client=redis_client,
        purge_interval_ms=settings.rate_limit_purge_interval_ms,
        purge_grace_ms=settings.rate_limit_purge_grace_ms,
    )

    return ProgressionEngine(
        store=store,
        credit_ledger=credit_ledger or InMemoryCreditLedger(),
        rate_limiter=rate_limiter,
        summarizer=summarizer,
        narrator=narrator,
        settings=settings,
    )
