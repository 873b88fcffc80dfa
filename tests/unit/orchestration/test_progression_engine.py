# ABOUTME: Unit tests for the ProgressionEngine facade.
# ABOUTME: Covers advance ordering (rate limit, lifecycle, credits, CAS), summaries, narration and factory wiring.

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from progression_engine.exceptions import (
    CampaignComplete,
    CampaignNotFound,
    ConcurrentAdvanceConflict,
    InvalidNotation,
    InvalidPhaseTransition,
    NoCredits,
    ProgressionError,
    RateLimited,
    SummarizationFailure,
    TransientAIFailure,
)
from progression_engine.models.progression import CampaignStatus
from progression_engine.models.summaries import SummaryKind
from progression_engine.models.tiers import AITier, TierContext
from progression_engine.orchestration.collaborators import InMemoryCreditLedger
from progression_engine.orchestration.progression_engine import ProgressionEngine, build_engine
from progression_engine.orchestration.rate_limiter import InMemoryRateLimiter, RedisRateLimiter
from progression_engine.orchestration.stores import InMemoryProgressStore, RedisProgressStore
from tests.conftest import ScriptedRandom, make_progress


async def seed(store: InMemoryProgressStore, campaign_id: str = "c", **progress_fields) -> None:
    """Store progress for a campaign directly"""
    await store.save_progress(campaign_id, None, make_progress(**progress_fields))


class TestStatelessOperations:
    """Test suite for dice, rate limit and tier passthroughs"""

    def test_roll_dice_uses_engine_rng(self, test_settings, progress_store, credit_ledger):
        engine = ProgressionEngine(progress_store, credit_ledger, settings=test_settings, rng=ScriptedRandom([11, 17]))
        assert engine.roll_dice("2d20kh1+3").total == 20

    def test_parse_dice_propagates_errors(self, engine):
        with pytest.raises(InvalidNotation):
            engine.parse_dice("1d7")

    def test_should_summarize_default_threshold(self, engine):
        assert not engine.should_summarize(9)
        assert engine.should_summarize(10)
        assert engine.should_summarize(2, threshold=2)

    def test_check_rate_limit(self, engine):
        assert engine.check_rate_limit("k", 1, 1000).allowed
        assert not engine.check_rate_limit("k", 1, 1000).allowed

    def test_run_dice_tool_uses_engine_rng(self, test_settings, progress_store, credit_ledger):
        engine = ProgressionEngine(progress_store, credit_ledger, settings=test_settings, rng=ScriptedRandom([14]))

        result = engine.run_dice_tool({"expression": "1d20+2", "dc": 15, "ability": "DEX"})

        assert result.total == 16
        assert result.passed is True

    def test_select_tier_uses_configured_interval(self, engine):
        assert engine.select_tier("I open the door", TierContext(current_round=20)).tier == AITier.DIRECTOR


class TestLifecycle:
    """Test suite for create/start/pause/resume"""

    @pytest.mark.asyncio
    async def test_create_campaign(self, engine):
        progress = await engine.create_campaign("c")

        assert progress.current_round == 1
        assert progress.status == CampaignStatus.NOT_STARTED
        assert progress.target_rounds == 200

    @pytest.mark.asyncio
    async def test_create_twice_conflicts(self, engine):
        await engine.create_campaign("c")
        with pytest.raises(ConcurrentAdvanceConflict, match="already exists"):
            await engine.create_campaign("c")

    @pytest.mark.asyncio
    async def test_start_pause_resume_persisted(self, engine, progress_store):
        await engine.create_campaign("c")

        await engine.start("c")
        assert (await progress_store.load_progress("c")).status == CampaignStatus.ACTIVE
        await engine.pause("c")
        assert (await progress_store.load_progress("c")).status == CampaignStatus.PAUSED
        await engine.resume("c")
        assert (await engine.get_progress("c")).status == CampaignStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, engine):
        with pytest.raises(CampaignNotFound):
            await engine.start("missing")


class TestAdvanceRound:
    """Test suite for advance_round ordering and effects"""

    @pytest.mark.asyncio
    async def test_advances_one_round_and_charges_free_credit(self, engine, progress_store, credit_ledger):
        await seed(progress_store, current_round=5)

        result = await engine.advance_round("c")

        assert result.round == 6
        assert result.chapter == 1
        assert result.credit_type == "free"
        assert result.credits_remaining == 4
        assert (await progress_store.load_progress("c")).current_round == 6
        assert credit_ledger.free_rounds_remaining("c") == 4

    @pytest.mark.asyncio
    async def test_not_active_raises_before_charging(self, engine, progress_store, credit_ledger):
        await seed(progress_store, status=CampaignStatus.PAUSED)

        with pytest.raises(InvalidPhaseTransition):
            await engine.advance_round("c")
        assert credit_ledger.free_rounds_remaining("c") == 5

    @pytest.mark.asyncio
    async def test_complete_campaign_raises_before_charging(self, engine, progress_store, credit_ledger):
        await seed(progress_store, current_round=200)

        with pytest.raises(CampaignComplete):
            await engine.advance_round("c")
        assert credit_ledger.free_rounds_remaining("c") == 5

    @pytest.mark.asyncio
    async def test_reaching_target_completes(self, engine, progress_store):
        await seed(progress_store, current_round=199)

        result = await engine.advance_round("c")

        assert result.is_complete
        assert (await progress_store.load_progress("c")).status == CampaignStatus.COMPLETE

    @pytest.mark.asyncio
    async def test_no_credits_leaves_round_unchanged(self, test_settings, progress_store, memory_rate_limiter):
        engine = ProgressionEngine(
            progress_store, InMemoryCreditLedger(free_rounds=0),
            rate_limiter=memory_rate_limiter, settings=test_settings,
        )
        await seed(progress_store, current_round=5)

        with pytest.raises(NoCredits) as exc_info:
            await engine.advance_round("c")

        assert exc_info.value.credit_result.error == "no_credits"
        assert (await progress_store.load_progress("c")).current_round == 5

    @pytest.mark.asyncio
    async def test_rate_limited_actor(self, engine, progress_store, fake_clock, credit_ledger):
        await seed(progress_store)

        await engine.advance_round("c", actor_id="host")
        with pytest.raises(RateLimited) as exc_info:
            await engine.advance_round("c", actor_id="host")

        assert exc_info.value.reset_time == fake_clock.now + 30_000
        assert credit_ledger.free_rounds_remaining("c") == 4

        fake_clock.advance(30_000)
        assert (await engine.advance_round("c", actor_id="host")).round == 3

    @pytest.mark.asyncio
    async def test_stale_progress_conflicts(self, engine, progress_store, credit_ledger):
        stale = make_progress(current_round=5)
        await seed(progress_store, current_round=6)

        with pytest.raises(ConcurrentAdvanceConflict):
            await engine.advance_round("c", progress=stale)
        assert (await progress_store.load_progress("c")).current_round == 6
        assert credit_ledger.free_rounds_remaining("c") == 5

    @pytest.mark.asyncio
    async def test_reused_read_charges_only_once(self, engine, progress_store, credit_ledger):
        await seed(progress_store, current_round=5)
        read = await progress_store.load_progress("c")

        assert (await engine.advance_round("c", progress=read)).round == 6
        with pytest.raises(ConcurrentAdvanceConflict):
            await engine.advance_round("c", progress=read)

        assert (await progress_store.load_progress("c")).current_round == 6
        assert credit_ledger.free_rounds_remaining("c") == 4

    @pytest.mark.asyncio
    async def test_progress_for_unknown_campaign(self, engine):
        with pytest.raises(CampaignNotFound):
            await engine.advance_round("missing", progress=make_progress())

    @pytest.mark.asyncio
    async def test_concurrent_advances_serialized(self, engine, progress_store):
        await seed(progress_store, current_round=1)

        results = await asyncio.gather(*(engine.advance_round("c") for _ in range(5)))

        assert sorted(r.round for r in results) == [2, 3, 4, 5, 6]
        assert (await progress_store.load_progress("c")).current_round == 6

    @pytest.mark.asyncio
    async def test_campaign_locks_released_after_use(self, engine, progress_store):
        await engine.create_campaign("a")
        await engine.start("a")
        await seed(progress_store, "b", current_round=1)

        await asyncio.gather(*(engine.advance_round("b") for _ in range(3)), engine.advance_round("a"))

        assert engine._locks == {}
        assert engine._lock_users == {}

    @pytest.mark.asyncio
    async def test_campaign_lock_released_after_error(self, engine, progress_store):
        await seed(progress_store, status=CampaignStatus.PAUSED)

        with pytest.raises(InvalidPhaseTransition):
            await engine.advance_round("c")

        assert engine._locks == {}

    @pytest.mark.asyncio
    async def test_chapter_boundary_returns_obligation_without_summarizer(self, engine, progress_store):
        await seed(progress_store, current_round=25)

        result = await engine.advance_round("c")

        assert result.crossed_chapter_boundary
        assert result.chapter == 2
        assert result.chapter_summary is None
        assert [o.kind for o in result.summary_obligations] == [SummaryKind.CHAPTER]
        assert result.summary_obligations[0].chapter == 1


class TestSummaries:
    """Test suite for best-effort summary generation during advances"""

    @pytest.mark.asyncio
    async def test_chapter_summary_generated_and_stored(self, engine, progress_store):
        engine.summarizer = AsyncMock()
        engine.summarizer.summarize.return_value = "Chapter 1 Summary: ..."
        await seed(progress_store, current_round=25)

        result = await engine.advance_round("c")

        assert result.chapter_summary == "Chapter 1 Summary: ..."
        assert progress_store.chapter_summaries["c"] == {1: "Chapter 1 Summary: ..."}

    @pytest.mark.asyncio
    async def test_ordinary_summary_after_threshold(self, engine, progress_store):
        engine.summarizer = AsyncMock()
        engine.summarizer.summarize.return_value = "The party rested."
        await seed(progress_store, current_round=3)

        for i in range(10):
            await engine.record_message("c", f"m{i}")
        result = await engine.advance_round("c")

        assert result.summary == "The party rested."
        obligation = engine.summarizer.summarize.call_args[0][0]
        assert obligation.message_count == 10
        assert obligation.through_message_id == "m9"
        assert (await progress_store.load_checkpoint("c")).pending_message_count == 0

    @pytest.mark.asyncio
    async def test_summarizer_failure_does_not_fail_advance(self, engine, progress_store):
        engine.summarizer = AsyncMock()
        engine.summarizer.summarize.side_effect = SummarizationFailure("model unavailable")
        await seed(progress_store, current_round=25)

        result = await engine.advance_round("c")

        assert result.round == 26
        assert result.chapter_summary is None
        assert (await progress_store.load_progress("c")).current_round == 26
        assert progress_store.summaries == {}

    @pytest.mark.asyncio
    async def test_summarizer_timeout_does_not_fail_advance(self, progress_store, credit_ledger, test_settings):
        async def slow_summary(obligation):
            await asyncio.sleep(1)
            return "too late"

        settings = test_settings.model_copy(update={"ai_timeout_seconds": 0.01})
        engine = ProgressionEngine(progress_store, credit_ledger, settings=settings)
        engine.summarizer = AsyncMock()
        engine.summarizer.summarize.side_effect = slow_summary
        await seed(progress_store, current_round=25)

        result = await engine.advance_round("c")

        assert result.round == 26
        assert result.chapter_summary is None


class TestNarrate:
    """Test suite for tier-routed narration"""

    @pytest.mark.asyncio
    async def test_routes_and_returns_text(self, engine):
        engine.narrator = AsyncMock()
        engine.narrator.generate_narrative.return_value = "The plot thickens."

        result = await engine.narrate("What's the plot?", TierContext(campaign_id="c", current_round=3))

        assert result.text == "The plot thickens."
        assert result.tier == AITier.DIRECTOR
        prompt, selection, context = engine.narrator.generate_narrative.call_args[0]
        assert prompt == "What's the plot?"
        assert selection.matched_keyword == "plot"
        assert context == {"campaign_id": "c", "current_round": 3}

    @pytest.mark.asyncio
    async def test_requires_narrator(self, engine):
        with pytest.raises(ProgressionError, match="No narrative generator"):
            await engine.narrate("hello")

    @pytest.mark.asyncio
    async def test_timeout_is_transient_failure(self, progress_store, credit_ledger, test_settings):
        async def slow(*args):
            await asyncio.sleep(1)
            return "late"

        settings = test_settings.model_copy(update={"ai_timeout_seconds": 0.01})
        engine = ProgressionEngine(progress_store, credit_ledger, settings=settings)
        engine.narrator = AsyncMock()
        engine.narrator.generate_narrative.side_effect = slow

        with pytest.raises(TransientAIFailure, match="timed out"):
            await engine.narrate("I open the door")

    @pytest.mark.asyncio
    async def test_narration_rate_limit(self, engine):
        engine.narrator = AsyncMock()
        engine.narrator.generate_narrative.return_value = "ok"
        context = TierContext(campaign_id="c")

        for _ in range(12):
            await engine.narrate("I look around", context, actor_id="player-1")
        with pytest.raises(RateLimited):
            await engine.narrate("I look around", context, actor_id="player-1")

        # Another actor has its own window
        assert (await engine.narrate("I look around", context, actor_id="player-2")).text == "ok"


class TestBuildEngine:
    """Test suite for the settings-driven factory"""

    def test_memory_backend(self, test_settings):
        engine = build_engine(test_settings)
        assert isinstance(engine.store, InMemoryProgressStore)
        assert isinstance(engine.rate_limiter, InMemoryRateLimiter)

    def test_redis_backend(self, test_settings, mock_redis, mock_async_redis):
        settings = test_settings.model_copy(update={"rate_limit_backend": "redis"})
        engine = build_engine(settings, redis_client=mock_redis, async_redis_client=mock_async_redis)

        assert isinstance(engine.store, RedisProgressStore)
        assert engine.store.redis is mock_async_redis
        assert isinstance(engine.rate_limiter, RedisRateLimiter)
        assert engine.rate_limiter.redis is mock_redis

    def test_redis_backend_connects_from_url(self, test_settings, mock_redis, mock_async_redis, monkeypatch):
        settings = test_settings.model_copy(update={"rate_limit_backend": "redis"})
        sync_cls = Mock()
        sync_cls.from_url.return_value = mock_redis
        async_cls = Mock()
        async_cls.from_url.return_value = mock_async_redis
        monkeypatch.setattr("progression_engine.orchestration.progression_engine.Redis", sync_cls)
        monkeypatch.setattr("progression_engine.orchestration.progression_engine.AsyncRedis", async_cls)

        engine = build_engine(settings)

        sync_cls.from_url.assert_called_once_with(settings.redis_url, decode_responses=False)
        async_cls.from_url.assert_called_once_with(settings.redis_url, decode_responses=False)
        assert engine.store.redis is mock_async_redis
        assert engine.rate_limiter.redis is mock_redis
