# ABOUTME: Shared pytest fixtures for all test modules (unit and integration).
# ABOUTME: Provides scripted dice, fake clocks, mock Redis clients, and in-memory engines.

from unittest.mock import AsyncMock, MagicMock, Mock

import pytest
from redis import Redis

from progression_engine.config.settings import Settings
from progression_engine.models.progression import CampaignProgress, CampaignStatus
from progression_engine.orchestration.collaborators import InMemoryCreditLedger
from progression_engine.orchestration.progression_engine import ProgressionEngine
from progression_engine.orchestration.rate_limiter import InMemoryRateLimiter
from progression_engine.orchestration.stores import InMemoryProgressStore

# --- Helper Classes ---


class ScriptedRandom:
    """Random source returning a fixed sequence of die faces"""

    def __init__(self, values: list[int]):
        self.values = list(values)
        self.calls: list[tuple[int, int]] = []

    def randint(self, a: int, b: int) -> int:
        self.calls.append((a, b))
        if not self.values:
            raise AssertionError("ScriptedRandom ran out of values")
        value = self.values.pop(0)
        assert a <= value <= b, f"scripted value {value} outside [{a}, {b}]"
        return value


class FakeClock:
    """Millisecond clock advanced by hand"""

    def __init__(self, start_ms: int = 1_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_progress(
    current_round: int = 1,
    status: CampaignStatus = CampaignStatus.ACTIVE,
    target_rounds: int = 200,
    rounds_per_chapter: int = 25
) -> CampaignProgress:
    """Helper to build CampaignProgress with a derived chapter"""
    return CampaignProgress(
        current_round=current_round,
        target_rounds=target_rounds,
        rounds_per_chapter=rounds_per_chapter,
        status=status,
    )


# --- Dice Fixtures ---

@pytest.fixture
def scripted_random():
    """Factory for ScriptedRandom sources"""
    return ScriptedRandom


# --- Clock & Rate Limiter Fixtures ---

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_rate_limiter(fake_clock) -> InMemoryRateLimiter:
    """In-memory rate limiter driven by the fake clock"""
    return InMemoryRateLimiter(clock=fake_clock)


# --- Redis Fixtures ---

@pytest.fixture
def mock_redis():
    """Mock Redis client (no real server)"""
    redis = Mock(spec=Redis)
    redis.register_script.return_value = MagicMock()
    return redis


@pytest.fixture
def mock_async_redis():
    """
    Mock asyncio Redis client (no real server).

    Commands are AsyncMocks; pipeline() is an async context manager whose
    pipeline object is exposed as mock_async_redis.pipe.
    """
    redis = MagicMock()
    for command in ("get", "set", "rpush", "hset"):
        setattr(redis, command, AsyncMock())

    pipe = MagicMock()
    for command in ("watch", "unwatch", "get", "execute"):
        setattr(pipe, command, AsyncMock())
    redis.pipeline.return_value.__aenter__.return_value = pipe
    redis.pipe = pipe
    return redis


# --- Engine Fixtures ---

@pytest.fixture
def test_settings() -> Settings:
    """Settings with defaults, isolated from the environment's AI key"""
    return Settings(openai_api_key=None, rate_limit_backend="memory")


@pytest.fixture
def progress_store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def credit_ledger() -> InMemoryCreditLedger:
    return InMemoryCreditLedger()


@pytest.fixture
def engine(test_settings, progress_store, credit_ledger, memory_rate_limiter) -> ProgressionEngine:
    """Engine over in-memory collaborators with no summarizer or narrator"""
    return ProgressionEngine(
        store=progress_store,
        credit_ledger=credit_ledger,
        rate_limiter=memory_rate_limiter,
        settings=test_settings,
    )
