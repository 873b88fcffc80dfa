# ABOUTME: Orchestration layer exports for round progression, rate limiting, summaries and tier routing.
# ABOUTME: ProgressionEngine is the host-facing facade; the rest are its pure building blocks.

from progression_engine.orchestration.collaborators import (
    CreditLedger,
    InMemoryCreditLedger,
    NarrativeGenerator,
    ProgressStore,
    Summarizer,
)
from progression_engine.orchestration.progression_engine import ProgressionEngine, build_engine
from progression_engine.orchestration.rate_limiter import (
    InMemoryRateLimiter,
    RateLimiter,
    RedisRateLimiter,
    build_key,
    create_rate_limiter,
)
from progression_engine.orchestration.state_machine import ProgressionStateMachine
from progression_engine.orchestration.stores import InMemoryProgressStore, RedisProgressStore
from progression_engine.orchestration.summarization import SummarizationScheduler, should_summarize
from progression_engine.orchestration.tier_selector import select_tier
from progression_engine.orchestration.tool_handlers import describe_tool_result, execute_dice_tool

__all__ = [
    "ProgressionEngine",
    "build_engine",
    "ProgressionStateMachine",
    "SummarizationScheduler",
    "should_summarize",
    "select_tier",
    "execute_dice_tool",
    "describe_tool_result",
    "RateLimiter",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "build_key",
    "create_rate_limiter",
    "CreditLedger",
    "InMemoryCreditLedger",
    "NarrativeGenerator",
    "ProgressStore",
    "Summarizer",
    "InMemoryProgressStore",
    "RedisProgressStore",
]
