"""Data models for the session progression engine"""

from .dice_models import (
    VALID_DICE_SIDES,
    CompoundRollResult,
    DiceExpression,
    KeepMode,
    RollResult,
)
from .progression import (
    AdvanceRoundResult,
    CampaignProgress,
    CampaignStatus,
    CreditResult,
    RoundAdvance,
)
from .rate_limit import RateLimitDecision, RateLimitWindow
from .summaries import (
    SummaryCheckpoint,
    SummaryKind,
    SummaryObligation,
    SummaryPlan,
)
from .tiers import AITier, NarrationResult, TierContext, TierReason, TierSelection
from .tool_results import (
    DiceRollToolResult,
    DiceToolArguments,
    EncounterGeneratedResult,
    MemorySaveResult,
    NpcGeneratedResult,
    RuleLookupResult,
    StateUpdateResult,
    ToolResult,
    parse_tool_result,
)

__all__ = [
    # Dice
    "VALID_DICE_SIDES",
    "CompoundRollResult",
    "DiceExpression",
    "KeepMode",
    "RollResult",
    # Progression
    "AdvanceRoundResult",
    "CampaignProgress",
    "CampaignStatus",
    "CreditResult",
    "RoundAdvance",
    # Rate limiting
    "RateLimitDecision",
    "RateLimitWindow",
    # Summaries
    "SummaryCheckpoint",
    "SummaryKind",
    "SummaryObligation",
    "SummaryPlan",
    # Tiers
    "AITier",
    "NarrationResult",
    "TierContext",
    "TierReason",
    "TierSelection",
    # Tool results
    "DiceRollToolResult",
    "DiceToolArguments",
    "EncounterGeneratedResult",
    "MemorySaveResult",
    "NpcGeneratedResult",
    "RuleLookupResult",
    "StateUpdateResult",
    "ToolResult",
    "parse_tool_result",
]
