# ABOUTME: Routes narration requests to the DM (immediate turns) or DIRECTOR (campaign planning) AI tier.
# ABOUTME: Strategic keywords or periodic checkpoint rounds select DIRECTOR; the two tiers get disjoint tool sets.

import re

from progression_engine.models.tiers import AITier, TierContext, TierReason, TierSelection

DIRECTOR_KEYWORDS = (
    "campaign",
    "story",
    "plot",
    "chapter",
    "planning",
    "progress",
    "pacing",
    "development",
    "arc",
    "future",
    "strategy",
    "direction",
)

DEFAULT_DIRECTOR_ROUND_INTERVAL = 20

# Whole words only ("arc" must not fire on "search"); simple plurals allowed.
_KEYWORD_PATTERN = re.compile(
    r"\b(" + "|".join(DIRECTOR_KEYWORDS) + r")(?:s|es)?\b",
    re.IGNORECASE,
)

DM_TOOLS = frozenset({
    "roll_dice",
    "lookup_rule",
    "save_memory",
    "load_memory",
    "generate_encounter",
    "generate_npc",
})

DIRECTOR_TOOLS = frozenset({
    "analyze_campaign_progress",
    "plan_story_beats",
    "update_campaign_state",
})


def tools_for_tier(tier: AITier) -> frozenset[str]:
    """Tool names the given tier may call"""
    if tier == AITier.DIRECTOR:
        return DIRECTOR_TOOLS
    return DM_TOOLS


def find_strategic_keyword(user_input: str) -> str | None:
    """First strategic keyword in the input, lowercased, or None"""
    match = _KEYWORD_PATTERN.search(user_input or "")
    return match.group(1).lower() if match else None


def is_director_checkpoint(
    current_round: int | None,
    interval: int = DEFAULT_DIRECTOR_ROUND_INTERVAL
) -> bool:
    """Whether a round is a periodic strategic checkpoint (every Nth round)"""
    if not current_round or current_round < 1:
        return False
    return current_round % interval == 0


def select_tier(
    user_input: str,
    context: TierContext | None = None,
    director_round_interval: int = DEFAULT_DIRECTOR_ROUND_INTERVAL
) -> TierSelection:
    """
    Choose which AI tier handles a narration request.

    Rules:
    - Any strategic keyword in the input -> DIRECTOR
    - context.current_round on a checkpoint (every 20th round) -> DIRECTOR
    - Otherwise -> DM

    Args:
        user_input: Player or host message
        context: Read-only campaign context
        director_round_interval: Checkpoint spacing in rounds

    Returns:
        TierSelection with tier, reason and the tier's tools
    """
    keyword = find_strategic_keyword(user_input)
    if keyword:
        return TierSelection(
            tier=AITier.DIRECTOR,
            reason=TierReason.KEYWORD,
            matched_keyword=keyword,
            tools=DIRECTOR_TOOLS,
        )

    current_round = context.current_round if context is not None else None
    if is_director_checkpoint(current_round, director_round_interval):
        return TierSelection(
            tier=AITier.DIRECTOR,
            reason=TierReason.CHECKPOINT,
            tools=DIRECTOR_TOOLS,
        )

    return TierSelection(tier=AITier.DM, reason=TierReason.DEFAULT, tools=DM_TOOLS)
