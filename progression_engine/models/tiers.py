# ABOUTME: Pydantic models for AI tier routing between the immediate DM and the strategic DIRECTOR.
# ABOUTME: TierContext is the read-only context a selection may look at.

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AITier(str, Enum):
    """AI roles: DM narrates turns, DIRECTOR plans the campaign"""
    DM = "DM"
    DIRECTOR = "DIRECTOR"


class TierReason(str, Enum):
    """Why a tier was selected"""
    KEYWORD = "keyword"
    CHECKPOINT = "checkpoint"
    DEFAULT = "default"


class TierContext(BaseModel):
    """Campaign facts visible to the tier selector"""

    model_config = ConfigDict(frozen=True)

    campaign_id: str | None = None
    current_round: int | None = Field(default=None, ge=0)
    current_chapter: int | None = Field(default=None, ge=1)
    campaign_name: str | None = None
    summary: str | None = None


class TierSelection(BaseModel):
    """Chosen tier with the tools it may call"""

    model_config = ConfigDict(frozen=True)

    tier: AITier
    reason: TierReason
    matched_keyword: str | None = None
    tools: frozenset[str] = Field(default_factory=frozenset)


class NarrationResult(BaseModel):
    """Narration text together with the tier that produced it"""

    text: str
    selection: TierSelection

    @property
    def tier(self) -> AITier:
        return self.selection.tier
