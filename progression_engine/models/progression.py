# ABOUTME: Pydantic models for campaign progression: lifecycle status, round/chapter counters and advance results.
# ABOUTME: CampaignProgress enforces the chapter = ceil(round / rounds_per_chapter) invariant.

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from progression_engine.models.summaries import SummaryObligation


class CampaignStatus(str, Enum):
    """Lifecycle states of a campaign's progression"""
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETE = "complete"


class CampaignProgress(BaseModel):
    """Round/chapter counters for one campaign

    Instances are immutable; the state machine produces a new instance per
    transition.
    """

    model_config = ConfigDict(frozen=True)

    current_round: int = Field(
        default=1,
        ge=1,
        description="Current round (starts at 1)"
    )
    current_chapter: int = Field(
        default=1,
        ge=1,
        description="Chapter derived from current_round"
    )
    target_rounds: int = Field(
        default=200,
        ge=1,
        description="Round at which the campaign is complete"
    )
    rounds_per_chapter: int = Field(
        default=25,
        ge=1,
        description="Rounds in one chapter"
    )
    status: CampaignStatus = Field(
        default=CampaignStatus.NOT_STARTED,
        description="Lifecycle state"
    )

    @model_validator(mode='before')
    @classmethod
    def derive_chapter(cls, data):
        """Fill current_chapter from current_round when not given"""
        if isinstance(data, dict) and data.get("current_chapter") is None:
            current_round = data.get("current_round", 1)
            rounds_per_chapter = data.get("rounds_per_chapter", 25)
            if isinstance(current_round, int) and isinstance(rounds_per_chapter, int) \
                    and rounds_per_chapter >= 1:
                data = {**data, "current_chapter": max(1, math.ceil(current_round / rounds_per_chapter))}
        return data

    @model_validator(mode='after')
    def validate_chapter(self):
        """current_chapter must always match current_round"""
        expected = math.ceil(self.current_round / self.rounds_per_chapter)
        if self.current_chapter != expected:
            raise ValueError(
                f"current_chapter ({self.current_chapter}) doesn't match round "
                f"{self.current_round} with {self.rounds_per_chapter} rounds per chapter "
                f"(expected {expected})"
            )
        return self

    @property
    def is_complete(self) -> bool:
        return self.current_round >= self.target_rounds


class RoundAdvance(BaseModel):
    """Outcome of one successful advance_round transition"""

    model_config = ConfigDict(frozen=True)

    previous_round: int = Field(ge=1)
    round: int = Field(ge=2)
    chapter: int = Field(ge=1)
    is_complete: bool
    crossed_chapter_boundary: bool
    completed_chapter: int | None = Field(
        default=None,
        description="Chapter that just finished when a boundary was crossed"
    )


class CreditResult(BaseModel):
    """Answer from the external credit ledger for one round charge"""

    ok: bool
    type: str | None = Field(
        default=None,
        description="Credit kind consumed (e.g. 'free' or 'paid')"
    )
    remaining: int = Field(
        default=0,
        ge=0,
        description="Credits (or free rounds) left after this charge"
    )
    error: str | None = None


class AdvanceRoundResult(BaseModel):
    """What the engine returns to its host for a round advance"""

    round: int
    chapter: int
    is_complete: bool
    crossed_chapter_boundary: bool
    credit_type: str | None = None
    credits_remaining: int = 0
    summary: str | None = Field(
        default=None,
        description="Ordinary running summary generated by this advance, if any"
    )
    chapter_summary: str | None = Field(
        default=None,
        description="Closing summary of the chapter that just finished, if any"
    )
    summary_obligations: list[SummaryObligation] = Field(
        default_factory=list,
        description="Summaries this advance made due (ordinary and/or chapter)"
    )
