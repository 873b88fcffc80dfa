# ABOUTME: Pydantic models for summarization checkpoints and the obligations the scheduler emits.
# ABOUTME: Ordinary obligations follow the message threshold; chapter obligations close a finished chapter.

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SummaryKind(str, Enum):
    """Which summary an obligation asks for"""
    ORDINARY = "ordinary"
    CHAPTER = "chapter"


class SummaryCheckpoint(BaseModel):
    """Where the running summary left off for one campaign"""

    model_config = ConfigDict(frozen=True)

    last_summarized_round: int = Field(
        default=0,
        ge=0,
        description="Round current when the last ordinary summary was emitted"
    )
    last_summarized_message_id: str | None = Field(
        default=None,
        description="Newest message covered by the last ordinary summary"
    )
    pending_message_count: int = Field(
        default=0,
        ge=0,
        description="Messages recorded since the last ordinary summary"
    )
    latest_message_id: str | None = Field(
        default=None,
        description="Newest message recorded so far"
    )


class SummaryObligation(BaseModel):
    """A summary the host must generate"""

    model_config = ConfigDict(frozen=True)

    kind: SummaryKind
    campaign_id: str
    start_round: int = Field(ge=1)
    end_round: int = Field(ge=1)
    chapter: int | None = Field(
        default=None,
        description="Chapter being closed (chapter obligations only)"
    )
    message_count: int = Field(
        default=0,
        ge=0,
        description="Messages accumulated toward an ordinary summary"
    )
    after_message_id: str | None = Field(
        default=None,
        description="Summarize messages newer than this id (ordinary only)"
    )
    through_message_id: str | None = Field(
        default=None,
        description="Newest message covered (ordinary only)"
    )

    @model_validator(mode='after')
    def validate_scope(self):
        if self.end_round < self.start_round:
            raise ValueError(
                f"end_round ({self.end_round}) must not precede start_round ({self.start_round})"
            )
        if self.kind == SummaryKind.CHAPTER and self.chapter is None:
            raise ValueError("chapter obligations must name the chapter they close")
        return self


class SummaryPlan(BaseModel):
    """Obligations for one advance plus the checkpoint to store afterwards"""

    obligations: list[SummaryObligation] = Field(default_factory=list)
    checkpoint: SummaryCheckpoint

    @property
    def ordinary(self) -> SummaryObligation | None:
        return next((o for o in self.obligations if o.kind == SummaryKind.ORDINARY), None)

    @property
    def chapter(self) -> SummaryObligation | None:
        return next((o for o in self.obligations if o.kind == SummaryKind.CHAPTER), None)
