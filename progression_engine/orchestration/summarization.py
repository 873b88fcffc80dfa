# ABOUTME: Summarization scheduler deciding when running and chapter-closing summaries are owed.
# ABOUTME: Ordinary summaries follow a message threshold; every crossed chapter boundary closes the finished chapter.

from progression_engine.models.progression import RoundAdvance
from progression_engine.models.summaries import (
    SummaryCheckpoint,
    SummaryKind,
    SummaryObligation,
    SummaryPlan,
)
from progression_engine.orchestration.state_machine import (
    DEFAULT_ROUNDS_PER_CHAPTER,
    chapter_round_range,
)
from progression_engine.utils.logging import log_summary_operation

DEFAULT_SUMMARY_THRESHOLD = 10


def should_summarize(pending_message_count: int, threshold: int = DEFAULT_SUMMARY_THRESHOLD) -> bool:
    """
    Whether enough new messages have accumulated for an ordinary summary.

    Raises:
        ValueError: If threshold < 1 or pending_message_count is negative
    """
    if threshold < 1:
        raise ValueError(f"threshold must be at least 1, got {threshold}")
    if pending_message_count < 0:
        raise ValueError(f"pending_message_count must be non-negative, got {pending_message_count}")
    return pending_message_count >= threshold


class SummarizationScheduler:
    """
    Turns checkpoints and round advances into summary obligations.

    The ordinary and chapter obligations are independent: a chapter summary
    never moves the ordinary checkpoint, and an ordinary summary never
    suppresses a chapter summary.
    """

    def __init__(
        self,
        threshold: int = DEFAULT_SUMMARY_THRESHOLD,
        rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER
    ):
        if threshold < 1:
            raise ValueError(f"threshold must be at least 1, got {threshold}")
        self.threshold = threshold
        self.rounds_per_chapter = rounds_per_chapter

    def record_message(self, checkpoint: SummaryCheckpoint, message_id: str) -> SummaryCheckpoint:
        """Count one new campaign message toward the next ordinary summary"""
        return checkpoint.model_copy(update={
            "pending_message_count": checkpoint.pending_message_count + 1,
            "latest_message_id": message_id,
        })

    def plan(
        self,
        campaign_id: str,
        checkpoint: SummaryCheckpoint,
        advance: RoundAdvance | None = None,
        current_round: int | None = None,
        rounds_per_chapter: int | None = None
    ) -> SummaryPlan:
        """
        Decide which summaries are owed.

        Emitting an ordinary obligation resets pending_message_count to 0 and
        moves the baseline to the newest recorded message, so the same
        messages cannot trigger twice.

        Args:
            campaign_id: Campaign identifier
            checkpoint: Stored checkpoint
            advance: Round advance just applied, if any
            current_round: Current round when no advance is given
            rounds_per_chapter: Campaign's chapter length (default: scheduler's)

        Returns:
            SummaryPlan with obligations and the checkpoint to store
        """
        obligations: list[SummaryObligation] = []
        new_checkpoint = checkpoint
        rpc = rounds_per_chapter or self.rounds_per_chapter

        round_now = advance.round if advance is not None else (current_round or 1)

        if should_summarize(checkpoint.pending_message_count, self.threshold):
            start_round = max(1, min(checkpoint.last_summarized_round, round_now))
            obligation = SummaryObligation(
                kind=SummaryKind.ORDINARY,
                campaign_id=campaign_id,
                start_round=start_round,
                end_round=round_now,
                message_count=checkpoint.pending_message_count,
                after_message_id=checkpoint.last_summarized_message_id,
                through_message_id=checkpoint.latest_message_id,
            )
            obligations.append(obligation)
            new_checkpoint = checkpoint.model_copy(update={
                "pending_message_count": 0,
                "last_summarized_round": round_now,
                "last_summarized_message_id": checkpoint.latest_message_id,
            })
            log_summary_operation(
                "scheduled",
                campaign_id,
                SummaryKind.ORDINARY.value,
                start_round=obligation.start_round,
                end_round=obligation.end_round,
                message_count=obligation.message_count,
            )

        if advance is not None and advance.crossed_chapter_boundary:
            completed = advance.completed_chapter or advance.chapter - 1
            start_round, end_round = chapter_round_range(completed, rpc)
            obligations.append(SummaryObligation(
                kind=SummaryKind.CHAPTER,
                campaign_id=campaign_id,
                start_round=start_round,
                end_round=end_round,
                chapter=completed,
            ))
            log_summary_operation(
                "scheduled",
                campaign_id,
                SummaryKind.CHAPTER.value,
                start_round=start_round,
                end_round=end_round,
                chapter=completed,
            )

        return SummaryPlan(obligations=obligations, checkpoint=new_checkpoint)
