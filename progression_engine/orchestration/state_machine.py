# ABOUTME: Campaign progression state machine: lifecycle transitions and round/chapter advancement.
# ABOUTME: Chapters derive from rounds via ceil(round / rounds_per_chapter); completion is automatic and terminal.

import math

from loguru import logger

from progression_engine.exceptions import CampaignComplete, InvalidPhaseTransition
from progression_engine.models.progression import (
    CampaignProgress,
    CampaignStatus,
    RoundAdvance,
)
from progression_engine.utils.logging import log_round_event, log_state_transition

DEFAULT_ROUNDS_PER_CHAPTER = 25
DEFAULT_TARGET_ROUNDS = 200

# Lifecycle transitions: name -> (allowed source states, target state)
LIFECYCLE_TRANSITIONS: dict[str, tuple[frozenset[CampaignStatus], CampaignStatus]] = {
    "start": (
        frozenset({CampaignStatus.NOT_STARTED, CampaignStatus.PAUSED}),
        CampaignStatus.ACTIVE,
    ),
    "pause": (
        frozenset({CampaignStatus.ACTIVE}),
        CampaignStatus.PAUSED,
    ),
    "resume": (
        frozenset({CampaignStatus.PAUSED}),
        CampaignStatus.ACTIVE,
    ),
}


# ============================================================================
# Pure helpers
# ============================================================================


def calculate_chapter(round_number: int, rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER) -> int:
    """
    Chapter containing a round.

    Round 0 maps to chapter 0 so that round 1 counts as entering chapter 1.

    Raises:
        ValueError: If round_number is negative or rounds_per_chapter < 1
    """
    if round_number < 0:
        raise ValueError(f"Round must be non-negative, got {round_number}")
    if rounds_per_chapter < 1:
        raise ValueError(f"rounds_per_chapter must be at least 1, got {rounds_per_chapter}")
    return math.ceil(round_number / rounds_per_chapter)


def is_chapter_boundary(round_number: int, rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER) -> bool:
    """Whether reaching round_number enters a new chapter"""
    if round_number < 1:
        return False
    return (
        calculate_chapter(round_number, rounds_per_chapter)
        > calculate_chapter(round_number - 1, rounds_per_chapter)
    )


def is_campaign_complete(round_number: int, target_rounds: int = DEFAULT_TARGET_ROUNDS) -> bool:
    return round_number >= target_rounds


def calculate_progress(round_number: int, target_rounds: int = DEFAULT_TARGET_ROUNDS) -> int:
    """Campaign progress as a whole percentage, capped at 100"""
    if target_rounds < 1:
        raise ValueError(f"target_rounds must be at least 1, got {target_rounds}")
    return min(100, math.floor(round_number / target_rounds * 100 + 0.5))


def next_chapter_boundary(round_number: int, rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER) -> int:
    """Last round of the next chapter end strictly after round_number"""
    return (round_number // rounds_per_chapter + 1) * rounds_per_chapter


def chapter_round_range(chapter: int, rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER) -> tuple[int, int]:
    """First and last round (inclusive) of a chapter"""
    if chapter < 1:
        raise ValueError(f"Chapter must be at least 1, got {chapter}")
    return (chapter - 1) * rounds_per_chapter + 1, chapter * rounds_per_chapter


def format_round_display(
    round_number: int,
    target_rounds: int = DEFAULT_TARGET_ROUNDS,
    rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER
) -> str:
    """e.g. 'Round 26 (Chapter 2) - 13%'"""
    chapter = calculate_chapter(round_number, rounds_per_chapter)
    progress = calculate_progress(round_number, target_rounds)
    return f"Round {round_number} (Chapter {chapter}) - {progress}%"


# ============================================================================
# State machine
# ============================================================================


class ProgressionStateMachine:
    """
    Owns one campaign's CampaignProgress and the transitions over it.

    States: NOT_STARTED -> ACTIVE <-> PAUSED, and COMPLETE once
    current_round >= target_rounds. COMPLETE is terminal.

    The machine is not thread-safe; callers serialize writes per campaign
    (see ProgressionEngine.advance_round).
    """

    def __init__(self, progress: CampaignProgress, campaign_id: str = "unknown"):
        """
        Initialize the machine.

        Args:
            progress: Current stored progress
            campaign_id: Campaign identifier used in log context
        """
        self.campaign_id = campaign_id
        if progress.is_complete and progress.status != CampaignStatus.COMPLETE:
            progress = self._replace(progress, status=CampaignStatus.COMPLETE)
        self._progress = progress

    @classmethod
    def new_campaign(
        cls,
        campaign_id: str,
        target_rounds: int = DEFAULT_TARGET_ROUNDS,
        rounds_per_chapter: int = DEFAULT_ROUNDS_PER_CHAPTER
    ) -> "ProgressionStateMachine":
        """Create a machine for a campaign that has not started yet"""
        progress = CampaignProgress(
            current_round=1,
            target_rounds=target_rounds,
            rounds_per_chapter=rounds_per_chapter,
            status=CampaignStatus.NOT_STARTED,
        )
        return cls(progress, campaign_id=campaign_id)

    @property
    def progress(self) -> CampaignProgress:
        return self._progress

    @property
    def status(self) -> CampaignStatus:
        return self._progress.status

    @property
    def is_complete(self) -> bool:
        return self._progress.status == CampaignStatus.COMPLETE

    # --- lifecycle ---------------------------------------------------------

    def start(self) -> CampaignProgress:
        return self._apply_lifecycle("start")

    def pause(self) -> CampaignProgress:
        return self._apply_lifecycle("pause")

    def resume(self) -> CampaignProgress:
        return self._apply_lifecycle("resume")

    def _apply_lifecycle(self, transition: str) -> CampaignProgress:
        sources, target = LIFECYCLE_TRANSITIONS[transition]

        if self.is_complete:
            raise CampaignComplete(
                f"Campaign {self.campaign_id} is complete; cannot {transition}"
            )

        if self.status not in sources:
            raise InvalidPhaseTransition(
                f"Cannot {transition} campaign {self.campaign_id} from state "
                f"'{self.status.value}' (allowed from: "
                f"{', '.join(sorted(s.value for s in sources))})"
            )

        previous = self.status
        self._progress = self._replace(self._progress, status=target)
        log_state_transition(
            self.campaign_id,
            previous.value,
            target.value,
            self._progress.current_round,
        )
        return self._progress

    # --- advancement -------------------------------------------------------

    def ensure_can_advance(self) -> None:
        """
        Raise if advance_round would fail, without changing anything.

        Raises:
            CampaignComplete: If the campaign reached its target length
            InvalidPhaseTransition: If the campaign is not ACTIVE
        """
        if self.is_complete:
            raise CampaignComplete(
                f"Campaign {self.campaign_id} has reached its target length "
                f"({self._progress.target_rounds} rounds)"
            )
        if self.status != CampaignStatus.ACTIVE:
            raise InvalidPhaseTransition(
                f"Cannot advance campaign {self.campaign_id} while "
                f"'{self.status.value}' (must be active)"
            )

    def advance_round(self) -> RoundAdvance:
        """
        Advance exactly one round.

        Returns:
            RoundAdvance describing the new round/chapter, completion and
            whether a chapter boundary was crossed

        Raises:
            CampaignComplete: If the campaign is already complete
            InvalidPhaseTransition: If the campaign is not ACTIVE
        """
        self.ensure_can_advance()

        current = self._progress
        new_round = current.current_round + 1
        new_chapter = calculate_chapter(new_round, current.rounds_per_chapter)
        crossed = new_chapter > current.current_chapter
        complete = is_campaign_complete(new_round, current.target_rounds)

        self._progress = self._replace(
            current,
            current_round=new_round,
            current_chapter=new_chapter,
            status=CampaignStatus.COMPLETE if complete else current.status,
        )

        log_round_event(
            f"Round advanced to {new_round} (Chapter {new_chapter})",
            campaign_id=self.campaign_id,
            round_number=new_round,
            chapter=new_chapter,
            previous_round=current.current_round,
            crossed_chapter_boundary=crossed,
            is_complete=complete,
        )

        if complete:
            logger.bind(campaign_id=self.campaign_id).info(
                f"Campaign reached target length of {current.target_rounds} rounds"
            )

        return RoundAdvance(
            previous_round=current.current_round,
            round=new_round,
            chapter=new_chapter,
            is_complete=complete,
            crossed_chapter_boundary=crossed,
            completed_chapter=current.current_chapter if crossed else None,
        )

    @staticmethod
    def _replace(progress: CampaignProgress, **changes) -> CampaignProgress:
        # model_copy skips validation; rebuild so the chapter invariant is re-checked
        return CampaignProgress.model_validate({**progress.model_dump(), **changes})
