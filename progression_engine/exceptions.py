# ABOUTME: Exception taxonomy for the session progression engine.
# ABOUTME: Caller-facing errors (notation, rate limit, credits, completion) and side-channel AI failures.

from typing import Any


class ProgressionError(Exception):
    """Base class for all engine errors"""
    pass


class InvalidNotation(ProgressionError, ValueError):
    """Raised when a dice expression is malformed or out of range"""

    def __init__(self, reason: str, notation: str | None = None):
        self.reason = reason
        self.notation = notation
        if notation is None:
            super().__init__(reason)
        else:
            super().__init__(f"Invalid dice notation '{notation}': {reason}")


class RateLimited(ProgressionError):
    """Raised when admission is denied; retry after reset_time (epoch ms)"""

    def __init__(self, key: str, reset_time: int):
        self.key = key
        self.reset_time = reset_time
        super().__init__(f"Rate limit exceeded for '{key}', retry after {reset_time}")


class NoCredits(ProgressionError):
    """Raised when the credit ledger refuses to charge a round"""

    def __init__(self, campaign_id: str, credit_result: Any = None):
        self.campaign_id = campaign_id
        self.credit_result = credit_result
        super().__init__(
            f"No credits available for campaign {campaign_id}. "
            f"Host must purchase more credits to continue."
        )


class CampaignComplete(ProgressionError):
    """Raised when a finished campaign is asked to change"""
    pass


class InvalidPhaseTransition(ProgressionError):
    """Raised when attempting a lifecycle transition not allowed from the current state"""
    pass


class ConcurrentAdvanceConflict(ProgressionError):
    """Raised when the stored round moved underneath an advance (lost compare-and-set)"""
    pass


class SummarizationFailure(ProgressionError):
    """Raised by summarizers; logged and swallowed by the engine"""
    pass


class TransientAIFailure(ProgressionError):
    """Raised when upstream AI generation fails or times out; callers may retry with backoff"""
    pass


class CampaignNotFound(ProgressionError):
    """Raised when no stored progress exists for a campaign"""
    pass
