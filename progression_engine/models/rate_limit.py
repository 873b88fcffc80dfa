# ABOUTME: Pydantic models for fixed-window rate limiting state and admission decisions.
# ABOUTME: Times are epoch milliseconds so decisions can be returned to HTTP callers as-is.

from pydantic import BaseModel, Field


class RateLimitWindow(BaseModel):
    """Counter for one key within one fixed window"""

    key: str
    count: int = Field(ge=1, description="Admissions attempted in this window")
    window_start: int = Field(description="Window start (epoch ms)")
    reset_time: int = Field(description="Window end, exclusive (epoch ms)")

    def is_expired(self, now: int) -> bool:
        return now >= self.reset_time


class RateLimitDecision(BaseModel):
    """Result of check_and_consume"""

    allowed: bool
    remaining: int = Field(ge=0)
    reset_time: int = Field(description="When the current window ends (epoch ms)")
