"""Configuration module for the session progression engine"""

from .prompts import (
    CHAPTER_SUMMARY_PROMPT,
    DIRECTOR_SYSTEM_PROMPT,
    DM_SYSTEM_PROMPT,
    ORDINARY_SUMMARY_PROMPT,
    TIER_SYSTEM_PROMPTS,
    TIER_TEMPERATURES,
    build_summary_prompt,
)
from .settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "DM_SYSTEM_PROMPT",
    "DIRECTOR_SYSTEM_PROMPT",
    "TIER_SYSTEM_PROMPTS",
    "TIER_TEMPERATURES",
    "ORDINARY_SUMMARY_PROMPT",
    "CHAPTER_SUMMARY_PROMPT",
    "build_summary_prompt",
]
