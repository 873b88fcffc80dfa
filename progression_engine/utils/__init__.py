# ABOUTME: Utility module exports for dice notation and structured logging.
# ABOUTME: Provides dice.py (D&D 5e notation parser/resolver) and logging.py (loguru config).

from progression_engine.utils.dice import (
    parse_dice_expressions,
    parse_dice_notation,
    resolve_dice,
    roll_dice,
)
from progression_engine.utils.logging import get_logger, setup_logging

__all__ = [
    "parse_dice_notation",
    "parse_dice_expressions",
    "resolve_dice",
    "roll_dice",
    "setup_logging",
    "get_logger",
]
