# ABOUTME: Structured logging configuration using loguru for campaign progression auditing.
# ABOUTME: Supports context fields (campaign_id, round, chapter, state) and file/console output.

import sys
from pathlib import Path
from typing import Any

from loguru import logger


# Default log format with structured context
DEFAULT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level> | "
    "{extra}"
)

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def setup_logging(
    log_level: str = "INFO",
    log_dir: str | Path | None = None,
    console_output: bool = True,
    file_output: bool = True,
    format_string: str | None = None,
    rotation: str = "100 MB",
    retention: str = "30 days",
    compression: str = "zip"
) -> None:
    """
    Configure loguru for structured logging of campaign progression.

    This setup enables:
    - Structured context fields via logger.bind()
    - Console output with color formatting
    - File output with rotation and compression

    Usage:
        >>> setup_logging(log_level="DEBUG", log_dir="logs")
        >>> logger = get_logger()
        >>> logger.bind(campaign_id="c1", round=26).info("Round advanced")

    Args:
        log_level: Minimum log level ("DEBUG", "INFO", "WARNING", "ERROR")
        log_dir: Directory for log files (default: "logs" in working directory)
        console_output: Enable console logging (default: True)
        file_output: Enable file logging (default: True)
        format_string: Custom format string (default: structured format)
        rotation: When to rotate log files (default: "100 MB")
        retention: How long to keep old logs (default: "30 days")
        compression: Compression for rotated logs (default: "zip")

    Raises:
        ValueError: If log_level is invalid
    """
    log_level = log_level.upper()
    if log_level not in VALID_LEVELS:
        raise ValueError(
            f"Invalid log level: '{log_level}'. "
            f"Must be one of: {', '.join(sorted(VALID_LEVELS))}"
        )

    # Remove default handler
    logger.remove()

    fmt = format_string or DEFAULT_FORMAT

    if console_output:
        logger.add(
            sys.stderr,
            format=fmt,
            level=log_level,
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    if file_output:
        log_dir = Path("logs") if log_dir is None else Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / "progression_engine_{time:YYYY-MM-DD}.log"
        logger.add(
            str(log_file),
            format=fmt,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            backtrace=True,
            diagnose=True,
            enqueue=True,  # Thread-safe
        )

    logger.info(
        f"Logging configured: level={log_level}, "
        f"console={console_output}, file={file_output}"
    )


def get_logger() -> Any:
    """Get configured loguru logger instance"""
    return logger


def log_round_event(
    message: str,
    campaign_id: str,
    round_number: int,
    chapter: int | None = None,
    level: str = "INFO",
    **extra_context: Any
) -> None:
    """
    Log a campaign round event with the standard context fields.

    Usage:
        >>> log_round_event(
        ...     "Round advanced",
        ...     campaign_id="camp_001",
        ...     round_number=26,
        ...     chapter=2,
        ...     crossed_chapter_boundary=True
        ... )

    Args:
        message: Log message
        campaign_id: Campaign identifier
        round_number: Round the event refers to
        chapter: Optional chapter number
        level: Log level (default: "INFO")
        **extra_context: Additional context fields
    """
    context = {
        "campaign_id": campaign_id,
        "round": round_number,
        **extra_context
    }

    if chapter is not None:
        context["chapter"] = chapter

    level = level.upper()
    if level not in VALID_LEVELS:
        level = "INFO"

    logger.bind(**context).log(level, message)


def log_state_transition(
    campaign_id: str,
    from_state: str,
    to_state: str,
    round_number: int
) -> None:
    """Log a campaign lifecycle transition (e.g. active -> paused)"""
    logger.bind(
        campaign_id=campaign_id,
        from_state=from_state,
        to_state=to_state,
        round=round_number,
    ).info(f"State transition: {from_state} -> {to_state}")


def log_summary_operation(
    operation: str,
    campaign_id: str,
    kind: str,
    start_round: int | None = None,
    end_round: int | None = None,
    **extra_context: Any
) -> None:
    """
    Log summarization operations (scheduled, stored, failed, timeout).

    Args:
        operation: Operation name
        campaign_id: Campaign identifier
        kind: Obligation kind ("ordinary" or "chapter")
        start_round: Optional first round covered
        end_round: Optional last round covered
        **extra_context: Additional context fields
    """
    context = {
        "operation": operation,
        "campaign_id": campaign_id,
        "kind": kind,
        **extra_context
    }

    if start_round is not None:
        context["start_round"] = start_round

    if end_round is not None:
        context["end_round"] = end_round

    logger.bind(**context).info(f"Summary operation: {operation}")
