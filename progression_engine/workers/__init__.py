# ABOUTME: Worker utilities for hosts calling engine AI operations.
# ABOUTME: Exports the transient-failure retry decorator.

from progression_engine.workers.llm_retry import retry_transient_ai

__all__ = ["retry_transient_ai"]
