# ABOUTME: Agent layer exports: OpenAI-backed narration and summary generation.
# ABOUTME: Both satisfy the collaborator protocols consumed by ProgressionEngine.

from progression_engine.agents.narrator import OpenAINarrator
from progression_engine.agents.summarizer import AISummarizer

__all__ = ["OpenAINarrator", "AISummarizer"]
