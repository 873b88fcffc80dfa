# ABOUTME: Host-facing console interface over the progression engine.
# ABOUTME: Exports the command parser, formatter and CLI loop.

from progression_engine.interface.session_cli import (
    CLIFormatter,
    InvalidCommandError,
    ParsedCommand,
    SessionCommandLineInterface,
    SessionCommandParser,
    SessionCommandType,
)

__all__ = [
    "CLIFormatter",
    "InvalidCommandError",
    "ParsedCommand",
    "SessionCommandLineInterface",
    "SessionCommandParser",
    "SessionCommandType",
]
