# ABOUTME: Host command-line console for driving one campaign through the progression engine.
# ABOUTME: Command parsing, output formatting, and the interactive loop over an in-memory engine.

import asyncio
import re
import sys
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from progression_engine.agents.narrator import OpenAINarrator
from progression_engine.agents.summarizer import AISummarizer
from progression_engine.config.settings import get_settings
from progression_engine.exceptions import InvalidNotation, ProgressionError
from progression_engine.models.dice_models import CompoundRollResult, RollResult
from progression_engine.models.progression import AdvanceRoundResult, CampaignProgress
from progression_engine.models.summaries import SummaryObligation
from progression_engine.models.tiers import NarrationResult, TierContext, TierSelection
from progression_engine.orchestration.collaborators import InMemoryCreditLedger
from progression_engine.orchestration.progression_engine import ProgressionEngine, build_engine
from progression_engine.orchestration.state_machine import format_round_display
from progression_engine.utils.dice import get_roll_suggestions, parse_dice_expressions
from progression_engine.utils.logging import setup_logging
from progression_engine.workers.llm_retry import retry_transient_ai

# ============================================================================
# Custom Exceptions
# ============================================================================


class InvalidCommandError(Exception):
    """Raised when a command cannot be parsed or executed"""
    pass


# ============================================================================
# Command Types
# ============================================================================


class SessionCommandType(str, Enum):
    """CLI command types"""
    ROLL = "roll"
    ADVANCE = "advance"
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    STATUS = "status"
    CREDITS = "credits"
    NARRATE = "narrate"  # Free text: narrated, or tier preview without an AI key
    QUIT = "quit"


@dataclass
class ParsedCommand:
    """Parsed command with type and arguments"""
    command_type: SessionCommandType
    args: dict
    raw_input: str


# ============================================================================
# Command Parser
# ============================================================================


class SessionCommandParser:
    """
    Parser for host commands from CLI input.

    Supports:
    - Slash commands: "/roll 1d20adv+5", "/advance", "/status"
    - Free text: narration (or a tier preview when no narrator is configured)
    """

    COMMAND_PATTERNS = {
        SessionCommandType.ROLL: r'^/roll(?:\s+(.+))?$',
        SessionCommandType.ADVANCE: r'^/advance$',
        SessionCommandType.START: r'^/start$',
        SessionCommandType.PAUSE: r'^/pause$',
        SessionCommandType.RESUME: r'^/resume$',
        SessionCommandType.STATUS: r'^/status$',
        SessionCommandType.CREDITS: r'^/credits(?:\s+(.+))?$',
        SessionCommandType.QUIT: r'^/(?:quit|exit)$',
    }

    def parse(self, user_input: str) -> ParsedCommand:
        """
        Parse user input into structured command.

        Args:
            user_input: Raw input string from the host

        Returns:
            ParsedCommand with type and arguments

        Raises:
            InvalidCommandError: If command cannot be parsed
        """
        if not user_input or not user_input.strip():
            raise InvalidCommandError("Cannot parse empty command")

        user_input = user_input.strip()

        for cmd_type, pattern in self.COMMAND_PATTERNS.items():
            match = re.match(pattern, user_input, re.IGNORECASE)
            if match:
                return self._parse_matched_command(cmd_type, match, user_input)

        if user_input.startswith("/"):
            raise InvalidCommandError(f"Unknown command: {user_input.split()[0]}")

        return ParsedCommand(
            command_type=SessionCommandType.NARRATE,
            args={"text": user_input},
            raw_input=user_input
        )

    def _parse_matched_command(
        self,
        cmd_type: SessionCommandType,
        match: re.Match,
        raw_input: str
    ) -> ParsedCommand:
        """Parse matched command and extract arguments"""

        if cmd_type == SessionCommandType.ROLL:
            notation = match.group(1)
            if not notation or not notation.strip():
                raise InvalidCommandError("Roll command requires dice notation")

            notation = notation.strip()
            try:
                parse_dice_expressions(notation)
            except InvalidNotation as e:
                raise InvalidCommandError(str(e))

            return ParsedCommand(
                command_type=cmd_type,
                args={"notation": notation},
                raw_input=raw_input
            )

        elif cmd_type == SessionCommandType.CREDITS:
            amount = match.group(1)
            if amount is None:
                return ParsedCommand(command_type=cmd_type, args={}, raw_input=raw_input)
            amount = amount.strip()
            if not amount.isdigit() or int(amount) < 1:
                raise InvalidCommandError(f"Credit amount must be a positive integer, got '{amount}'")
            return ParsedCommand(
                command_type=cmd_type,
                args={"amount": int(amount)},
                raw_input=raw_input
            )

        else:
            return ParsedCommand(
                command_type=cmd_type,
                args={},
                raw_input=raw_input
            )


# ============================================================================
# Output Formatter
# ============================================================================


class CLIFormatter:
    """Formats engine results for display in the CLI"""

    HEADER_BORDER = "═"
    SUCCESS_MARKER = "✓"
    FAILURE_MARKER = "✗"

    def format_header(self, campaign_name: str, progress: CampaignProgress) -> str:
        """Format campaign header at session start"""
        width = 70
        lines = [
            "╔" + self.HEADER_BORDER * (width - 2) + "╗",
            "║" + "Session Progression Engine".center(width - 2) + "║",
            "║" + f"Campaign: {campaign_name}".center(width - 2) + "║",
            "╚" + self.HEADER_BORDER * (width - 2) + "╝",
            "",
            f"{progress.target_rounds} rounds, {progress.rounds_per_chapter} rounds per chapter",
            "Commands: /start /roll <dice> /advance /pause /resume /status /credits [n] /quit",
            "",
        ]
        return "\n".join(lines)

    def format_dice_roll(self, result: RollResult | CompoundRollResult) -> str:
        """Format single or compound dice roll"""
        if isinstance(result, CompoundRollResult):
            lines = [f"\n[Dice Roll] {result.notation}"]
            for part in result.results:
                lines.append(f"  {part.notation}: {self._format_rolls(part)} = {part.total}")
            lines.append(f"  Grand total: {result.grand_total}")
            return "\n".join(lines)

        return "\n".join([
            f"\n[Dice Roll] {result.notation}",
            f"  Rolls: {self._format_rolls(result)}",
            f"  Total: {result.total}",
        ])

    def _format_rolls(self, result: RollResult) -> str:
        rolls = f"[{', '.join(str(r) for r in result.kept_rolls)}]"
        if result.dropped_rolls:
            rolls += f" (dropped {result.dropped_rolls})"
        if result.modifier:
            rolls += f" {'+' if result.modifier > 0 else '-'} {abs(result.modifier)}"
        return rolls

    def format_advance(self, result: AdvanceRoundResult, target_rounds: int, rounds_per_chapter: int) -> str:
        """Format a completed round advance"""
        lines = [f"\n{self.SUCCESS_MARKER} {format_round_display(result.round, target_rounds, rounds_per_chapter)}"]

        if result.credit_type == "free":
            lines.append(f"  Free round used ({result.credits_remaining} free rounds left)")
        elif result.credit_type == "paid":
            lines.append(f"  Credit used ({result.credits_remaining} credits left)")

        if result.crossed_chapter_boundary:
            lines.append(f"  Chapter {result.chapter} begins")
        for obligation in result.summary_obligations:
            lines.append(
                f"  Summary due: {obligation.kind.value} (rounds {obligation.start_round}-{obligation.end_round})"
            )
        if result.chapter_summary:
            lines.append(f"  {result.chapter_summary}")
        if result.is_complete:
            lines.append("  Campaign complete!")
        return "\n".join(lines)

    def format_status(self, campaign_name: str, progress: CampaignProgress, ledger: InMemoryCreditLedger, campaign_id: str) -> str:
        """Format campaign status for /status command"""
        lines = [
            "\n" + "=" * 50,
            "CAMPAIGN STATUS",
            "=" * 50,
            f"Campaign: {campaign_name}",
            f"Status: {progress.status.value}",
            format_round_display(progress.current_round, progress.target_rounds, progress.rounds_per_chapter),
            f"Free rounds left: {ledger.free_rounds_remaining(campaign_id)}",
            f"Credits: {ledger.balance(campaign_id)}",
            "=" * 50,
        ]
        return "\n".join(lines)

    def format_tier_preview(self, selection: TierSelection) -> str:
        """Format which tier would answer free text"""
        reason = selection.reason.value
        if selection.matched_keyword:
            reason += f" '{selection.matched_keyword}'"
        return (
            f"\n[Tier] {selection.tier.value} ({reason})\n"
            f"  Tools: {', '.join(sorted(selection.tools))}"
        )

    def format_narration(self, result: NarrationResult) -> str:
        """Format generated narration with its tier"""
        return f"\n[{result.tier.value}] {result.text}"

    def format_error(
        self,
        error_type: str,
        message: str,
        suggestion: str | None = None
    ) -> str:
        """Format error message with optional suggestion"""
        lines = [
            f"\n{self.FAILURE_MARKER} ERROR: {error_type}",
            f"  {message}"
        ]

        if suggestion:
            lines.append(f"\n  Suggestion: {suggestion}")

        return "\n".join(lines)


# ============================================================================
# CLI
# ============================================================================


class SessionCommandLineInterface:
    """
    Interactive host console for a single campaign.

    Handles:
    - Command parsing and dispatch to ProgressionEngine
    - Output formatting
    - Error display (engine errors never end the session)
    """

    def __init__(
        self,
        engine: ProgressionEngine,
        credit_ledger: InMemoryCreditLedger,
        campaign_id: str = "local",
        campaign_name: str = "Untitled Campaign",
        actor_id: str = "host"
    ):
        """
        Initialize CLI interface.

        Args:
            engine: Engine to drive
            credit_ledger: The engine's ledger, used for /credits and /status
            campaign_id: Campaign to drive
            campaign_name: Display name
            actor_id: Rate limiting identity of the host
        """
        self.parser = SessionCommandParser()
        self.formatter = CLIFormatter()
        self.engine = engine
        self.credit_ledger = credit_ledger
        self.campaign_id = campaign_id
        self.campaign_name = campaign_name
        self.actor_id = actor_id
        self.transcript: list[tuple[int, str]] = []
        self._should_exit = False
        self._narrate = retry_transient_ai(attempts=3, max_wait=10)(self._narrate_once)

    async def handle_command(self, parsed: ParsedCommand) -> str:
        """
        Execute parsed command and return formatted output.

        Engine errors are formatted, not raised.
        """
        try:
            return await self._dispatch(parsed)
        except ProgressionError as e:
            logger.warning(f"Command {parsed.command_type.value} failed: {e}")
            return self.formatter.format_error(type(e).__name__, str(e))

    async def _dispatch(self, parsed: ParsedCommand) -> str:
        cmd = parsed.command_type

        if cmd == SessionCommandType.ROLL:
            return self.formatter.format_dice_roll(self.engine.roll_dice(parsed.args["notation"]))

        elif cmd == SessionCommandType.ADVANCE:
            progress = await self.engine.get_progress(self.campaign_id)
            result = await self.engine.advance_round(self.campaign_id, actor_id=self.actor_id)
            return self.formatter.format_advance(result, progress.target_rounds, progress.rounds_per_chapter)

        elif cmd in (SessionCommandType.START, SessionCommandType.PAUSE, SessionCommandType.RESUME):
            transition = getattr(self.engine, cmd.value)
            progress = await transition(self.campaign_id)
            return f"\n{self.formatter.SUCCESS_MARKER} Campaign {progress.status.value}"

        elif cmd == SessionCommandType.STATUS:
            progress = await self.engine.get_progress(self.campaign_id)
            return self.formatter.format_status(self.campaign_name, progress, self.credit_ledger, self.campaign_id)

        elif cmd == SessionCommandType.CREDITS:
            amount = parsed.args.get("amount")
            if amount is not None:
                self.credit_ledger.add_credits(self.campaign_id, amount)
            return f"\nCredits: {self.credit_ledger.balance(self.campaign_id)}"

        elif cmd == SessionCommandType.NARRATE:
            text = parsed.args["text"]
            progress = await self.engine.get_progress(self.campaign_id)
            context = TierContext(
                campaign_id=self.campaign_id,
                current_round=progress.current_round,
                current_chapter=progress.current_chapter,
                campaign_name=self.campaign_name,
            )

            if self.engine.narrator is None:
                return self.formatter.format_tier_preview(self.engine.select_tier(text, context))

            await self._log_message(progress.current_round, f"Host: {text}")
            result = await self._narrate(text, context)
            await self._log_message(progress.current_round, f"{result.tier.value}: {result.text}")
            return self.formatter.format_narration(result)

        elif cmd == SessionCommandType.QUIT:
            self._should_exit = True
            return "\nGoodbye."

        raise InvalidCommandError(f"Unknown command type: {cmd}")

    async def _narrate_once(self, text: str, context: TierContext) -> NarrationResult:
        return await self.engine.narrate(text, context, actor_id=self.actor_id)

    async def _log_message(self, round_number: int, line: str) -> None:
        """Append to the transcript and count it toward the next summary"""
        self.transcript.append((round_number, line))
        await self.engine.record_message(self.campaign_id, f"msg-{len(self.transcript)}")

    async def load_transcript(self, obligation: SummaryObligation) -> str:
        """Transcript lines within an obligation's round range"""
        return "\n".join(
            line for round_number, line in self.transcript
            if obligation.start_round <= round_number <= obligation.end_round
        )

    def _get_command_suggestion(self, user_input: str) -> str | None:
        """Suggest a fix for a rejected command"""
        if user_input.lower().startswith("/roll"):
            return f"Try one of: {', '.join(get_roll_suggestions())}"
        if user_input.startswith("/"):
            return "Available: /start /roll /advance /pause /resume /status /credits /quit"
        return None

    async def _run(self) -> None:
        progress = await self.engine.get_progress(self.campaign_id)
        print(self.formatter.format_header(self.campaign_name, progress))

        while not self._should_exit:
            try:
                user_input = (await asyncio.to_thread(input, "host > ")).strip()
            except EOFError:
                break

            if not user_input:
                continue

            try:
                parsed = self.parser.parse(user_input)
            except InvalidCommandError as e:
                print(self.formatter.format_error(
                    error_type="InvalidCommandError",
                    message=str(e),
                    suggestion=self._get_command_suggestion(user_input)
                ))
                continue

            print(await self.handle_command(parsed))

    def run(self) -> None:
        """
        Main CLI loop.

        Reads host input, executes commands, and prints output until /quit
        or end of input.
        """
        try:
            asyncio.run(self._run())
        except KeyboardInterrupt:
            print("\nInterrupted.")


# ============================================================================
# Entry Point
# ============================================================================


async def create_local_session(
    campaign_id: str = "local",
    campaign_name: str = "Untitled Campaign"
) -> SessionCommandLineInterface:
    """
    Build an in-memory engine with a fresh campaign and wrap it in a CLI.

    With an OpenAI key configured, free text is narrated and summaries are
    generated from the session transcript.
    """
    settings = get_settings().model_copy(update={"rate_limit_backend": "memory"})
    ledger = InMemoryCreditLedger()
    engine = build_engine(settings, credit_ledger=ledger)
    await engine.create_campaign(campaign_id)

    cli = SessionCommandLineInterface(engine, ledger, campaign_id, campaign_name)

    if settings.openai_api_key:
        narrator = OpenAINarrator.from_settings(settings)
        engine.narrator = narrator
        engine.summarizer = AISummarizer(
            narrator.client,
            load_transcript=cli.load_transcript,
            model=settings.openai_model,
        )
    else:
        logger.info("No OpenAI key configured; free text shows the tier preview only")

    return cli


def main() -> None:
    """Entry point for running the CLI standalone"""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, file_output=False)

    async def _session() -> None:
        cli = await create_local_session(campaign_name="Local Campaign")
        await cli._run()

    try:
        asyncio.run(_session())
    except KeyboardInterrupt:
        print("\nInterrupted.")
    except Exception as e:
        print(f"\nFatal error: {e}")
        logger.exception("Fatal error in CLI")
        sys.exit(1)


if __name__ == "__main__":
    main()
