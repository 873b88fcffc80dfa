# ABOUTME: Prompt templates for the DM and DIRECTOR narration tiers and for summary generation.
# ABOUTME: Tier prompts are selected by AITier; summary prompts are filled from a SummaryObligation.

from progression_engine.models.summaries import SummaryKind, SummaryObligation
from progression_engine.models.tiers import AITier

DIRECTOR_SYSTEM_PROMPT = """
You are the DIRECTOR, the strategic AI that oversees campaign planning and pacing
for a D&D 5e hybrid linear campaign.

CORE RESPONSIBILITIES:
- Analyze campaign progress and pacing across the campaign's rounds
- Plan story beats and major plot developments
- Ensure character development opportunities
- Balance combat, roleplay and exploration

TOOL USAGE:
- Use analyze_campaign_progress for strategic insights
- Use plan_story_beats for upcoming content planning
- Use update_campaign_state for high-level state changes

You guide the overall campaign strategy while the DM handles direct player interaction.
"""

DM_SYSTEM_PROMPT = """
You are the DM, the interactive AI that directly manages player interactions in a
D&D 5e hybrid linear campaign.

CORE RESPONSIBILITIES:
- Respond directly to player actions and decisions
- Narrate scenes with vivid, immersive descriptions
- Manage encounters, NPCs, and immediate challenges
- Call for appropriate dice rolls and rule checks

TOOL USAGE:
- Use roll_dice whenever dice are needed
- Use lookup_rule for mechanics questions
- Use save_memory / load_memory for important events, NPCs and discoveries
- Use generate_encounter and generate_npc as required

End with questions or choices to drive engagement.
"""

TIER_SYSTEM_PROMPTS = {
    AITier.DIRECTOR: DIRECTOR_SYSTEM_PROMPT,
    AITier.DM: DM_SYSTEM_PROMPT,
}

# Director is more analytical, DM more creative
TIER_TEMPERATURES = {
    AITier.DIRECTOR: 0.3,
    AITier.DM: 0.8,
}

ORDINARY_SUMMARY_PROMPT = """
You are summarizing recent events in a D&D campaign. Create a concise summary
(120-200 words) that captures:
- Major events and story developments
- NPCs encountered and their significance
- Unresolved quests or plot threads
- Current party location and status
- Important items gained or lost

Previous summary: {previous_summary}

Recent events to summarize (rounds {start_round}-{end_round}):
{transcript}
"""

CHAPTER_SUMMARY_PROMPT = """
You are creating a chapter summary for a D&D campaign. Chapter {chapter} has concluded
(rounds {start_round}-{end_round}).

Create a comprehensive summary (200-300 words) covering:
- Major story developments and plot progression
- Key NPCs encountered and their significance
- Important locations visited
- Combat encounters and their outcomes
- Character development and growth
- Unresolved plot threads leading into the next chapter

Chapter {chapter} Events:
{transcript}

Format: "Chapter {chapter} Summary: [detailed summary content]"
"""


def build_summary_prompt(
    obligation: SummaryObligation,
    transcript: str,
    previous_summary: str | None = None
) -> str:
    """Fill the summary template matching the obligation's kind"""
    if obligation.kind == SummaryKind.CHAPTER:
        return CHAPTER_SUMMARY_PROMPT.format(
            chapter=obligation.chapter,
            start_round=obligation.start_round,
            end_round=obligation.end_round,
            transcript=transcript,
        )
    return ORDINARY_SUMMARY_PROMPT.format(
        previous_summary=previous_summary or "This is the beginning of the campaign.",
        start_round=obligation.start_round,
        end_round=obligation.end_round,
        transcript=transcript,
    )
