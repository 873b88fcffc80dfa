# ABOUTME: Closed tagged union of AI tool-call results, discriminated on the 'kind' field.
# ABOUTME: Raw tool payloads are validated once here instead of being checked field by field downstream.

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter


Ability = Literal["STR", "DEX", "CON", "INT", "WIS", "CHA"]


class _ToolResultBase(BaseModel):
    """Fields every tool result carries"""
    success: bool = True
    error: str | None = None


class DiceRollToolResult(_ToolResultBase):
    """roll_dice tool: a resolved roll, optionally checked against a DC"""
    kind: Literal["dice_roll"] = "dice_roll"
    expression: str
    total: int | None = None
    rolls: list[int] = Field(default_factory=list)
    dropped_rolls: list[int] = Field(default_factory=list)
    reason: str | None = None
    dc: int | None = Field(default=None, ge=1, le=30)
    ability: Ability | None = None
    passed: bool | None = Field(
        default=None,
        description="total >= dc, when a DC was given"
    )


class DiceToolArguments(BaseModel):
    """Arguments the AI passes to the roll_dice tool"""
    expression: str
    reason: str | None = None
    dc: int | None = Field(default=None, ge=1, le=30)
    ability: Ability | None = None


class RuleLookupResult(_ToolResultBase):
    """lookup_rule tool: SRD rules matching a query"""
    kind: Literal["rule_lookup"] = "rule_lookup"
    query: str
    category: str | None = None
    matches: list[dict[str, Any]] = Field(default_factory=list)


class StateUpdateResult(_ToolResultBase):
    """update_campaign_state tool: fields written to the campaign"""
    kind: Literal["state_update"] = "state_update"
    updates: dict[str, Any] = Field(default_factory=dict)


class MemorySaveResult(_ToolResultBase):
    """save_memory tool: an NPC, location, event or item remembered"""
    kind: Literal["memory_save"] = "memory_save"
    memory_type: str
    name: str
    importance: int | None = Field(default=None, ge=1, le=5)


class EncounterGeneratedResult(_ToolResultBase):
    """generate_encounter tool"""
    kind: Literal["encounter_generated"] = "encounter_generated"
    encounter_type: str
    difficulty: str
    party_level: int = Field(ge=1, le=20)
    details: dict[str, Any] = Field(default_factory=dict)


class NpcGeneratedResult(_ToolResultBase):
    """generate_npc tool"""
    kind: Literal["npc_generated"] = "npc_generated"
    name: str
    role: str
    importance: str = "minor"
    details: dict[str, Any] = Field(default_factory=dict)


ToolResult = Annotated[
    DiceRollToolResult
    | RuleLookupResult
    | StateUpdateResult
    | MemorySaveResult
    | EncounterGeneratedResult
    | NpcGeneratedResult,
    Field(discriminator="kind"),
]

_TOOL_RESULT_ADAPTER: TypeAdapter = TypeAdapter(ToolResult)


def parse_tool_result(payload: dict[str, Any]) -> ToolResult:
    """
    Validate a raw tool payload into its result variant.

    Raises:
        pydantic.ValidationError: If kind is unknown or fields don't fit the variant
    """
    return _TOOL_RESULT_ADAPTER.validate_python(payload)
