"""
Pipeline data model
Pydantic models for queries, drafts, classification decisions and plans
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ToolIdentity(str, Enum):
    """Capability tags used for model-facing tool metadata and routing."""
    RAG_SERVICE = "RAG_SERVICE"
    DATA_CLIENT = "DATA_CLIENT"
    LLM_REASONER = "LLM_REASONER"

    @property
    def description(self) -> str:
        return _TOOL_DESCRIPTIONS[self]


_TOOL_DESCRIPTIONS = {
    ToolIdentity.RAG_SERVICE: "Retrieves and summarizes service documentation for reasoning or answering.",
    ToolIdentity.DATA_CLIENT: "Fetches data (entities, aggregations, raw records) from the backend services.",
    ToolIdentity.LLM_REASONER: "Calls the LLM with the query plus extra context or data and reasons over it.",
}


def describe_tools(endpoint_catalog: str = "") -> str:
    """
    Render every tool identity as ``NAME: description`` lines.

    The data client line lists the available service endpoints when a
    catalogue is given.
    """
    lines = []
    for tool in ToolIdentity:
        line = f"{tool.value}: {tool.description}"
        if tool is ToolIdentity.DATA_CLIENT and endpoint_catalog:
            line = f"{line} Available endpoints:\n{endpoint_catalog}"
        lines.append(line)
    return "\n".join(lines)


class ActionMode(str, Enum):
    DIRECT_TOOL = "DIRECT_TOOL"
    PLANNER = "PLANNER"


class OutputFormat(str, Enum):
    """Output contract the caller expects from the final answer."""
    FREE_FORM = "FREE_FORM"
    JSON = "JSON"
    SCHEMA = "SCHEMA"


class _WireModel(BaseModel):
    """Models exchanged with the LLM use camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class UserQuery(BaseModel):
    """Immutable pipeline input."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(min_length=1)
    conversation_id: str = "default"
    output_format: OutputFormat = OutputFormat.FREE_FORM
    response_schema: Optional[str] = Field(default=None, alias="schema_json")

    @model_validator(mode="after")
    def _schema_required(self) -> "UserQuery":
        if self.output_format is OutputFormat.SCHEMA and not self.response_schema:
            raise ValueError("schema_json is required when output_format is SCHEMA")
        return self

    def response_format_instruction(self) -> str:
        if self.output_format is OutputFormat.JSON:
            return "Response should be a JSON"
        if self.output_format is OutputFormat.SCHEMA:
            return f"Response should match the next JSON Schema: {self.response_schema}"
        return (
            "Friendly, well-structured, using markdown sections (Overview, Steps, Example, Tip), "
            "clear formatting, and concise explanations."
        )


class QuickShotDraft(_WireModel):
    """Fast retrieval-augmented draft with self-reported escalation hints."""
    response_text: str
    confidence_score: float = Field(ge=0.0, le=1.0)
    requires_data_fetching: bool = False
    requires_planning: bool = False


class ClassificationDecision(_WireModel):
    """
    Preflight classifier verdict.

    Invariants, checked on construction:
    - sufficient => no action mode and no selected tools
    - not sufficient => an action mode is set
    - DIRECT_TOOL => at least one selected tool, never LLM_REASONER
    """
    sufficient: bool
    action_mode: Optional[ActionMode] = None
    selected_tools: List[ToolIdentity] = Field(default_factory=list)
    rephrased_answer: str

    @model_validator(mode="before")
    @classmethod
    def _clear_actions_when_sufficient(cls, data: Any) -> Any:
        # Models tend to echo action fields even when the draft suffices
        if isinstance(data, dict) and data.get("sufficient") is True:
            data = dict(data)
            for key in ("actionMode", "action_mode", "selectedTools", "selected_tools"):
                data.pop(key, None)
        return data

    @model_validator(mode="after")
    def _check_invariants(self) -> "ClassificationDecision":
        if not self.sufficient and self.action_mode is None:
            raise ValueError("actionMode is required when the draft is not sufficient")
        if self.action_mode is ActionMode.DIRECT_TOOL and not self.selected_tools:
            raise ValueError("DIRECT_TOOL requires at least one selected tool")
        if self.action_mode is ActionMode.DIRECT_TOOL and ToolIdentity.LLM_REASONER in self.selected_tools:
            raise ValueError("LLM_REASONER is a plan step category, not a direct tool")
        if self.sufficient and (self.action_mode is not None or self.selected_tools):
            raise ValueError("a sufficient decision carries no action mode or tools")
        return self


class PlanStep(_WireModel):
    """One unit of work in an execution plan."""
    tool_category: ToolIdentity
    endpoints: List[str] = Field(default_factory=list)
    input: Dict[str, Any] = Field(default_factory=dict)
    query: Optional[str] = None
    description: Optional[str] = None


class PlannerResult(_WireModel):
    steps: List[PlanStep]
    explanation: str = ""


class StepReport(_WireModel):
    """Structured answer a step executor asks the model for."""
    output: str = ""
    success: bool = True
    error_message: Optional[str] = None


class StepResult(BaseModel):
    """Outcome of a single plan step. ``step`` is a back-reference."""
    model_config = ConfigDict(frozen=True)

    step: PlanStep
    output: str = ""
    success: bool
    error_message: Optional[str] = None

    @classmethod
    def from_report(cls, step: PlanStep, report: StepReport) -> "StepResult":
        return cls(
            step=step,
            output=report.output,
            success=report.success,
            error_message=report.error_message,
        )

    @classmethod
    def failed(cls, step: PlanStep, error_message: str) -> "StepResult":
        return cls(step=step, output="", success=False, error_message=error_message)


class PlanOutcome(BaseModel):
    """Aggregate of all step results, built once after every step resolved."""
    model_config = ConfigDict(frozen=True)

    step_results: List[StepResult]
    overall_success: bool
    aggregated_output: str
    error_message: Optional[str] = None

    @classmethod
    def from_results(cls, step_results: List[StepResult]) -> "PlanOutcome":
        overall_success = all(result.success for result in step_results)
        blocks: List[str] = []
        for result in step_results:
            description = result.step.description or "No description"
            if overall_success:
                blocks.append(f"- Step: {description}\n  Output: {result.output}\n")
            else:
                output = result.output or "<No output / failed>"
                blocks.append(
                    f"- Step: {description}\n  Output: {output}\n  Success: {str(result.success).lower()}\n"
                )
        return cls(
            step_results=list(step_results),
            overall_success=overall_success,
            aggregated_output="".join(blocks),
            error_message=None if overall_success else "One or more steps failed",
        )


class ChatTurn(BaseModel):
    """One message of a conversation as kept by the memory collaborator."""
    role: str
    content: str
