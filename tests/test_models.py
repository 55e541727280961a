import itertools

import pytest
from pydantic import ValidationError

from Assistant.models import (
    ActionMode,
    ClassificationDecision,
    OutputFormat,
    PlanOutcome,
    PlanStep,
    QuickShotDraft,
    StepResult,
    ToolIdentity,
    UserQuery,
    describe_tools,
)


def test_sufficient_decision_drops_echoed_action_fields():
    decision = ClassificationDecision.model_validate({
        "sufficient": True,
        "actionMode": "DIRECT_TOOL",
        "selectedTools": ["DATA_CLIENT"],
        "rephrasedAnswer": "Refunds take 14 days."
    })

    assert decision.sufficient is True
    assert decision.action_mode is None
    assert decision.selected_tools == []


def test_insufficient_decision_requires_action_mode():
    with pytest.raises(ValidationError):
        ClassificationDecision.model_validate({"sufficient": False, "rephrasedAnswer": "x"})


def test_direct_tool_requires_a_tool():
    with pytest.raises(ValidationError):
        ClassificationDecision.model_validate({
            "sufficient": False,
            "actionMode": "DIRECT_TOOL",
            "selectedTools": [],
            "rephrasedAnswer": "x"
        })


def test_sufficient_decision_clears_tools_given_by_field_name():
    decision = ClassificationDecision(
        sufficient=True,
        action_mode=ActionMode.PLANNER,
        selected_tools=[ToolIdentity.DATA_CLIENT],
        rephrased_answer="x"
    )
    assert decision.action_mode is None
    assert decision.selected_tools == []


def test_planner_decision_without_tools_is_valid():
    decision = ClassificationDecision.model_validate({
        "sufficient": False,
        "actionMode": "PLANNER",
        "rephrasedAnswer": "Compare invoices with the pricing docs."
    })
    assert decision.action_mode is ActionMode.PLANNER
    assert decision.selected_tools == []


def test_unknown_tool_is_rejected():
    with pytest.raises(ValidationError):
        ClassificationDecision.model_validate({
            "sufficient": False,
            "actionMode": "DIRECT_TOOL",
            "selectedTools": ["WEB_SEARCH"],
            "rephrasedAnswer": "x"
        })


def test_reasoner_is_not_a_direct_tool():
    with pytest.raises(ValidationError):
        ClassificationDecision.model_validate({
            "sufficient": False,
            "actionMode": "DIRECT_TOOL",
            "selectedTools": ["LLM_REASONER"],
            "rephrasedAnswer": "x"
        })


def test_confidence_score_is_bounded():
    with pytest.raises(ValidationError):
        QuickShotDraft.model_validate({"responseText": "x", "confidenceScore": 1.5})


@pytest.mark.parametrize("successes", list(itertools.product([True, False], repeat=3)))
def test_overall_success_is_and_of_steps(successes):
    step = PlanStep(tool_category=ToolIdentity.LLM_REASONER, description="s")
    results = [
        StepResult(step=step, output="ok", success=ok, error_message=None if ok else "boom")
        for ok in successes
    ]

    outcome = PlanOutcome.from_results(results)

    assert outcome.overall_success == all(successes)
    assert len(outcome.step_results) == 3


def test_aggregated_output_on_success():
    steps = [
        PlanStep(tool_category=ToolIdentity.RAG_SERVICE, description="Read docs"),
        PlanStep(tool_category=ToolIdentity.LLM_REASONER),
    ]
    outcome = PlanOutcome.from_results([
        StepResult(step=steps[0], output="Docs say A", success=True),
        StepResult(step=steps[1], output="Reasoned B", success=True),
    ])

    assert outcome.aggregated_output == (
        "- Step: Read docs\n  Output: Docs say A\n"
        "- Step: No description\n  Output: Reasoned B\n"
    )
    assert outcome.error_message is None


def test_aggregated_output_on_failure():
    step = PlanStep(tool_category=ToolIdentity.DATA_CLIENT, description="Fetch balance")
    outcome = PlanOutcome.from_results([
        StepResult.failed(step, "timeout"),
    ])

    assert outcome.aggregated_output == (
        "- Step: Fetch balance\n  Output: <No output / failed>\n  Success: false\n"
    )
    assert outcome.error_message == "One or more steps failed"


def test_plan_step_reads_camel_case():
    step = PlanStep.model_validate({
        "toolCategory": "DATA_CLIENT",
        "endpoints": ["get_invoice"],
        "input": {"customerId": 7},
        "description": "Fetch invoice"
    })
    assert step.tool_category is ToolIdentity.DATA_CLIENT
    assert step.input == {"customerId": 7}


def test_schema_format_requires_schema():
    with pytest.raises(ValidationError):
        UserQuery(text="x", output_format=OutputFormat.SCHEMA)


def test_response_format_instructions():
    assert UserQuery(text="x", output_format=OutputFormat.JSON).response_format_instruction() == \
        "Response should be a JSON"

    schema = '{"type": "object"}'
    query = UserQuery(text="x", output_format=OutputFormat.SCHEMA, schema_json=schema)
    assert query.response_format_instruction() == f"Response should match the next JSON Schema: {schema}"

    assert "markdown" in UserQuery(text="x").response_format_instruction()


def test_response_schema_accepts_field_name():
    query = UserQuery(text="x", output_format=OutputFormat.SCHEMA, response_schema="{}")
    assert query.response_schema == "{}"


def test_empty_query_is_rejected():
    with pytest.raises(ValidationError):
        UserQuery(text="")


def test_describe_tools_lists_every_tool_and_endpoints():
    text = describe_tools("- get_invoice: Fetch an invoice. inputSchema: {}")
    lines = text.splitlines()

    assert lines[0].startswith("RAG_SERVICE: ")
    assert lines[1].startswith("DATA_CLIENT: ")
    assert lines[1].endswith("Available endpoints:")
    assert lines[2] == "- get_invoice: Fetch an invoice. inputSchema: {}"
    assert lines[3].startswith("LLM_REASONER: ")
