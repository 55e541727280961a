"""
Executor interfaces shared by tools and the plan pipeline
"""
from typing import AsyncIterator

from ..models import ClassificationDecision, PlanStep, StepResult, UserQuery


class ActionExecutor:
    """
    Anything the router can hand a classified query to.

    ``execute`` returns a lazy stream of answer chunks.
    """
    name: str = "action"

    def execute(self, query: UserQuery, decision: ClassificationDecision) -> AsyncIterator[str]:
        raise NotImplementedError


class StepExecutor:
    """Runs a single plan step and reports its outcome."""
    name: str = "step"

    async def execute_step(self, step: PlanStep, conversation_id: str) -> StepResult:
        raise NotImplementedError


STEP_REPORT_INSTRUCTION = """Respond ONLY with JSON:
{"output": "<step result>", "success": true, "errorMessage": null}
Set success to false and explain in errorMessage when the step cannot be completed."""
