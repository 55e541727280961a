"""
Plan pipeline workflow
Planner, concurrent step fan-out/gather and streamed synthesis
"""
import logging
from typing import AsyncIterator, Mapping, Optional

from ..agents.executor import PlanStepExecutor
from ..agents.planner import Planner
from ..agents.synthesizer import ResponseSynthesizer
from ..core import LLMCaller
from ..models import ClassificationDecision, ToolIdentity, UserQuery
from ..tools.base import ActionExecutor, StepExecutor

logger = logging.getLogger(__name__)


class PlanPipeline(ActionExecutor):
    """
    Executor the router hands PLANNER decisions to.

    Pattern:
    1. Plan the query into independent steps
    2. Execute the steps concurrently (fan-out)
    3. Aggregate the step results (fan-in)
    4. Stream the synthesized answer

    Planner and routing failures propagate; step failures end up in the
    PlanOutcome; synthesis failures become the apology.
    """
    name = "plan_pipeline"

    def __init__(self, planner: Planner, step_executor: PlanStepExecutor, synthesizer: ResponseSynthesizer):
        self.planner = planner
        self.step_executor = step_executor
        self.synthesizer = synthesizer

    async def execute(self, query: UserQuery, decision: ClassificationDecision) -> AsyncIterator[str]:
        planner_result = await self.planner.plan(query, decision)
        outcome = await self.step_executor.execute_plan(planner_result, query.conversation_id)

        stream = self.synthesizer.synthesize(query, outcome)
        try:
            async for chunk in stream:
                yield chunk
        finally:
            await stream.aclose()


def create_plan_pipeline(
    caller: LLMCaller,
    step_executors: Mapping[ToolIdentity, StepExecutor],
    tools_metadata: Optional[str] = None,
    max_concurrency: Optional[int] = None,
) -> PlanPipeline:
    """
    Create the plan pipeline.

    Args:
        caller: Model caller for planning and synthesis
        step_executors: Executor per step category
        tools_metadata: Model-facing tool descriptions for the planner
        max_concurrency: Cap on concurrently running steps

    Returns:
        PlanPipeline ready to be registered with the router
    """
    return PlanPipeline(
        planner=Planner(caller, tools_metadata),
        step_executor=PlanStepExecutor(step_executors, max_concurrency),
        synthesizer=ResponseSynthesizer(caller)
    )
