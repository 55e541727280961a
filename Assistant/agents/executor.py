"""
Plan step executor
Runs every plan step concurrently and folds the results into a PlanOutcome
"""
import asyncio
import logging
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from ..core import RoutingConfigurationError, StepExecutionFailure
from ..config import config
from ..models import PlanOutcome, PlannerResult, PlanStep, StepResult, ToolIdentity
from ..tools.base import StepExecutor

logger = logging.getLogger(__name__)


class PlanStepExecutor:
    """
    Concurrent fan-out over plan steps.

    Every step category is resolved before any step starts. Steps run under a
    semaphore cap; a failing step becomes a failed StepResult and never
    cancels its siblings. There are no plan-level retries.
    """

    def __init__(
        self,
        step_executors: Mapping[ToolIdentity, StepExecutor],
        max_concurrency: Optional[int] = None,
    ):
        self._executors = MappingProxyType(dict(step_executors))
        self.max_concurrency = max_concurrency or config.PLAN_MAX_CONCURRENCY

    def resolve(self, steps: List[PlanStep]) -> List[Tuple[PlanStep, StepExecutor]]:
        """Pair each step with its executor, failing fast on unknown categories."""
        resolved = []
        for index, step in enumerate(steps):
            executor = self._executors.get(step.tool_category)
            if executor is None:
                raise RoutingConfigurationError(
                    f"Step {index} uses unregistered category {step.tool_category.value}"
                )
            resolved.append((step, executor))
        return resolved

    async def _run_step(
        self,
        step: PlanStep,
        executor: StepExecutor,
        conversation_id: str,
        semaphore: asyncio.Semaphore,
    ) -> StepResult:
        async with semaphore:
            try:
                result = await executor.execute_step(step, conversation_id)
            except Exception as e:
                failure = StepExecutionFailure(f"{executor.name}: {str(e) or type(e).__name__}")
                logger.error(f"Step '{step.description}' failed: {failure}")
                return StepResult.failed(step, str(failure))

        if not result.success:
            logger.warning(f"Step '{step.description}' reported failure: {result.error_message}")
        return result

    async def execute_plan(self, planner_result: PlannerResult, conversation_id: str) -> PlanOutcome:
        resolved = self.resolve(planner_result.steps)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        results = await asyncio.gather(*(
            self._run_step(step, executor, conversation_id, semaphore)
            for step, executor in resolved
        ))

        outcome = PlanOutcome.from_results(list(results))
        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Plan executed: {succeeded}/{len(results)} steps succeeded")
        return outcome
