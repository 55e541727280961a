"""
Free reasoning step executor
"""
import logging

from ..core import LLMCaller
from ..models import PlanStep, StepReport, StepResult
from ..tools.base import StepExecutor, STEP_REPORT_INSTRUCTION

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = f"""You are the Reasoner.

Task:
Answer clearly using only the step description and query.

Rules:
- Use only given context.
- Be concise and factual.
- If data is missing, say what is unclear.

{STEP_REPORT_INSTRUCTION}"""

USER_PROMPT_TEMPLATE = """### STEP DESCRIPTION:
{step_description}

### USER QUERY:
{query}"""


class LLMReasoner(StepExecutor):
    name = "llm_reasoner"

    def __init__(self, caller: LLMCaller):
        self.caller = caller

    async def execute_step(self, step: PlanStep, conversation_id: str) -> StepResult:
        user_prompt = USER_PROMPT_TEMPLATE.format(
            step_description=step.description or "",
            query=step.query or ""
        )
        report = await self.caller.call_structured(
            SYSTEM_INSTRUCTIONS, user_prompt, StepReport, conversation_id
        )
        return StepResult.from_report(step, report)
