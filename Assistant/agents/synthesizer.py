"""
Response synthesizer
Streams the final answer from aggregated plan outputs
"""
import logging
from typing import AsyncIterator

from ..core import LLMCaller, SynthesisFailure
from ..models import OutputFormat, PlanOutcome, UserQuery

logger = logging.getLogger(__name__)

APOLOGY = "Something went wrong, try again..."

INCOMPLETE_NOTICE = "Note: some steps of the plan failed, so this answer may be incomplete.\n\n"

SYSTEM_INSTRUCTIONS = """You are the Synthesizer.

Goal:
Produce a single, coherent, and factual answer to the user's query
based on the provided plan execution data.

Rules:
- Use only the given information; do not speculate or add facts.
- If any step failed, mention that results may be incomplete.
- The response should perfectly match the RESPONSE FORMAT."""

USER_PROMPT_TEMPLATE = """### User Query
{query}

### Aggregated Step Outputs
{aggregated_output}

### Execution Status
Overall Success: {overall_success}

### RESPONSE FORMAT
{response_format}"""


class ResponseSynthesizer:
    """
    One streaming model call over the plan outcome.

    Any failure while producing the stream is replaced by APOLOGY.
    """

    def __init__(self, caller: LLMCaller):
        self.caller = caller

    def build_user_prompt(self, query: UserQuery, outcome: PlanOutcome) -> str:
        return USER_PROMPT_TEMPLATE.format(
            query=query.text,
            aggregated_output=outcome.aggregated_output or "<No output available>",
            overall_success=str(outcome.overall_success).lower(),
            response_format=query.response_format_instruction()
        )

    async def _answer_chunks(self, query: UserQuery, outcome: PlanOutcome) -> AsyncIterator[str]:
        stream = self.caller.call_streaming(
            SYSTEM_INSTRUCTIONS, self.build_user_prompt(query, outcome), query.conversation_id
        )
        try:
            async for chunk in stream:
                yield chunk
        except Exception as e:
            raise SynthesisFailure(str(e)) from e
        finally:
            await stream.aclose()

    async def synthesize(self, query: UserQuery, outcome: PlanOutcome) -> AsyncIterator[str]:
        # Structured formats must stay parseable, so only free-form gets the notice
        if not outcome.overall_success and query.output_format is OutputFormat.FREE_FORM:
            yield INCOMPLETE_NOTICE

        chunks = self._answer_chunks(query, outcome)
        try:
            async for chunk in chunks:
                yield chunk
        except SynthesisFailure as e:
            logger.error(f"Synthesis failed: {e}")
            yield APOLOGY
        finally:
            await chunks.aclose()
