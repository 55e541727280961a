"""
Documentation retriever
Retrieval-augmented answers constrained to the indexed service documentation
"""
import logging
from typing import AsyncIterator

from .base import ActionExecutor, StepExecutor, STEP_REPORT_INSTRUCTION
from .retrieval import DocumentRetriever, render_context
from ..core import LLMCaller
from ..models import ClassificationDecision, PlanStep, StepReport, StepResult, UserQuery

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = """You are the services documentation assistant.

Task:
Answer clearly using only the provided context:
- DOCUMENT CONTEXT
- USER QUERY
- QUICKSHOT RESPONSE

Rules:
- Rephrase or refine if the quickshot is sufficient.
- Reason carefully if more info is needed.
- Never invent data.
- If the context does not contain the answer, say so.
- Be concise and technical.
- Always provide a response that matches the RESPONSE FORMAT."""

USER_PROMPT_TEMPLATE = """### DOCUMENT CONTEXT:
{context}

### USER QUERY:
{query}

### QUICKSHOT RESPONSE:
{quickshot_response}

### RESPONSE FORMAT
{response_format}"""

STEP_SYSTEM_INSTRUCTIONS = f"""You are the documentation step executor.

Task:
Produce a concise, factual answer for this step using only:
- DOCUMENT CONTEXT
- STEP DESCRIPTION

Rules:
- No planning, classification, or tool calls.
- Summarize or refine if info is sufficient.
- State clearly if data is missing.
- Do not invent details.

{STEP_REPORT_INSTRUCTION}"""

STEP_PROMPT_TEMPLATE = """### STEP DESCRIPTION:
{step_description}

### USER QUERY:
{query}

### DOCUMENT CONTEXT:
{context}"""


class DocumentationRetriever(ActionExecutor, StepExecutor):
    """RAG executor for documentation, concept and how-to questions."""
    name = "documentation_retriever"

    def __init__(self, caller: LLMCaller, retriever: DocumentRetriever):
        self.caller = caller
        self.retriever = retriever

    async def execute(self, query: UserQuery, decision: ClassificationDecision) -> AsyncIterator[str]:
        docs = await self.retriever.similarity_search(query.text)
        user_prompt = USER_PROMPT_TEMPLATE.format(
            context=render_context(docs),
            query=query.text,
            quickshot_response=decision.rephrased_answer,
            response_format=query.response_format_instruction()
        )
        async for chunk in self.caller.call_streaming(
            SYSTEM_INSTRUCTIONS, user_prompt, query.conversation_id
        ):
            yield chunk

    async def execute_step(self, step: PlanStep, conversation_id: str) -> StepResult:
        search_text = step.query or step.description or ""
        docs = await self.retriever.similarity_search(search_text)
        user_prompt = STEP_PROMPT_TEMPLATE.format(
            step_description=step.description or "",
            query=step.query or "",
            context=render_context(docs)
        )
        report = await self.caller.call_structured(
            STEP_SYSTEM_INSTRUCTIONS, user_prompt, StepReport, conversation_id
        )
        logger.info(f"Documentation step finished (success={report.success})")
        return StepResult.from_report(step, report)
