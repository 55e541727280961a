"""
Planner
Converts a query and its classification into an ordered multi-step plan
"""
import logging

from ..core import LLMCaller
from ..models import ClassificationDecision, PlannerResult, UserQuery, describe_tools

logger = logging.getLogger(__name__)

PLANNER_SCHEMA = """{
  "title": "PlannerResponse",
  "type": "object",
  "properties": {
    "steps": {
      "type": "array",
      "description": "Ordered execution steps required to fulfill the user query",
      "items": {
        "type": "object",
        "properties": {
          "toolCategory": {"type": "string", "enum": ["DATA_CLIENT", "RAG_SERVICE", "LLM_REASONER"], "description": "Tool type used in this step"},
          "endpoints": {"type": "array", "items": {"type": "string"}, "description": "Endpoint names if toolCategory = DATA_CLIENT"},
          "input": {"type": "object", "description": "Parameters or payload required for this step"},
          "query": {"type": "string", "description": "Prompt for RAG or LLM reasoning steps"},
          "description": {"type": "string", "description": "Purpose or reasoning behind this step"}
        },
        "required": ["toolCategory", "input"]
      }
    },
    "explanation": {"type": "string", "description": "Overall reasoning and logic behind the generated plan"}
  },
  "required": ["steps", "explanation"]
}"""

SYSTEM_TEMPLATE = """You are the Planner, a reasoning module that converts a user query, a contextual response,
and the available tools into a structured multi-step execution plan.

Output:
- A valid JSON matching the PlannerResponse schema.

Rules:
- Each step must be actionable, ordered, and self-contained.
- Steps run independently and concurrently; a step cannot use the output of another step.
- toolCategory options:
  - DATA_CLIENT: structured data service calls.
  - RAG_SERVICE: knowledge/document reasoning.
  - LLM_REASONER: freeform synthesis.
- If DATA_CLIENT, include 'endpoints'.
- If RAG_SERVICE or LLM_REASONER, include 'query'.
- Always include 'input' and 'description'; add a final 'explanation' for the plan logic.

Context:
### TOOLS METADATA
{tools_metadata}

### USER QUERY
{user_query}

### QUICKSHOT RESPONSE
{quickshot_response}

### SCHEMA JSON
{schema_json}"""


class Planner:
    """Single structured call producing a PlannerResult."""

    def __init__(self, caller: LLMCaller, tools_metadata: str = None):
        self.caller = caller
        self.tools_metadata = tools_metadata or describe_tools()

    def build_system_prompt(self, query: UserQuery, decision: ClassificationDecision) -> str:
        return SYSTEM_TEMPLATE.format(
            tools_metadata=self.tools_metadata,
            user_query=query.text,
            quickshot_response=decision.rephrased_answer,
            schema_json=PLANNER_SCHEMA
        )

    async def plan(self, query: UserQuery, decision: ClassificationDecision) -> PlannerResult:
        result = await self.caller.call_structured(
            self.build_system_prompt(query, decision),
            query.text,
            PlannerResult,
            query.conversation_id
        )
        categories = [step.tool_category.value for step in result.steps]
        logger.info(f"Planned {len(result.steps)} steps {categories}: {result.explanation}")
        return result
