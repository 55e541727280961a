"""
Preflight classifier
Decides whether the quick-shot draft suffices and, if not, how to act
"""
import logging

from ..core import LLMCaller
from ..models import ClassificationDecision, QuickShotDraft, UserQuery, describe_tools

logger = logging.getLogger(__name__)

CLASSIFIER_SCHEMA = """{
  "title": "ClassifierResponse",
  "type": "object",
  "properties": {
    "sufficient": {"type": "boolean", "description": "True if the QuickShotResponse fully answers the query."},
    "actionMode": {"type": "string", "enum": ["PLANNER", "DIRECT_TOOL"], "description": "The next step to take if the QuickShotResponse is insufficient."},
    "selectedTools": {"type": "array", "description": "Recommended tools. One tool for DIRECT_TOOL, several for PLANNER.", "items": {"type": "string", "enum": ["DATA_CLIENT", "RAG_SERVICE"]}},
    "rephrasedAnswer": {"type": "string"}
  },
  "required": ["sufficient", "rephrasedAnswer"],
  "additionalProperties": false
}"""

SYSTEM_TEMPLATE = """You are the Preflight Classifier.

Inputs:
1. User query.
2. QuickShotResponse (responseText, confidenceScore, requiresDataFetching, requiresPlanning).
3. Available tools:
{tools_metadata}

Tasks:
- Only set `sufficient` to true when the query does NOT require data retrieval and the QuickShotResponse fully answers it.

- If `sufficient` is false, choose `actionMode` based on the following rules:
  1. **DIRECT_TOOL**: use this when the query can be answered by a single tool.
     - Use **DATA_CLIENT** by default for any data, API, factual, numeric, or retrieval query (anything involving fetching from services, databases, or structured sources).
     - Use **RAG_SERVICE** only for queries that ask about documentation, concepts, or how-to guides.
  2. **PLANNER**: use this when the query requires multiple tools, complex reasoning, or cross-source synthesis.

- Always include `rephrasedAnswer`: a grammatically correct and well-structured version of the user query combined with relevant details from QuickShotResponse.
- Never leave clarification placeholders (such as "[specify]" or "<value>") in `rephrasedAnswer`.

- Output valid JSON according to {schema_json}."""

USER_PROMPT_TEMPLATE = """### USER QUERY:
{query}

### QUICKSHOT RESPONSE:
{quickshot_response}"""


def render_draft(draft: QuickShotDraft) -> str:
    return draft.model_dump_json(by_alias=True)


class PreflightClassifier:
    """
    Turns a query and its quick-shot draft into a ClassificationDecision.

    The routing policy lives entirely in the system prompt.
    """

    def __init__(self, caller: LLMCaller, tools_metadata: str = None):
        self.caller = caller
        self.system_prompt = SYSTEM_TEMPLATE.format(
            tools_metadata=tools_metadata or describe_tools(),
            schema_json=CLASSIFIER_SCHEMA
        )

    async def classify(self, query: UserQuery, draft: QuickShotDraft) -> ClassificationDecision:
        user_prompt = USER_PROMPT_TEMPLATE.format(
            query=query.text,
            quickshot_response=render_draft(draft)
        )
        decision = await self.caller.call_structured(
            self.system_prompt, user_prompt, ClassificationDecision, query.conversation_id
        )
        if decision.sufficient:
            logger.info("Classifier: quick-shot draft is sufficient")
        else:
            tools = [tool.value for tool in decision.selected_tools]
            logger.info(f"Classifier: {decision.action_mode.value} with tools {tools}")
        return decision
