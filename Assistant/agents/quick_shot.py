"""
Quick-shot responder
One retrieval plus one structured call producing a cheap draft answer
"""
import logging

from ..core import LLMCaller
from ..models import QuickShotDraft, UserQuery
from ..tools.retrieval import DocumentRetriever, render_context

logger = logging.getLogger(__name__)

QUICK_SHOT_SCHEMA = """{
  "title": "QuickShotResponse",
  "type": "object",
  "properties": {
    "responseText": {"type": "string", "description": "Draft answer"},
    "confidenceScore": {"type": "number", "minimum": 0.0, "maximum": 1.0, "description": "Confidence score between 0 and 1"},
    "requiresDataFetching": {"type": "boolean", "description": "Set to true only if you are certain that further API or retrieval calls are required. Otherwise leave false."},
    "requiresPlanning": {"type": "boolean", "description": "Set to true only if you are certain multi-step planning is required. Otherwise leave false."}
  },
  "required": ["responseText", "confidenceScore"],
  "additionalProperties": false
}"""

SYSTEM_INSTRUCTIONS = f"""You are the Knowledge Extractor.

Task:
Answer the user query from the most relevant documentation fragments and chat history.

Rules:
- Respond in strict JSON as per {QUICK_SHOT_SCHEMA}.
- Use only the DOCUMENT CONTEXT and previous conversation.
- Summarize key API concepts and relevant sections.
- Include concise references to endpoints or entities.
- Be concise, factual, and precise."""

USER_PROMPT_TEMPLATE = """### DOCUMENT CONTEXT:
{context}

### USER QUERY:
{query}"""


class QuickShotResponder:
    """
    Produces a QuickShotDraft for a query.

    The draft and its self-reported flags are hints for the classifier, never
    a routing decision on their own.
    """

    def __init__(self, caller: LLMCaller, retriever: DocumentRetriever, top_k: int = None):
        self.caller = caller
        self.retriever = retriever
        self.top_k = top_k

    async def respond(self, query: UserQuery) -> QuickShotDraft:
        docs = await self.retriever.similarity_search(query.text, k=self.top_k)
        user_prompt = USER_PROMPT_TEMPLATE.format(context=render_context(docs), query=query.text)

        draft = await self.caller.call_structured(
            SYSTEM_INSTRUCTIONS, user_prompt, QuickShotDraft, query.conversation_id
        )
        logger.info(
            f"Quick-shot draft: confidence={draft.confidence_score:.2f}, "
            f"data={draft.requires_data_fetching}, planning={draft.requires_planning}"
        )
        return draft
