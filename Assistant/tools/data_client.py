"""
Structured data client
LLM agent that answers by calling the registered data service endpoints
"""
import json
import logging
from typing import AsyncIterator, List, Optional

from google.adk.agents import LlmAgent
from google.adk.models.base_llm import BaseLlm
from google.adk.models.lite_llm import LiteLlm

from .base import ActionExecutor, StepExecutor, STEP_REPORT_INSTRUCTION
from .endpoints import EndpointRegistry
from ..core import LLMCaller, parse_structured
from ..config import config
from ..models import ClassificationDecision, PlanStep, StepReport, StepResult, UserQuery

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTIONS = """You are the data services API assistant.

Your job is to help users fetch data from the backend services by calling the appropriate tools (endpoints) only.
You must follow these rules:

1. Always use the registered tools to retrieve information. Do NOT invent or guess values.
2. Do not attempt to answer questions directly, always call the correct tool.
3. Keep responses concise and structured. Return only the tool output or a clarification request.
4. Respect CHAT HISTORY when deciding which tool to call or what filters to apply.
5. Respect QUICKSHOT RESPONSE, it may already contain part of the answer.
6. If the request cannot be fulfilled with the available tools, ask for clarification or inform the user politely.
7. Always provide a response that matches the RESPONSE FORMAT.

Never provide external knowledge or fabricate data. Base your responses solely on tool outputs and previous conversation context."""

USER_PROMPT_TEMPLATE = """### USER QUERY:
{query}

### QUICKSHOT RESPONSE:
{quickshot_response}

### RESPONSE FORMAT
{response_format}"""

STEP_SYSTEM_INSTRUCTIONS = f"""You are the data services step executor.

Execute the described step using the provided endpoints and input parameters.
Return only the execution result or tool output.
Do not plan, decide, or invent endpoints.
Be concise and structured.

{STEP_REPORT_INSTRUCTION}"""

STEP_PROMPT_TEMPLATE = """### DATA CLIENT STEP
Endpoints: {endpoints}

### INPUT PARAMETERS:
{input}

### USER QUERY:
{query}

### STEP DESCRIPTION:
{step_description}"""


class StructuredDataClient(ActionExecutor, StepExecutor):
    """
    Data client executor.

    Builds an ADK LlmAgent whose tools are the catalogue endpoints; the model
    chooses which endpoints to call and with which arguments.
    """
    name = "structured_data_client"

    def __init__(
        self,
        caller: LLMCaller,
        registry: EndpointRegistry,
        deployment: Optional[str] = None,
        llm: Optional[BaseLlm] = None,
    ):
        self.caller = caller
        self.registry = registry
        self.deployment = deployment or config.GPT4O_DEPLOYMENT
        self.llm = llm

    def _model(self) -> BaseLlm:
        llm = self.llm if self.llm is not None else LiteLlm(
            model=f"azure/{self.deployment}",
            api_base=config.OPENAI_ENDPOINT,
            api_version=config.OPENAI_API_VERSION
        )
        return self.caller.agent_model(llm)

    def _create_agent(self, name: str, instruction: str, endpoint_names: Optional[List[str]] = None) -> LlmAgent:
        return LlmAgent(
            name=name,
            model=self._model(),
            description="Fetches data from the backend services through their endpoints",
            # Callable instruction keeps literal braces out of state templating
            instruction=lambda ctx: instruction,
            tools=self.registry.tools(endpoint_names)
        )

    async def execute(self, query: UserQuery, decision: ClassificationDecision) -> AsyncIterator[str]:
        agent = self._create_agent("data_client", SYSTEM_INSTRUCTIONS)
        user_prompt = USER_PROMPT_TEMPLATE.format(
            query=query.text,
            quickshot_response=decision.rephrased_answer,
            response_format=query.response_format_instruction()
        )
        answer = await self.caller.call_agent(agent, user_prompt, query.conversation_id)
        yield answer

    async def execute_step(self, step: PlanStep, conversation_id: str) -> StepResult:
        unknown = [name for name in step.endpoints if name not in self.registry]
        if unknown:
            logger.warning(f"Step references unknown endpoints: {unknown}")

        agent = self._create_agent(
            "data_client_step",
            STEP_SYSTEM_INSTRUCTIONS,
            endpoint_names=step.endpoints or None
        )
        user_prompt = STEP_PROMPT_TEMPLATE.format(
            endpoints=", ".join(step.endpoints) if step.endpoints else "No specific endpoints provided",
            input=json.dumps(step.input) if step.input else "{}",
            query=step.query or "",
            step_description=step.description or ""
        )
        raw = await self.caller.call_agent(agent, user_prompt, conversation_id)
        report = parse_structured(raw, StepReport)
        logger.info(f"Data client step finished (success={report.success})")
        return StepResult.from_report(step, report)
