"""
Schema-validating model caller
Structured, streamed and tool-equipped model calls with retries and memory context
"""
import logging
import re
import uuid
from typing import AsyncIterator, List, Optional, Tuple, Type, TypeVar

from google.adk.agents import LlmAgent
from google.adk.models.base_llm import BaseLlm
from google.adk.runners import InMemoryRunner
from google.genai import types
from pydantic import BaseModel, ValidationError

from .errors import ModelCallError, SchemaValidationError
from .memory import ConversationMemory
from .model_backend import Message, ModelBackend, RetryingLlm
from .retry import call_with_retries
from ..config import RetryPolicy, config

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

APP_NAME = "assistant"

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)


def parse_structured(raw: str, target: Type[ModelT]) -> ModelT:
    """
    Parse a model response into ``target``.

    A Markdown code fence around the JSON body is tolerated.

    Raises:
        SchemaValidationError: the text is not valid JSON for ``target``
    """
    text = (raw or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1)
    try:
        return target.model_validate_json(text)
    except ValidationError as e:
        raise SchemaValidationError(
            f"Response does not match {target.__name__}: {e}",
            raw_response=raw,
        ) from e


class LLMCaller:
    """
    Gateway for every model call made by the pipeline.

    Each call is enriched with the prior turns of the conversation and
    guarded by the retry policy. Malformed structured output is final and
    never retried.
    """

    def __init__(
        self,
        backend: ModelBackend,
        memory: Optional[ConversationMemory] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.backend = backend
        self.memory = memory
        self.retry_policy = retry_policy or RetryPolicy.from_config(config)

    async def _history(self, conversation_id: Optional[str]) -> List[Message]:
        if self.memory is None or not conversation_id:
            return []
        turns = await self.memory.get(conversation_id)
        return [{"role": turn.role, "content": turn.content} for turn in turns]

    async def _build_messages(
        self,
        system_prompt: str,
        user_prompt: str,
        conversation_id: Optional[str],
    ) -> List[Message]:
        messages: List[Message] = [{"role": "system", "content": system_prompt}]
        messages.extend(await self._history(conversation_id))
        messages.append({"role": "user", "content": user_prompt})
        return messages

    async def call_structured(
        self,
        system_prompt: str,
        user_prompt: str,
        target: Type[ModelT],
        conversation_id: Optional[str] = None,
    ) -> ModelT:
        """
        Call the model and validate the response against ``target``.

        Raises:
            SchemaValidationError: the response could not be parsed (not retried)
            ModelCallError: the model kept failing after all attempts
        """
        messages = await self._build_messages(system_prompt, user_prompt, conversation_id)

        async def attempt() -> ModelT:
            raw = await self.backend.complete(messages)
            return parse_structured(raw, target)

        result = await call_with_retries(attempt, self.retry_policy, f"structured:{target.__name__}")
        logger.debug(f"Structured call returned {target.__name__}")
        return result

    async def call_streaming(
        self,
        system_prompt: str,
        user_prompt: str,
        conversation_id: Optional[str] = None,
    ) -> AsyncIterator[str]:
        """
        Stream the model response as text chunks.

        Nothing is sent to the model until the generator is first iterated.
        Failures before the first chunk are retried; a failure after it ends
        the stream with ModelCallError. The provider stream is closed on every
        exit path, including ``aclose()`` by the consumer.
        """
        messages = await self._build_messages(system_prompt, user_prompt, conversation_id)

        async def open_stream() -> Tuple[AsyncIterator[str], Optional[str]]:
            stream = self.backend.stream(messages)
            try:
                first = await stream.__anext__()
            except StopAsyncIteration:
                await stream.aclose()
                return stream, None
            except BaseException:
                await stream.aclose()
                raise
            return stream, first

        stream, first = await call_with_retries(open_stream, self.retry_policy, "stream")
        if first is None:
            return

        try:
            yield first
            async for chunk in stream:
                yield chunk
        except Exception as e:
            logger.error(f"Stream interrupted after first chunk: {e}")
            raise ModelCallError(f"Stream interrupted: {e}", attempts=1) from e
        finally:
            await stream.aclose()

    async def call_agent(
        self,
        agent: LlmAgent,
        user_prompt: str,
        conversation_id: Optional[str] = None,
    ) -> str:
        """
        Run a tool-equipped agent and return its final text.

        The model decides which registered tools to invoke. Prior turns of the
        conversation are prepended to the user message. The run itself is not
        retried; build the agent model with ``agent_model`` so each model turn
        is retried on its own and tool calls happen once.
        """
        history = await self._history(conversation_id)
        if history:
            rendered = "\n".join(f"{turn['role']}: {turn['content']}" for turn in history)
            user_prompt = f"### CHAT HISTORY:\n{rendered}\n\n{user_prompt}"

        runner = InMemoryRunner(agent=agent, app_name=APP_NAME)
        user_id = conversation_id or f"anonymous-{uuid.uuid4().hex[:8]}"
        session = await runner.session_service.create_session(
            app_name=APP_NAME,
            user_id=user_id
        )
        message = types.Content(role="user", parts=[types.Part(text=user_prompt)])

        final_parts: List[str] = []
        async for event in runner.run_async(
            user_id=user_id,
            session_id=session.id,
            new_message=message
        ):
            if event.is_final_response() and event.content and event.content.parts:
                final_parts.extend(part.text for part in event.content.parts if part.text)
        return "".join(final_parts).strip()

    def agent_model(self, inner: BaseLlm) -> RetryingLlm:
        """Wrap an agent model with this caller's retry policy."""
        return RetryingLlm(model=inner.model, inner=inner, retry_policy=self.retry_policy)
