"""
LiteLLM model backend
Thin async wrapper over litellm for full-text and streamed chat completions
"""
import logging
from typing import AsyncGenerator, AsyncIterator, Dict, List, Optional

import litellm
from google.adk.models.base_llm import BaseLlm
from google.adk.models.llm_request import LlmRequest
from google.adk.models.llm_response import LlmResponse
from pydantic import ConfigDict

from .retry import call_with_retries
from ..config import RetryPolicy, config

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class ModelBackend:
    """
    Chat completion backend for one Azure OpenAI deployment.

    ``complete`` returns the whole response text; ``stream`` is an async
    generator of text deltas that closes the provider stream on exit.
    """

    def __init__(
        self,
        deployment: str,
        api_base: Optional[str] = None,
        api_version: Optional[str] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.model = f"azure/{deployment}"
        self.api_base = api_base or config.OPENAI_ENDPOINT
        self.api_version = api_version or config.OPENAI_API_VERSION
        self.temperature = config.LLM_TEMPERATURE if temperature is None else temperature
        self.timeout = timeout or config.LLM_TIMEOUT

    def _params(self, messages: List[Message]) -> Dict:
        return {
            "model": self.model,
            "messages": messages,
            "api_base": self.api_base,
            "api_version": self.api_version,
            "temperature": self.temperature,
            "timeout": self.timeout,
        }

    async def complete(self, messages: List[Message]) -> str:
        response = await litellm.acompletion(**self._params(messages))
        content = response.choices[0].message.content if response.choices else None
        return (content or "").strip()

    async def stream(self, messages: List[Message]) -> AsyncIterator[str]:
        response = await litellm.acompletion(stream=True, **self._params(messages))
        try:
            async for part in response:
                if not part.choices:
                    continue
                delta = part.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            close = getattr(response, "aclose", None)
            if close is not None:
                await close()
            logger.debug(f"Closed completion stream for {self.model}")


class RetryingLlm(BaseLlm):
    """
    Agent model that retries each model turn on its own.

    Tool calls made between turns are never replayed: a transient failure
    only repeats the model request that failed. Retries stop once the first
    response of a turn has been received.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    inner: BaseLlm
    retry_policy: RetryPolicy

    async def generate_content_async(
        self, llm_request: LlmRequest, stream: bool = False
    ) -> AsyncGenerator[LlmResponse, None]:
        async def first_response():
            responses = self.inner.generate_content_async(llm_request, stream=stream)
            try:
                first = await responses.__anext__()
            except StopAsyncIteration:
                await responses.aclose()
                return responses, None
            except BaseException:
                await responses.aclose()
                raise
            return responses, first

        responses, first = await call_with_retries(
            first_response, self.retry_policy, f"model:{self.inner.model}"
        )
        if first is None:
            return

        try:
            yield first
            async for response in responses:
                yield response
        finally:
            await responses.aclose()
