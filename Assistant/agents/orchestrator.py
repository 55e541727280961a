"""
Agent orchestrator
Quick-shot, classification, routing and execution for one user query
"""
import asyncio
import logging
from typing import AsyncIterator, List, Optional

from .classifier import PreflightClassifier
from .quick_shot import QuickShotResponder
from .router import ActionRouter
from ..core import ConversationMemory
from ..config import config
from ..models import ChatTurn, UserQuery

logger = logging.getLogger(__name__)


class AgentOrchestrator:
    """
    Entry point of the pipeline.

    ``handle_query`` is a lazy stream: no model call happens until the first
    chunk is requested. Quick-shot, classifier, routing and planner failures
    propagate to the caller. Once an answer has been fully consumed, the user
    turn and the answer are written to conversation memory.
    """

    def __init__(
        self,
        quick_shot: QuickShotResponder,
        classifier: PreflightClassifier,
        router: ActionRouter,
        memory: Optional[ConversationMemory] = None,
        query_timeout: Optional[float] = None,
    ):
        self.quick_shot = quick_shot
        self.classifier = classifier
        self.router = router
        self.memory = memory
        self.query_timeout = config.QUERY_TIMEOUT if query_timeout is None else query_timeout

    async def handle_query(self, query: UserQuery) -> AsyncIterator[str]:
        draft = await self.quick_shot.respond(query)
        decision = await self.classifier.classify(query, draft)

        collected: List[str] = []
        if decision.sufficient:
            collected.append(decision.rephrased_answer)
            yield decision.rephrased_answer
        else:
            executor = self.router.route(decision)
            stream = executor.execute(query, decision)
            try:
                async for chunk in stream:
                    collected.append(chunk)
                    yield chunk
            finally:
                await stream.aclose()

        await self._remember(query, "".join(collected))

    async def _collect(self, query: UserQuery) -> str:
        chunks = [chunk async for chunk in self.handle_query(query)]
        # One line per chunk, so token-level streams come back one token per line
        return "\n".join(chunks)

    async def handle_query_blocking(self, query: UserQuery) -> str:
        """
        Run the whole pipeline and return the answer chunks joined by newlines.

        Raises:
            asyncio.TimeoutError: QUERY_TIMEOUT is set and was exceeded
        """
        if self.query_timeout and self.query_timeout > 0:
            return await asyncio.wait_for(self._collect(query), timeout=self.query_timeout)
        return await self._collect(query)

    async def _remember(self, query: UserQuery, answer: str):
        if self.memory is None:
            return
        try:
            await self.memory.append(query.conversation_id, ChatTurn(role="user", content=query.text))
            await self.memory.append(query.conversation_id, ChatTurn(role="assistant", content=answer))
        except Exception as e:
            logger.error(f"Could not store conversation {query.conversation_id}: {e}", exc_info=True)
