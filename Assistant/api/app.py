"""
FastAPI application for the agent orchestration service
REST API over the query pipeline with blocking and streamed answers
"""
import asyncio
import logging
import time
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.responses import StreamingResponse
from azure.monitor.opentelemetry import configure_azure_monitor
from opentelemetry import trace
from pydantic import ValidationError

from .models import ConversationResponse, QueryRequest, QueryResponse
from ..agents import AgentOrchestrator
from ..config import config
from ..core import (
    ConversationMemory,
    ModelCallError,
    RoutingConfigurationError,
    SchemaValidationError,
    get_clients,
)
from ..models import UserQuery
from ..tools.endpoints import load_endpoint_registry
from ..workflows import create_sequential_pipeline

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Agent Orchestration API",
    description="Query pipeline with quick-shot drafts, classification, direct tools and plans",
    version="1.0.0"
)

# Configure OpenTelemetry for Azure Monitor
if config.APP_INSIGHTS_CONNECTION_STRING:
    configure_azure_monitor(
        connection_string=config.APP_INSIGHTS_CONNECTION_STRING
    )
    logger.info("Azure Monitor telemetry configured")

tracer = trace.get_tracer(__name__)

_orchestrator: Optional[AgentOrchestrator] = None
_orchestrator_lock = asyncio.Lock()


async def get_orchestrator() -> AgentOrchestrator:
    """Build the pipeline once, after the endpoint catalogue is loaded."""
    global _orchestrator
    if _orchestrator is None:
        async with _orchestrator_lock:
            if _orchestrator is None:
                registry = await load_endpoint_registry()
                _orchestrator = create_sequential_pipeline(registry=registry)
    return _orchestrator


async def get_memory(
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
) -> ConversationMemory:
    if orchestrator.memory is None:
        raise HTTPException(status_code=404, detail="Conversation memory is disabled")
    return orchestrator.memory


def _to_user_query(request: QueryRequest) -> UserQuery:
    try:
        return request.to_user_query()
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _http_error(e: Exception) -> HTTPException:
    """Map a pipeline failure to the HTTP error returned to the caller."""
    if isinstance(e, HTTPException):
        return e
    if isinstance(e, RoutingConfigurationError):
        logger.error(f"Routing configuration error: {e}")
        return HTTPException(status_code=500, detail=f"Routing configuration error: {e}")
    if isinstance(e, SchemaValidationError):
        logger.error(f"Model returned malformed output: {e}")
        return HTTPException(status_code=502, detail="Model returned malformed output")
    if isinstance(e, ModelCallError):
        logger.error(f"Model unavailable after {e.attempts} attempts: {e}")
        return HTTPException(status_code=503, detail="Model service unavailable, try again later")
    if isinstance(e, asyncio.TimeoutError):
        logger.error("Query deadline exceeded")
        return HTTPException(status_code=504, detail="Query timed out")
    logger.error(f"Query processing error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/query", response_model=QueryResponse)
@tracer.start_as_current_span("process_query")
async def process_query(
    request: QueryRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
):
    """
    Answer a query and return the whole answer at once.

    Raises:
        HTTPException: 422 invalid output contract, 500 routing misconfiguration,
            502 malformed model output, 503 model unavailable, 504 deadline
    """
    start_time = time.time()
    query = _to_user_query(request)

    try:
        answer = await orchestrator.handle_query_blocking(query)
    except Exception as e:
        raise _http_error(e) from e

    return QueryResponse(
        answer=answer,
        conversation_id=query.conversation_id,
        latency_ms=(time.time() - start_time) * 1000
    )


@app.post("/query/stream")
async def stream_query(
    request: QueryRequest,
    orchestrator: AgentOrchestrator = Depends(get_orchestrator)
):
    """
    Answer a query as a stream of text chunks.

    The pipeline runs up to the first chunk before the response starts, so
    routing and model failures still produce an HTTP error status.
    """
    query = _to_user_query(request)
    stream = orchestrator.handle_query(query)

    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = None
    except Exception as e:
        await stream.aclose()
        raise _http_error(e) from e

    async def body():
        try:
            if first is not None:
                yield first
                async for chunk in stream:
                    yield chunk
        except Exception as e:
            logger.error(f"Stream for {query.conversation_id} interrupted: {e}", exc_info=True)
        finally:
            await stream.aclose()

    return StreamingResponse(body(), media_type="text/plain")


@app.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    memory: ConversationMemory = Depends(get_memory)
):
    """Return the stored turns of a conversation, oldest first."""
    messages = await memory.get(conversation_id)
    return ConversationResponse(conversation_id=conversation_id, messages=messages)


@app.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: str,
    memory: ConversationMemory = Depends(get_memory)
):
    await memory.clear(conversation_id)
    logger.info(f"Cleared conversation {conversation_id}")
    return Response(status_code=204)


@app.get("/health")
async def health_check():
    """
    Health check with dependency validation.

    Returns:
        Dict with overall status and dependency health
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "version": "1.0.0",
        "dependencies": {
            "redis": await _check_redis(),
            "openai": await _check_openai(),
            "search": await _check_search()
        }
    }

    # Overall health is healthy only if all dependencies are healthy
    all_healthy = all(health_status["dependencies"].values())
    health_status["status"] = "healthy" if all_healthy else "degraded"

    return health_status


async def _check_redis() -> bool:
    """Check Redis connectivity"""
    try:
        redis_client = await get_clients().get_redis()
        await redis_client.ping()
        return True
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False


async def _check_openai() -> bool:
    """Check OpenAI connectivity"""
    try:
        response = get_clients().openai_client.embeddings.create(
            model=config.EMBEDDING_DEPLOYMENT,
            input="health"
        )
        return bool(response.data)
    except Exception as e:
        logger.error(f"OpenAI health check failed: {e}")
        return False


async def _check_search() -> bool:
    """Check AI Search connectivity"""
    try:
        search_client = get_clients().get_search_client()
        results = search_client.search(search_text="health", top=1)
        list(results)  # Consume iterator
        return True
    except Exception as e:
        logger.error(f"Search health check failed: {e}")
        return False
