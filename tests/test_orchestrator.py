import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from Assistant.agents import (
    ActionRouter,
    AgentOrchestrator,
    PreflightClassifier,
    QuickShotResponder,
)
from Assistant.agents.reasoner import LLMReasoner
from Assistant.agents.synthesizer import INCOMPLETE_NOTICE
from Assistant.core import ModelCallError, RoutingConfigurationError
from Assistant.models import ToolIdentity, UserQuery
from Assistant.tools.base import ActionExecutor
from Assistant.workflows import create_plan_pipeline

from conftest import FakeBackend

DRAFT = json.dumps({
    "responseText": "Refunds are issued within 14 days.",
    "confidenceScore": 0.95,
    "requiresDataFetching": False,
    "requiresPlanning": False,
})

DATA_CLIENT_DECISION = json.dumps({
    "sufficient": False,
    "actionMode": "DIRECT_TOOL",
    "selectedTools": ["DATA_CLIENT"],
    "rephrasedAnswer": "What is the current balance of my invoice?"
})


class RecordingExecutor(ActionExecutor):
    name = "recording"

    def __init__(self, chunks):
        self.chunks = chunks
        self.calls = []

    async def execute(self, query, decision):
        self.calls.append((query, decision))
        for chunk in self.chunks:
            yield chunk


def _orchestrator(backend, make_caller, retriever, memory=None, direct=None, plan=None, timeout=0):
    caller = make_caller(backend, memory)
    router = ActionRouter(direct if direct is not None else {}, plan or RecordingExecutor(["plan"]))
    return AgentOrchestrator(
        quick_shot=QuickShotResponder(caller, retriever),
        classifier=PreflightClassifier(caller),
        router=router,
        memory=memory,
        query_timeout=timeout
    )


@pytest.mark.asyncio
async def test_sufficient_draft_returns_rephrased_answer_verbatim(make_caller, retriever):
    rephrased = "Refunds are issued within 14 days of the request."
    backend = FakeBackend(responses=[DRAFT, json.dumps({"sufficient": True, "rephrasedAnswer": rephrased})])
    orchestrator = _orchestrator(backend, make_caller, retriever)

    answer = await orchestrator.handle_query_blocking(UserQuery(text="What is the refund policy?"))

    assert answer == rephrased


@pytest.mark.asyncio
async def test_direct_tool_answer_is_streamed_and_joined(make_caller, retriever):
    data_client = RecordingExecutor(["Balance:", "40 EUR"])
    docs = RecordingExecutor(["docs"])
    backend = FakeBackend(responses=[DRAFT, DATA_CLIENT_DECISION])
    orchestrator = _orchestrator(
        backend, make_caller, retriever,
        direct={ToolIdentity.DATA_CLIENT: data_client, ToolIdentity.RAG_SERVICE: docs}
    )
    query = UserQuery(text="What is my current invoice balance?")

    chunks = [c async for c in orchestrator.handle_query(query)]
    assert chunks == ["Balance:", "40 EUR"]
    assert docs.calls == []

    backend.responses = [DRAFT, DATA_CLIENT_DECISION]
    assert await orchestrator.handle_query_blocking(query) == "Balance:\n40 EUR"


@pytest.mark.asyncio
async def test_empty_registry_fails_the_query(make_caller, retriever):
    backend = FakeBackend(responses=[DRAFT, json.dumps({
        "sufficient": False,
        "actionMode": "DIRECT_TOOL",
        "selectedTools": ["DATA_CLIENT"],
        "rephrasedAnswer": "x"
    })])
    orchestrator = _orchestrator(backend, make_caller, retriever, direct={})

    with pytest.raises(RoutingConfigurationError):
        await orchestrator.handle_query_blocking(UserQuery(text="balance?"))


@pytest.mark.asyncio
async def test_quick_shot_failure_propagates(make_caller, retriever):
    backend = FakeBackend(responses=[ConnectionError("down")] * 3)
    orchestrator = _orchestrator(backend, make_caller, retriever)

    with pytest.raises(ModelCallError):
        await orchestrator.handle_query_blocking(UserQuery(text="x"))


@pytest.mark.asyncio
async def test_plan_with_failed_step_mentions_incompleteness(make_caller, retriever):
    plan_json = json.dumps({
        "steps": [
            {"toolCategory": "LLM_REASONER", "input": {}, "query": "q1", "description": "step 1"},
            {"toolCategory": "LLM_REASONER", "input": {}, "query": "q2", "description": "step 2"},
            {"toolCategory": "LLM_REASONER", "input": {}, "query": "q3", "description": "step 3"},
        ],
        "explanation": "three independent checks"
    })
    classifier_json = json.dumps({
        "sufficient": False, "actionMode": "PLANNER", "rephrasedAnswer": "Run three checks"
    })
    backend = FakeBackend(
        responses=[
            DRAFT,
            classifier_json,
            plan_json,
            '{"output": "one", "success": true}',
            '{"output": "", "success": false, "errorMessage": "missing data"}',
            '{"output": "three", "success": true}',
        ],
        streams=[["Checks 1 and 3 passed."]]
    )
    caller = make_caller(backend)
    plan = create_plan_pipeline(
        caller, {ToolIdentity.LLM_REASONER: LLMReasoner(caller)}, max_concurrency=1
    )
    orchestrator = _orchestrator(backend, make_caller, retriever, plan=plan)

    answer = await orchestrator.handle_query_blocking(UserQuery(text="Run three checks"))

    assert answer.startswith(INCOMPLETE_NOTICE)
    assert answer.endswith("Checks 1 and 3 passed.")
    synthesis_prompt = backend.stream_calls[0][-1]["content"]
    assert "Overall Success: false" in synthesis_prompt
    assert "  Output: <No output / failed>\n  Success: false" in synthesis_prompt


@pytest.mark.asyncio
async def test_completed_query_is_remembered(make_caller, retriever, memory):
    backend = FakeBackend(responses=[DRAFT, json.dumps({"sufficient": True, "rephrasedAnswer": "14 days."})])
    orchestrator = _orchestrator(backend, make_caller, retriever, memory=memory)

    await orchestrator.handle_query_blocking(UserQuery(text="Refunds?", conversation_id="c1"))

    turns = await memory.get("c1")
    assert [(t.role, t.content) for t in turns] == [("user", "Refunds?"), ("assistant", "14 days.")]


@pytest.mark.asyncio
async def test_abandoned_stream_is_not_remembered(make_caller, retriever, memory):
    executor = RecordingExecutor(["a", "b", "c"])
    backend = FakeBackend(responses=[DRAFT, json.dumps({
        "sufficient": False, "actionMode": "DIRECT_TOOL",
        "selectedTools": ["RAG_SERVICE"], "rephrasedAnswer": "x"
    })])
    orchestrator = _orchestrator(
        backend, make_caller, retriever, memory=memory,
        direct={ToolIdentity.RAG_SERVICE: executor}
    )

    stream = orchestrator.handle_query(UserQuery(text="docs?", conversation_id="c2"))
    assert await stream.__anext__() == "a"
    await stream.aclose()

    assert await memory.get("c2") == []


@pytest.mark.asyncio
async def test_query_timeout_is_enforced(make_caller, retriever):
    orchestrator = _orchestrator(FakeBackend(), make_caller, retriever, timeout=0.01)

    async def slow_draft(query):
        await asyncio.sleep(1)

    orchestrator.quick_shot.respond = AsyncMock(side_effect=slow_draft)

    with pytest.raises(asyncio.TimeoutError):
        await orchestrator.handle_query_blocking(UserQuery(text="x"))


@pytest.mark.asyncio
async def test_nothing_runs_until_stream_is_consumed(make_caller, retriever):
    backend = FakeBackend(responses=[DRAFT])
    orchestrator = _orchestrator(backend, make_caller, retriever)

    orchestrator.handle_query(UserQuery(text="x"))

    assert backend.complete_calls == []
    assert retriever.queries == []
