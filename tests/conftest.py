import pytest
from typing import List
from unittest.mock import patch

from Assistant.config import RetryPolicy
from Assistant.core import InMemoryConversationMemory, LLMCaller
from Assistant.tools.retrieval import DocumentRetriever, RetrievedDocument


@pytest.fixture(autouse=True)
def mock_azure_clients():
    """
    This fixture automatically patches the AzureClients class for all tests,
    preventing any actual calls to Azure services.
    """
    with patch("Assistant.core.clients.AzureClients") as mock, \
            patch("Assistant.core.clients._clients_instance", None):
        yield mock


class FakeBackend:
    """
    Scripted stand-in for ModelBackend.

    ``responses`` feeds ``complete``; ``streams`` feeds ``stream``. Any item
    that is an exception instance is raised instead of returned. Inside a
    stream script, an exception is raised at that position of the stream.
    """

    def __init__(self, responses=None, streams=None):
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.complete_calls: List[list] = []
        self.stream_calls: List[list] = []
        self.closed_streams = 0

    async def complete(self, messages):
        self.complete_calls.append(messages)
        item = self.responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def stream(self, messages):
        self.stream_calls.append(messages)
        script = self.streams.pop(0)
        try:
            if isinstance(script, BaseException):
                raise script
            for item in script:
                if isinstance(item, BaseException):
                    raise item
                yield item
        finally:
            self.closed_streams += 1


class FakeRetriever(DocumentRetriever):
    def __init__(self, docs=None):
        self.docs = docs if docs is not None else [
            RetrievedDocument(id="doc-1", content="Refunds are issued within 14 days.", source="docs")
        ]
        self.queries: List[str] = []

    async def similarity_search(self, query, k=None, filters=None):
        self.queries.append(query)
        return list(self.docs)


@pytest.fixture
def no_wait_policy():
    return RetryPolicy(max_attempts=3, base_delay=0.0, max_delay=0.0, jitter=0.0)


@pytest.fixture
def memory():
    return InMemoryConversationMemory(max_messages=10)


@pytest.fixture
def retriever():
    return FakeRetriever()


@pytest.fixture
def make_caller(no_wait_policy):
    def factory(backend, memory=None):
        return LLMCaller(backend, memory=memory, retry_policy=no_wait_policy)
    return factory
