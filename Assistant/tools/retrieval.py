"""
Document retrieval over Azure AI Search
Hybrid vector + BM25 search with semantic reranking
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from azure.search.documents.models import VectorizedQuery

from ..core import get_clients
from ..config import config

logger = logging.getLogger(__name__)


@dataclass
class RetrievedDocument:
    """One search hit handed to a prompt."""
    id: str
    content: str
    score: float = 0.0
    source: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


class DocumentRetriever:
    """Similarity search collaborator."""

    async def similarity_search(
        self,
        query: str,
        k: Optional[int] = None,
        filters: Optional[str] = None,
    ) -> List[RetrievedDocument]:
        raise NotImplementedError


class AzureSearchRetriever(DocumentRetriever):
    """
    Azure AI Search retriever.

    The query is embedded with the configured embedding deployment, then
    searched with both the vector and the raw text. Semantic reranker scores
    (0-4) are normalized to 0-1 when present.
    """

    def __init__(self, index_name: Optional[str] = None):
        self.index_name = index_name or config.SEARCH_INDEX

    def _search(self, query: str, k: int, filters: Optional[str]) -> List[RetrievedDocument]:
        clients = get_clients()
        search_client = clients.get_search_client(self.index_name)

        embedding_response = clients.openai_client.embeddings.create(
            model=config.EMBEDDING_DEPLOYMENT,
            input=query
        )
        vector_query = VectorizedQuery(
            vector=embedding_response.data[0].embedding,
            k_nearest_neighbors=min(k * 2, 100),
            fields="content_vector"
        )

        results = search_client.search(
            search_text=query,
            vector_queries=[vector_query],
            filter=filters,
            top=k,
            query_type="semantic",
            semantic_configuration_name="default",
            select=["id", "content", "metadata"]
        )

        docs: List[RetrievedDocument] = []
        for doc in results:
            reranker_score = doc.get("@search.reranker_score")
            score = float(
                reranker_score / 4.0 if reranker_score is not None else doc.get("@search.score", 0)
            )
            metadata = doc.get("metadata") or {}
            docs.append(RetrievedDocument(
                id=str(doc.get("id")),
                content=doc.get("content", ""),
                score=score,
                source=metadata.get("source", self.index_name) if isinstance(metadata, dict) else self.index_name,
                metadata=metadata if isinstance(metadata, dict) else {}
            ))
        return docs

    async def similarity_search(
        self,
        query: str,
        k: Optional[int] = None,
        filters: Optional[str] = None,
    ) -> List[RetrievedDocument]:
        k = k or config.RETRIEVAL_TOP_K
        # The search SDK is synchronous
        docs = await asyncio.to_thread(self._search, query, k, filters)
        logger.info(f"Retrieved {len(docs)} documents from {self.index_name}")
        return docs


def render_context(docs: List[RetrievedDocument], limit: int = 20) -> str:
    """Number the retrieved snippets for inclusion in a prompt."""
    if not docs:
        return "No documents found."

    lines = []
    for idx, doc in enumerate(docs[:limit], start=1):
        content = doc.content.strip().replace("\n", " ")
        lines.append(f"[{idx}] ({doc.source}) {doc.id}: {content}")
    return "\n".join(lines)
