"""
Sequential pipeline workflow
Quick-shot, preflight classification and routing wired into one orchestrator
"""
import logging
from typing import Optional

from .parallel import create_plan_pipeline
from ..agents.classifier import PreflightClassifier
from ..agents.orchestrator import AgentOrchestrator
from ..agents.quick_shot import QuickShotResponder
from ..agents.reasoner import LLMReasoner
from ..agents.router import ActionRouter
from ..core import ConversationMemory, LLMCaller, ModelBackend, create_memory
from ..config import config
from ..models import ToolIdentity, describe_tools
from ..tools.data_client import StructuredDataClient
from ..tools.documentation import DocumentationRetriever
from ..tools.endpoints import EndpointRegistry
from ..tools.retrieval import AzureSearchRetriever, DocumentRetriever

logger = logging.getLogger(__name__)


def create_sequential_pipeline(
    registry: Optional[EndpointRegistry] = None,
    retriever: Optional[DocumentRetriever] = None,
    memory: Optional[ConversationMemory] = None,
) -> AgentOrchestrator:
    """
    Build the full query pipeline.

    Pattern:
    1. Quick-shot draft (small model)
    2. Preflight classification (small model)
    3. Route to a direct tool or to the plan pipeline (large model)

    Args:
        registry: Data service endpoint catalogue
        retriever: Documentation retriever backend
        memory: Conversation memory shared by every model call

    Returns:
        AgentOrchestrator serving queries end to end
    """
    registry = registry if registry is not None else EndpointRegistry()
    retriever = retriever or AzureSearchRetriever()
    memory = memory or create_memory()

    tools_metadata = describe_tools(registry.describe())
    fast_caller = LLMCaller(ModelBackend(config.GPT4O_MINI_DEPLOYMENT), memory)
    main_caller = LLMCaller(ModelBackend(config.GPT4O_DEPLOYMENT), memory)

    documentation = DocumentationRetriever(main_caller, retriever)
    data_client = StructuredDataClient(main_caller, registry)

    plan_pipeline = create_plan_pipeline(
        main_caller,
        {
            ToolIdentity.RAG_SERVICE: documentation,
            ToolIdentity.DATA_CLIENT: data_client,
            ToolIdentity.LLM_REASONER: LLMReasoner(main_caller),
        },
        tools_metadata
    )
    router = ActionRouter(
        {
            ToolIdentity.RAG_SERVICE: documentation,
            ToolIdentity.DATA_CLIENT: data_client,
        },
        plan_pipeline
    )

    logger.info(f"Pipeline ready with {len(registry)} data endpoints")
    return AgentOrchestrator(
        quick_shot=QuickShotResponder(fast_caller, retriever),
        classifier=PreflightClassifier(fast_caller, tools_metadata),
        router=router,
        memory=memory
    )
