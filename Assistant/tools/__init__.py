"""
Tool executors and their collaborators
"""
from .base import ActionExecutor, StepExecutor
from .data_client import StructuredDataClient
from .documentation import DocumentationRetriever
from .endpoints import EndpointRegistry, EndpointTool, ServiceEndpoint, load_endpoint_registry
from .retrieval import AzureSearchRetriever, DocumentRetriever, RetrievedDocument, render_context

__all__ = [
    "ActionExecutor",
    "StepExecutor",
    "StructuredDataClient",
    "DocumentationRetriever",
    "EndpointRegistry",
    "EndpointTool",
    "ServiceEndpoint",
    "load_endpoint_registry",
    "AzureSearchRetriever",
    "DocumentRetriever",
    "RetrievedDocument",
    "render_context",
]
