"""
FastAPI application module for the agent orchestration service
"""
from .app import app
from .models import ConversationResponse, QueryRequest, QueryResponse

__all__ = ["app", "ConversationResponse", "QueryRequest", "QueryResponse"]
