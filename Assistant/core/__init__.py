"""
Core infrastructure for the agent orchestration service
"""
from .clients import AzureClients, get_clients
from .circuit_breaker import CircuitBreaker, BreakerState, circuit_breaker
from .errors import (
    AgentError,
    ModelCallError,
    RoutingConfigurationError,
    SchemaValidationError,
    StepExecutionFailure,
    SynthesisFailure,
)
from .llm_caller import LLMCaller, parse_structured
from .memory import (
    ConversationMemory,
    InMemoryConversationMemory,
    RedisConversationMemory,
    create_memory,
)
from .model_backend import ModelBackend, RetryingLlm
from .retry import call_with_retries

__all__ = [
    "AzureClients",
    "get_clients",
    "CircuitBreaker",
    "BreakerState",
    "circuit_breaker",
    "AgentError",
    "ModelCallError",
    "RoutingConfigurationError",
    "SchemaValidationError",
    "StepExecutionFailure",
    "SynthesisFailure",
    "LLMCaller",
    "parse_structured",
    "ConversationMemory",
    "InMemoryConversationMemory",
    "RedisConversationMemory",
    "create_memory",
    "ModelBackend",
    "RetryingLlm",
    "call_with_retries",
]
