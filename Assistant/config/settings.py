"""
Configuration and retry settings for the agent orchestration service
Environment-based configuration with sensible development defaults
"""
from dataclasses import dataclass
import os
import random


@dataclass
class Config:
    """
    Central configuration for model, retrieval, memory and data services.

    Every value can be overridden through the environment; defaults target
    local development.
    """
    # Azure OpenAI (served through LiteLLM)
    OPENAI_ENDPOINT: str = os.getenv(
        "AZURE_OPENAI_ENDPOINT",
        "https://<tenant>.openai.azure.com/"
    )
    OPENAI_API_VERSION: str = os.getenv(
        "AZURE_OPENAI_API_VERSION",
        "2024-02-15-preview"
    )
    GPT4O_DEPLOYMENT: str = os.getenv("AZURE_GPT4O_DEPLOYMENT", "gpt-4o")
    GPT4O_MINI_DEPLOYMENT: str = os.getenv("AZURE_GPT4O_MINI_DEPLOYMENT", "gpt-4o-mini")
    EMBEDDING_DEPLOYMENT: str = os.getenv("AZURE_EMBEDDING_DEPLOYMENT", "text-embedding-3-small")
    LLM_TEMPERATURE: float = float(os.getenv("LLM_TEMPERATURE", "0.1"))
    LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "60.0"))

    # Model call retries
    LLM_MAX_ATTEMPTS: int = int(os.getenv("LLM_MAX_ATTEMPTS", "3"))
    LLM_RETRY_BASE_DELAY: float = float(os.getenv("LLM_RETRY_BASE_DELAY", "2.0"))
    LLM_RETRY_MAX_DELAY: float = float(os.getenv("LLM_RETRY_MAX_DELAY", "30.0"))
    LLM_RETRY_JITTER: float = float(os.getenv("LLM_RETRY_JITTER", "0.5"))

    # Azure AI Search
    SEARCH_ENDPOINT: str = os.getenv(
        "AZURE_SEARCH_ENDPOINT",
        "https://<tenant>-search.search.windows.net"
    )
    SEARCH_INDEX: str = os.getenv("AZURE_SEARCH_INDEX", "documents")
    RETRIEVAL_TOP_K: int = int(os.getenv("RETRIEVAL_TOP_K", "5"))

    # Conversation memory
    MEMORY_BACKEND: str = os.getenv("MEMORY_BACKEND", "redis")
    MEMORY_MAX_MESSAGES: int = int(os.getenv("MEMORY_MAX_MESSAGES", "20"))
    MEMORY_TTL_SECONDS: int = int(os.getenv("MEMORY_TTL_SECONDS", "1800"))

    # Redis
    REDIS_HOST: str = os.getenv(
        "AZURE_REDIS_HOST",
        "<tenant>-redis.redisenterprise.cache.azure.net"
    )
    REDIS_PORT: int = int(os.getenv("AZURE_REDIS_PORT", "10000"))
    REDIS_SSL: bool = os.getenv("AZURE_REDIS_SSL", "true").lower() == "true"

    # Structured data services
    DATA_SERVICE_URL: str = os.getenv("DATA_SERVICE_URL", "http://localhost:8081")
    DATA_ENDPOINTS_PATH: str = os.getenv("DATA_ENDPOINTS_PATH", "")
    TIMEOUT_ENDPOINT: float = float(os.getenv("TIMEOUT_ENDPOINT", "10.0"))
    BREAKER_THRESHOLD: float = float(os.getenv("BREAKER_THRESHOLD", "0.5"))
    BREAKER_TIMEOUT: float = float(os.getenv("BREAKER_TIMEOUT", "30.0"))

    # Plan execution and query deadline
    PLAN_MAX_CONCURRENCY: int = int(os.getenv("PLAN_MAX_CONCURRENCY", "4"))
    QUERY_TIMEOUT: float = float(os.getenv("QUERY_TIMEOUT", "0"))

    # Application Insights
    APP_INSIGHTS_CONNECTION_STRING: str = os.getenv(
        "APPLICATIONINSIGHTS_CONNECTION_STRING",
        ""
    )

    def __post_init__(self):
        """Validate configuration values"""
        if not self.OPENAI_ENDPOINT.startswith('https://'):
            raise ValueError("OPENAI_ENDPOINT must be a valid HTTPS URL")
        if not self.SEARCH_ENDPOINT.startswith('https://'):
            raise ValueError("SEARCH_ENDPOINT must be a valid HTTPS URL")
        if self.LLM_MAX_ATTEMPTS < 1:
            raise ValueError("LLM_MAX_ATTEMPTS must be at least 1")
        if self.LLM_RETRY_BASE_DELAY < 0 or self.LLM_RETRY_MAX_DELAY < 0:
            raise ValueError("Retry delays must not be negative")
        if self.PLAN_MAX_CONCURRENCY < 1:
            raise ValueError("PLAN_MAX_CONCURRENCY must be at least 1")
        if self.RETRIEVAL_TOP_K < 1:
            raise ValueError("RETRIEVAL_TOP_K must be at least 1")
        if self.MEMORY_BACKEND not in ("redis", "memory"):
            raise ValueError("MEMORY_BACKEND must be 'redis' or 'memory'")
        if self.BREAKER_THRESHOLD <= 0 or self.BREAKER_THRESHOLD > 1:
            raise ValueError("BREAKER_THRESHOLD must be in (0, 1]")


@dataclass
class RetryPolicy:
    """
    Exponential backoff with jitter for model calls.

    The delay before retry ``n`` (1-based) is ``base_delay * 2 ** (n - 1)``
    plus up to ``jitter`` seconds, never more than ``max_delay``.
    """
    max_attempts: int = 3
    base_delay: float = 2.0
    max_delay: float = 30.0
    jitter: float = 0.5

    def delay_for(self, attempt: int) -> float:
        backoff = self.base_delay * (2 ** (attempt - 1))
        if self.jitter > 0:
            backoff += random.uniform(0, self.jitter)
        return min(self.max_delay, backoff)

    @classmethod
    def from_config(cls, cfg: "Config") -> "RetryPolicy":
        return cls(
            max_attempts=cfg.LLM_MAX_ATTEMPTS,
            base_delay=cfg.LLM_RETRY_BASE_DELAY,
            max_delay=cfg.LLM_RETRY_MAX_DELAY,
            jitter=cfg.LLM_RETRY_JITTER,
        )


# Global config instance
config = Config()
