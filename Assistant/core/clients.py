"""
Azure service clients singleton
Shared credential, embeddings, search and Redis clients for the agent service
"""
import logging
import os

from azure.identity import DefaultAzureCredential
from azure.search.documents import SearchClient
from openai import AzureOpenAI
import redis.asyncio as redis

from ..config import config

logger = logging.getLogger(__name__)

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"


class AzureClients:
    """
    Singleton for Azure service clients.

    Expensive clients are created once and reused by every request.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize Azure clients with DefaultAzureCredential"""
        logger.info("Initializing Azure service clients")

        # Managed identity in Azure, developer credentials locally
        self.credential = DefaultAzureCredential()

        # Azure OpenAI client, used for query embeddings
        self.openai_client = AzureOpenAI(
            azure_endpoint=config.OPENAI_ENDPOINT,
            api_version=config.OPENAI_API_VERSION,
            azure_ad_token_provider=lambda: self.credential.get_token(
                COGNITIVE_SERVICES_SCOPE
            ).token
        )
        logger.info("Azure OpenAI client initialized")

        # Redis (initialized async on first use)
        self._redis_client = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis client with lazy initialization."""
        if self._redis_client is None:
            self._redis_client = redis.Redis(
                host=config.REDIS_HOST,
                port=config.REDIS_PORT,
                ssl=config.REDIS_SSL,
                decode_responses=True
            )
            logger.info("Redis client initialized")
        return self._redis_client

    def get_search_client(self, index_name: str = None) -> SearchClient:
        """
        Get an Azure AI Search client for a document index.

        Args:
            index_name: Index name (default: SEARCH_INDEX)

        Returns:
            SearchClient bound to the index
        """
        return SearchClient(
            endpoint=config.SEARCH_ENDPOINT,
            index_name=index_name or config.SEARCH_INDEX,
            credential=self.credential
        )


# Global singleton instance
_clients_instance = None


def get_clients() -> AzureClients:
    """
    Factory function for the AzureClients singleton.
    Initializes the clients on first call.
    """
    global _clients_instance
    if _clients_instance is None:
        _clients_instance = AzureClients()
        # LiteLLM reads the Azure key from the environment
        if not os.getenv("AZURE_API_KEY"):
            try:
                token = _clients_instance.credential.get_token(COGNITIVE_SERVICES_SCOPE).token
                os.environ["AZURE_API_KEY"] = token
                logger.info("Set AZURE_API_KEY from DefaultAzureCredential for LiteLLM")
            except Exception as e:
                logger.warning(f"Could not get Azure AD token for LiteLLM: {e}")
    return _clients_instance
