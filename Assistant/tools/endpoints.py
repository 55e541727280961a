"""
Structured data service endpoints
Endpoint catalogue, HTTP invocation and ADK tool adapters for the data client
"""
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import httpx
from google.adk.tools import BaseTool
from google.genai import types
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core import CircuitBreaker, circuit_breaker
from ..config import config

logger = logging.getLogger(__name__)

_PATH_PARAM = re.compile(r"{(\w+)}")


class ServiceEndpoint(BaseModel):
    """One named operation of a backend data service."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str
    description: str = ""
    method: str = "GET"
    path: str
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})

    def render_path(self, args: Dict[str, Any]) -> tuple:
        """Substitute ``{param}`` placeholders; returns the path and the unused args."""
        remaining = dict(args)

        def substitute(match):
            key = match.group(1)
            if key not in remaining:
                raise ValueError(f"Missing path parameter '{key}' for endpoint {self.name}")
            return str(remaining.pop(key))

        return _PATH_PARAM.sub(substitute, self.path), remaining


class EndpointUnavailableError(RuntimeError):
    """The endpoint's circuit is open."""


class EndpointRegistry:
    """
    Read-only catalogue of data service endpoints.

    Loaded once at startup from a manifest file or from the data service's
    own ``/endpoints`` listing.
    """

    def __init__(
        self,
        endpoints: Iterable[ServiceEndpoint] = (),
        base_url: Optional[str] = None,
        breaker: Optional[CircuitBreaker] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoints: Dict[str, ServiceEndpoint] = {e.name: e for e in endpoints}
        self.base_url = (base_url or config.DATA_SERVICE_URL).rstrip("/")
        self.breaker = breaker or circuit_breaker
        self.timeout = timeout or config.TIMEOUT_ENDPOINT
        self.transport = transport

    @classmethod
    def from_manifest(cls, data: Any, **kwargs) -> "EndpointRegistry":
        """Build from ``{"endpoints": [...]}`` or a bare list of endpoint objects."""
        items = data.get("endpoints", []) if isinstance(data, dict) else data
        return cls([ServiceEndpoint.model_validate(item) for item in items or []], **kwargs)

    @classmethod
    def load_file(cls, path: str, **kwargs) -> "EndpointRegistry":
        with Path(path).open(encoding="utf-8") as f:
            registry = cls.from_manifest(json.load(f), **kwargs)
        logger.info(f"Loaded {len(registry)} endpoints from {path}")
        return registry

    @classmethod
    async def discover(
        cls,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs
    ) -> "EndpointRegistry":
        """Fetch the endpoint listing from ``<base_url>/endpoints``."""
        base_url = (base_url or config.DATA_SERVICE_URL).rstrip("/")
        async with httpx.AsyncClient(timeout=config.TIMEOUT_ENDPOINT, transport=transport) as client:
            response = await client.get(f"{base_url}/endpoints")
            response.raise_for_status()
        registry = cls.from_manifest(response.json(), base_url=base_url, transport=transport, **kwargs)
        logger.info(f"Discovered {len(registry)} endpoints at {base_url}")
        return registry

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, name: str) -> bool:
        return name in self._endpoints

    def names(self) -> List[str]:
        return list(self._endpoints)

    def get(self, name: str) -> ServiceEndpoint:
        try:
            return self._endpoints[name]
        except KeyError:
            raise KeyError(f"Unknown endpoint: {name}") from None

    def describe(self) -> str:
        """Model-facing catalogue, one endpoint per line."""
        return "\n".join(
            f"- {e.name}: {e.description}. inputSchema: {json.dumps(e.input_schema)}"
            for e in self._endpoints.values()
        )

    def tools(self, names: Optional[Iterable[str]] = None) -> List["EndpointTool"]:
        """ADK tools for all endpoints, or only for the known ones in ``names``."""
        selected = self._endpoints.values() if names is None else [
            self._endpoints[n] for n in names if n in self._endpoints
        ]
        return [EndpointTool(endpoint, self) for endpoint in selected]

    async def invoke(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Call an endpoint over HTTP.

        Query parameters for GET/DELETE, a JSON body otherwise. Failures are
        recorded on the circuit breaker and re-raised.
        """
        endpoint = self.get(name)
        path, remaining = endpoint.render_path(args or {})
        if not self.breaker.is_closed(name):
            raise EndpointUnavailableError(f"Circuit open for endpoint {name}")

        method = endpoint.method.upper()
        request_kwargs = {"params": remaining} if method in ("GET", "DELETE") else {"json": remaining}

        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, path, **request_kwargs)
                response.raise_for_status()
        except httpx.HTTPError:
            self.breaker.record_failure(name)
            raise

        self.breaker.record_success(name)
        logger.info(f"Endpoint {name} answered in {(time.time() - start_time) * 1000:.0f}ms")
        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text


_JSON_TYPES = {
    "string": "STRING",
    "integer": "INTEGER",
    "number": "NUMBER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
    "object": "OBJECT",
}


def json_schema_to_adk(schema: Dict[str, Any]) -> types.Schema:
    """Convert a JSON Schema fragment into the function-declaration schema type."""
    json_type = schema.get("type", "object")
    if isinstance(json_type, list):
        json_type = next((t for t in json_type if t != "null"), "string")

    kwargs: Dict[str, Any] = {"type": _JSON_TYPES.get(json_type, "STRING")}
    if schema.get("description"):
        kwargs["description"] = schema["description"]
    if schema.get("enum"):
        kwargs["enum"] = [str(v) for v in schema["enum"]]
    if json_type == "object":
        properties = schema.get("properties") or {}
        if properties:
            kwargs["properties"] = {k: json_schema_to_adk(v) for k, v in properties.items()}
        if schema.get("required"):
            kwargs["required"] = list(schema["required"])
    if json_type == "array":
        kwargs["items"] = json_schema_to_adk(schema.get("items") or {"type": "string"})
    return types.Schema(**kwargs)


class EndpointTool(BaseTool):
    """
    Exposes one service endpoint to an LLM agent.

    Errors are returned to the model as ``{"status": "error"}`` payloads so
    it can report them instead of guessing.
    """

    def __init__(self, endpoint: ServiceEndpoint, registry: EndpointRegistry):
        super().__init__(name=endpoint.name, description=endpoint.description or endpoint.name)
        self.endpoint = endpoint
        self.registry = registry

    def _get_declaration(self) -> Optional[types.FunctionDeclaration]:
        return types.FunctionDeclaration(
            name=self.name,
            description=self.description,
            parameters=json_schema_to_adk(self.endpoint.input_schema)
        )

    async def run_async(self, *, args: Dict[str, Any], tool_context: Any) -> Any:
        try:
            result = await self.registry.invoke(self.name, args)
            return {"status": "success", "tool_name": self.name, "result": result}
        except (httpx.HTTPError, EndpointUnavailableError, ValueError) as e:
            logger.error(f"Endpoint {self.name} error: {e}")
            return {"status": "error", "tool_name": self.name, "error": str(e)}


async def load_endpoint_registry() -> EndpointRegistry:
    """
    Startup loader: manifest file when DATA_ENDPOINTS_PATH is set, discovery
    otherwise. An unreachable data service yields an empty catalogue.
    """
    if config.DATA_ENDPOINTS_PATH:
        return EndpointRegistry.load_file(config.DATA_ENDPOINTS_PATH)
    try:
        return await EndpointRegistry.discover()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Endpoint discovery failed, data client has no endpoints: {e}")
        return EndpointRegistry()
