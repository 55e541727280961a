import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from Assistant.core import CircuitBreaker
from Assistant.tools.endpoints import (
    EndpointRegistry,
    EndpointUnavailableError,
    ServiceEndpoint,
    json_schema_to_adk,
)

MANIFEST = {
    "endpoints": [
        {
            "name": "get_invoice",
            "description": "Fetch an invoice by id",
            "method": "GET",
            "path": "/invoices/{invoiceId}",
            "inputSchema": {
                "type": "object",
                "properties": {"invoiceId": {"type": "string"}, "expand": {"type": "boolean"}},
                "required": ["invoiceId"]
            }
        },
        {
            "name": "search_customers",
            "description": "Search customers",
            "method": "POST",
            "path": "/customers/search",
            "inputSchema": {
                "type": "object",
                "properties": {"tags": {"type": "array", "items": {"type": "string"}}}
            }
        }
    ]
}


def _registry(handler, breaker=None):
    return EndpointRegistry.from_manifest(
        MANIFEST,
        base_url="http://data.local",
        breaker=breaker or CircuitBreaker(threshold=0.5, timeout=30),
        transport=httpx.MockTransport(handler)
    )


def test_describe_renders_catalogue():
    registry = EndpointRegistry.from_manifest(MANIFEST)
    lines = registry.describe().splitlines()

    assert len(registry) == 2
    assert lines[0].startswith("- get_invoice: Fetch an invoice by id. inputSchema: {")
    assert json.loads(lines[0].split("inputSchema: ", 1)[1])["required"] == ["invoiceId"]


def test_manifest_may_be_a_bare_list():
    registry = EndpointRegistry.from_manifest(MANIFEST["endpoints"])
    assert registry.names() == ["get_invoice", "search_customers"]


def test_load_file(tmp_path):
    path = tmp_path / "endpoints.json"
    path.write_text(json.dumps(MANIFEST))

    assert "search_customers" in EndpointRegistry.load_file(str(path))


def test_render_path_consumes_path_parameters():
    endpoint = ServiceEndpoint.model_validate(MANIFEST["endpoints"][0])

    path, remaining = endpoint.render_path({"invoiceId": "inv-7", "expand": True})

    assert path == "/invoices/inv-7"
    assert remaining == {"expand": True}


def test_render_path_missing_parameter():
    endpoint = ServiceEndpoint.model_validate(MANIFEST["endpoints"][0])
    with pytest.raises(ValueError):
        endpoint.render_path({})


@pytest.mark.asyncio
async def test_invoke_get_sends_query_params():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"id": "inv-7", "balance": 40})

    result = await _registry(handler).invoke("get_invoice", {"invoiceId": "inv-7", "expand": "true"})

    assert result == {"id": "inv-7", "balance": 40}
    assert seen["url"] == "http://data.local/invoices/inv-7?expand=true"


@pytest.mark.asyncio
async def test_invoke_post_sends_json_body():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, text="ok")

    result = await _registry(handler).invoke("search_customers", {"tags": ["vip"]})

    assert result == "ok"
    assert seen == {"method": "POST", "body": {"tags": ["vip"]}}


@pytest.mark.asyncio
async def test_failures_open_the_circuit():
    breaker = CircuitBreaker(threshold=0.5, timeout=30)
    registry = _registry(lambda request: httpx.Response(500), breaker=breaker)

    for _ in range(4):
        with pytest.raises(httpx.HTTPStatusError):
            await registry.invoke("get_invoice", {"invoiceId": "x"})

    assert breaker.state_of("get_invoice") == "open"
    with pytest.raises(EndpointUnavailableError):
        await registry.invoke("get_invoice", {"invoiceId": "x"})


@pytest.mark.asyncio
async def test_tool_reports_errors_to_the_model():
    registry = _registry(lambda request: httpx.Response(503))
    tool = registry.tools(["get_invoice"])[0]

    result = await tool.run_async(args={"invoiceId": "x"}, tool_context=None)

    assert result["status"] == "error"
    assert result["tool_name"] == "get_invoice"


@pytest.mark.asyncio
async def test_tool_returns_endpoint_payload():
    registry = _registry(lambda request: httpx.Response(200, json={"balance": 40}))
    tool = registry.tools(["get_invoice"])[0]

    result = await tool.run_async(args={"invoiceId": "x"}, tool_context=None)

    assert result == {"status": "success", "tool_name": "get_invoice", "result": {"balance": 40}}


def test_tools_skip_unknown_names():
    registry = EndpointRegistry.from_manifest(MANIFEST)
    assert [t.name for t in registry.tools(["get_invoice", "nope"])] == ["get_invoice"]
    assert len(registry.tools()) == 2


def test_tool_declaration_carries_input_schema():
    registry = EndpointRegistry.from_manifest(MANIFEST)
    declaration = registry.tools(["get_invoice"])[0]._get_declaration()

    assert declaration.name == "get_invoice"
    assert declaration.parameters.required == ["invoiceId"]
    assert set(declaration.parameters.properties) == {"invoiceId", "expand"}


def test_array_schema_conversion():
    schema = json_schema_to_adk(MANIFEST["endpoints"][1]["inputSchema"])
    assert schema.properties["tags"].items is not None


@pytest.mark.asyncio
async def test_discover_reads_listing():
    def handler(request):
        assert request.url.path == "/endpoints"
        return httpx.Response(200, json=MANIFEST)

    registry = await EndpointRegistry.discover(
        "http://data.local", transport=httpx.MockTransport(handler)
    )

    assert registry.names() == ["get_invoice", "search_customers"]


@pytest.mark.asyncio
async def test_startup_loader_tolerates_unreachable_service():
    from Assistant.tools import endpoints

    with patch.object(endpoints.config, "DATA_ENDPOINTS_PATH", ""), \
            patch.object(endpoints.EndpointRegistry, "discover",
                         new=AsyncMock(side_effect=httpx.ConnectError("refused"))):
        registry = await endpoints.load_endpoint_registry()

    assert len(registry) == 0
