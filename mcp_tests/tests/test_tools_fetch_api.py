import pytest

from core.errors import ValidationError
from tools import fetch_api as fetch_api_tool


class FakeApiClient:
    def __init__(self, out):
        self._out = out
        self.calls = []

    async def get_json(self, path, params=None, *, ttl=None):
        self.calls.append((path, params, ttl))
        return self._out


@pytest.mark.asyncio
async def test_fetch_api_tool_delegates_to_client(dummy_mcp):
    client = FakeApiClient(out={"items": []})
    fetch_api_tool.register(dummy_mcp, api_client=client)
    fn = dummy_mcp.tools["fetch_api"]

    out = await fn(path="/courses", params={"page": 1}, ttl_seconds=10.0)

    assert out == {"items": []}
    assert client.calls == [("/courses", {"page": 1}, 10.0)]


@pytest.mark.asyncio
@pytest.mark.parametrize(("path", "ttl"), [("", None), ("   ", None), ("/courses", -1.0)])
async def test_fetch_api_tool_validates_inputs(dummy_mcp, path, ttl):
    client = FakeApiClient(out=None)
    fetch_api_tool.register(dummy_mcp, api_client=client)
    fn = dummy_mcp.tools["fetch_api"]

    with pytest.raises(ValidationError):
        await fn(path=path, ttl_seconds=ttl)
    assert client.calls == []
