import sys
import types
import uuid
import importlib.util
from pathlib import Path


def _find_server_py() -> Path:
    root = Path(__file__).resolve().parents[2]
    candidates = [
        root / "server.py",
        root / "server" / "server.py",
        root / "src" / "server" / "server.py",
    ]
    for p in candidates:
        if p.exists():
            return p
    raise FileNotFoundError(f"Could not find server.py. Tried: {candidates}")


def _install_fake_modules(monkeypatch, captures: dict):
    # ---- Fake mcp.server.fastmcp.FastMCP ----
    mcp_mod = types.ModuleType("mcp")
    mcp_server_mod = types.ModuleType("mcp.server")
    fastmcp_mod = types.ModuleType("mcp.server.fastmcp")

    class DummyFastMCP:
        def __init__(self, name: str):
            captures["fastmcp_name"] = name
            captures["mcp_instance"] = self
            self.run_calls = []

        def run(self, *, transport: str):
            self.run_calls.append({"transport": transport})
            captures["run_calls"] = list(self.run_calls)

    fastmcp_mod.FastMCP = DummyFastMCP

    mcp_mod.__path__ = []
    mcp_server_mod.__path__ = []

    monkeypatch.setitem(sys.modules, "mcp", mcp_mod)
    monkeypatch.setitem(sys.modules, "mcp.server", mcp_server_mod)
    monkeypatch.setitem(sys.modules, "mcp.server.fastmcp", fastmcp_mod)

    # ---- Fake config ----
    config_mod = types.ModuleType("config")
    config_mod.HTTP_VERIFY = False
    config_mod.API_BASE_URL = "https://api.example"
    config_mod.API_TIMEOUT = 12.3

    class FakeSettings:
        @classmethod
        def from_env(cls):
            captures["settings"] = cls()
            return captures["settings"]

    def configure_logging():
        captures["logging_configured"] = True

    config_mod.CacheSettings = FakeSettings
    config_mod.configure_logging = configure_logging
    monkeypatch.setitem(sys.modules, "config", config_mod)

    # ---- Fake registry + client ----
    def _ensure_pkg(name: str):
        pkg = types.ModuleType(name)
        pkg.__path__ = []
        monkeypatch.setitem(sys.modules, name, pkg)

    _ensure_pkg("caches")
    _ensure_pkg("clients")
    _ensure_pkg("tools")

    registry_mod = types.ModuleType("caches.registry")
    api_client_mod = types.ModuleType("clients.api_client")

    class FakeRegistry:
        api = object()

    def build_registry(settings):
        captures["build_registry_calls"] = captures.get("build_registry_calls", []) + [settings]
        captures["registry_instance"] = FakeRegistry()
        return captures["registry_instance"]

    class FakeApiClient:
        def __init__(self, *, base_url: str, cache, timeout: float, verify: bool):
            captures["api_client_ctor_calls"] = captures.get("api_client_ctor_calls", []) + [
                {"base_url": base_url, "cache": cache, "timeout": timeout, "verify": verify}
            ]
            captures["api_client_instance"] = self

    registry_mod.build_registry = build_registry
    api_client_mod.ApiClient = FakeApiClient
    monkeypatch.setitem(sys.modules, "caches.registry", registry_mod)
    monkeypatch.setitem(sys.modules, "clients.api_client", api_client_mod)

    # ---- Fake tools ----
    fetch_mod = types.ModuleType("tools.fetch_api")
    admin_mod = types.ModuleType("tools.cache_admin")

    def register_fetch_api(mcp, *, api_client):
        captures["register_fetch_api_calls"] = captures.get("register_fetch_api_calls", []) + [
            {"mcp": mcp, "api_client": api_client}
        ]

    def register_cache_admin(mcp, *, registry):
        captures["register_cache_admin_calls"] = captures.get("register_cache_admin_calls", []) + [
            {"mcp": mcp, "registry": registry}
        ]

    fetch_mod.register = register_fetch_api
    admin_mod.register = register_cache_admin
    monkeypatch.setitem(sys.modules, "tools.fetch_api", fetch_mod)
    monkeypatch.setitem(sys.modules, "tools.cache_admin", admin_mod)


def _load_server_module(monkeypatch, captures: dict):
    _install_fake_modules(monkeypatch, captures)

    server_path = _find_server_py()
    mod_name = f"server_under_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, server_path)
    assert spec and spec.loader

    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, mod_name, module)
    spec.loader.exec_module(module)
    return module


def test_server_builds_caches_once_and_injects(monkeypatch):
    captures = {}
    module = _load_server_module(monkeypatch, captures)

    assert captures["fastmcp_name"] == "request-cache-mcp"
    mcp = captures["mcp_instance"]

    # One registry built from env settings
    assert captures["build_registry_calls"] == [captures["settings"]]
    registry = captures["registry_instance"]

    # API client wired to the registry's api cache and config
    assert len(captures["api_client_ctor_calls"]) == 1
    ctor = captures["api_client_ctor_calls"][0]
    assert ctor["base_url"] == "https://api.example"
    assert ctor["cache"] is registry.api
    assert ctor["timeout"] == 12.3
    assert ctor["verify"] is False

    # Tools receive the same injected instances
    assert captures["register_fetch_api_calls"] == [{"mcp": mcp, "api_client": captures["api_client_instance"]}]
    assert captures["register_cache_admin_calls"] == [{"mcp": mcp, "registry": registry}]

    # main() configures logging and runs stdio transport
    module.main()
    assert captures["logging_configured"] is True
    assert captures["run_calls"] == [{"transport": "stdio"}]
