import config
from config import CacheSettings, _env_bool, _env_float, _env_int


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("X_BOOL", " Yes ")
    monkeypatch.setenv("X_INT", "12")
    monkeypatch.setenv("X_FLOAT", "not-a-number")

    assert _env_bool("X_BOOL", False) is True
    assert _env_bool("X_MISSING", True) is True
    assert _env_int("X_INT", 1) == 12
    assert _env_float("X_FLOAT", 2.5) == 2.5


def test_cache_settings_from_env(monkeypatch):
    monkeypatch.setenv("CACHE_API_TTL", "12.5")
    monkeypatch.setenv("CACHE_QUICK_MAXSIZE", "7")
    monkeypatch.setenv("CACHE_LARGE_MAX_BYTES", "oops")

    s = CacheSettings.from_env()

    assert s.api_ttl == 12.5
    assert s.quick_maxsize == 7
    assert s.large_max_bytes == CacheSettings().large_max_bytes
    assert s.auth_ttl == 600.0


def test_configure_logging_sets_level(monkeypatch):
    captured = {}
    monkeypatch.setattr(config.logging, "basicConfig", lambda **kw: captured.update(kw))

    config.configure_logging("debug")

    assert captured["level"] == config.logging.DEBUG
