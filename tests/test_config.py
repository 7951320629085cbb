from deckbridge.bridge_logging import mask_token
from deckbridge.config import (
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_HEARTBEAT_S,
    ServerSettings,
    load_bridge_config,
)


ENV_KEYS = [
    "DECK_OPENHAB_HOST",
    "DECK_OPENHAB_PORT",
    "DECK_OPENHAB_TOKEN",
    "DECK_HEARTBEAT_S",
    "DECK_DEBOUNCE_MS",
    "DECK_DIAL_MIN",
    "DECK_DIAL_MAX",
    "DECK_HTTP_TIMEOUT_S",
]


def _clear_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestServerSettings:
    def test_endpoints_unset_without_host(self):
        settings = ServerSettings.from_values("", "8080", "token")
        assert not settings.is_complete
        assert settings.websocket_url is None
        assert settings.rest_url is None

    def test_endpoints(self):
        settings = ServerSettings.from_values(" 192.168.1.10 ", 8080, "abc")
        assert settings.websocket_url == "ws://192.168.1.10:8080/ws?accessToken=abc"
        assert settings.rest_url == "http://192.168.1.10:8080/rest"

    def test_empty_port_is_omitted(self):
        settings = ServerSettings.from_values("openhab.local", None, None)
        assert settings.websocket_url == "ws://openhab.local/ws?accessToken="
        assert settings.rest_url == "http://openhab.local/rest"


class TestLoadBridgeConfig:
    def test_defaults(self, monkeypatch):
        _clear_env(monkeypatch)
        config = load_bridge_config()
        assert config.server == ServerSettings()
        assert config.heartbeat_s == DEFAULT_HEARTBEAT_S
        assert config.debounce_s == DEFAULT_DEBOUNCE_MS / 1000.0
        assert (config.dial_min, config.dial_max) == (0, 100)

    def test_env_overrides(self, monkeypatch):
        _clear_env(monkeypatch)
        monkeypatch.setenv("DECK_OPENHAB_HOST", "oh.lan")
        monkeypatch.setenv("DECK_OPENHAB_PORT", "8443")
        monkeypatch.setenv("DECK_OPENHAB_TOKEN", "oh.secret")
        monkeypatch.setenv("DECK_HEARTBEAT_S", "2.5")
        monkeypatch.setenv("DECK_DEBOUNCE_MS", "250")
        monkeypatch.setenv("DECK_DIAL_MAX", "255")

        config = load_bridge_config()

        assert config.server.rest_url == "http://oh.lan:8443/rest"
        assert config.server.api_token == "oh.secret"
        assert config.heartbeat_s == 2.5
        assert config.debounce_s == 0.25
        assert config.dial_max == 255

    def test_invalid_numbers_fall_back(self, monkeypatch):
        _clear_env(monkeypatch)
        monkeypatch.setenv("DECK_HEARTBEAT_S", "soon")
        monkeypatch.setenv("DECK_DEBOUNCE_MS", "-5")
        monkeypatch.setenv("DECK_HTTP_TIMEOUT_S", "0")

        config = load_bridge_config()

        assert config.heartbeat_s == DEFAULT_HEARTBEAT_S
        assert config.debounce_s == DEFAULT_DEBOUNCE_MS / 1000.0
        assert config.http_timeout_s == 10.0


def test_mask_token():
    assert mask_token("") == ""
    assert mask_token("short") == "***"
    assert mask_token("oh.abcdefgh") == "oh.***fgh"


def test_access_token_is_percent_encoded():
    settings = ServerSettings.from_values("oh", "8080", "a&b#c+d")
    assert settings.websocket_url == "ws://oh:8080/ws?accessToken=a%26b%23c%2Bd"
