from __future__ import annotations

import pytest

from outray.client.backoff import Backoff
from outray.client.config import DEFAULT_SERVER_URL, ClientConfig
from outray.exceptions import ConfigError
from outray.models.enums import TunnelProtocol


def test_defaults() -> None:
    config = ClientConfig(api_key="k", port=3000)
    assert config.server_url == DEFAULT_SERVER_URL == "wss://api.outray.dev"
    assert config.protocol is TunnelProtocol.HTTP
    assert config.remote_port == 0
    assert config.ping_interval == 9.0
    assert config.proxy_timeout == 30.0
    assert config.udp_timeout == 5.0
    assert config.backoff_initial == 1.0
    assert config.backoff_max == 30.0
    assert config.proxies_http


def test_protocol_string_is_coerced() -> None:
    config = ClientConfig(api_key="k", port=5432, protocol="tcp")
    assert config.protocol is TunnelProtocol.TCP
    assert not config.proxies_http


def test_no_proxy_without_port() -> None:
    assert not ClientConfig(api_key="k", port=0).proxies_http


def test_config_is_immutable() -> None:
    config = ClientConfig(api_key="k", port=3000)
    with pytest.raises(AttributeError):
        config.port = 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"api_key": ""},
        {"port": -1},
        {"port": 70000},
        {"remote_port": 65536},
        {"protocol": "quic"},
        {"server_url": "https://api.outray.dev"},
        {"proxy_timeout": 0},
        {"udp_timeout": -1},
        {"backoff_initial": 5.0, "backoff_max": 1.0},
    ],
)
def test_invalid_config(overrides: dict) -> None:
    values = {"api_key": "k", "port": 3000}
    values.update(overrides)
    with pytest.raises(ConfigError):
        ClientConfig(**values)


def test_local_url() -> None:
    config = ClientConfig(api_key="k", port=3000)
    assert config.get_local_url("/a?b=1") == "http://localhost:3000/a?b=1"
    assert config.get_local_url("a") == "http://localhost:3000/a"


def test_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OUTRAY_API_KEY", "env-key")
    monkeypatch.setenv("OUTRAY_PORT", "8080")
    monkeypatch.setenv("OUTRAY_PROTOCOL", "udp")
    monkeypatch.setenv("OUTRAY_SERVER_URL", "ws://relay.local")
    monkeypatch.delenv("OUTRAY_REMOTE_PORT", raising=False)

    config = ClientConfig.from_env(remote_port=9000, server_url=None)
    assert config.api_key == "env-key"
    assert config.port == 8080
    assert config.protocol is TunnelProtocol.UDP
    assert config.server_url == "ws://relay.local"
    assert config.remote_port == 9000


def test_from_env_missing_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OUTRAY_API_KEY", raising=False)
    monkeypatch.setenv("OUTRAY_PORT", "8080")
    with pytest.raises(ConfigError):
        ClientConfig.from_env()


def test_from_env_bad_port(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OUTRAY_API_KEY", "k")
    monkeypatch.setenv("OUTRAY_PORT", "eighty")
    with pytest.raises(ConfigError):
        ClientConfig.from_env()


def test_backoff_doubles_to_ceiling() -> None:
    backoff = Backoff(1.0, 30.0)
    delays = [backoff.next_delay() for _ in range(8)]
    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0, 30.0]
    assert all(a <= b for a, b in zip(delays, delays[1:]))
    assert backoff.attempts == 8


def test_backoff_reset() -> None:
    backoff = Backoff(1.0, 30.0)
    backoff.next_delay()
    backoff.next_delay()
    backoff.reset()
    assert backoff.next_delay() == 1.0
    assert backoff.attempts == 1


def test_backoff_rejects_bad_parameters() -> None:
    with pytest.raises(ValueError):
        Backoff(0, 30.0)
    with pytest.raises(ValueError):
        Backoff(10.0, 1.0)
