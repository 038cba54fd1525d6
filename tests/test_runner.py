"""Tests for the runner: subscription settings and the process entry point."""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

import httpx
import pytest

from lambda_extensions import runner
from lambda_extensions.errors import ConfigurationError
from lambda_extensions.runner import build_subscription, main, main_async
from lambda_extensions.settings import get_default_settings, reload_settings
from lambda_extensions.telemetry import default_telemetry_subscription
from mockapi import MockExtensionAPI


def test_build_subscription_defaults() -> None:
    assert build_subscription(get_default_settings()) == default_telemetry_subscription()


def test_build_subscription_uses_listener_port() -> None:
    settings = get_default_settings()
    settings["telemetry"]["listener_port"] = 4243
    sub = build_subscription(settings)
    assert sub.destination.uri == "http://sandbox.localdomain:4243"


def test_build_subscription_applies_overrides() -> None:
    settings = get_default_settings()
    settings["telemetry"]["subscription"] = {
        "types": ["platform"],
        "buffering": {"maxItems": 1000, "timeoutMs": 100},
    }
    wire = build_subscription(settings).to_wire()
    assert wire["types"] == ["platform"]
    assert wire["buffering"] == {"maxItems": 1000, "maxBytes": 1048576, "timeoutMs": 100}
    assert wire["destination"]["URI"] == "http://sandbox.localdomain:8080"


@pytest.mark.parametrize(
    "overrides",
    [
        {"types": []},
        {"buffering": {"maxItems": 0}},
        {"destination": {"URI": ""}},
    ],
)
def test_build_subscription_rejects_invalid_overrides(overrides: dict) -> None:
    settings = get_default_settings()
    settings["telemetry"]["subscription"] = overrides
    with pytest.raises(ConfigurationError, match="telemetry.subscription"):
        build_subscription(settings)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for h in root.handlers[:]:
        root.removeHandler(h)
        h.close()
    for h in handlers:
        root.addHandler(h)
    root.setLevel(level)


@pytest.fixture
def extension_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, restore_root_logger):
    """Runtime API pointing at the mock host; settings read from an empty dir."""
    monkeypatch.setenv("AWS_LAMBDA_RUNTIME_API", "mock-host")
    monkeypatch.setenv("LAMBDA_EXTENSIONS_CONFIG_DIR", str(tmp_path))
    monkeypatch.delenv("LAMBDA_EXTENSION_NAME", raising=False)
    reload_settings()
    yield
    reload_settings()


@pytest.fixture
async def mock_http():
    clients: list[httpx.AsyncClient] = []

    def make(host: MockExtensionAPI) -> httpx.AsyncClient:
        http = httpx.AsyncClient(transport=httpx.ASGITransport(app=host.app), timeout=None)
        clients.append(http)
        return http

    yield make
    for http in clients:
        await http.aclose()


class TestMainAsync:
    """main_async against the mock host over an in-process transport."""

    @pytest.mark.asyncio
    async def test_runs_until_shutdown_event(self, extension_env, mock_http) -> None:
        host = MockExtensionAPI(invoke_interval=0.05, shutdown_after=0.3)
        try:
            await asyncio.wait_for(
                main_async(get_default_settings(), http_client=mock_http(host)), timeout=10
            )
        finally:
            await host.aclose()
        assert host.registered_events == ["INVOKE", "SHUTDOWN"]
        assert host.subscriptions == []

    @pytest.mark.asyncio
    async def test_stop_event_ends_loop(self, extension_env, mock_http) -> None:
        host = MockExtensionAPI(invoke_interval=0.05, shutdown_after=60)
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, stop.set)
        try:
            await asyncio.wait_for(
                main_async(get_default_settings(), http_client=mock_http(host), stop_event=stop),
                timeout=10,
            )
        finally:
            await host.aclose()
        assert stop.is_set()

    @pytest.mark.asyncio
    @pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need Unix")
    async def test_sigterm_ends_loop(self, extension_env, mock_http) -> None:
        host = MockExtensionAPI(invoke_interval=0.05, shutdown_after=60)
        stop = asyncio.Event()
        asyncio.get_running_loop().call_later(0.2, os.kill, os.getpid(), signal.SIGTERM)
        try:
            await asyncio.wait_for(
                main_async(get_default_settings(), http_client=mock_http(host), stop_event=stop),
                timeout=10,
            )
        finally:
            await host.aclose()
        assert stop.is_set()
        # handlers are removed once main_async returns
        assert signal.getsignal(signal.SIGTERM) == signal.SIG_DFL

    @pytest.mark.asyncio
    async def test_listener_starts_before_subscription_and_stops_last(
        self, extension_env, mock_http, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        host = MockExtensionAPI(invoke_interval=0.05, shutdown_after=0.3, telemetry_interval=60)
        calls: list[str] = []

        class FakeListener:
            def __init__(self, **kwargs) -> None:
                pass

            async def start(self) -> None:
                assert host.subscriptions == []
                calls.append("start")

            async def stop(self) -> None:
                calls.append(f"stop subscriptions={len(host.subscriptions)}")

        monkeypatch.setattr(runner, "TelemetryListener", FakeListener)
        settings = get_default_settings()
        settings["telemetry"]["enabled"] = True
        settings["telemetry"]["listener_port"] = 4243
        try:
            await asyncio.wait_for(
                main_async(settings, http_client=mock_http(host)), timeout=10
            )
        finally:
            await host.aclose()
        assert calls == ["start", "stop subscriptions=1"]
        assert host.subscriptions[0].destination.uri == "http://sandbox.localdomain:4243"

    @pytest.mark.asyncio
    async def test_listener_stopped_when_subscription_fails(
        self, extension_env, mock_http, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        host = MockExtensionAPI(invoke_interval=60, shutdown_after=60)
        calls: list[str] = []

        class FakeListener:
            def __init__(self, **kwargs) -> None:
                pass

            async def start(self) -> None:
                calls.append("start")

            async def stop(self) -> None:
                calls.append("stop")

        monkeypatch.setattr(runner, "TelemetryListener", FakeListener)
        settings = get_default_settings()
        settings["telemetry"]["enabled"] = True
        settings["telemetry"]["subscription"] = {"types": []}
        try:
            with pytest.raises(ConfigurationError):
                await main_async(settings, http_client=mock_http(host))
        finally:
            await host.aclose()
        assert calls == ["start", "stop"]


class TestMain:
    def test_missing_runtime_api_exits_1(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, restore_root_logger
    ) -> None:
        monkeypatch.delenv("AWS_LAMBDA_RUNTIME_API", raising=False)
        monkeypatch.setenv("LAMBDA_EXTENSIONS_CONFIG_DIR", str(tmp_path))
        monkeypatch.setattr(runner, "load_dotenv", lambda *args, **kwargs: False)
        reload_settings()
        try:
            with pytest.raises(SystemExit) as exc_info:
                main()
        finally:
            reload_settings()
        assert exc_info.value.code == 1
