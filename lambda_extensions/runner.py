"""Entry point for the extension process: register, subscribe, run the event loop."""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import httpx
from dotenv import load_dotenv
from pydantic import ValidationError

from lambda_extensions.client import ExtensionClient, default_timeout
from lambda_extensions.errors import ConfigurationError, ExtensionError
from lambda_extensions.events import InvokeEvent, ShutdownEvent
from lambda_extensions.logging_config import setup_logging
from lambda_extensions.settings import get_extension_name, get_setting, load_settings
from lambda_extensions.telemetry import TelemetrySubscription, default_telemetry_subscription
from lambda_extensions.telemetry_listener import TelemetryListener

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


async def _log_invoke(event: InvokeEvent) -> None:
    logger.info(
        "INVOKE request_id=%s arn=%s deadline_ms=%d",
        event.request_id,
        event.invoked_function_arn,
        event.deadline_ms,
    )


async def _log_shutdown(event: ShutdownEvent) -> None:
    logger.info("SHUTDOWN reason=%s deadline_ms=%d", event.shutdown_reason, event.deadline_ms)


def build_subscription(settings: dict[str, Any]) -> TelemetrySubscription:
    """Default subscription for the listener port, with settings overrides applied.

    Raises ConfigurationError when the overrides do not form a valid subscription.
    """
    port = int(get_setting(settings, "telemetry.listener_port", 8080))
    base = default_telemetry_subscription(port).to_wire()
    overrides = get_setting(settings, "telemetry.subscription")
    if isinstance(overrides, dict):
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key].update(value)
            else:
                base[key] = value
    try:
        return TelemetrySubscription.model_validate(base)
    except ValidationError as e:
        raise ConfigurationError(f"invalid telemetry.subscription settings: {e}") from e


def _install_signal_handlers(stop_event: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            continue  # not available on Windows event loops
        installed.append(sig)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in installed:
        loop.remove_signal_handler(sig)


async def main_async(
    settings: dict[str, Any] | None = None,
    *,
    http_client: httpx.AsyncClient | None = None,
    stop_event: asyncio.Event | None = None,
) -> None:
    """Bootstrap: settings -> logging -> client -> register -> telemetry -> run.

    SIGINT/SIGTERM set stop_event while the loop runs. An http_client passed
    in is left open for the caller.
    """
    settings = settings or load_settings()
    setup_logging(settings, _PROJECT_ROOT)
    stop_event = stop_event or asyncio.Event()
    installed = _install_signal_handlers(stop_event)

    owns_http = http_client is None
    if http_client is None:
        timeout = default_timeout(float(get_setting(settings, "http.connect_timeout", 5.0)))
        http_client = httpx.AsyncClient(timeout=timeout)
    listener: TelemetryListener | None = None
    try:
        client = ExtensionClient.from_env(
            get_extension_name(settings),
            http_client=http_client,
            on_invoke=_log_invoke,
            on_shutdown=_log_shutdown,
        )
        await client.register()
        if get_setting(settings, "telemetry.enabled", False):
            listener = TelemetryListener(
                host=get_setting(settings, "telemetry.listener_host", "0.0.0.0"),
                port=int(get_setting(settings, "telemetry.listener_port", 8080)),
            )
            await listener.start()
            await client.subscribe_telemetry(build_subscription(settings))
        await client.run(stop_event)
        logger.info("Extension %s exited", client.name)
    finally:
        if listener is not None:
            await listener.stop()
        if owns_http:
            await http_client.aclose()
        _remove_signal_handlers(installed)


def main() -> None:
    """Synchronous entry for the extension process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except ExtensionError as e:
        logger.error("Extension failed: %s", e)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


__all__ = ["build_subscription", "main", "main_async"]
