"""Extensions API client: register, subscribe to telemetry, run the event loop."""

import asyncio
import logging
from collections.abc import Mapping
from typing import Awaitable, Callable

import httpx

from lambda_extensions.endpoints import ExtensionEndpoints
from lambda_extensions.errors import (
    DecodeError,
    EventFetchError,
    NotRegisteredError,
    RegistrationError,
    TelemetrySubscriptionError,
)
from lambda_extensions.events import (
    EventType,
    InvokeEvent,
    LifecycleEvent,
    ShutdownEvent,
    decode_event,
)
from lambda_extensions.telemetry import (
    TelemetrySubscription,
    default_telemetry_subscription,
)

logger = logging.getLogger(__name__)

EXTENSION_NAME_HEADER = "Lambda-Extension-Name"
EXTENSION_IDENTIFIER_HEADER = "Lambda-Extension-Identifier"

InvokeHandler = Callable[[InvokeEvent], Awaitable[None]]
ShutdownHandler = Callable[[ShutdownEvent], Awaitable[None]]


def default_timeout(connect: float = 5.0) -> httpx.Timeout:
    """No read timeout: /event/next blocks until the host has an event."""
    return httpx.Timeout(connect=connect, read=None, write=connect, pool=connect)


class ExtensionClient:
    """Client for one extension process.

    Assign on_invoke / on_shutdown before register(): the registered event
    kinds are derived from which handlers are set. Not safe for concurrent
    use; register(), subscribe_telemetry() and run() are called in sequence.
    """

    def __init__(
        self,
        name: str,
        endpoints: ExtensionEndpoints,
        *,
        http_client: httpx.AsyncClient | None = None,
        on_invoke: InvokeHandler | None = None,
        on_shutdown: ShutdownHandler | None = None,
    ) -> None:
        self.name = name
        self.endpoints = endpoints
        self.on_invoke = on_invoke
        self.on_shutdown = on_shutdown
        self._extension_id = ""
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=default_timeout())

    @classmethod
    def from_env(
        cls,
        name: str,
        environ: Mapping[str, str] | None = None,
        **kwargs,
    ) -> "ExtensionClient":
        """Build a client from AWS_LAMBDA_RUNTIME_API. Raises ConfigurationError."""
        return cls(name, ExtensionEndpoints.from_env(environ), **kwargs)

    @property
    def extension_id(self) -> str:
        """Session identifier issued by register(); empty until then."""
        return self._extension_id

    @property
    def is_registered(self) -> bool:
        return bool(self._extension_id)

    def registered_events(self) -> list[EventType]:
        events: list[EventType] = []
        if self.on_invoke is not None:
            events.append(EventType.INVOKE)
        if self.on_shutdown is not None:
            events.append(EventType.SHUTDOWN)
        return events

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "ExtensionClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def register(self) -> None:
        """Announce the extension and store the session identifier.

        Raises RegistrationError on network failure, a non-JSON body or a
        missing identifier header. Never retried here. A client registers
        once; calling register() again after success raises RegistrationError
        and keeps the existing identifier.
        """
        if self.is_registered:
            raise RegistrationError(
                f"extension {self.name} is already registered, id={self._extension_id}"
            )
        events = self.registered_events()
        url = self.endpoints.register_url
        if not events:
            logger.warning("Registering %s with no event handlers set", self.name)
        logger.info("Registering extension %s at %s for events %s", self.name, url, events)
        try:
            resp = await self._http.post(
                url,
                headers={EXTENSION_NAME_HEADER: self.name},
                json={"events": [str(e) for e in events]},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise RegistrationError(f"failed to register extension: {e}") from e

        try:
            metadata = resp.json()
        except ValueError as e:
            raise RegistrationError(
                f"failed to decode register response (HTTP {resp.status_code}): {e}"
            ) from e
        logger.info("Register status %s, host metadata: %s", resp.status_code, metadata)

        extension_id = resp.headers.get(EXTENSION_IDENTIFIER_HEADER, "")
        if not extension_id:
            raise RegistrationError(
                f"extension identifier is empty: HTTP {resp.status_code} {dict(resp.headers)}"
            )
        self._extension_id = extension_id
        logger.info("Extension %s registered, id=%s", self.name, extension_id)

    async def subscribe_telemetry(
        self, subscription: TelemetrySubscription | None = None
    ) -> None:
        """Ask the host to push telemetry to the subscription's destination.

        Uses default_telemetry_subscription() when none is given. Each call
        re-subscribes.
        """
        self._require_registered("subscribe_telemetry")
        if subscription is None:
            subscription = default_telemetry_subscription()
        payload = subscription.to_wire()
        url = self.endpoints.telemetry_api
        logger.info("Subscribing %s to telemetry at %s: %s", self.name, url, payload)
        try:
            resp = await self._http.put(
                url,
                headers={
                    EXTENSION_NAME_HEADER: self.name,
                    EXTENSION_IDENTIFIER_HEADER: self._extension_id,
                },
                json=payload,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TelemetrySubscriptionError(f"failed to subscribe telemetry API: {e}") from e

        if not resp.is_success:
            raise TelemetrySubscriptionError(
                f"failed to subscribe telemetry API: {resp.status_code} {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        logger.info("Subscribed to telemetry API: %s %s", resp.status_code, resp.text)

    async def next_event(self) -> LifecycleEvent:
        """Long-poll /event/next once. Raises EventFetchError or DecodeError."""
        self._require_registered("next_event")
        url = self.endpoints.next_event_url
        logger.debug("Getting next event from %s", url)
        try:
            resp = await self._http.get(
                url, headers={EXTENSION_IDENTIFIER_HEADER: self._extension_id}
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise EventFetchError(f"failed to get next event: {e}") from e
        if resp.status_code != httpx.codes.OK:
            raise EventFetchError(
                f"failed to get next event: HTTP {resp.status_code}",
                status_code=resp.status_code,
            )
        return decode_event(resp.content)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        """Poll and dispatch events until shutdown or until stop_event is set.

        Fetch and decode failures are logged and retried without backoff.
        Returns normally after a shutdown event or when stop_event is set;
        re-raises the exception of a failing on_shutdown handler.
        """
        self._require_registered("run")
        stop = stop_event if stop_event is not None else asyncio.Event()
        while True:
            if stop.is_set():
                logger.info("Stop requested, leaving event loop")
                return
            try:
                event = await self._next_event_or_stop(stop)
            except (EventFetchError, DecodeError) as e:
                if stop.is_set():
                    logger.info("Stop requested, leaving event loop")
                    return
                logger.error("Failed to fetch next event: %s", e)
                continue

            if isinstance(event, InvokeEvent):
                await self._dispatch_invoke(event)
            elif isinstance(event, ShutdownEvent):
                await self._dispatch_shutdown(event)
                return
            else:
                logger.warning("Unknown event received: %r", event)

    async def _next_event_or_stop(self, stop: asyncio.Event) -> LifecycleEvent:
        poll = asyncio.create_task(self.next_event())
        stopped = asyncio.create_task(stop.wait())
        try:
            done, _ = await asyncio.wait(
                {poll, stopped}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (poll, stopped):
                if not task.done():
                    task.cancel()
        if poll not in done:
            raise EventFetchError("event poll interrupted by stop request")
        return poll.result()

    async def _dispatch_invoke(self, event: InvokeEvent) -> None:
        logger.debug("Invoke event received: request_id=%s", event.request_id)
        if self.on_invoke is None:
            logger.warning("Invoke handler is not set")
            return
        try:
            await self.on_invoke(event)
        except Exception as e:
            logger.exception("Invoke handler failed for %s: %s", event.request_id, e)

    async def _dispatch_shutdown(self, event: ShutdownEvent) -> None:
        logger.debug("Shutdown event received (%s), shutting down", event.shutdown_reason)
        if self.on_shutdown is None:
            logger.warning("Shutdown handler is not set")
            return
        try:
            await self.on_shutdown(event)
        except Exception as e:
            logger.error("Shutdown handler failed: %s", e)
            raise

    def _require_registered(self, operation: str) -> None:
        if not self._extension_id:
            raise NotRegisteredError(f"{operation}() called before a successful register()")
