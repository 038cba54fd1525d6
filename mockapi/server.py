"""Mock Lambda host: Extensions API and Telemetry API for local runs and tests.

Registering for INVOKE starts a ticker that queues an invoke event every
invoke_interval seconds; registering for SHUTDOWN queues a single shutdown
event after shutdown_after seconds. /event/next blocks on the queue.
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from lambda_extensions.client import EXTENSION_IDENTIFIER_HEADER
from lambda_extensions.endpoints import EXTENSION_API_PATH, TELEMETRY_API_PATH
from lambda_extensions.events import EventType
from lambda_extensions.telemetry import SANDBOX_HOSTNAME, TelemetrySubscription

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION_ID = "0000-0000-0000-0000"
FUNCTION_ARN = "arn:aws:lambda:us-east-1:123456789012:function:helloWorld"
INVOKE_DEADLINE_MS = 3000


class RegisterRequest(BaseModel):
    events: list[EventType]


class MockExtensionAPI:
    """Stateful mock host. Build one per test; call aclose() when done."""

    def __init__(
        self,
        *,
        invoke_interval: float = 1.0,
        shutdown_after: float = 5.0,
        telemetry_interval: float = 1.0,
        extension_id: str = DEFAULT_EXTENSION_ID,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.invoke_interval = invoke_interval
        self.shutdown_after = shutdown_after
        self.telemetry_interval = telemetry_interval
        self.extension_id = extension_id
        self.registered_events: list[EventType] = []
        self.subscriptions: list[TelemetrySubscription] = []
        # maxsize=1: a producer blocks until the extension picks its event up
        self._events: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=1)
        self._tasks: set[asyncio.Task[None]] = set()
        self._owns_http = http_client is None
        self._http = http_client
        self.app = self._build_app()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def aclose(self) -> None:
        """Cancel tickers and telemetry pushers."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            await self.aclose()

        app = FastAPI(title="Mock Lambda Extensions API", lifespan=lifespan)
        app.add_api_route(f"{EXTENSION_API_PATH}/register", self.register, methods=["POST"])
        app.add_api_route(f"{EXTENSION_API_PATH}/event/next", self.next_event, methods=["GET"])
        app.add_api_route(TELEMETRY_API_PATH, self.subscribe_telemetry, methods=["PUT"])
        return app

    async def register(self, request: Request) -> Response:
        try:
            body = RegisterRequest.model_validate(await request.json())
        except (ValueError, ValidationError) as e:
            return JSONResponse({"errorMessage": str(e)}, status_code=400)
        logger.info("Registering events %s", body.events)
        self.registered_events = list(body.events)
        if EventType.INVOKE in body.events:
            self._spawn(self._tick_invokes())
        if EventType.SHUTDOWN in body.events:
            self._spawn(self._shutdown_later())
        return JSONResponse(
            {"functionName": "helloWorld", "functionVersion": "$LATEST", "handler": "handler"},
            headers={EXTENSION_IDENTIFIER_HEADER: self.extension_id},
        )

    async def next_event(self) -> Response:
        event = await self._events.get()
        return JSONResponse(event)

    async def subscribe_telemetry(self, request: Request) -> Response:
        try:
            sub = TelemetrySubscription.model_validate(await request.json())
        except (ValueError, ValidationError) as e:
            return JSONResponse({"errorMessage": str(e)}, status_code=400)
        self.subscriptions.append(sub)
        dest = sub.destination.uri.replace(SANDBOX_HOSTNAME, "localhost", 1)
        logger.info("Telemetry subscription for %s -> %s", sub.types, dest)
        self._spawn(self._push_telemetry(dest))
        return Response(status_code=200)

    async def _tick_invokes(self) -> None:
        while True:
            await asyncio.sleep(self.invoke_interval)
            logger.info("invoke event")
            await self._events.put(_invoke_payload())

    async def _shutdown_later(self) -> None:
        await asyncio.sleep(self.shutdown_after)
        logger.info("shutdown event")
        await self._events.put(
            {
                "eventType": EventType.SHUTDOWN.value,
                "deadlineMs": _now_ms() + 2000,
                "shutdownReason": "spindown",
            }
        )

    async def _push_telemetry(self, dest: str) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=5.0)
        n = 0
        while True:
            await asyncio.sleep(self.telemetry_interval)
            batch = [
                {
                    "time": datetime.now(timezone.utc).isoformat(),
                    "type": "function",
                    "record": f"record-{n}",
                }
            ]
            n += 1
            try:
                resp = await self._http.post(dest, json=batch)
            except httpx.HTTPError as e:
                logger.error("Failed to send telemetry to %s: %s", dest, e)
                return
            logger.info("Sent telemetry: %s", resp.status_code)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _invoke_payload() -> dict[str, Any]:
    return {
        "eventType": EventType.INVOKE.value,
        "deadlineMs": _now_ms() + INVOKE_DEADLINE_MS,
        "requestId": str(uuid.uuid4()),
        "invokedFunctionArn": FUNCTION_ARN,
        "tracing": {
            "type": "X-Amzn-Trace-Id",
            "value": f"Root=1-{int(time.time()):08x}-{uuid.uuid4().hex[:24]};Sampled=1",
        },
    }
