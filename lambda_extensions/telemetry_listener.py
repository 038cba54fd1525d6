"""Local HTTP listener that receives telemetry batches pushed by the host."""

import asyncio
import logging
import socket
from typing import Awaitable, Callable

import uvicorn
from fastapi import FastAPI, HTTPException

from lambda_extensions.errors import ConfigurationError
from lambda_extensions.telemetry import DEFAULT_TELEMETRY_PORT, TelemetryRecord

logger = logging.getLogger(__name__)

RecordsHandler = Callable[[list[TelemetryRecord]], Awaitable[None]]


async def log_records(records: list[TelemetryRecord]) -> None:
    """Default handler: one log line per record."""
    for r in records:
        logger.info("telemetry %s [%s] %s", r.time, r.type, r.record)


def create_telemetry_app(on_records: RecordsHandler | None = None) -> FastAPI:
    """FastAPI app accepting POST / with a JSON array of telemetry records."""
    handler = on_records or log_records
    app = FastAPI(title="lambda-extensions telemetry listener")

    @app.post("/")
    async def receive_records(records: list[TelemetryRecord]) -> dict[str, int]:
        try:
            await handler(records)
        except Exception as e:
            logger.error("Telemetry handler failed: %s", e, exc_info=True)
            raise HTTPException(status_code=500, detail="telemetry handler failed")
        return {"accepted": len(records)}

    return app


class TelemetryListener:
    """Serves the telemetry app with uvicorn as a background task."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_TELEMETRY_PORT,
        on_records: RecordsHandler | None = None,
    ) -> None:
        self.host = host
        self.port = port
        config = uvicorn.Config(
            create_telemetry_app(on_records),
            host=host,
            port=port,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._task: asyncio.Task[None] | None = None

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ConfigurationError(
                f"telemetry listener cannot bind {self.host}:{self.port}: {e}"
            ) from e
        return sock

    async def _serve(self, sock: socket.socket) -> None:
        # uvicorn reports startup failures with sys.exit()
        try:
            await self._server.serve(sockets=[sock])
        except SystemExit as e:
            raise ConfigurationError(
                f"telemetry listener failed to start on {self.host}:{self.port} (exit {e.code})"
            ) from e
        finally:
            sock.close()

    async def start(self) -> None:
        """Bind the socket and start serving. Raises ConfigurationError on failure."""
        sock = self._bind()
        self.port = sock.getsockname()[1]
        self._task = asyncio.create_task(self._serve(sock))
        while not self._server.started:
            if self._task.done():
                task, self._task = self._task, None
                task.result()
                raise ConfigurationError(
                    f"telemetry listener stopped before startup on {self.host}:{self.port}"
                )
            await asyncio.sleep(0.05)
        logger.info("Telemetry listener started on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Graceful shutdown of the uvicorn server."""
        if self._task is None:
            return
        self._server.should_exit = True
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Telemetry listener stopped")
