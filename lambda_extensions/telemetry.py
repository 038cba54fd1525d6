"""Telemetry API wire models: subscription document and pushed records."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "DEFAULT_TELEMETRY_PORT",
    "TelemetryBuffering",
    "TelemetryDestination",
    "TelemetryRecord",
    "TelemetrySubscription",
    "default_telemetry_subscription",
]

DEFAULT_TELEMETRY_PORT = 8080
DEFAULT_SCHEMA_VERSION = "2022-12-13"
SANDBOX_HOSTNAME = "sandbox.localdomain"


class TelemetryBuffering(BaseModel):
    """Batching limits the host applies before pushing records."""

    model_config = ConfigDict(populate_by_name=True)

    max_items: int = Field(default=500, gt=0, alias="maxItems")
    max_bytes: int = Field(default=1024 * 1024, gt=0, alias="maxBytes")
    timeout_ms: int = Field(default=1000, gt=0, alias="timeoutMs")


class TelemetryDestination(BaseModel):
    """Where the host pushes records. URI must be reachable from the sandbox."""

    model_config = ConfigDict(populate_by_name=True)

    protocol: str = "HTTP"
    uri: str = Field(
        default=f"http://{SANDBOX_HOSTNAME}:{DEFAULT_TELEMETRY_PORT}",
        min_length=1,
        alias="URI",
    )


class TelemetrySubscription(BaseModel):
    """Body of PUT /telemetry."""

    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field(default=DEFAULT_SCHEMA_VERSION, alias="schemaVersion")
    types: list[str] = Field(
        default_factory=lambda: ["function", "platform"], min_length=1
    )
    buffering: TelemetryBuffering = Field(default_factory=TelemetryBuffering)
    destination: TelemetryDestination = Field(default_factory=TelemetryDestination)

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the field names the Telemetry API expects."""
        return self.model_dump(by_alias=True)


class TelemetryRecord(BaseModel):
    """One record in a batch pushed by the host to the listener."""

    time: str
    type: str
    record: Any = None


def default_telemetry_subscription(port: int = DEFAULT_TELEMETRY_PORT) -> TelemetrySubscription:
    """Subscription used when the caller supplies none: function + platform logs."""
    return TelemetrySubscription(
        destination=TelemetryDestination(uri=f"http://{SANDBOX_HOSTNAME}:{port}"),
    )
