"""Client for the Lambda Extensions API and Telemetry API."""

from lambda_extensions.client import (
    EXTENSION_IDENTIFIER_HEADER,
    EXTENSION_NAME_HEADER,
    ExtensionClient,
    InvokeHandler,
    ShutdownHandler,
)
from lambda_extensions.endpoints import ExtensionEndpoints
from lambda_extensions.errors import (
    ConfigurationError,
    DecodeError,
    EventFetchError,
    ExtensionError,
    NotRegisteredError,
    RegistrationError,
    TelemetrySubscriptionError,
)
from lambda_extensions.events import (
    EventType,
    InvokeEvent,
    LifecycleEvent,
    ShutdownEvent,
    Tracing,
    decode_event,
)
from lambda_extensions.telemetry import (
    TelemetryBuffering,
    TelemetryDestination,
    TelemetryRecord,
    TelemetrySubscription,
    default_telemetry_subscription,
)

__all__ = [
    "EXTENSION_IDENTIFIER_HEADER",
    "EXTENSION_NAME_HEADER",
    "ConfigurationError",
    "DecodeError",
    "EventFetchError",
    "EventType",
    "ExtensionClient",
    "ExtensionEndpoints",
    "ExtensionError",
    "InvokeEvent",
    "InvokeHandler",
    "LifecycleEvent",
    "NotRegisteredError",
    "RegistrationError",
    "ShutdownEvent",
    "ShutdownHandler",
    "TelemetryBuffering",
    "TelemetryDestination",
    "TelemetryRecord",
    "TelemetrySubscription",
    "TelemetrySubscriptionError",
    "Tracing",
    "decode_event",
    "default_telemetry_subscription",
]
