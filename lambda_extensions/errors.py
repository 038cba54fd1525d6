"""Error taxonomy for the extensions client.

Every failure the client reports derives from ExtensionError. Handler
exceptions are never wrapped: the shutdown handler's own exception is what
ExtensionClient.run() raises.
"""


class ExtensionError(Exception):
    """Base class for all client errors."""


class ConfigurationError(ExtensionError):
    """Required environment or settings value is missing or invalid."""


class RegistrationError(ExtensionError):
    """Register call failed: network error, bad body or no identifier."""


class NotRegisteredError(ExtensionError):
    """Operation needs a session identifier and register() has not succeeded."""


class TelemetrySubscriptionError(ExtensionError):
    """Telemetry API rejected the subscription or could not be reached."""

    def __init__(
        self, message: str, status_code: int | None = None, body: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class EventFetchError(ExtensionError):
    """Transient failure while long-polling for the next event."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ExtensionError):
    """Lifecycle event payload could not be decoded into a known variant."""
