"""Host API endpoint addresses, derived once from AWS_LAMBDA_RUNTIME_API."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

from lambda_extensions.errors import ConfigurationError

RUNTIME_API_ENV = "AWS_LAMBDA_RUNTIME_API"
EXTENSION_API_PATH = "/2020-01-01/extension"
TELEMETRY_API_PATH = "/2022-07-01/telemetry"


@dataclass(frozen=True)
class ExtensionEndpoints:
    """Base URLs of the Extensions API and the Telemetry API."""

    extension_api: str
    telemetry_api: str

    @property
    def register_url(self) -> str:
        return f"{self.extension_api}/register"

    @property
    def next_event_url(self) -> str:
        return f"{self.extension_api}/event/next"

    @classmethod
    def from_runtime_api(cls, runtime_api: str) -> "ExtensionEndpoints":
        """Build endpoints from a host:port address such as 127.0.0.1:9001.

        Raises ConfigurationError when the address is empty or not a valid URL.
        """
        host = runtime_api.strip().rstrip("/")
        if not host:
            raise ConfigurationError("runtime API address is empty")
        if "://" not in host:
            host = f"http://{host}"
        try:
            url = httpx.URL(host)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"invalid runtime API address {runtime_api!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ConfigurationError(f"invalid runtime API address {runtime_api!r}")
        return cls(
            extension_api=host + EXTENSION_API_PATH,
            telemetry_api=host + TELEMETRY_API_PATH,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ExtensionEndpoints":
        """Read AWS_LAMBDA_RUNTIME_API. Raises ConfigurationError when unset."""
        env = os.environ if environ is None else environ
        runtime_api = env.get(RUNTIME_API_ENV, "")
        if not runtime_api:
            raise ConfigurationError(f"{RUNTIME_API_ENV} is not set")
        return cls.from_runtime_api(runtime_api)
