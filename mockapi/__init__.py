"""Mock Lambda host API used for local runs and tests."""

from mockapi.server import DEFAULT_EXTENSION_ID, MockExtensionAPI

__all__ = ["DEFAULT_EXTENSION_ID", "MockExtensionAPI"]
