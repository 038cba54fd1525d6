"""Lifecycle events: wire models and the polymorphic decoder.

A payload from /event/next is decoded in two steps: read the eventType
discriminator, then validate the whole object against the matching variant.
"""

import json
from collections.abc import Mapping
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from lambda_extensions.errors import DecodeError

__all__ = [
    "EventType",
    "InvokeEvent",
    "LifecycleEvent",
    "ShutdownEvent",
    "Tracing",
    "decode_event",
]


class EventType(StrEnum):
    """Lifecycle event kinds an extension can register for."""

    INVOKE = "INVOKE"
    SHUTDOWN = "SHUTDOWN"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Tracing(_WireModel):
    """Trace context attached to an invocation (e.g. X-Amzn-Trace-Id)."""

    type: str = ""
    value: str = ""


class InvokeEvent(_WireModel):
    """A new function invocation has begun."""

    event_type: Literal["INVOKE"] = Field(alias="eventType")
    deadline_ms: int = Field(default=0, alias="deadlineMs")
    request_id: str = Field(default="", alias="requestId")
    invoked_function_arn: str = Field(default="", alias="invokedFunctionArn")
    tracing: Tracing | None = None


class ShutdownEvent(_WireModel):
    """The execution environment is being torn down."""

    event_type: Literal["SHUTDOWN"] = Field(alias="eventType")
    deadline_ms: int = Field(default=0, alias="deadlineMs")
    shutdown_reason: str = Field(default="", alias="shutdownReason")


LifecycleEvent = InvokeEvent | ShutdownEvent

_VARIANTS: dict[str, type[InvokeEvent] | type[ShutdownEvent]] = {
    EventType.INVOKE: InvokeEvent,
    EventType.SHUTDOWN: ShutdownEvent,
}


def decode_event(payload: bytes | str | Mapping[str, Any]) -> LifecycleEvent:
    """Decode a raw event payload into InvokeEvent or ShutdownEvent.

    Raises DecodeError on malformed JSON, a non-object payload, a missing or
    unknown eventType, or fields of the wrong type.
    """
    if isinstance(payload, Mapping):
        data: Any = dict(payload)
    else:
        try:
            data = json.loads(payload)
        except (ValueError, UnicodeDecodeError) as e:
            raise DecodeError(f"event payload is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"event payload must be a JSON object, got {type(data).__name__}")

    event_type = data.get("eventType")
    if event_type is None:
        raise DecodeError("event payload has no eventType")
    variant = _VARIANTS.get(event_type) if isinstance(event_type, str) else None
    if variant is None:
        raise DecodeError(f"unknown event type: {event_type!r}")

    try:
        return variant.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"invalid {event_type} event: {e}") from e
