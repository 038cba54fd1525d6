"""Tests for lambda_extensions.events: decode_event and wire models."""

import json

import pytest

from lambda_extensions.errors import DecodeError
from lambda_extensions.events import (
    EventType,
    InvokeEvent,
    ShutdownEvent,
    Tracing,
    decode_event,
)

INVOKE_PAYLOAD = {
    "eventType": "INVOKE",
    "deadlineMs": 676051,
    "requestId": "3da1f2dc-3222-475e-9205-e2e6c6318895",
    "invokedFunctionArn": "arn:aws:lambda:us-east-1:123456789012:function:ExtensionTest",
    "tracing": {
        "type": "X-Amzn-Trace-Id",
        "value": "Root=1-5f35ae12-0c0fec141ab77a00bc047aa2;Parent=2be948a625588e32;Sampled=1",
    },
}

SHUTDOWN_PAYLOAD = {
    "eventType": "SHUTDOWN",
    "deadlineMs": 676052,
    "shutdownReason": "spindown",
}


class TestDecodeInvoke:
    """INVOKE payloads decode into InvokeEvent only."""

    def test_all_fields_populated(self) -> None:
        event = decode_event(json.dumps(INVOKE_PAYLOAD))
        assert isinstance(event, InvokeEvent)
        assert not isinstance(event, ShutdownEvent)
        assert event.event_type == EventType.INVOKE
        assert event.deadline_ms == 676051
        assert event.request_id == "3da1f2dc-3222-475e-9205-e2e6c6318895"
        assert event.invoked_function_arn.endswith(":function:ExtensionTest")
        assert event.tracing == Tracing(
            type="X-Amzn-Trace-Id",
            value="Root=1-5f35ae12-0c0fec141ab77a00bc047aa2;Parent=2be948a625588e32;Sampled=1",
        )

    def test_accepts_bytes_and_mapping(self) -> None:
        from_bytes = decode_event(json.dumps(INVOKE_PAYLOAD).encode("utf-8"))
        from_mapping = decode_event(INVOKE_PAYLOAD)
        assert from_bytes == from_mapping

    def test_optional_fields_default(self) -> None:
        event = decode_event('{"eventType": "INVOKE"}')
        assert isinstance(event, InvokeEvent)
        assert event.deadline_ms == 0
        assert event.request_id == ""
        assert event.tracing is None

    def test_unknown_fields_ignored(self) -> None:
        event = decode_event({**INVOKE_PAYLOAD, "futureField": 1})
        assert isinstance(event, InvokeEvent)


class TestDecodeShutdown:
    """SHUTDOWN payloads decode into ShutdownEvent only."""

    def test_all_fields_populated(self) -> None:
        event = decode_event(json.dumps(SHUTDOWN_PAYLOAD))
        assert isinstance(event, ShutdownEvent)
        assert not isinstance(event, InvokeEvent)
        assert event.event_type == EventType.SHUTDOWN
        assert event.deadline_ms == 676052
        assert event.shutdown_reason == "spindown"


class TestDecodeErrors:
    """Malformed payloads raise DecodeError."""

    @pytest.mark.parametrize("event_type", ["RESTORE", "invoke", "", 42])
    def test_unknown_event_type(self, event_type: object) -> None:
        with pytest.raises(DecodeError, match="unknown event type"):
            decode_event({"eventType": event_type, "deadlineMs": 1})

    def test_missing_event_type(self) -> None:
        with pytest.raises(DecodeError, match="no eventType"):
            decode_event('{"deadlineMs": 1}')

    def test_invalid_json(self) -> None:
        with pytest.raises(DecodeError, match="not valid JSON"):
            decode_event(b"{not json")

    def test_non_object_payload(self) -> None:
        with pytest.raises(DecodeError, match="JSON object"):
            decode_event("[1, 2]")

    def test_wrong_field_type(self) -> None:
        with pytest.raises(DecodeError, match="invalid SHUTDOWN event"):
            decode_event({"eventType": "SHUTDOWN", "deadlineMs": "soon"})
