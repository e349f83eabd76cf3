"""Unit tests for the response dispatcher."""

import json
import logging

import pytest

from nrepl_link.dispatcher import ResponseDispatcher
from nrepl_link.notifications import (
    ConsoleOutput,
    EvaluationDone,
    EvaluationError,
    NotificationHub,
    ValueReady,
)
from nrepl_link.registry import CorrelationRegistry


@pytest.fixture
def registry():
    return CorrelationRegistry()


@pytest.fixture
def hub():
    return NotificationHub()


@pytest.fixture
def dispatcher(registry, hub):
    return ResponseDispatcher(registry, hub)


@pytest.fixture
def published(hub):
    notifications = []
    hub.subscribe_all(notifications.append)
    return notifications


def send(dispatcher, frame):
    dispatcher.on_frame(json.dumps(frame))


class TestEvaluationFrames:
    """Frames whose id belongs to an evaluation."""

    def test_value_updates_namespace_then_notifies(self, dispatcher, registry, hub):
        registry.register_evaluation("X", "seg1")
        namespaces_seen = []
        hub.subscribe(ValueReady, lambda n: namespaces_seen.append(dispatcher.current_namespace))

        send(dispatcher, {"id": "X", "ns": "my.ns", "value": "42"})

        assert dispatcher.current_namespace == "my.ns"
        assert namespaces_seen == ["my.ns"]

    def test_value(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")

        send(dispatcher, {"id": "X", "ns": "user", "value": "42"})

        assert published == [ValueReady(namespace="user", value="42", segment_id="seg1")]
        assert registry.lookup_evaluation("X") == "seg1"

    def test_output(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")

        send(dispatcher, {"id": "X", "out": "hello\n"})

        assert published == [ConsoleOutput(text="hello\n", segment_id="seg1")]

    def test_error(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")

        send(dispatcher, {"id": "X", "err": "NullPointerException"})

        assert published == [EvaluationError(error="NullPointerException", segment_id="seg1")]
        assert "X" in registry

    def test_done_removes_entry(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")

        send(dispatcher, {"id": "X", "status": ["done"]})

        assert published == [EvaluationDone(segment_id="seg1")]
        assert "X" not in registry

    def test_non_terminal_status_is_not_done(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")

        send(dispatcher, {"id": "X", "status": ["eval-error"]})

        assert published == []
        assert "X" in registry

    def test_root_ex_is_logged_only(self, dispatcher, registry, published, caplog):
        registry.register_evaluation("X", "seg1")

        with caplog.at_level(logging.INFO):
            send(dispatcher, {"id": "X", "root-ex": "class clojure.lang.ArityException"})

        assert published == []
        assert "X" in registry
        assert any("Root-ex" in record.message for record in caplog.records)

    def test_value_with_conflicting_fields_warns(self, dispatcher, registry, published, caplog):
        registry.register_evaluation("X", "seg1")

        with caplog.at_level(logging.WARNING):
            send(dispatcher, {"id": "X", "ns": "user", "value": "1", "status": ["done"]})

        assert published == [
            ValueReady(namespace="user", value="1", segment_id="seg1"),
            EvaluationDone(segment_id="seg1"),
        ]
        assert "X" not in registry
        assert any("also carries" in record.message for record in caplog.records)

    def test_value_with_output_stays_pending(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")

        send(dispatcher, {"id": "X", "ns": "user", "value": "1", "out": "x"})

        assert published == [ValueReady(namespace="user", value="1", segment_id="seg1")]
        assert "X" in registry

    def test_done_after_removal_is_unroutable(self, dispatcher, registry, published):
        registry.register_evaluation("X", "seg1")
        send(dispatcher, {"id": "X", "status": ["done"]})

        send(dispatcher, {"id": "X", "status": ["done"]})
        send(dispatcher, {"id": "X", "out": "late"})

        assert published == [EvaluationDone(segment_id="seg1")]

    def test_interleaved_evaluations(self, dispatcher, registry, published):
        registry.register_evaluation("A", "seg-a")
        registry.register_evaluation("B", "seg-b")

        send(dispatcher, {"id": "B", "out": "b-out"})
        send(dispatcher, {"id": "A", "ns": "user", "value": "1"})
        send(dispatcher, {"id": "B", "status": ["done"]})
        send(dispatcher, {"id": "A", "status": ["done"]})

        assert published == [
            ConsoleOutput(text="b-out", segment_id="seg-b"),
            ValueReady(namespace="user", value="1", segment_id="seg-a"),
            EvaluationDone(segment_id="seg-b"),
            EvaluationDone(segment_id="seg-a"),
        ]
        assert len(registry) == 0


class TestServiceFrames:
    """Frames whose id belongs to a service request."""

    def test_payload_invokes_callback_and_keeps_entry(self, dispatcher, registry):
        payloads = []
        registry.register_service("Y", payloads.append)

        send(dispatcher, {"id": "Y", "value": ["foo", "foobar"]})

        assert payloads == [{"id": "Y", "value": ["foo", "foobar"]}]
        assert "Y" in registry

    def test_each_payload_frame_invokes_callback(self, dispatcher, registry):
        payloads = []
        registry.register_service("Y", payloads.append)

        send(dispatcher, {"id": "Y", "value": ["a"]})
        send(dispatcher, {"id": "Y", "value": ["b"]})

        assert len(payloads) == 2

    def test_done_removes_without_callback(self, dispatcher, registry):
        payloads = []
        registry.register_service("Y", payloads.append)

        send(dispatcher, {"id": "Y", "status": ["done"]})

        assert payloads == []
        assert "Y" not in registry

    def test_non_terminal_status_reaches_callback(self, dispatcher, registry):
        payloads = []
        registry.register_service("Y", payloads.append)

        send(dispatcher, {"id": "Y", "status": ["no-info"]})

        assert payloads == [{"id": "Y", "status": ["no-info"]}]

    def test_service_frames_never_notify(self, dispatcher, registry, published):
        registry.register_service("Y", lambda frame: None)

        send(dispatcher, {"id": "Y", "ns": "user", "value": "1"})

        assert published == []
        assert dispatcher.current_namespace == "user"

    def test_failing_callback_is_logged(self, dispatcher, registry, caplog):
        def broken(frame):
            raise ValueError("bad payload")

        registry.register_service("Y", broken)

        with caplog.at_level(logging.ERROR):
            send(dispatcher, {"id": "Y", "value": []})

        assert "Y" in registry
        assert any("service callback" in record.message for record in caplog.records)


class TestAnomalies:
    """Frames the dispatcher cannot route."""

    def test_unknown_id(self, dispatcher, published, caplog):
        with caplog.at_level(logging.WARNING):
            send(dispatcher, {"id": "never-issued", "ns": "user", "value": "1"})

        assert published == []
        assert any("Unknown response" in record.message for record in caplog.records)

    def test_missing_id(self, dispatcher, published):
        send(dispatcher, {"out": "orphan"})

        assert published == []

    def test_invalid_json(self, dispatcher, published, caplog):
        with caplog.at_level(logging.WARNING):
            dispatcher.on_frame("{not json")

        assert published == []
        assert any("Dropping frame" in record.message for record in caplog.records)

    def test_initial_namespace(self, registry, hub):
        dispatcher = ResponseDispatcher(registry, hub, initial_namespace="scratch")

        assert dispatcher.current_namespace == "scratch"
