"""Tests for the event bus."""

import pytest

from rotating_s3.core.events import Event, EventBus, EventLevel


@pytest.mark.unit
def test_listeners_receive_only_their_level() -> None:
    bus = EventBus()
    infos, errors = [], []
    bus.subscribe(EventLevel.INFO, infos.append)
    bus.subscribe("error", errors.append)

    bus.info("hello", source="/tmp/a")
    bus.error("boom", code=2)

    assert [e.message for e in infos] == ["hello"]
    assert [e.message for e in errors] == ["boom"]
    assert errors[0].code == 2


@pytest.mark.unit
def test_unsubscribe_and_detach_callable() -> None:
    bus = EventBus()
    seen = []
    detach = bus.subscribe(EventLevel.INFO, seen.append)
    bus.subscribe(EventLevel.ERROR, seen.append)

    detach()
    bus.unsubscribe(EventLevel.ERROR, seen.append)
    bus.unsubscribe(EventLevel.ERROR, seen.append)
    bus.info("x")
    bus.error("y")

    assert seen == []
    assert bus.listener_count("info") == 0


@pytest.mark.unit
def test_failing_listener_does_not_stop_delivery() -> None:
    bus = EventBus()
    seen = []

    def broken(event: Event) -> None:
        raise RuntimeError("listener bug")

    bus.subscribe(EventLevel.INFO, broken)
    bus.subscribe(EventLevel.INFO, seen.append)

    bus.info("still delivered")

    assert [e.message for e in seen] == ["still delivered"]


@pytest.mark.unit
def test_listener_may_unsubscribe_itself_during_emit() -> None:
    bus = EventBus()
    calls = []

    def once(event: Event) -> None:
        calls.append(event.message)
        bus.unsubscribe(EventLevel.INFO, once)

    bus.subscribe(EventLevel.INFO, once)
    bus.info("first")
    bus.info("second")

    assert calls == ["first"]


@pytest.mark.unit
def test_as_dict_drops_unset_fields() -> None:
    error = FileNotFoundError("gone")
    event = Event(EventLevel.ERROR, "stat failed", source="/tmp/a", error=error)

    assert event.as_dict() == {
        "level": "error",
        "message": "stat failed",
        "source": "/tmp/a",
        "error": error,
    }


@pytest.mark.unit
def test_unknown_level_rejected() -> None:
    with pytest.raises(ValueError):
        EventBus().subscribe("warning", print)
