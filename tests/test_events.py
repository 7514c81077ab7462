from __future__ import annotations

import logging

from chapterskip.events import EventHook


def test_emit_calls_handlers_in_order() -> None:
    hook: EventHook[int] = EventHook("numbers")
    seen = []
    hook.subscribe(lambda value: seen.append(("a", value)))
    hook.subscribe(lambda value: seen.append(("b", value)))

    hook.emit(3)

    assert seen == [("a", 3), ("b", 3)]


def test_subscribe_is_idempotent_and_unsubscribe_tolerates_unknown() -> None:
    hook: EventHook[int] = EventHook("numbers")
    seen = []
    handler = seen.append

    hook.subscribe(handler)
    hook.subscribe(handler)
    assert len(hook) == 1

    hook.emit(1)
    hook.unsubscribe(handler)
    hook.unsubscribe(handler)
    hook.emit(2)

    assert seen == [1]
    assert len(hook) == 0


def test_failing_handler_is_isolated(caplog) -> None:
    hook: EventHook[str] = EventHook("strings")
    seen = []

    def explode(_: str) -> None:
        raise ValueError("bad event")

    hook.subscribe(explode)
    hook.subscribe(seen.append)

    with caplog.at_level(logging.ERROR, logger="chapterskip.events"):
        hook.emit("payload")

    assert seen == ["payload"]
    assert "strings failed" in caplog.text


def test_handler_may_unsubscribe_during_emit() -> None:
    hook: EventHook[int] = EventHook("numbers")
    seen = []

    def once(value: int) -> None:
        seen.append(value)
        hook.unsubscribe(once)

    hook.subscribe(once)
    hook.emit(1)
    hook.emit(2)

    assert seen == [1]
