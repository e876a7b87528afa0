import pytest

from gitlard.debug import DebugLog, debug, default_log


def make_clock(*values):
    it = iter(values)
    return lambda: next(it)


def test_message_format_uses_elapsed_seconds():
    log = DebugLog(clock=make_clock(10.0, 11.5))
    received = []
    log.add_callback(received.append)
    text = log.message("hello")
    assert text == "[         1.5] hello"
    assert received == [text]


def test_message_prefix_is_bracketed_and_fixed_width():
    log = DebugLog(clock=make_clock(0.0, 0.25, 3.0))
    first = log.message("a")
    second = log.message("b")
    assert first.startswith("[") and first.endswith("] a")
    assert len(first) == len(second)
    assert first.index("]") == 13


def test_add_callback_is_idempotent():
    log = DebugLog(clock=make_clock(0.0, 1.0))
    received = []
    log.add_callback(received.append)
    cb = received.append
    log.add_callback(cb)
    log.message("x")
    assert len(received) == 1


def test_remove_callback_stops_delivery():
    log = DebugLog(clock=make_clock(0.0, 1.0, 2.0))
    received = []
    cb = received.append
    log.add_callback(cb)
    first = log.message("one")
    log.remove_callback(cb)
    second = log.message("two")
    assert received == [first]
    assert first.endswith("] one")
    assert second.endswith("] two")


def test_remove_unknown_callback_is_harmless():
    log = DebugLog(clock=make_clock(0.0, 1.0))
    received = []
    log.remove_callback(print)
    log.add_callback(received.append)
    log.message("still works")
    assert received[0].endswith("still works")


def test_callbacks_called_in_registration_order():
    log = DebugLog(clock=make_clock(0.0, 1.0))
    order = []
    log.add_callback(lambda m: order.append("first"))
    log.add_callback(lambda m: order.append("second"))
    log.message("m")
    assert order == ["first", "second"]


def test_module_debug_uses_default_log():
    received = []
    cb = received.append
    default_log.add_callback(cb)
    try:
        debug("module level")
        direct = default_log.message("direct")
    finally:
        default_log.remove_callback(cb)
    assert len(received) == 2
    assert received[0].endswith("] module level")
    assert received[1] == direct


def test_callback_exception_propagates():
    log = DebugLog(clock=make_clock(0.0, 1.0))

    def boom(msg):
        raise RuntimeError(msg)

    log.add_callback(boom)
    with pytest.raises(RuntimeError):
        log.message("bad")