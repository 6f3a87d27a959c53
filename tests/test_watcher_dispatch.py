"""Dispatch behaviour of HookStateWatcher against in-memory records."""

from __future__ import annotations

from cmdcenter.engine.config import WatcherConfig
from cmdcenter.engine.models import DisplayState, LifecycleRecord
from cmdcenter.engine.watcher import HookStateWatcher

HOUR_MS = 3_600_000


class _Clock:
    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


class _RecordingForwarder:
    def __init__(self) -> None:
        self.sent: list[tuple[str, DisplayState]] = []

    def send(self, terminal_id: str, state: DisplayState) -> None:
        self.sent.append((terminal_id, state))


class _BrokenForwarder:
    def send(self, terminal_id: str, state: DisplayState) -> None:
        raise RuntimeError("renderer gone")


def _rec(
    session_id: str,
    ts: int,
    event: str,
    state: DisplayState | None,
    cwd: str = "/proj",
) -> LifecycleRecord:
    return LifecycleRecord(
        session_id=session_id,
        cwd=cwd,
        display_state=state,
        timestamp_ms=ts,
        event_name=event,
    )


def _build(clock: _Clock | None = None) -> tuple[HookStateWatcher, _RecordingForwarder, _Clock]:
    clock = clock or _Clock()
    forwarder = _RecordingForwarder()
    watcher = HookStateWatcher(WatcherConfig(), forwarder=forwarder, clock=clock)
    return watcher, forwarder, clock


def _start_session(watcher: HookStateWatcher) -> None:
    watcher.register_terminal("T1", "/proj")
    watcher.process_records({"S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY)})


def test_session_start_binds_and_reports_busy() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)

    assert watcher.registry.resolve("S1", None) == "T1"
    assert forwarder.sent == [("T1", DisplayState.BUSY)]


def test_question_tool_reports_question() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)

    watcher.process_records({"S1": _rec("S1", 200, "PreToolUse", DisplayState.QUESTION)})

    assert forwarder.sent[-1] == ("T1", DisplayState.QUESTION)


def test_redelivered_record_is_not_sent_twice() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)
    record = _rec("S1", 200, "PreToolUse", DisplayState.QUESTION)

    assert watcher.process_records({"S1": record}) == 1
    assert watcher.process_records({"S1": record}) == 0

    assert forwarder.sent.count(("T1", DisplayState.QUESTION)) == 1


def test_older_record_for_session_is_ignored() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)
    watcher.process_records({"S1": _rec("S1", 300, "Stop", DisplayState.DONE)})

    watcher.process_records({"S1": _rec("S1", 250, "PreToolUse", DisplayState.BUSY)})

    assert forwarder.sent == [("T1", DisplayState.BUSY), ("T1", DisplayState.DONE)]


def test_unknown_session_without_pending_is_dropped() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)

    delivered = watcher.process_records({
        "S9": _rec("S9", 400, "PreToolUse", DisplayState.BUSY, cwd="/elsewhere"),
    })

    assert delivered == 0
    assert forwarder.sent == [("T1", DisplayState.BUSY)]


def test_late_record_after_unregister_is_dropped() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)

    watcher.unregister_terminal("T1")
    watcher.process_records({"S1": _rec("S1", 500, "Stop", DisplayState.DONE)})

    assert watcher.registry.resolve("S1", "/proj") is None
    assert forwarder.sent == [("T1", DisplayState.BUSY)]


def test_sweep_removes_binding_silently_after_retention() -> None:
    watcher, forwarder, clock = _build()
    _start_session(watcher)

    clock.now += HOUR_MS + 1
    removed = watcher.sweeper.sweep_once()

    assert removed == 1
    assert watcher.registry.bound_for("S1") is None
    assert forwarder.sent == [("T1", DisplayState.BUSY)]


def test_sweep_keeps_recently_touched_binding() -> None:
    watcher, _, clock = _build()
    _start_session(watcher)

    clock.now += HOUR_MS - 10
    watcher.process_records({"S1": _rec("S1", clock.now, "Stop", DisplayState.DONE)})
    clock.now += 20

    assert watcher.sweeper.sweep_once() == 0
    assert watcher.registry.bound_for("S1") is not None


def test_record_before_session_start_resolves_by_cwd() -> None:
    watcher, forwarder, _ = _build()
    watcher.register_terminal("T1", "\\proj")

    watcher.process_records({"S1": _rec("S1", 100, "PreToolUse", DisplayState.BUSY)})

    assert forwarder.sent == [("T1", DisplayState.BUSY)]
    # Still pending: only a session start promotes
    assert watcher.registry.bound_for("S1") is None


def test_session_end_unbinds_and_rearms_terminal() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)

    watcher.process_records({"S1": _rec("S1", 200, "SessionEnd", None)})
    assert watcher.registry.bound_for("S1") is None
    assert forwarder.sent == [("T1", DisplayState.BUSY)]

    watcher.process_records({"S2": _rec("S2", 300, "SessionStart", DisplayState.BUSY)})
    assert watcher.registry.resolve("S2", None) == "T1"
    assert forwarder.sent[-1] == ("T1", DisplayState.BUSY)


def test_two_sessions_in_different_directories() -> None:
    watcher, forwarder, _ = _build()
    watcher.register_terminal("T1", "/a")
    watcher.register_terminal("T2", "/b")

    watcher.process_records({
        "S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY, cwd="/a"),
        "S2": _rec("S2", 100, "SessionStart", DisplayState.BUSY, cwd="/b"),
    })
    watcher.process_records({
        "S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY, cwd="/a"),
        "S2": _rec("S2", 150, "Notification", DisplayState.PERMISSION, cwd="/b"),
    })

    assert forwarder.sent == [
        ("T1", DisplayState.BUSY),
        ("T2", DisplayState.BUSY),
        ("T2", DisplayState.PERMISSION),
    ]


def test_second_session_in_same_directory_binds_new_terminal() -> None:
    watcher, forwarder, _ = _build()
    _start_session(watcher)
    watcher.register_terminal("T2", "/proj/")

    watcher.process_records({
        "S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY),
        "S2": _rec("S2", 200, "SessionStart", DisplayState.BUSY),
    })
    watcher.process_records({
        "S1": _rec("S1", 300, "Stop", DisplayState.DONE),
        "S2": _rec("S2", 300, "PermissionRequest", DisplayState.PERMISSION),
    })

    assert watcher.registry.resolve("S2", "/proj") == "T2"
    assert watcher.registry.resolve("S1", "/proj") == "T1"
    assert forwarder.sent == [
        ("T1", DisplayState.BUSY),
        ("T2", DisplayState.BUSY),
        ("T1", DisplayState.DONE),
        ("T2", DisplayState.PERMISSION),
    ]


def test_two_session_starts_with_one_pending_terminal() -> None:
    watcher, forwarder, _ = _build()
    watcher.register_terminal("T1", "/proj")

    delivered = watcher.process_records({
        "S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY),
        "S2": _rec("S2", 110, "SessionStart", DisplayState.BUSY),
    })

    assert delivered == 1
    assert forwarder.sent == [("T1", DisplayState.BUSY)]
    assert watcher.registry.resolve("S1", "/proj") == "T1"
    assert watcher.registry.resolve("S2", "/proj") is None
    assert watcher.registry.bound_for("S2") is None



def test_record_without_display_state_touches_but_does_not_send() -> None:
    watcher, forwarder, clock = _build()
    _start_session(watcher)
    clock.now = 5_000

    watcher.process_records({"S1": _rec("S1", 200, "Notification", None)})

    assert forwarder.sent == [("T1", DisplayState.BUSY)]
    assert watcher.registry.bound_for("S1").last_seen == 5_000


def test_records_older_than_retention_are_not_dispatched() -> None:
    watcher, forwarder, _ = _build(_Clock(now=10 * HOUR_MS))
    watcher.register_terminal("T1", "/proj")

    watcher.process_records({"S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY)})

    assert forwarder.sent == []
    assert watcher.registry.bound_for("S1") is None


def test_forwarder_failure_does_not_break_dispatch() -> None:
    watcher = HookStateWatcher(
        WatcherConfig(), forwarder=_BrokenForwarder(), clock=_Clock(),
    )
    watcher.register_terminal("T1", "/proj")

    delivered = watcher.process_records({
        "S1": _rec("S1", 100, "SessionStart", DisplayState.BUSY),
    })

    assert delivered == 0
    assert watcher.registry.resolve("S1", None) == "T1"


def test_prime_suppresses_records_seen_before_start() -> None:
    watcher, forwarder, _ = _build()
    watcher.register_terminal("T1", "/proj")
    existing = {"S1": _rec("S1", 100, "PreToolUse", DisplayState.BUSY)}

    watcher.prime(existing)
    watcher.process_records(existing)
    watcher.process_records({"S1": _rec("S1", 101, "Stop", DisplayState.DONE)})

    assert forwarder.sent == [("T1", DisplayState.DONE)]


def test_watermarks_pruned_with_sweep() -> None:
    watcher, _, clock = _build()
    watcher.process_records({"S9": _rec("S9", 900, "Stop", DisplayState.DONE, cwd="/x")})

    clock.now = 900 + HOUR_MS + 1
    watcher.sweeper.sweep_once()

    assert watcher.prune_watermarks(clock.now, HOUR_MS) == 0
