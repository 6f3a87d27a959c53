"""Tests for the pending/bound session registry."""

from __future__ import annotations

from cmdcenter.engine.registry import SessionRegistry


def _registry() -> SessionRegistry:
    return SessionRegistry(clock=lambda: 1_000)


def test_register_pending_resolves_by_cwd_before_promotion() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")

    assert reg.resolve("S1", "/proj") == "T1"
    assert reg.bound_for("S1") is None


def test_register_pending_last_writer_wins_for_same_directory() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")
    reg.register_pending("T2", "/proj/")

    assert reg.resolve("S1", "/proj") == "T2"
    assert len(reg.pending_entries()) == 1


def test_promote_consumes_pending_and_binds_session() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")

    assert reg.promote("S1", "/proj", 500) == "T1"

    assert reg.pending_entries() == []
    bound = reg.bound_for("S1")
    assert bound is not None
    assert bound.terminal_handle == "T1"
    assert bound.last_seen == 500
    assert bound.cwd == "/proj"


def test_promote_without_pending_returns_none() -> None:
    reg = _registry()
    assert reg.promote("S1", "/nowhere") is None
    assert len(reg) == 0


def test_promote_uses_clock_when_no_time_given() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")
    reg.promote("S1", "/proj")
    assert reg.bound_for("S1").last_seen == 1_000


def test_promote_matches_across_path_separators() -> None:
    reg = _registry()
    reg.register_pending("T1", "C:\\work\\proj")
    assert reg.promote("S1", "C:/work/proj") == "T1"


def test_resolve_prefers_session_id_over_cwd() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")
    reg.promote("S1", "/proj")
    reg.register_pending("T2", "/proj")

    assert reg.resolve("S1", "/proj") == "T1"
    assert reg.resolve("S2", "/proj") == "T2"


def test_promote_drops_older_session_on_same_terminal() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")
    reg.promote("S1", "/proj")
    reg.register_pending("T1", "/proj")
    reg.promote("S2", "/proj")

    assert reg.bound_for("S1") is None
    assert reg.resolve("S2", None) == "T1"


def test_unregister_removes_pending_and_bound_entries() -> None:
    reg = _registry()
    reg.register_pending("T1", "/a")
    reg.promote("S1", "/a")
    reg.register_pending("T1", "/b")

    reg.unregister("T1")

    assert len(reg) == 0
    assert reg.resolve("S1", "/a") is None
    assert reg.resolve("S1", "/b") is None


def test_unregister_unknown_handle_is_noop() -> None:
    reg = _registry()
    reg.register_pending("T1", "/a")
    reg.unregister("T9")
    reg.unregister("T9")
    assert reg.resolve("S1", "/a") == "T1"


def test_touch_refreshes_last_seen_only_for_bound_sessions() -> None:
    reg = _registry()
    reg.register_pending("T1", "/a")
    reg.promote("S1", "/a", 100)

    reg.touch("S1", 900)
    reg.touch("S-unknown", 900)

    assert reg.bound_for("S1").last_seen == 900
    assert reg.bound_for("S-unknown") is None


def test_sweep_removes_only_stale_bindings() -> None:
    reg = _registry()
    reg.register_pending("T1", "/a")
    reg.promote("S1", "/a", 0)
    reg.register_pending("T2", "/b")
    reg.promote("S2", "/b", 5_000)

    removed = reg.sweep(now=3_600_001, retention_ms=3_600_000)

    assert removed == 1
    assert reg.bound_for("S1") is None
    assert reg.bound_for("S2") is not None


def test_sweep_keeps_binding_exactly_at_retention_boundary() -> None:
    reg = _registry()
    reg.register_pending("T1", "/a")
    reg.promote("S1", "/a", 0)
    assert reg.sweep(now=3_600_000, retention_ms=3_600_000) == 0


def test_end_session_rearms_terminal_for_its_directory() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")
    reg.promote("S1", "/proj")

    assert reg.end_session("S1") == "T1"

    assert reg.bound_for("S1") is None
    assert reg.promote("S2", "/proj") == "T1"


def test_end_session_does_not_override_newer_pending_terminal() -> None:
    reg = _registry()
    reg.register_pending("T1", "/proj")
    reg.promote("S1", "/proj")
    reg.register_pending("T2", "/proj")

    reg.end_session("S1")

    assert reg.resolve("S-new", "/proj") == "T2"


def test_end_session_unknown_is_noop() -> None:
    reg = _registry()
    assert reg.end_session("S1") is None


def test_at_most_one_binding_per_session_across_operations() -> None:
    reg = _registry()
    ops = [
        ("register", "T1", "/a"),
        ("promote", "S1", "/a"),
        ("register", "T2", "/a"),
        ("promote", "S1", "/a"),
        ("register", "T3", "/b"),
        ("unregister", "T2", None),
        ("promote", "S1", "/b"),
        ("register", "T1", "/a"),
        ("promote", "S2", "/a"),
    ]
    for op, a, b in ops:
        if op == "register":
            reg.register_pending(a, b)
        elif op == "promote":
            reg.promote(a, b)
        else:
            reg.unregister(a)
        session_ids = [entry.session_id for entry in reg.bound_entries()]
        assert len(session_ids) == len(set(session_ids))

    assert reg.resolve("S1", None) == "T3"
    assert reg.resolve("S2", None) == "T1"
