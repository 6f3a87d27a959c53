"""Tests for reading and writing the shared hook state file."""

from __future__ import annotations

import json
from pathlib import Path

from cmdcenter.engine.models import DisplayState, LifecycleRecord
from cmdcenter.engine.state_file import (
    ParseFailure,
    StateFileReader,
    StateFileWriter,
    is_legacy_shape,
    parse_records,
)


def _record(session_id: str, ts: int, event: str = "PreToolUse", state=DisplayState.BUSY) -> LifecycleRecord:
    return LifecycleRecord(
        session_id=session_id,
        cwd="/proj",
        display_state=state,
        timestamp_ms=ts,
        event_name=event,
    )


def test_read_parses_keyed_records(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "S1": {"session_id": "S1", "cwd": "/proj", "state": "question",
               "timestamp": 200, "hook_event": "PreToolUse"},
        "S2": {"session_id": "S2", "cwd": "\\other", "state": None,
               "timestamp": 300, "hook_event": "SessionEnd"},
    }))

    result = StateFileReader(path).read()

    assert not isinstance(result, ParseFailure)
    assert result["S1"].display_state is DisplayState.QUESTION
    assert result["S1"].timestamp_ms == 200
    assert result["S2"].display_state is None
    assert result["S2"].is_session_end
    assert result["S2"].normalized_cwd == "/other"


def test_read_reports_partial_write_as_parse_failure(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text('{"S1": {"session_id": "S1", "cwd": "/pr')
    result = StateFileReader(path).read()
    assert isinstance(result, ParseFailure)
    assert "invalid json" in result.reason


def test_read_reports_empty_and_missing_files(tmp_path: Path) -> None:
    empty = tmp_path / "empty.json"
    empty.write_text("")
    assert isinstance(StateFileReader(empty).read(), ParseFailure)
    assert StateFileReader(tmp_path / "missing.json").read() == ParseFailure(
        str(tmp_path / "missing.json"), "missing",
    )


def test_read_rejects_non_object_top_level(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("[1, 2]")
    assert isinstance(StateFileReader(path).read(), ParseFailure)


def test_parse_records_skips_malformed_entries() -> None:
    records = parse_records({
        "good": {"cwd": "/a", "state": "done", "timestamp": 5, "hook_event": "Stop"},
        "no-ts": {"session_id": "no-ts", "state": "busy"},
        "bool-ts": {"session_id": "bool-ts", "timestamp": True},
        "scalar": "busy",
    })
    assert list(records) == ["good"]
    assert records["good"].session_id == "good"
    assert records["good"].display_state is DisplayState.DONE


def test_legacy_single_record_reads_as_no_sessions() -> None:
    legacy = {"session_id": "S1", "cwd": "/a", "state": "busy",
              "timestamp": 10, "hook_event": "Stop"}
    assert is_legacy_shape(legacy)
    assert parse_records(legacy) == {}


def test_keyed_file_with_session_id_key_is_not_legacy() -> None:
    assert not is_legacy_shape({"S1": {"session_id": "S1", "timestamp": 1}})


def test_writer_merges_entries_per_session(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    writer = StateFileWriter(path)

    writer.merge(_record("S1", 100))
    writer.merge(_record("S2", 150))
    writer.merge(_record("S1", 200, event="Stop", state=DisplayState.DONE))

    data = json.loads(path.read_text())
    assert set(data) == {"S1", "S2"}
    assert data["S1"] == {
        "session_id": "S1",
        "cwd": "/proj",
        "state": "done",
        "timestamp": 200,
        "hook_event": "Stop",
    }


def test_writer_migrates_legacy_file(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "session_id": "OLD", "cwd": "/a", "state": "stopped",
        "timestamp": 10, "hook_event": "SessionEnd",
    }))

    StateFileWriter(path).merge(_record("S1", 100))

    assert set(json.loads(path.read_text())) == {"S1"}


def test_writer_replaces_garbage_file(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{not json")
    StateFileWriter(path).merge(_record("S1", 100))
    assert set(json.loads(path.read_text())) == {"S1"}


def test_writer_prunes_entries_older_than_retention(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    writer = StateFileWriter(path)
    writer.merge(_record("OLD", 1_000))
    writer.merge(_record("NEW", 5_000_000), retention_ms=3_600_000)
    assert set(json.loads(path.read_text())) == {"NEW"}


def test_parse_records_skips_entry_naming_another_session() -> None:
    records = parse_records({
        "S1": {"session_id": "S1", "cwd": "/a", "state": "done", "timestamp": 5},
        "S2": {"session_id": "S1", "cwd": "/b", "state": "busy", "timestamp": 9},
    })
    assert list(records) == ["S1"]
    assert records["S1"].cwd == "/a"
    assert records["S1"].display_state is DisplayState.DONE


def test_writer_keeps_newer_entry_when_older_record_arrives_late(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    writer = StateFileWriter(path)

    stored = writer.merge(_record("S1", 200, event="Stop", state=DisplayState.DONE))
    late = writer.merge(_record("S1", 100))

    assert stored is not None and stored.timestamp_ms == 200
    assert late is None
    entry = json.loads(path.read_text())["S1"]
    assert entry["timestamp"] == 200
    assert entry["state"] == "done"


def test_writer_moves_same_millisecond_record_past_stored_one(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    writer = StateFileWriter(path)

    writer.merge(_record("S1", 200))
    stored = writer.merge(_record("S1", 200, event="Stop", state=DisplayState.DONE))

    assert stored is not None and stored.timestamp_ms == 201
    entry = json.loads(path.read_text())["S1"]
    assert entry["timestamp"] == 201
    assert entry["state"] == "done"



def test_ensure_exists_creates_empty_mapping(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "state.json"
    reader = StateFileReader(path)
    reader.ensure_exists()
    assert json.loads(path.read_text()) == {}
    assert reader.read() == {}


def test_ensure_exists_keeps_existing_content(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text('{"S1": {"timestamp": 1}}')
    StateFileReader(path).ensure_exists()
    assert json.loads(path.read_text()) == {"S1": {"timestamp": 1}}
