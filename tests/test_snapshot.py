from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import orjson
import pytest

from rerun_tracer.errors import SerializerError, SnapshotError
from rerun_tracer.ledger import LEDGER_FILE, RunLedger
from rerun_tracer.serializers import JsonSerializer, PrettyJsonSerializer, get_serializer
from rerun_tracer.snapshot.loader import SnapshotLoader
from rerun_tracer.snapshot.writer import REPORT_TYPES, RunReports, SnapshotWriter, compute_run_id

TIMESTAMP = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)


def _reports() -> RunReports:
    return RunReports(
        all_examples={
            "a": {
                "example_id": "a",
                "full_description": "a works",
                "description": "works",
                "file_name": "/spec/a_spec.py",
                "rerun_file_name": "/spec/a_spec.py",
                "rerun_line_number": 4,
                "execution_result": {
                    "started_at": "2024-05-01T12:00:00Z",
                    "finished_at": "2024-05-01T12:00:01Z",
                    "run_time": 1.0,
                    "status": "failed",
                },
            },
            "b": {
                "example_id": "b",
                "full_description": "b works",
                "description": "works",
                "file_name": "/spec/b_spec.py",
                "rerun_file_name": "/spec/b_spec.py",
                "rerun_line_number": 9,
                "execution_result": None,
            },
        },
        flaky_examples=[],
        failed_examples=["a"],
        pending_examples=[],
        all_files={"/app/m.py": {"file_name": "/app/m.py", "file_path": "", "digest": "abc"}},
        dependency={"a": ["/app/m.py"], "b": ["/app/m.py"]},
        reverse_dependency={"/app/m.py": {"example_count": 1, "examples": {"/spec/a_spec.py": 1}}},
        examples_coverage={"a": {"/app/m.py": {"lines": [1, 0, 2]}}},
        counts={
            "pid": 42,
            "actual_count": 2,
            "example_count": 2,
            "duplicate_examples": 0,
            "interrupted_examples": 1,
            "failed_examples": 1,
            "skipped_examples": 0,
            "pending_examples": 0,
            "flaky_examples": 0,
            "deleted_examples": 0,
            "interrupted": True,
        },
    )


def test_run_id_depends_only_on_the_id_set() -> None:
    assert compute_run_id(["b", "a"]) == compute_run_id(["a", "b"])
    assert compute_run_id(["a", "b"]) == compute_run_id(("a", "b"))
    assert compute_run_id(["a", "b"]) != compute_run_id(["a", "b", "c"])
    assert compute_run_id(["a", "b"]) != compute_run_id(["a"])


def test_writer_persists_every_report(tmp_path: Path) -> None:
    cache = tmp_path / "cache"
    writer = SnapshotWriter(cache, JsonSerializer())

    result = writer.write(_reports(), timestamp=TIMESTAMP)

    assert result.run_id == compute_run_id(["a", "b"])
    assert result.run_dir == cache / result.run_id
    for report_type in REPORT_TYPES:
        assert (result.run_dir / f"{report_type}.json").is_file()
    assert [record.report_type for record in result.artifacts] == list(REPORT_TYPES)

    last_run = orjson.loads((cache / "last_run.json").read_bytes())
    assert last_run["run_id"] == result.run_id
    assert last_run["timestamp"] == "2024-05-01T12:30:00Z"
    assert last_run["failed_examples"] == 1
    assert last_run["pid"] == 42


def test_reports_round_trip(tmp_path: Path) -> None:
    reports = _reports()
    for serializer in (JsonSerializer(), PrettyJsonSerializer()):
        cache = tmp_path / serializer.NAME
        result = SnapshotWriter(cache, serializer).write(reports, timestamp=TIMESTAMP)
        for report_type in REPORT_TYPES:
            path = result.run_dir / f"{report_type}.{serializer.EXTENSION}"
            assert serializer.deserialize(path.read_bytes()) == reports.report(report_type)


def test_reverse_dependency_order_survives_serialization(tmp_path: Path) -> None:
    reports = _reports()
    reports.reverse_dependency = {
        "/z.py": {"example_count": 2, "examples": {"/spec/b.py": 1, "/spec/a.py": 1}},
        "/a.py": {"example_count": 1, "examples": {"/spec/a.py": 1}},
    }
    result = SnapshotWriter(tmp_path, JsonSerializer()).write(reports, timestamp=TIMESTAMP)
    data = (result.run_dir / "reverse_dependency.json").read_bytes()
    assert data.index(b'"/z.py"') < data.index(b'"/a.py"')


def test_identical_input_writes_identical_bytes(tmp_path: Path) -> None:
    first = SnapshotWriter(tmp_path / "one", JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)
    second = SnapshotWriter(tmp_path / "two", JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)
    assert [record.content_hash for record in first.artifacts] == [
        record.content_hash for record in second.artifacts
    ]


def test_ledger_records_artifacts_and_summary(tmp_path: Path) -> None:
    result = SnapshotWriter(tmp_path, JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)
    ledger = RunLedger(tmp_path)

    written = ledger.entries("ARTIFACT_WRITTEN")
    summaries = ledger.entries("RUN_SUMMARY")
    assert len(written) == len(REPORT_TYPES)
    assert summaries[-1]["run_id"] == result.run_id
    assert summaries[-1]["payload"]["interrupted_examples"] == 1
    ok, message = RunLedger.verify_chain(tmp_path / LEDGER_FILE)
    assert ok, message


def test_ledger_detects_tampering(tmp_path: Path) -> None:
    SnapshotWriter(tmp_path, JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)
    ledger_path = tmp_path / LEDGER_FILE
    lines = ledger_path.read_text(encoding="utf-8").splitlines()
    entry = orjson.loads(lines[1])
    entry["payload"]["bytes"] = 0
    lines[1] = orjson.dumps(entry, option=orjson.OPT_SORT_KEYS).decode("utf-8")
    ledger_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    ok, message = RunLedger.verify_chain(ledger_path)
    assert not ok
    assert message == "hash mismatch at 1"


def test_write_failure_propagates(tmp_path: Path) -> None:
    blocker = tmp_path / "cache"
    blocker.write_text("not a directory", encoding="utf-8")
    with pytest.raises(OSError):
        SnapshotWriter(blocker, JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)


def test_loader_returns_none_without_snapshot(tmp_path: Path) -> None:
    assert SnapshotLoader(tmp_path, JsonSerializer()).load() is None


def test_loader_reads_previous_snapshot(tmp_path: Path) -> None:
    result = SnapshotWriter(tmp_path, JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)

    snapshot = SnapshotLoader(tmp_path, JsonSerializer()).load()

    assert snapshot is not None
    assert snapshot.run_id == result.run_id
    assert snapshot.seen_examples["a"].rerun_file_name == "/spec/a_spec.py"
    assert snapshot.failed_examples == ["a"]
    assert snapshot.all_files["/app/m.py"].digest == "abc"
    assert snapshot.last_run.interrupted is True


def test_loader_rejects_examples_missing_file_names(tmp_path: Path) -> None:
    reports = _reports()
    del reports.all_examples["a"]["rerun_file_name"]
    SnapshotWriter(tmp_path, JsonSerializer()).write(reports, timestamp=TIMESTAMP)

    with pytest.raises(SnapshotError):
        SnapshotLoader(tmp_path, JsonSerializer()).load()


def test_loader_rejects_missing_report(tmp_path: Path) -> None:
    result = SnapshotWriter(tmp_path, JsonSerializer()).write(_reports(), timestamp=TIMESTAMP)
    (result.run_dir / "dependency.json").unlink()

    with pytest.raises(SnapshotError) as excinfo:
        SnapshotLoader(tmp_path, JsonSerializer()).load()
    assert excinfo.value.details["report"] == "dependency"


def test_loader_rejects_undecodable_last_run(tmp_path: Path) -> None:
    (tmp_path / "last_run.json").write_bytes(b"{not json")
    with pytest.raises(SnapshotError):
        SnapshotLoader(tmp_path, JsonSerializer()).load()


def test_unknown_serializer() -> None:
    assert get_serializer("pretty-json").EXTENSION == "json"
    with pytest.raises(SerializerError):
        get_serializer("msgpack")
