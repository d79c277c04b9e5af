from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from ..ledger import RunLedger
from ..schemas import ArtifactRecord, LastRunRecord
from ..serializers import Serializer
from ..utils import ensure_dir, format_duration, hash_bytes, stable_hash, to_utc, utc_now

logger = logging.getLogger(__name__)

REPORT_TYPES = (
    "all_examples",
    "flaky_examples",
    "failed_examples",
    "pending_examples",
    "all_files",
    "dependency",
    "reverse_dependency",
    "examples_coverage",
)
LAST_RUN_REPORT = "last_run"


def compute_run_id(example_ids: Iterable[str]) -> str:
    return stable_hash(sorted(example_ids))


@dataclass
class RunReports:
    """Everything one run persists, already in its on-disk ordering."""

    all_examples: Dict[str, Any]
    flaky_examples: List[str]
    failed_examples: List[str]
    pending_examples: List[str]
    all_files: Dict[str, Any]
    dependency: Dict[str, List[str]]
    reverse_dependency: Dict[str, Dict[str, Any]]
    examples_coverage: Dict[str, Dict[str, Any]]
    counts: Dict[str, Any] = field(default_factory=dict)

    def report(self, report_type: str) -> Any:
        return getattr(self, report_type)


@dataclass
class SnapshotResult:
    run_id: str
    run_dir: Path
    artifacts: List[ArtifactRecord]
    last_run: LastRunRecord
    elapsed: float

    @property
    def elapsed_text(self) -> str:
        return format_duration(self.elapsed)


class SnapshotWriter:
    def __init__(self, cache_path: Path, serializer: Serializer) -> None:
        self.cache_path = cache_path
        self.serializer = serializer

    def report_path(self, run_dir: Path, report_type: str) -> Path:
        return run_dir / f"{report_type}.{self.serializer.EXTENSION}"

    def write(self, reports: RunReports, timestamp: Optional[datetime] = None) -> SnapshotResult:
        starting = time.monotonic()
        run_id = compute_run_id(reports.all_examples.keys())
        run_dir = self.cache_path / run_id
        ensure_dir(run_dir)
        ledger = RunLedger(self.cache_path)
        stamp = to_utc(timestamp) if timestamp is not None else utc_now()
        ts = stamp.isoformat()

        artifacts = []
        for report_type in REPORT_TYPES:
            record = self._write_artifact(
                self.report_path(run_dir, report_type), report_type, reports.report(report_type)
            )
            ledger.append("ARTIFACT_WRITTEN", run_id, record.model_dump(), ts)
            artifacts.append(record)

        last_run = LastRunRecord(run_id=run_id, timestamp=stamp, **reports.counts)
        self._write_artifact(
            self.report_path(self.cache_path, LAST_RUN_REPORT),
            LAST_RUN_REPORT,
            last_run.model_dump(mode="json"),
        )
        ledger.append("RUN_SUMMARY", run_id, last_run.model_dump(mode="json"), ts)

        elapsed = time.monotonic() - starting
        logger.debug("snapshot %s written in %s", run_id, format_duration(elapsed))
        return SnapshotResult(
            run_id=run_id, run_dir=run_dir, artifacts=artifacts, last_run=last_run, elapsed=elapsed
        )

    def _write_artifact(self, path: Path, report_type: str, data: Any) -> ArtifactRecord:
        payload = self.serializer.serialize(data)
        path.write_bytes(payload)
        return ArtifactRecord(
            report_type=report_type,
            path=str(path),
            content_hash=hash_bytes(payload),
            bytes=len(payload),
        )
