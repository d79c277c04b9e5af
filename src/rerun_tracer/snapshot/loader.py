from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..errors import SnapshotError
from ..schemas import LastRunRecord, SeenExample, SourceFile
from ..serializers import Serializer
from .writer import LAST_RUN_REPORT, REPORT_TYPES


@dataclass
class PreviousSnapshot:
    last_run: LastRunRecord
    run_dir: Path
    all_examples: Dict[str, Dict[str, Any]]
    seen_examples: Dict[str, SeenExample]
    failed_examples: List[str] = field(default_factory=list)
    pending_examples: List[str] = field(default_factory=list)
    flaky_examples: List[str] = field(default_factory=list)
    all_files: Dict[str, SourceFile] = field(default_factory=dict)
    dependency: Dict[str, List[str]] = field(default_factory=dict)
    reverse_dependency: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def run_id(self) -> str:
        return self.last_run.run_id


class SnapshotLoader:
    """Reads the snapshot named by the cache root's ``last_run`` record."""

    def __init__(self, cache_path: Path, serializer: Serializer) -> None:
        self.cache_path = cache_path
        self.serializer = serializer

    def _path(self, directory: Path, report_type: str) -> Path:
        return directory / f"{report_type}.{self.serializer.EXTENSION}"

    def load_last_run(self) -> Optional[LastRunRecord]:
        path = self._path(self.cache_path, LAST_RUN_REPORT)
        if not path.is_file():
            return None
        data = self._read(path)
        try:
            return LastRunRecord.model_validate(data)
        except ValidationError as exc:
            raise SnapshotError("malformed last_run report", {"path": str(path)}) from exc

    def load(self) -> Optional[PreviousSnapshot]:
        last_run = self.load_last_run()
        if last_run is None:
            return None
        run_dir = self.cache_path / last_run.run_id
        reports = {report_type: self._read_report(run_dir, report_type) for report_type in REPORT_TYPES}

        all_examples = _expect(reports["all_examples"], dict, "all_examples", run_dir)
        seen_examples: Dict[str, SeenExample] = {}
        for example_id, example in all_examples.items():
            try:
                seen_examples[example_id] = SeenExample.model_validate(example)
            except ValidationError as exc:
                raise SnapshotError(
                    "example record is missing file names",
                    {"example_id": example_id, "run_dir": str(run_dir)},
                ) from exc

        all_files = _expect(reports["all_files"], dict, "all_files", run_dir)
        try:
            files = {name: SourceFile.model_validate(data) for name, data in all_files.items()}
        except ValidationError as exc:
            raise SnapshotError("malformed all_files report", {"run_dir": str(run_dir)}) from exc

        return PreviousSnapshot(
            last_run=last_run,
            run_dir=run_dir,
            all_examples=all_examples,
            seen_examples=seen_examples,
            failed_examples=_expect(reports["failed_examples"], list, "failed_examples", run_dir),
            pending_examples=_expect(reports["pending_examples"], list, "pending_examples", run_dir),
            flaky_examples=_expect(reports["flaky_examples"], list, "flaky_examples", run_dir),
            all_files=files,
            dependency=_expect(reports["dependency"], dict, "dependency", run_dir),
            reverse_dependency=_expect(
                reports["reverse_dependency"], dict, "reverse_dependency", run_dir
            ),
        )

    def _read_report(self, run_dir: Path, report_type: str) -> Any:
        path = self._path(run_dir, report_type)
        if not path.is_file():
            raise SnapshotError("missing report", {"report": report_type, "run_dir": str(run_dir)})
        return self._read(path)

    def _read(self, path: Path) -> Any:
        try:
            return self.serializer.deserialize(path.read_bytes())
        except ValueError as exc:
            raise SnapshotError("undecodable report", {"path": str(path)}) from exc


def _expect(value: Any, kind: type, report_type: str, run_dir: Path) -> Any:
    if not isinstance(value, kind):
        raise SnapshotError(
            "unexpected report shape",
            {"report": report_type, "expected": kind.__name__, "run_dir": str(run_dir)},
        )
    return value
