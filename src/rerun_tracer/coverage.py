from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, Mapping


class CoverageAggregator:
    """Per-example coverage as reported by the coverage collaborator.

    ``example_id -> file_name -> detail``; the detail (line and branch hits)
    is opaque here and persisted as given. Non-string keys inside a detail,
    such as ``{line_no: hits}``, are written as strings.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._examples: Dict[str, Dict[str, Any]] = {}

    def files_for(self, example_id: str) -> Dict[str, Any]:
        """Get-or-insert; returns a copy of one example's file map."""
        with self._lock:
            return dict(self._examples.setdefault(example_id, {}))

    def record(self, example_id: str, files: Mapping[str, Any]) -> None:
        with self._lock:
            entry = self._examples.setdefault(example_id, {})
            for file_name, detail in files.items():
                entry[file_name] = detail

    def replace(self, examples_coverage: Mapping[str, Mapping[str, Any]]) -> None:
        with self._lock:
            self._examples = {
                example_id: dict(files) for example_id, files in examples_coverage.items()
            }

    def discard(self, example_ids: Iterable[str]) -> None:
        with self._lock:
            for example_id in example_ids:
                self._examples.pop(example_id, None)

    def items(self) -> list[tuple[str, Dict[str, Any]]]:
        with self._lock:
            return [(example_id, dict(self._examples[example_id])) for example_id in sorted(self._examples)]

    def to_payload(self) -> Dict[str, Dict[str, Any]]:
        return {
            example_id: {file_name: files[file_name] for file_name in sorted(files)}
            for example_id, files in self.items()
        }
