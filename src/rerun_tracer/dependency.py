from __future__ import annotations

from typing import Any, Collection, Dict, Iterable, List, Mapping, Set

from .coverage import CoverageAggregator
from .schemas import Example, ReverseDependencyEntry


class DependencyGraph:
    """Forward (example -> files) and reverse (file -> examples) dependency views.

    The graph is derived from coverage data and rebuilt from scratch with
    :meth:`from_coverage` whenever that data changes.
    """

    def __init__(self) -> None:
        self._forward: Dict[str, Set[str]] = {}

    @classmethod
    def from_coverage(
        cls, coverage: CoverageAggregator, known_examples: Collection[str]
    ) -> "DependencyGraph":
        graph = cls()
        for example_id, files in coverage.items():
            if example_id not in known_examples:
                continue
            for file_name in files:
                graph.record_dependency(example_id, file_name)
        return graph

    def record_dependency(self, example_id: str, file_name: str) -> None:
        self._forward.setdefault(example_id, set()).add(file_name)

    def forward_report(self) -> Dict[str, List[str]]:
        return {example_id: sorted(self._forward[example_id]) for example_id in sorted(self._forward)}

    def build_reverse_report(
        self,
        all_examples: Mapping[str, Example],
        interrupted: Collection[str] = (),
    ) -> Dict[str, Dict[str, Any]]:
        counts: Dict[str, ReverseDependencyEntry] = {}
        for example_id, files in self._forward.items():
            if example_id in interrupted:
                continue
            example = all_examples.get(example_id)
            if example is None:
                continue
            origin = example.rerun_file_name
            for file_name in files:
                entry = counts.setdefault(file_name, ReverseDependencyEntry())
                entry.example_count += 1
                entry.examples[origin] = entry.examples.get(origin, 0) + 1

        ranked = sorted(counts.items(), key=lambda item: (-item[1].example_count, item[0]))
        return {
            file_name: {
                "example_count": entry.example_count,
                "examples": dict(
                    sorted(entry.examples.items(), key=lambda item: (-item[1], item[0]))
                ),
            }
            for file_name, entry in ranked
        }

    def impacted_examples(self, file_names: Iterable[str]) -> List[str]:
        changed = set(file_names)
        return sorted(
            example_id for example_id, files in self._forward.items() if not changed.isdisjoint(files)
        )
