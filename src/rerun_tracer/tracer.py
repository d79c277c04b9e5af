"""Per-run context object.

A :class:`TraceSession` is built when the host test run starts, receives the
host's registration, outcome and coverage events, and is discarded after
:meth:`TraceSession.finish` has written the snapshot. Nothing is kept in
module level state, so two sessions never share registries.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Union

from rich.console import Console

from .config import Settings
from .coverage import CoverageAggregator
from .dependency import DependencyGraph
from .file_changes import FileChanges, apply_changes, detect_changes
from .reconciler import ChangeReconciler
from .registry.examples import ExampleRegistry
from .registry.files import FileRegistry
from .schemas import Example, SourceFile
from .serializers import get_serializer
from .snapshot.loader import PreviousSnapshot, SnapshotLoader
from .snapshot.writer import RunReports, SnapshotResult, SnapshotWriter
from .utils import current_pid

logger = logging.getLogger(__name__)

NOTICE_WIDTH = 80


class TraceSession:
    def __init__(self, settings: Optional[Settings] = None, console: Optional[Console] = None):
        self.settings = settings or Settings()
        self.console = console or Console(stderr=True)
        self.serializer = get_serializer(self.settings.serializer)
        self.examples = ExampleRegistry()
        self.files = FileRegistry()
        self.coverage = CoverageAggregator()
        self.reconciler = ChangeReconciler(
            self.examples, self.files, flaky_confirmations=self.settings.flaky_confirmations
        )
        self.loader = SnapshotLoader(self.settings.cache_path, self.serializer)
        self.writer = SnapshotWriter(self.settings.cache_path, self.serializer)
        self.previous: Optional[PreviousSnapshot] = None
        self.dependency: Optional[DependencyGraph] = None
        self.interrupted = False

    def load_previous(self) -> Optional[PreviousSnapshot]:
        """Load the previous snapshot and flag its files that changed on disk."""
        self.previous = self.loader.load()
        if self.previous is None:
            return None
        changes = detect_changes(self.previous.all_files, self.settings.project_root)
        self.apply_file_changes(changes)
        return self.previous

    def apply_file_changes(self, changes: FileChanges) -> None:
        apply_changes(self.files, changes)
        if changes.changed:
            logger.debug("%d files changed since the last run", len(changes.changed))

    def examples_to_rerun(self, example_ids: List[str]) -> List[str]:
        if self.previous is None:
            return sorted(set(example_ids))
        return self.reconciler.select_examples_to_rerun(self.previous, example_ids)

    # Host events.

    def register_example(self, example: Union[Example, Mapping[str, Any]]) -> Example:
        return self.examples.register(example)

    def deregister_duplicate_examples(self) -> None:
        self.examples.finalize_duplicates()

    def on_example_passed(self, example_id: str, result: Any) -> bool:
        return self.examples.record_outcome(example_id, "passed", result)

    def on_example_failed(self, example_id: str, result: Any) -> bool:
        return self.examples.record_outcome(example_id, "failed", result)

    def on_example_pending(self, example_id: str, result: Any) -> bool:
        return self.examples.record_outcome(example_id, "pending", result)

    def on_example_skipped(self, example_id: str) -> bool:
        return self.examples.record_outcome(example_id, "skipped")

    def on_example_rerun(self, example_id: str, passed: bool) -> None:
        self.reconciler.record_rerun(example_id, passed)

    def register_source_file(
        self, file_name: str, metadata: Optional[Union[SourceFile, Mapping[str, Any]]] = None
    ) -> SourceFile:
        return self.files.register(file_name, metadata)

    def register_coverage(self, example_id: str, files: Mapping[str, Any]) -> None:
        if self.examples.is_duplicate(example_id):
            return
        self.coverage.record(example_id, files)

    def register_examples_coverage(self, examples_coverage: Mapping[str, Mapping[str, Any]]) -> None:
        """Replace all coverage at once, for collaborators that report at run end."""
        self.coverage.replace(
            {
                example_id: files
                for example_id, files in examples_coverage.items()
                if not self.examples.is_duplicate(example_id)
            }
        )

    # Run end.

    def finish(self, interrupted: bool = False, timestamp: Optional[datetime] = None) -> SnapshotResult:
        self.interrupted = interrupted
        self.examples.finalize_duplicates()
        self.examples.finalize_interrupted()
        if self.previous is not None:
            self.reconciler.register_deleted_examples(self.previous.seen_examples)
        self.coverage.discard(list(self.examples.duplicate_examples))
        self.dependency = DependencyGraph.from_coverage(self.coverage, self.examples.all_examples)
        result = self.writer.write(self.build_reports(), timestamp=timestamp)
        if self.settings.print_notices:
            self.print_duplicate_examples()
            self.print_interrupted_examples()
            self.console.print(
                f"Rerun tracer reports written to {result.run_dir} (took {result.elapsed_text})"
            )
        return result

    def build_reports(self) -> RunReports:
        if self.dependency is None:
            self.dependency = DependencyGraph.from_coverage(self.coverage, self.examples.all_examples)
        examples = self.examples
        return RunReports(
            all_examples=examples.examples_payload(),
            flaky_examples=sorted(examples.flaky_examples),
            failed_examples=sorted(examples.failed_examples),
            pending_examples=sorted(examples.pending_examples),
            all_files=self.files.files_payload(),
            dependency=self.dependency.forward_report(),
            reverse_dependency=self.dependency.build_reverse_report(
                examples.all_examples, examples.interrupted_examples
            ),
            examples_coverage=self.coverage.to_payload(),
            counts={
                "pid": current_pid(),
                "actual_count": examples.registered_count + len(examples.skipped_examples),
                "example_count": examples.registered_count,
                "duplicate_examples": examples.duplicate_count,
                "interrupted_examples": len(examples.interrupted_examples),
                "failed_examples": len(examples.failed_examples),
                "skipped_examples": len(examples.skipped_examples),
                "pending_examples": len(examples.pending_examples),
                "flaky_examples": len(examples.flaky_examples),
                "deleted_examples": len(examples.deleted_examples),
                "interrupted": self.interrupted,
            },
        )

    def print_duplicate_examples(self) -> None:
        duplicates = self.examples.duplicate_examples
        if not duplicates:
            return
        total = self.examples.duplicate_count
        self.console.print("=" * NOTICE_WIDTH, markup=False, highlight=False)
        self.console.print(
            "   IMPORTANT NOTICE -- RERUN TRACER COULD NOT IDENTIFY SOME EXAMPLES UNIQUELY",
            style="bold yellow",
            highlight=False,
        )
        self.console.print("=" * NOTICE_WIDTH, markup=False, highlight=False)
        self.console.print(
            f"Rerun tracer could not uniquely identify the following {total} examples:",
            markup=False,
        )
        for example_id in sorted(duplicates):
            group = duplicates[example_id]
            self.console.print(
                f"  - Example ID: {example_id} ({len(group)} examples)", markup=False
            )
            for example in group:
                self.console.print(
                    f"      * {example.full_description.strip()} ({example.location})",
                    markup=False,
                )
        self.console.print()

    def print_interrupted_examples(self) -> None:
        count = len(self.examples.interrupted_examples)
        if count:
            self.console.print(
                f"Rerun tracer is not processing {count} interrupted examples", style="yellow"
            )
