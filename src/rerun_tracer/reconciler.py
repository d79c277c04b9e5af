from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Set, Union

from .registry.examples import ExampleRegistry
from .registry.files import FileRegistry
from .schemas import SeenExample

if TYPE_CHECKING:
    from .snapshot.loader import PreviousSnapshot

logger = logging.getLogger(__name__)

SeenExamples = Mapping[str, Union[SeenExample, Mapping[str, Any]]]


class ChangeReconciler:
    """Compares the current run with the previous snapshot.

    Deleted and flaky classifications are written back into the
    :class:`ExampleRegistry`, which stays the single owner of example state.
    """

    def __init__(
        self,
        examples: ExampleRegistry,
        files: FileRegistry,
        flaky_confirmations: int = 1,
    ) -> None:
        self.examples = examples
        self.files = files
        self.flaky_confirmations = flaky_confirmations
        self._nondeterministic_reruns: Dict[str, int] = {}

    def register_deleted_examples(self, seen_examples: SeenExamples) -> List[str]:
        seen_ids = dict.fromkeys(sorted(seen_examples))
        present = (
            self.examples.skipped_examples
            | set(self.examples.all_examples)
            | set(self.examples.duplicate_examples)
        )
        candidates = [example_id for example_id in seen_ids if example_id not in present]
        candidates = [
            example_id
            for example_id in candidates
            if example_id not in self.examples.interrupted_examples
        ]

        deleted = []
        for example_id in candidates:
            seen = _seen(seen_examples[example_id])
            if self.files.is_changed(seen.file_name) or self.files.is_changed(seen.rerun_file_name):
                deleted.append(example_id)
            else:
                logger.debug("example %s missing but its files are unchanged", example_id)

        self.examples.register_deleted(set(deleted))
        return deleted

    def record_rerun(self, example_id: str, passed: bool) -> None:
        """Record one isolated re-run of an example that failed its first pass."""
        if not passed or self.examples.is_duplicate(example_id):
            return
        if not self.examples.is_failed(example_id):
            logger.debug("re-run of %s ignored, it did not fail its first pass", example_id)
            return
        count = self._nondeterministic_reruns.get(example_id, 0) + 1
        self._nondeterministic_reruns[example_id] = count
        self.examples.register_possibly_flaky(example_id)
        if count >= self.flaky_confirmations:
            self.examples.register_flaky(example_id)

    def register_possibly_flaky(self, example_id: str) -> None:
        self.examples.register_possibly_flaky(example_id)

    def register_flaky(self, example_id: str) -> None:
        self.examples.register_flaky(example_id)

    def select_examples_to_rerun(
        self,
        previous: "PreviousSnapshot",
        current_ids: Iterable[str],
    ) -> List[str]:
        """Example ids whose previous result cannot be reused in this run."""
        changed_files = set(self.files.changed_files())
        carry_over: Set[str] = (
            set(previous.failed_examples)
            | set(previous.pending_examples)
            | set(previous.flaky_examples)
        )
        selected = []
        for example_id in sorted(set(current_ids)):
            seen = previous.seen_examples.get(example_id)
            if seen is None or example_id in carry_over:
                selected.append(example_id)
            elif previous.all_examples[example_id].get("execution_result") is None:
                selected.append(example_id)
            elif seen.file_name in changed_files or seen.rerun_file_name in changed_files:
                selected.append(example_id)
            elif not changed_files.isdisjoint(previous.dependency.get(example_id, ())):
                selected.append(example_id)
        return selected


def _seen(value: Union[SeenExample, Mapping[str, Any]]) -> SeenExample:
    if isinstance(value, SeenExample):
        return value
    return SeenExample.model_validate(value)
