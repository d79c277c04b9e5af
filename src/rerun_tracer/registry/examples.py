from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from ..schemas import OUTCOME_KINDS, Example, ExecutionResult, OutcomeKind

logger = logging.getLogger(__name__)


class ExampleState(str, Enum):
    UNSEEN = "unseen"
    REGISTERED = "registered"
    DUPLICATE = "duplicate"
    FINALIZED = "finalized"


class ExampleRegistry:
    """Identity and outcome bookkeeping for the examples of one run.

    Every registration is remembered per ``example_id``. Once
    :meth:`finalize_duplicates` runs, ids registered more than once move to
    :attr:`duplicate_examples` and drop out of :attr:`all_examples`, so no
    outcome, interruption or dependency is ever attributed to them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.all_examples: Dict[str, Example] = {}
        self.duplicate_examples: Dict[str, List[Example]] = {}
        self._registrations: Dict[str, List[Example]] = {}
        self._finalized = False
        self.passed_examples: Set[str] = set()
        self.failed_examples: Set[str] = set()
        self.pending_examples: Set[str] = set()
        self.skipped_examples: Set[str] = set()
        self.interrupted_examples: Set[str] = set()
        self.possibly_flaky_examples: Set[str] = set()
        self.flaky_examples: Set[str] = set()
        self.deleted_examples: Set[str] = set()

    def register(self, example: Union[Example, Mapping[str, Any]]) -> Example:
        if not isinstance(example, Example):
            example = Example.model_validate(example)
        example_id = example.example_id
        with self._lock:
            self.all_examples[example_id] = example
            registrations = self._registrations.setdefault(example_id, [])
            registrations.append(example)
            if self._finalized and len(registrations) > 1:
                self._demote(example_id)
        return example

    def finalize_duplicates(self) -> Dict[str, List[Example]]:
        with self._lock:
            self.duplicate_examples = {
                example_id: list(examples)
                for example_id, examples in self._registrations.items()
                if len(examples) > 1
            }
            for example_id in self.duplicate_examples:
                self._exclude(example_id)
            self._finalized = True
        if self.duplicate_examples:
            logger.debug("excluded %d duplicate example ids", len(self.duplicate_examples))
        return self.duplicate_examples

    def state(self, example_id: str) -> ExampleState:
        if example_id in self.duplicate_examples:
            return ExampleState.DUPLICATE
        if example_id not in self._registrations:
            return ExampleState.UNSEEN
        return ExampleState.FINALIZED if self._finalized else ExampleState.REGISTERED

    def record_outcome(
        self,
        example_id: str,
        kind: OutcomeKind,
        result: Optional[Union[ExecutionResult, Mapping[str, Any], Any]] = None,
    ) -> bool:
        """Attach an outcome; returns False when the event was not recorded."""
        if kind not in OUTCOME_KINDS:
            raise ValueError(f"unknown outcome kind: {kind}")
        with self._lock:
            if example_id in self.duplicate_examples:
                return False
            if kind == "skipped":
                self.skipped_examples.add(example_id)
                return True
            example = self.all_examples.get(example_id)
            if example is None:
                logger.debug("outcome %s for unregistered example %s ignored", kind, example_id)
                return False
            if example.execution_result is not None:
                logger.debug("second outcome %s for example %s ignored", kind, example_id)
                return False
            example.execution_result = _execution_result(result)
            self._outcome_set(kind).add(example_id)
        return True

    def finalize_interrupted(self) -> List[str]:
        with self._lock:
            for example_id, example in self.all_examples.items():
                if example.execution_result is None and example_id not in self.skipped_examples:
                    self.interrupted_examples.add(example_id)
        return sorted(self.interrupted_examples)

    # Classification hooks used by the reconciler and the re-run collaborator.

    def register_possibly_flaky(self, example_id: str) -> None:
        with self._lock:
            self.possibly_flaky_examples.add(example_id)

    def register_flaky(self, example_id: str) -> None:
        with self._lock:
            self.flaky_examples.add(example_id)

    def register_failed(self, example_id: str) -> None:
        with self._lock:
            self.failed_examples.add(example_id)

    def register_pending(self, example_id: str) -> None:
        with self._lock:
            self.pending_examples.add(example_id)

    def register_deleted(self, example_ids: Set[str]) -> None:
        with self._lock:
            self.deleted_examples = set(example_ids)

    # Lock-free reads: a single set membership test is atomic under the GIL
    # and sets are only mutated while holding the lock.

    def is_duplicate(self, example_id: str) -> bool:
        return example_id in self.duplicate_examples

    def is_passed(self, example_id: str) -> bool:
        return example_id in self.passed_examples

    def is_failed(self, example_id: str) -> bool:
        return example_id in self.failed_examples

    def is_pending(self, example_id: str) -> bool:
        return example_id in self.pending_examples

    def is_skipped(self, example_id: str) -> bool:
        return example_id in self.skipped_examples

    def is_interrupted(self, example_id: str) -> bool:
        return example_id in self.interrupted_examples

    def is_possibly_flaky(self, example_id: str) -> bool:
        return example_id in self.possibly_flaky_examples

    def is_flaky(self, example_id: str) -> bool:
        return example_id in self.flaky_examples

    def is_deleted(self, example_id: str) -> bool:
        return example_id in self.deleted_examples

    @property
    def registered_count(self) -> int:
        return sum(len(examples) for examples in self._registrations.values())

    @property
    def duplicate_count(self) -> int:
        return sum(len(examples) for examples in self.duplicate_examples.values())

    def examples_payload(self) -> Dict[str, Any]:
        return {
            example_id: self.all_examples[example_id].model_dump(mode="json")
            for example_id in sorted(self.all_examples)
        }

    def _demote(self, example_id: str) -> None:
        # Late registration of an id that already passed dedup.
        self.duplicate_examples[example_id] = list(self._registrations[example_id])
        self._exclude(example_id)

    def _exclude(self, example_id: str) -> None:
        self.all_examples.pop(example_id, None)
        for example in self._registrations.get(example_id, ()):
            example.execution_result = None
        for outcomes in (
            self.passed_examples,
            self.failed_examples,
            self.pending_examples,
            self.skipped_examples,
            self.interrupted_examples,
            self.possibly_flaky_examples,
            self.flaky_examples,
        ):
            outcomes.discard(example_id)

    def _outcome_set(self, kind: str) -> Set[str]:
        return {
            "passed": self.passed_examples,
            "failed": self.failed_examples,
            "pending": self.pending_examples,
        }[kind]


def _execution_result(result: Any) -> ExecutionResult:
    if isinstance(result, ExecutionResult):
        return result.model_copy()
    if isinstance(result, Mapping):
        return ExecutionResult.model_validate(dict(result))
    return ExecutionResult.model_validate(result, from_attributes=True)
