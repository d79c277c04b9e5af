from __future__ import annotations

from pathlib import Path

from rerun_tracer.reconciler import ChangeReconciler
from rerun_tracer.registry.examples import ExampleRegistry
from rerun_tracer.registry.files import FileRegistry
from rerun_tracer.schemas import LastRunRecord, SeenExample
from rerun_tracer.snapshot.loader import PreviousSnapshot


def _reconciler(flaky_confirmations: int = 1) -> ChangeReconciler:
    return ChangeReconciler(ExampleRegistry(), FileRegistry(), flaky_confirmations)


def _seen(file_name: str, rerun_file_name: str | None = None) -> dict[str, str]:
    return {"file_name": file_name, "rerun_file_name": rerun_file_name or file_name}


def test_missing_example_in_deleted_file_is_deleted() -> None:
    reconciler = _reconciler()
    reconciler.files.mark_deleted("/spec/foo_spec.py")

    deleted = reconciler.register_deleted_examples({"E1": _seen("/spec/foo_spec.py")})

    assert deleted == ["E1"]
    assert reconciler.examples.is_deleted("E1")


def test_missing_example_in_unchanged_file_is_not_deleted() -> None:
    reconciler = _reconciler()

    deleted = reconciler.register_deleted_examples({"E1": _seen("/spec/foo_spec.py")})

    assert deleted == []
    assert not reconciler.examples.is_deleted("E1")


def test_rerun_file_change_alone_marks_deleted() -> None:
    reconciler = _reconciler()
    reconciler.files.mark_modified("/spec/shared_examples.py")

    deleted = reconciler.register_deleted_examples(
        {"E1": SeenExample(file_name="/spec/foo_spec.py", rerun_file_name="/spec/shared_examples.py")}
    )

    assert deleted == ["E1"]


def test_present_skipped_and_interrupted_examples_are_never_deleted(make_example) -> None:
    reconciler = _reconciler()
    examples = reconciler.examples
    examples.register(make_example("ran"))
    examples.register(make_example("cut"))
    examples.finalize_duplicates()
    examples.record_outcome("skip", "skipped")
    examples.finalize_interrupted()
    reconciler.files.mark_deleted("/spec/foo_spec.py")

    seen = {
        example_id: _seen("/spec/foo_spec.py")
        for example_id in ("ran", "cut", "skip", "gone_b", "gone_a")
    }
    deleted = reconciler.register_deleted_examples(seen)

    assert examples.is_interrupted("cut")
    assert deleted == ["gone_a", "gone_b"]


def test_flaky_promotion_after_confirmations(make_example, make_result) -> None:
    reconciler = _reconciler(flaky_confirmations=2)
    reconciler.examples.register(make_example("e1"))
    reconciler.examples.record_outcome("e1", "failed", make_result("failed"))

    reconciler.record_rerun("e1", passed=False)
    assert not reconciler.examples.is_possibly_flaky("e1")

    reconciler.record_rerun("e1", passed=True)
    assert reconciler.examples.is_possibly_flaky("e1")
    assert not reconciler.examples.is_flaky("e1")

    reconciler.record_rerun("e1", passed=True)
    assert reconciler.examples.is_flaky("e1")


def test_rerun_of_example_that_never_failed_is_ignored(make_example, make_result) -> None:
    reconciler = _reconciler()
    reconciler.examples.register(make_example("ok"))
    reconciler.examples.record_outcome("ok", "passed", make_result())

    reconciler.record_rerun("ok", passed=True)
    reconciler.record_rerun("unknown", passed=True)

    assert not reconciler.examples.is_possibly_flaky("ok")
    assert not reconciler.examples.is_flaky("ok")
    assert not reconciler.examples.is_possibly_flaky("unknown")


def test_rerun_of_duplicate_is_ignored(make_example) -> None:
    reconciler = _reconciler()
    reconciler.examples.register(make_example("dup"))
    reconciler.examples.register(make_example("dup"))
    reconciler.examples.finalize_duplicates()

    reconciler.record_rerun("dup", passed=True)

    assert not reconciler.examples.is_flaky("dup")


def _previous(tmp_path: Path) -> PreviousSnapshot:
    passed = {"execution_result": {"status": "passed"}}
    all_examples = {
        "stable": {**_seen("/spec/a_spec.py"), **passed},
        "failed": {**_seen("/spec/a_spec.py"), **passed},
        "flaky": {**_seen("/spec/a_spec.py"), **passed},
        "cut": {**_seen("/spec/a_spec.py"), "execution_result": None},
        "touches_model": {**_seen("/spec/a_spec.py"), **passed},
        "in_changed_spec": {**_seen("/spec/b_spec.py"), **passed},
    }
    return PreviousSnapshot(
        last_run=LastRunRecord(
            run_id="r1",
            timestamp="2024-05-01T12:00:00Z",
            pid=1,
            actual_count=6,
            example_count=6,
            duplicate_examples=0,
            interrupted_examples=1,
            failed_examples=1,
            skipped_examples=0,
            pending_examples=0,
            flaky_examples=1,
        ),
        run_dir=tmp_path,
        all_examples=all_examples,
        seen_examples={key: SeenExample.model_validate(value) for key, value in all_examples.items()},
        failed_examples=["failed"],
        flaky_examples=["flaky"],
        dependency={"touches_model": ["/app/model.py"], "stable": ["/app/other.py"]},
    )


def test_select_examples_to_rerun(tmp_path: Path) -> None:
    reconciler = _reconciler()
    reconciler.files.mark_modified("/app/model.py")
    reconciler.files.mark_modified("/spec/b_spec.py")
    previous = _previous(tmp_path)

    selected = reconciler.select_examples_to_rerun(
        previous, list(previous.all_examples) + ["brand_new"]
    )

    assert selected == ["brand_new", "cut", "failed", "flaky", "in_changed_spec", "touches_model"]
