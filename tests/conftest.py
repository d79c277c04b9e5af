from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

from rerun_tracer.config import Settings

STARTED = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def example_data(
    example_id: str,
    rerun_file_name: str = "/spec/foo_spec.py",
    file_name: str | None = None,
    line: int = 1,
    description: str | None = None,
) -> Dict[str, Any]:
    return {
        "example_id": example_id,
        "full_description": description or f"example {example_id}",
        "description": example_id,
        "file_name": file_name or rerun_file_name,
        "rerun_file_name": rerun_file_name,
        "rerun_line_number": line,
    }


def result_data(status: str = "passed", seconds: float = 0.25) -> Dict[str, Any]:
    return {
        "started_at": STARTED,
        "finished_at": STARTED + timedelta(seconds=seconds),
        "run_time": seconds,
        "status": status,
    }


@pytest.fixture
def make_example() -> Callable[..., Dict[str, Any]]:
    return example_data


@pytest.fixture
def make_result() -> Callable[..., Dict[str, Any]]:
    return result_data


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    project_root = tmp_path / "project"
    project_root.mkdir()
    return Settings(cache_path=tmp_path / "cache", project_root=project_root, print_notices=False)
