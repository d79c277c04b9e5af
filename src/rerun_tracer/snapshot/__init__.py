from .loader import PreviousSnapshot, SnapshotLoader
from .writer import (
    LAST_RUN_REPORT,
    REPORT_TYPES,
    RunReports,
    SnapshotResult,
    SnapshotWriter,
    compute_run_id,
)

__all__ = [
    "PreviousSnapshot",
    "SnapshotLoader",
    "LAST_RUN_REPORT",
    "REPORT_TYPES",
    "RunReports",
    "SnapshotResult",
    "SnapshotWriter",
    "compute_run_id",
]
