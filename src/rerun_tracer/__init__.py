from .config import Settings, load_settings
from .coverage import CoverageAggregator
from .dependency import DependencyGraph
from .errors import SerializerError, SnapshotError, TracerError
from .reconciler import ChangeReconciler
from .registry import ExampleRegistry, ExampleState, FileRegistry
from .schemas import Example, ExecutionResult, SourceFile
from .snapshot import SnapshotLoader, SnapshotWriter, compute_run_id
from .tracer import TraceSession

__version__ = "0.1.0"

__all__ = [
    "Settings",
    "load_settings",
    "CoverageAggregator",
    "DependencyGraph",
    "TracerError",
    "SnapshotError",
    "SerializerError",
    "ChangeReconciler",
    "ExampleRegistry",
    "ExampleState",
    "FileRegistry",
    "Example",
    "ExecutionResult",
    "SourceFile",
    "SnapshotLoader",
    "SnapshotWriter",
    "compute_run_id",
    "TraceSession",
]
