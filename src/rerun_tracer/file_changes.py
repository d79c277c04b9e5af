"""Content-fingerprint change detection against the previous snapshot's files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Union

from .registry.files import FileRegistry
from .schemas import SourceFile
from .utils import hash_file, relative_name


@dataclass(frozen=True)
class FileChanges:
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def changed(self) -> list[str]:
        return sorted(set(self.modified) | set(self.deleted))


def fingerprint(path: Path, root: Path) -> SourceFile:
    return SourceFile(
        file_name=relative_name(path, root),
        file_path=str(path),
        digest=hash_file(path),
    )


def _resolve(record: SourceFile, root: Path) -> Path:
    if record.file_path:
        return Path(record.file_path)
    return root / record.file_name.lstrip("/")


def detect_changes(
    previous_files: Mapping[str, Union[SourceFile, Mapping[str, Any]]],
    root: Path,
) -> FileChanges:
    modified: list[str] = []
    deleted: list[str] = []
    for file_name in sorted(previous_files):
        value = previous_files[file_name]
        record = value if isinstance(value, SourceFile) else SourceFile.model_validate(value)
        path = _resolve(record, root)
        if not path.is_file():
            deleted.append(file_name)
        elif hash_file(path) != record.digest:
            modified.append(file_name)
    return FileChanges(modified=modified, deleted=deleted)


def apply_changes(registry: FileRegistry, changes: FileChanges) -> None:
    for file_name in changes.modified:
        registry.mark_modified(file_name)
    for file_name in changes.deleted:
        registry.mark_deleted(file_name)
