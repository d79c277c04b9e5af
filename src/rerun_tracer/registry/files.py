from __future__ import annotations

import threading
from typing import Any, Dict, Mapping, Optional, Set, Union

from ..schemas import SourceFile


class FileRegistry:
    """Source files known to this run and their change flags."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.all_files: Dict[str, SourceFile] = {}
        self.modified_files: Set[str] = set()
        self.deleted_files: Set[str] = set()

    def register(
        self,
        file_name: str,
        metadata: Optional[Union[SourceFile, Mapping[str, Any]]] = None,
    ) -> SourceFile:
        if isinstance(metadata, SourceFile):
            record = metadata.model_copy(update={"file_name": file_name})
        else:
            record = SourceFile.model_validate({**dict(metadata or {}), "file_name": file_name})
        with self._lock:
            self.all_files[file_name] = record
        return record

    def mark_modified(self, file_name: str) -> None:
        with self._lock:
            self.modified_files.add(file_name)

    def mark_deleted(self, file_name: str) -> None:
        with self._lock:
            self.deleted_files.add(file_name)

    def is_modified(self, file_name: str) -> bool:
        return file_name in self.modified_files

    def is_deleted(self, file_name: str) -> bool:
        return file_name in self.deleted_files

    def is_changed(self, file_name: str) -> bool:
        return self.is_deleted(file_name) or self.is_modified(file_name)

    def changed_files(self) -> list[str]:
        return sorted(self.modified_files | self.deleted_files)

    def files_payload(self) -> Dict[str, Any]:
        return {name: self.all_files[name].model_dump(mode="json") for name in sorted(self.all_files)}
