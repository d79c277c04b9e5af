from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .utils import read_jsonl, stable_hash, write_jsonl_line

LEDGER_FILE = "ledger.jsonl"


def _event_hash(entry: Dict[str, Any]) -> str:
    return stable_hash(
        {
            "ts": entry.get("ts"),
            "type": entry.get("type"),
            "run_id": entry.get("run_id"),
            "payload": entry.get("payload"),
            "prev_hash": entry.get("prev_hash"),
        }
    )


class RunLedger:
    """Append-only, hash-chained record of snapshot writes at the cache root."""

    def __init__(self, cache_path: Path) -> None:
        self.path = cache_path / LEDGER_FILE
        self._last_hash = ""
        entries = read_jsonl(self.path)
        if entries:
            self._last_hash = entries[-1].get("hash", "")

    def append(self, event_type: str, run_id: str, payload: Dict[str, Any], ts: str) -> str:
        event: Dict[str, Any] = {
            "ts": ts,
            "type": event_type,
            "run_id": run_id,
            "payload": payload,
            "prev_hash": self._last_hash,
        }
        event["hash"] = _event_hash(event)
        write_jsonl_line(self.path, event)
        self._last_hash = event["hash"]
        return event["hash"]

    def entries(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        entries = read_jsonl(self.path)
        if event_type is None:
            return entries
        return [entry for entry in entries if entry.get("type") == event_type]

    @staticmethod
    def verify_chain(path: Path) -> Tuple[bool, str]:
        prev_hash = ""
        for idx, entry in enumerate(read_jsonl(path)):
            if entry.get("prev_hash") != prev_hash:
                return False, f"prev_hash mismatch at {idx}"
            if _event_hash(entry) != entry.get("hash", ""):
                return False, f"hash mismatch at {idx}"
            prev_hash = entry["hash"]
        return True, "ok"
