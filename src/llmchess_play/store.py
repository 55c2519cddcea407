"""
JSON-file persistence for session snapshots.

The file holds one ordered list of snapshots; save() replaces an existing entry in place or
appends a new one, so list() order is creation order.
"""
from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

log = logging.getLogger("session_store")


class JsonSessionStore:
    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except json.JSONDecodeError:
            log.exception("Saved games file %s is corrupt; starting fresh", self.path)
            return []
        return [s for s in raw if isinstance(s, dict) and "id" in s] if isinstance(raw, list) else []

    def _write(self, snapshots: List[Dict[str, Any]]) -> None:
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshots, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, self.path)

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return self._read()

    def load(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for snap in self._read():
                if str(snap["id"]) == str(session_id):
                    return snap
        return None

    def save(self, snapshot: Dict[str, Any]) -> None:
        with self._lock:
            snapshots = self._read()
            for idx, existing in enumerate(snapshots):
                if str(existing["id"]) == str(snapshot["id"]):
                    snapshots[idx] = snapshot
                    break
            else:
                snapshots.append(snapshot)
            self._write(snapshots)
        log.debug("Saved session %s", snapshot["id"])

    def remove(self, session_id: str) -> bool:
        """Delete the record; returns False when there was nothing to delete."""
        with self._lock:
            snapshots = self._read()
            kept = [s for s in snapshots if str(s["id"]) != str(session_id)]
            if len(kept) == len(snapshots):
                return False
            self._write(kept)
        log.debug("Removed session %s", session_id)
        return True
