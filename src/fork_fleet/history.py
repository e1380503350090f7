"""Append-only log of completed sync records."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from .models import ForkSyncResult, SyncRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    repo_full_name: str
    host_label: str
    record: SyncRecord

    def to_dict(self) -> dict:
        return {
            "repo_full_name": self.repo_full_name,
            "host_label": self.host_label,
            "record": self.record.to_dict(),
        }


class SyncHistory:
    """JSON-lines store of sync records, one object per line."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, result: ForkSyncResult, host_label: str = "") -> None:
        """Persist a completed live result. Dry-run results are ignored."""
        if result.dry_run:
            return
        entry = HistoryEntry(result.repo_full_name, host_label, result.record)
        line = json.dumps(entry.to_dict(), sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line + "\n")

    def read(self, limit: int | None = None, repo: str | None = None) -> list[HistoryEntry]:
        """Return entries newest first, optionally filtered by repository name."""
        if not self.path.exists():
            return []

        entries: list[HistoryEntry] = []
        with open(self.path, encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    entry = HistoryEntry(
                        repo_full_name=data["repo_full_name"],
                        host_label=data.get("host_label", ""),
                        record=SyncRecord.from_dict(data["record"]),
                    )
                except (ValueError, KeyError) as e:
                    logger.warning("%s:%d: skipping malformed entry (%s)", self.path, lineno, e)
                    continue
                if repo and repo not in (
                    entry.repo_full_name,
                    entry.repo_full_name.split("/")[-1],
                ):
                    continue
                entries.append(entry)

        entries.reverse()
        if limit is not None:
            entries = entries[:limit]
        return entries
