"""Tamper-evident audit trail for segment revisions.

Every applied, confirmed or cancelled revision is appended to a JSONL file.
A line's ``entry_hash`` is SHA-256 over the previous line's hash followed by
the event JSON, so editing, dropping or reordering any past revision breaks
verification from that line on.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from geomatricula.core.config import AuditConfig
from geomatricula.core.types import AuditEvent

logger = logging.getLogger(__name__)

GENESIS_HASH = hashlib.sha256(b"geomatricula-genesis").hexdigest()

_EXACT_FILTERS = ("project_id", "actor", "action")


def chain_hash(previous_hash: str, event: AuditEvent) -> str:
    digest = hashlib.sha256(previous_hash.encode("utf-8"))
    digest.update(event.model_dump_json().encode("utf-8"))
    return digest.hexdigest()


def _as_utc(value: str | datetime) -> datetime:
    moment = datetime.fromisoformat(value) if isinstance(value, str) else value
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


class AuditEntry:
    """One line of the log: the event and its links in the chain."""

    def __init__(self, event: AuditEvent, previous_hash: str, entry_hash: str) -> None:
        self.event = event
        self.previous_hash = previous_hash
        self.entry_hash = entry_hash

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous_hash": self.previous_hash,
            "entry_hash": self.entry_hash,
            "event": self.event.model_dump(mode="json"),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuditEntry:
        return cls(AuditEvent.model_validate(data["event"]), data["previous_hash"], data["entry_hash"])


class AuditLogger:
    """Append-only, hash-chained revision log.

    Opening an existing file resumes its chain, so a restarted host keeps
    appending to the same tamper-evident sequence.

    Args:
        config: AuditConfig instance. Defaults to AuditConfig() which reads
            from environment variables.
        log_file: Override the log file name (default: ``config.log_file``).
    """

    def __init__(self, config: AuditConfig | None = None, log_file: str | None = None) -> None:
        config = config or AuditConfig()
        log_dir = Path(config.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self._path = log_dir / (log_file or config.log_file)
        self._lock = threading.Lock()
        self._head = GENESIS_HASH
        for entry in self._read():
            self._head = entry.entry_hash

    def _read(self) -> Iterator[AuditEntry]:
        if not self._path.exists():
            return
        with self._path.open(encoding="utf-8") as fh:
            for raw in fh:
                if raw.strip():
                    yield AuditEntry.from_dict(json.loads(raw))

    def log(self, event: AuditEvent) -> AuditEntry:
        """Chain ``event`` onto the current head and append it to the file."""
        with self._lock:
            entry = AuditEntry(event, self._head, chain_hash(self._head, event))
            with self._path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")
            self._head = entry.entry_hash
        logger.debug("Audit %s for project %s (%s)", event.action, event.project_id, entry.entry_hash[:12])
        return entry

    def verify_chain(self) -> bool:
        """Walk the file from the genesis hash, recomputing every link."""
        expected_previous = GENESIS_HASH
        for position, entry in enumerate(self._read(), start=1):
            if entry.previous_hash != expected_previous:
                logger.warning("Audit chain broken at entry %d: previous hash mismatch", position)
                return False
            if entry.entry_hash != chain_hash(expected_previous, entry.event):
                logger.warning("Audit chain broken at entry %d: content altered", position)
                return False
            expected_previous = entry.entry_hash
        return True

    def query(self, filters: dict[str, Any] | None = None) -> list[AuditEvent]:
        """Return logged events matching ``filters``.

        Supported filter keys:
            - ``project_id``, ``actor``, ``action``: exact match
            - ``after`` / ``before``: ISO string or datetime, exclusive
              bounds on the event timestamp; naive values are read as UTC
        """
        filters = filters or {}
        exact = {key: filters[key] for key in _EXACT_FILTERS if key in filters}
        after = _as_utc(filters["after"]) if "after" in filters else None
        before = _as_utc(filters["before"]) if "before" in filters else None

        events = []
        for entry in self._read():
            event = entry.event
            if any(getattr(event, key) != value for key, value in exact.items()):
                continue
            if after is not None and event.timestamp <= after:
                continue
            if before is not None and event.timestamp >= before:
                continue
            events.append(event)
        return events

    @property
    def log_path(self) -> Path:
        return self._path

    @property
    def last_hash(self) -> str:
        """Hash of the most recent entry, or the genesis hash if empty."""
        return self._head
