"""Frozen dataclasses for the Gmail Labeler domain model."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

SPAM = "SPAM"
TRASH = "TRASH"
INBOX = "INBOX"
UNREAD = "UNREAD"
STARRED = "STARRED"
IMPORTANT = "IMPORTANT"

ACTION_MODIFIED = "batch_modified"
ACTION_TRASHED = "batch_moved_to_trash"
ACTION_NO_CHANGES = "no_changes"


@dataclass(frozen=True)
class LabelDelta:
    """Net label change to apply. ``add`` and ``remove`` never overlap."""

    add: frozenset[str] = frozenset()
    remove: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        overlap = self.add & self.remove
        if overlap:
            raise ValueError(f"Labels both added and removed: {sorted(overlap)}")

    @property
    def is_empty(self) -> bool:
        return not self.add and not self.remove

    def touches(self, labels: Iterable[str]) -> bool:
        """True if any of ``labels`` is added or removed by this delta."""
        return any(lbl in self.add or lbl in self.remove for lbl in labels)

    def is_satisfied_by(self, labels: Iterable[str]) -> bool:
        """True if a message carrying ``labels`` already reflects this delta."""
        current = set(labels)
        return self.add <= current and not (self.remove & current)


@dataclass(frozen=True)
class BatchRequest:
    """A batch label update. Duplicate IDs are allowed; order is processing order."""

    message_ids: tuple[str, ...]
    delta: LabelDelta = field(default_factory=LabelDelta)
    trash_requested: bool = False


@dataclass(frozen=True)
class Chunk:
    """Contiguous slice of a request's message IDs sized to the API limit."""

    index: int
    message_ids: tuple[str, ...]


class OutcomeStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class MessageOutcome:
    """Final (or intermediate) state of a single message in a batch."""

    message_id: str
    status: OutcomeStatus
    reason: str = ""
    unchanged: bool = False

    @classmethod
    def success(cls, message_id: str, *, unchanged: bool = False) -> MessageOutcome:
        return cls(message_id, OutcomeStatus.SUCCESS, unchanged=unchanged)

    @classmethod
    def failed(cls, message_id: str, reason: str) -> MessageOutcome:
        return cls(message_id, OutcomeStatus.FAILED, reason)

    @classmethod
    def skipped(cls, message_id: str, reason: str) -> MessageOutcome:
        return cls(message_id, OutcomeStatus.SKIPPED, reason)


@dataclass(frozen=True)
class ChunkSummary:
    """Per-chunk line of the batch report."""

    index: int
    message_count: int
    status: str


@dataclass(frozen=True)
class ChunkResult:
    """Outcomes produced by the executor for one chunk, keyed by message ID."""

    summary: ChunkSummary
    outcomes: tuple[MessageOutcome, ...]


@dataclass(frozen=True)
class BatchReport:
    """Terminal result of a batch run. Partial failure is a normal value."""

    action: str
    total: int
    successful: tuple[str, ...] = ()
    failed: tuple[tuple[str, str], ...] = ()
    skipped: tuple[tuple[str, str], ...] = ()
    applied_delta: LabelDelta = field(default_factory=LabelDelta)
    chunks: tuple[ChunkSummary, ...] = ()
    unchanged: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def changed(self) -> int:
        """Number of successful messages whose labels actually changed."""
        return len(self.successful) - len(self.unchanged)

    def to_dict(self) -> dict[str, Any]:
        """Machine-readable form returned to the tool-invocation layer."""
        return {
            "success": self.success,
            "action": self.action,
            "summary": {
                "total": self.total,
                "successful": len(self.successful),
                "failed": len(self.failed),
                "skipped": len(self.skipped),
                "changed": self.changed,
            },
            "chunks": [
                {"index": c.index, "messageCount": c.message_count, "status": c.status}
                for c in self.chunks
            ],
            "successfulIds": list(self.successful),
            "failedIds": [{"id": mid, "error": reason} for mid, reason in self.failed],
            "skippedIds": [{"id": mid, "reason": reason} for mid, reason in self.skipped],
            "addedLabels": sorted(self.applied_delta.add),
            "removedLabels": sorted(self.applied_delta.remove),
        }


@dataclass
class BatchProgress:
    """Mutable progress tracker for batch status reporting."""

    total_messages: int = 0
    chunks_total: int = 0
    chunks_done: int = 0
    messages_succeeded: int = 0
    messages_failed: int = 0
    messages_skipped: int = 0
    current_stage: str = "idle"
