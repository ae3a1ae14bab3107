"""Gmail Labeler - Apply label changes to Gmail messages in verified batches."""

from gmail_labeler.core.labels import resolve_delta
from gmail_labeler.core.models import (
    BatchProgress,
    BatchReport,
    BatchRequest,
    LabelDelta,
    MessageOutcome,
    OutcomeStatus,
)
from gmail_labeler.pipeline.executor import ExecutionPolicy
from gmail_labeler.pipeline.updater import BatchUpdater

__all__ = [
    "BatchProgress",
    "BatchReport",
    "BatchRequest",
    "BatchUpdater",
    "ExecutionPolicy",
    "LabelDelta",
    "MessageOutcome",
    "OutcomeStatus",
    "resolve_delta",
]
