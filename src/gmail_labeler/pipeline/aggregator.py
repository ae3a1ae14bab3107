"""Merge per-chunk outcomes into a single BatchReport."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from gmail_labeler.core.models import (
    ACTION_MODIFIED,
    ACTION_NO_CHANGES,
    ACTION_TRASHED,
    BatchReport,
    ChunkResult,
    ChunkSummary,
    LabelDelta,
    MessageOutcome,
    OutcomeStatus,
)

NOT_PROCESSED = "not processed: batch aborted"


@dataclass(frozen=True)
class ReportAccumulator:
    """Immutable running total of a batch run.

    Each ``merge`` returns a new accumulator. Outcomes are keyed by message
    ID and a later outcome replaces an earlier one, so a message that appears
    in several chunks reports the status of its last processing.
    """

    message_ids: tuple[str, ...]
    outcomes: dict[str, MessageOutcome] = field(default_factory=dict)
    chunks: tuple[ChunkSummary, ...] = ()

    def merge(self, result: ChunkResult) -> ReportAccumulator:
        outcomes = dict(self.outcomes)
        for outcome in result.outcomes:
            prev = outcomes.get(outcome.message_id)
            if (
                outcome.unchanged
                and prev is not None
                and prev.status is OutcomeStatus.SUCCESS
                and not prev.unchanged
            ):
                # an earlier chunk of this run already applied the change
                outcome = replace(outcome, unchanged=False)
            outcomes[outcome.message_id] = outcome
        return ReportAccumulator(
            message_ids=self.message_ids,
            outcomes=outcomes,
            chunks=self.chunks + (result.summary,),
        )

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes.values() if o.status is status)

    def build(self, delta: LabelDelta, action: str = ACTION_MODIFIED) -> BatchReport:
        """Assemble the report in input order, one entry per input ID.

        IDs that never reached the executor (an aborted run) are reported as
        skipped so that the report still accounts for every input.
        """
        successful: list[str] = []
        unchanged: list[str] = []
        failed: list[tuple[str, str]] = []
        skipped: list[tuple[str, str]] = []

        for mid in self.message_ids:
            outcome = self.outcomes.get(mid)
            if outcome is None:
                skipped.append((mid, NOT_PROCESSED))
            elif outcome.status is OutcomeStatus.SUCCESS:
                successful.append(mid)
                if outcome.unchanged:
                    unchanged.append(mid)
            elif outcome.status is OutcomeStatus.FAILED:
                failed.append((mid, outcome.reason))
            else:
                skipped.append((mid, outcome.reason))

        return BatchReport(
            action=action,
            total=len(self.message_ids),
            successful=tuple(successful),
            failed=tuple(failed),
            skipped=tuple(skipped),
            applied_delta=delta,
            chunks=self.chunks,
            unchanged=tuple(unchanged),
        )


def trash_report(message_ids: Sequence[str]) -> BatchReport:
    """Report for a successful all-or-nothing move to trash."""
    return BatchReport(
        action=ACTION_TRASHED,
        total=len(message_ids),
        successful=tuple(message_ids),
    )


def no_change_report(message_ids: Sequence[str], delta: LabelDelta) -> BatchReport:
    """Report for a request whose resolved delta is empty."""
    return BatchReport(
        action=ACTION_NO_CHANGES,
        total=len(message_ids),
        successful=tuple(message_ids),
        applied_delta=delta,
        unchanged=tuple(message_ids),
    )
