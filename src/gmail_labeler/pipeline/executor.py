"""Per-chunk label update: pre-validate, bulk apply, verify, retry individually."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from gmail_labeler.core.exceptions import GatewayError, RequestError
from gmail_labeler.core.gateway import MailboxGateway
from gmail_labeler.core.models import (
    INBOX,
    SPAM,
    TRASH,
    UNREAD,
    Chunk,
    ChunkResult,
    ChunkSummary,
    LabelDelta,
    MessageOutcome,
    OutcomeStatus,
)

logger = logging.getLogger(__name__)

NOT_ACCESSIBLE = "not accessible"
QUARANTINED = "cannot modify UNREAD/INBOX on SPAM/TRASH"
VERIFICATION_MISMATCH = "labels not updated as expected"

_QUARANTINE_LABELS = frozenset({SPAM, TRASH})
_PROTECTED_LABELS = frozenset({UNREAD, INBOX})


@dataclass(frozen=True)
class ExecutionPolicy:
    """Which safety steps the executor runs around the bulk call.

    The default is the most defensive configuration. Turning both steps off
    gives the plain batch-then-retry-on-400/404 behaviour.
    """

    pre_validate: bool = True
    verify: bool = True


PARANOID = ExecutionPolicy()
TRUST_API = ExecutionPolicy(pre_validate=False, verify=False)


class BatchExecutor:
    """Applies a LabelDelta to one chunk and reports a final outcome per message.

    Steps per chunk:
        1. Pre-validate (optional): skip inaccessible messages and SPAM/TRASH
           messages when the delta touches UNREAD or INBOX.
        2. Bulk apply with one batchModify call.
        3. Verify (optional): re-read labels and flag mismatches.
        4. Retry each flagged message with a single modify call.

    A transient gateway error on the bulk call fails the whole chunk without
    per-message retries.
    """

    def __init__(self, gateway: MailboxGateway, policy: ExecutionPolicy | None = None) -> None:
        self._gateway = gateway
        self._policy = policy or PARANOID

    @property
    def policy(self) -> ExecutionPolicy:
        return self._policy

    def execute_chunk(self, chunk: Chunk, delta: LabelDelta) -> ChunkResult:
        """Run the full state machine for one chunk."""
        unique_ids = list(dict.fromkeys(chunk.message_ids))
        outcomes: dict[str, MessageOutcome] = {}

        to_apply = unique_ids
        if self._policy.pre_validate:
            to_apply = self._pre_validate(unique_ids, delta, outcomes)

        if not to_apply:
            logger.info("Chunk %d: nothing to apply after validation", chunk.index + 1)
            return self._finish(chunk, outcomes)

        # message_id -> reason to prefix onto an individual retry failure
        retry: dict[str, str] = {}

        try:
            self._gateway.batch_modify(to_apply, delta.add, delta.remove)
        except RequestError as e:
            logger.warning(
                "Chunk %d: batch modify rejected (%s), retrying %d messages individually",
                chunk.index + 1, e.message, len(to_apply),
            )
            retry = {mid: "" for mid in to_apply}
        except GatewayError as e:
            logger.error("Chunk %d: batch modify failed: %s", chunk.index + 1, e.message)
            for mid in to_apply:
                outcomes[mid] = MessageOutcome.failed(mid, e.message)
            return self._finish(chunk, outcomes)
        else:
            if self._policy.verify:
                retry = self._verify(to_apply, delta, outcomes)
            else:
                for mid in to_apply:
                    outcomes[mid] = MessageOutcome.success(mid)

        if retry:
            self._retry_individually(retry, delta, outcomes)

        return self._finish(chunk, outcomes)

    def _pre_validate(
        self,
        message_ids: list[str],
        delta: LabelDelta,
        outcomes: dict[str, MessageOutcome],
    ) -> list[str]:
        """Record skips and no-op successes; return the IDs that still need the call."""
        labels_by_id = self._gateway.get_labels_many(message_ids)
        touches_protected = delta.touches(_PROTECTED_LABELS)
        to_apply: list[str] = []

        for mid in message_ids:
            labels = labels_by_id.get(mid)
            if labels is None or isinstance(labels, GatewayError):
                logger.warning("Skipping %s: %s", mid, labels or "no labels returned")
                outcomes[mid] = MessageOutcome.skipped(mid, NOT_ACCESSIBLE)
            elif touches_protected and labels & _QUARANTINE_LABELS:
                outcomes[mid] = MessageOutcome.skipped(mid, QUARANTINED)
            elif delta.is_satisfied_by(labels):
                outcomes[mid] = MessageOutcome.success(mid, unchanged=True)
            else:
                to_apply.append(mid)

        skipped = len(message_ids) - len(to_apply)
        if skipped:
            logger.info("Pre-validation excluded %d of %d messages", skipped, len(message_ids))
        return to_apply

    def _verify(
        self,
        message_ids: list[str],
        delta: LabelDelta,
        outcomes: dict[str, MessageOutcome],
    ) -> dict[str, str]:
        """Check post-state; mark mismatches failed and return them for retry."""
        labels_by_id = self._gateway.get_labels_many(message_ids)
        mismatched: dict[str, str] = {}

        for mid in message_ids:
            labels = labels_by_id.get(mid)
            if isinstance(labels, frozenset) and delta.is_satisfied_by(labels):
                outcomes[mid] = MessageOutcome.success(mid)
            else:
                outcomes[mid] = MessageOutcome.failed(mid, VERIFICATION_MISMATCH)
                mismatched[mid] = VERIFICATION_MISMATCH

        if mismatched:
            logger.warning(
                "Verification found %d of %d messages not updated",
                len(mismatched), len(message_ids),
            )
        return mismatched

    def _retry_individually(
        self,
        retry: dict[str, str],
        delta: LabelDelta,
        outcomes: dict[str, MessageOutcome],
    ) -> None:
        """Sequentially retry each message with a single-item modify."""
        for mid, prior_reason in retry.items():
            try:
                self._gateway.modify_single(mid, delta.add, delta.remove)
            except GatewayError as e:
                reason = f"{prior_reason}; retry failed: {e.message}" if prior_reason else e.message
                logger.warning("Individual modify failed for %s: %s", mid, e.message)
                outcomes[mid] = MessageOutcome.failed(mid, reason)
            else:
                outcomes[mid] = MessageOutcome.success(mid)

    def _finish(self, chunk: Chunk, outcomes: dict[str, MessageOutcome]) -> ChunkResult:
        statuses = [outcomes[mid].status for mid in chunk.message_ids]
        total = len(statuses)
        succeeded = statuses.count(OutcomeStatus.SUCCESS)
        failed = statuses.count(OutcomeStatus.FAILED)

        if failed == 0 and succeeded == 0:
            status = "skipped"
        elif failed == 0:
            status = "success"
        elif succeeded == 0:
            status = "failed"
        else:
            status = f"partial ({succeeded}/{total} succeeded)"

        logger.info("Chunk %d: %s", chunk.index + 1, status)
        return ChunkResult(
            summary=ChunkSummary(index=chunk.index, message_count=total, status=status),
            outcomes=tuple(outcomes[mid] for mid in dict.fromkeys(chunk.message_ids)),
        )
