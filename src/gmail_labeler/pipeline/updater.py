"""Pipeline orchestrator: resolve → chunk → execute → aggregate."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from gmail_labeler.config.settings import GmailLabelerSettings
from gmail_labeler.core.auth import authenticate, build_gmail_service
from gmail_labeler.core.exceptions import BatchAbortedError
from gmail_labeler.core.gateway import MailboxGateway
from gmail_labeler.core.gmail_client import GmailGateway
from gmail_labeler.core.models import BatchProgress, BatchReport, BatchRequest, OutcomeStatus
from gmail_labeler.core.payload import parse_batch_request
from gmail_labeler.pipeline.aggregator import ReportAccumulator, no_change_report, trash_report
from gmail_labeler.pipeline.executor import BatchExecutor, ExecutionPolicy
from gmail_labeler.pipeline.scheduler import ChunkScheduler, count_chunks

logger = logging.getLogger(__name__)


class BatchUpdater:
    """Runs batch label updates against a mailbox gateway.

    Three paths:
        Trash:    one batch_delete call with every ID; failure raises.
        No-op:    empty resolved delta; success without touching the gateway.
        Modify:   chunk → execute (validate / apply / verify / retry) → report.
    """

    def __init__(
        self,
        settings: GmailLabelerSettings | None = None,
        gateway: MailboxGateway | None = None,
        *,
        policy: ExecutionPolicy | None = None,
        on_progress: Callable[[BatchProgress], None] | None = None,
    ) -> None:
        self._settings = settings or GmailLabelerSettings()
        self._gateway = gateway
        self._policy = policy or ExecutionPolicy(
            pre_validate=self._settings.pre_validate,
            verify=self._settings.verify,
        )
        self._on_progress = on_progress
        self._progress = BatchProgress()

    @property
    def on_progress(self) -> Callable[[BatchProgress], None] | None:
        return self._on_progress

    @on_progress.setter
    def on_progress(self, callback: Callable[[BatchProgress], None] | None) -> None:
        self._on_progress = callback

    def _ensure_initialized(self) -> MailboxGateway:
        """Build the Gmail gateway from settings if none was injected."""
        if self._gateway is None:
            self._settings.ensure_directories()

            creds = authenticate(
                self._settings.credentials_path,
                self._settings.token_path,
                self._settings.scopes,
            )
            service = build_gmail_service(creds)
            self._gateway = GmailGateway(
                service,
                self._settings.user_id,
                permanent_delete=self._settings.permanent_delete,
                max_retries=self._settings.max_retries,
                initial_backoff_seconds=self._settings.initial_backoff_seconds,
                max_backoff_seconds=self._settings.max_backoff_seconds,
                num_retries=self._settings.num_retries,
            )
        return self._gateway

    def run(
        self,
        request: BatchRequest,
        *,
        cancel_event: threading.Event | None = None,
        timeout_seconds: float | None = None,
    ) -> BatchReport:
        """Apply a batch request and return its report.

        Args:
            request: Message IDs plus the resolved delta or a trash flag.
            cancel_event: Set from another thread to stop before the next chunk.
            timeout_seconds: Whole-request deadline; defaults to settings.

        Returns:
            BatchReport. Per-message failures are reported, not raised.

        Raises:
            GatewayError: If the trash call fails.
            BatchCancelledError: If cancelled; ``partial_report`` is attached.
            BatchTimeoutError: If the deadline passes; ``partial_report`` is attached.
        """
        ids = request.message_ids
        self._progress = BatchProgress(total_messages=len(ids))

        if request.trash_requested:
            return self._run_trash(request)

        if request.delta.is_empty:
            logger.info("No label changes requested for %d messages", len(ids))
            self._progress.current_stage = "complete"
            self._progress.messages_succeeded = len(ids)
            self._notify()
            return no_change_report(ids, request.delta)

        gateway = self._ensure_initialized()
        executor = BatchExecutor(gateway, self._policy)
        scheduler = ChunkScheduler(
            self._settings.chunk_size,
            self._settings.inter_chunk_delay_seconds,
            cancel_event=cancel_event,
            timeout_seconds=(
                timeout_seconds
                if timeout_seconds is not None
                else self._settings.request_timeout_seconds
            ),
        )

        logger.info(
            "Batch modify: %d messages, +%s -%s (pre_validate=%s, verify=%s)",
            len(ids),
            sorted(request.delta.add),
            sorted(request.delta.remove),
            self._policy.pre_validate,
            self._policy.verify,
        )

        self._progress.chunks_total = count_chunks(len(ids), scheduler.chunk_size)
        self._progress.current_stage = "modify"
        self._notify()

        accumulator = ReportAccumulator(message_ids=ids)
        try:
            for chunk in scheduler.schedule(ids):
                result = executor.execute_chunk(chunk, request.delta)
                accumulator = accumulator.merge(result)
                self._update_progress(accumulator)
        except BatchAbortedError as e:
            e.partial_report = accumulator.build(request.delta)
            self._progress.current_stage = f"error: {e}"
            self._notify()
            raise
        except Exception as e:
            self._progress.current_stage = f"error: {e}"
            self._notify()
            raise

        report = accumulator.build(request.delta)
        self._progress.current_stage = "complete"
        self._notify()

        logger.info(
            "Batch modify complete: total=%d successful=%d failed=%d skipped=%d",
            report.total, len(report.successful), len(report.failed), len(report.skipped),
        )
        return report

    def _run_trash(self, request: BatchRequest) -> BatchReport:
        gateway = self._ensure_initialized()
        ids = list(request.message_ids)

        self._progress.current_stage = "trash"
        self._notify()
        logger.info("Moving %d messages to trash", len(ids))

        try:
            gateway.batch_delete(ids)
        except Exception as e:
            self._progress.current_stage = f"error: {e}"
            self._notify()
            raise

        self._progress.messages_succeeded = len(ids)
        self._progress.current_stage = "complete"
        self._notify()
        return trash_report(ids)

    def run_payload(self, payload: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        """Parse a tool payload, run it, and return the report as a dict.

        Raises:
            InvalidRequestError: If the payload is malformed.
        """
        request = parse_batch_request(payload)
        return self.run(request, **kwargs).to_dict()

    def list_labels(self) -> list[dict[str, str]]:
        """List available Gmail labels."""
        gateway = self._ensure_initialized()
        return gateway.list_labels()  # type: ignore[attr-defined]

    def _update_progress(self, accumulator: ReportAccumulator) -> None:
        self._progress.chunks_done = len(accumulator.chunks)
        self._progress.messages_succeeded = accumulator.count(OutcomeStatus.SUCCESS)
        self._progress.messages_failed = accumulator.count(OutcomeStatus.FAILED)
        self._progress.messages_skipped = accumulator.count(OutcomeStatus.SKIPPED)
        self._notify()

    def _notify(self) -> None:
        """Send progress update to callback if registered."""
        if self._on_progress:
            self._on_progress(self._progress)
