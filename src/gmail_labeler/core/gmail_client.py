"""Gmail API implementation of the MailboxGateway contract."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Sequence
from typing import Any

import httplib2
from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError
from googleapiclient.http import BatchHttpRequest

from gmail_labeler.core.exceptions import (
    AuthenticationError,
    GatewayError,
    RateLimitError,
    RequestError,
    TransientGatewayError,
)
from gmail_labeler.core.models import TRASH

logger = logging.getLogger(__name__)

# Gmail rejects HTTP batches with more than 100 parts.
HTTP_BATCH_LIMIT = 100

_RETRYABLE_PER_ITEM = (400, 404)

# Error reasons Gmail reports for quota throttling (403 or 429).
_RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")


def _is_rate_limit_error(exc: Exception) -> bool:
    """Check whether an exception is Gmail quota throttling (429 or a 403 rate-limit reason)."""
    if isinstance(exc, HttpError):
        # The URI in str(HttpError) embeds message IDs, so match on status/body only.
        if exc.status_code == 429:
            return True
        body = (exc.content or b"").decode("utf-8", errors="replace")
        return any(reason in body for reason in _RATE_LIMIT_REASONS)
    error_str = str(exc)
    return "429" in error_str or any(reason in error_str for reason in _RATE_LIMIT_REASONS)


def classify_error(exc: Exception, context: str) -> GatewayError:
    """Map a raw API/transport exception onto the gateway error taxonomy.

    Raises:
        AuthenticationError: For 401 responses, which abort the whole request.
    """
    if isinstance(exc, HttpError):
        status = exc.status_code
        reason = getattr(exc, "reason", None) or str(exc)
        message = f"Failed to {context}: {reason}"
        if status == 401:
            raise AuthenticationError(message) from exc
        if status in _RETRYABLE_PER_ITEM:
            return RequestError(message, code=status)
        if status == 429:
            return RateLimitError(message, code=status)
        return TransientGatewayError(message, code=status)
    return TransientGatewayError(f"Failed to {context}: {exc}")


class GmailGateway:
    """Thin wrapper around the Gmail API for label reads and label mutations."""

    def __init__(
        self,
        service: Resource,
        user_id: str = "me",
        *,
        permanent_delete: bool = False,
        max_retries: int = 5,
        initial_backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 60.0,
        num_retries: int = 3,
    ) -> None:
        self._service = service
        self._user_id = user_id
        self._permanent_delete = permanent_delete
        self._max_retries = max_retries
        self._initial_backoff = initial_backoff_seconds
        self._max_backoff = max_backoff_seconds
        self._num_retries = num_retries

    def _sleep_backoff(self, backoff: float, context: str, attempt: int) -> float:
        """Sleep a jittered backoff and return the next backoff value."""
        sleep_time = min(backoff, self._max_backoff)
        jitter = random.uniform(0, sleep_time)
        logger.warning(
            "Rate limited during %s (attempt %d/%d), sleeping %.2fs",
            context, attempt + 1, self._max_retries, jitter,
        )
        time.sleep(jitter)
        return min(backoff * 2, self._max_backoff)

    def _execute_with_retry(self, request: Any, context: str) -> Any:
        """Execute a single API request with exponential backoff on 429 errors.

        Args:
            request: A googleapiclient HttpRequest object.
            context: Description for log and error messages (e.g. "modify m1").

        Returns:
            The API response dict.

        Raises:
            RateLimitError: When retries are exhausted on 429 errors.
            GatewayError: On any other classified API or network error.
        """
        backoff = self._initial_backoff

        for attempt in range(self._max_retries + 1):
            try:
                return request.execute(num_retries=self._num_retries)
            except (HttpError, httplib2.HttpLib2Error, OSError) as e:
                if not _is_rate_limit_error(e):
                    raise classify_error(e, context) from e
                if attempt >= self._max_retries:
                    raise RateLimitError(
                        f"Rate limited during {context} after "
                        f"{self._max_retries} retries: {e}",
                        code=429,
                    ) from e
                backoff = self._sleep_backoff(backoff, context, attempt)

        raise RateLimitError(
            f"Rate limited during {context} after {self._max_retries} retries", code=429
        )

    def list_labels(self) -> list[dict[str, str]]:
        """List all Gmail labels.

        Returns:
            List of dicts with 'id' and 'name' keys.
        """
        request = self._service.users().labels().list(userId=self._user_id)
        results = self._execute_with_retry(request, "list labels")
        labels = results.get("labels", [])
        return [{"id": lbl["id"], "name": lbl["name"]} for lbl in labels]

    def _get_request(self, message_id: str) -> Any:
        return (
            self._service.users()
            .messages()
            .get(userId=self._user_id, id=message_id, format="minimal")
        )

    def get_message_labels(self, message_id: str) -> frozenset[str]:
        """Fetch the current label IDs of one message."""
        response = self._execute_with_retry(
            self._get_request(message_id), f"get labels for {message_id}"
        )
        return frozenset(response.get("labelIds", []))

    def get_labels_many(
        self, message_ids: Sequence[str]
    ) -> dict[str, frozenset[str] | GatewayError]:
        """Fetch labels for many messages using Gmail HTTP batch requests.

        The parts of one HTTP batch are independent and complete in any order.
        Parts that hit a rate limit are re-sent after a backoff; any other
        per-message failure is returned in place of that message's labels.

        Args:
            message_ids: Message IDs to look up. Duplicates are collapsed.

        Returns:
            Mapping of message ID to its label set or the classified error.
        """
        unique_ids = list(dict.fromkeys(message_ids))
        results: dict[str, frozenset[str] | GatewayError] = {}

        for start in range(0, len(unique_ids), HTTP_BATCH_LIMIT):
            group = unique_ids[start:start + HTTP_BATCH_LIMIT]
            results.update(self._fetch_labels_group(group))

        return results

    def _fetch_labels_group(
        self, message_ids: list[str]
    ) -> dict[str, frozenset[str] | GatewayError]:
        backoff = self._initial_backoff
        results: dict[str, frozenset[str] | GatewayError] = {}
        pending = list(message_ids)

        for attempt in range(self._max_retries + 1):
            rate_limited: list[str] = []

            def _callback(
                request_id: str,
                response: dict[str, Any] | None,
                exception: Exception | None,
            ) -> None:
                if exception is not None:
                    if _is_rate_limit_error(exception):
                        rate_limited.append(request_id)
                        return
                    try:
                        results[request_id] = classify_error(
                            exception, f"get labels for {request_id}"
                        )
                    except AuthenticationError as auth_error:
                        results[request_id] = GatewayError(str(auth_error), code=401)
                    return
                results[request_id] = frozenset((response or {}).get("labelIds", []))

            batch: BatchHttpRequest = self._service.new_batch_http_request(callback=_callback)
            for msg_id in pending:
                batch.add(self._get_request(msg_id), request_id=msg_id)

            try:
                batch.execute()
            except (HttpError, httplib2.HttpLib2Error, OSError) as e:
                if not _is_rate_limit_error(e):
                    error = classify_error(e, "fetch labels batch")
                    for msg_id in pending:
                        results.setdefault(msg_id, error)
                    return results
                rate_limited = [m for m in pending if m not in results]

            if not rate_limited:
                logger.debug("Fetched labels for %d messages", len(message_ids))
                return results

            if attempt >= self._max_retries:
                error = RateLimitError(
                    f"Rate limited fetching labels after {self._max_retries} retries",
                    code=429,
                )
                for msg_id in rate_limited:
                    results[msg_id] = error
                return results

            backoff = self._sleep_backoff(backoff, "fetch labels batch", attempt)
            pending = rate_limited

        return results

    def batch_modify(
        self,
        message_ids: Sequence[str],
        add: frozenset[str],
        remove: frozenset[str],
    ) -> None:
        """Apply one label change to up to 1000 messages in a single call."""
        body = {
            "ids": list(message_ids),
            "addLabelIds": sorted(add),
            "removeLabelIds": sorted(remove),
        }
        logger.debug(
            "batchModify %d messages (+%s -%s)",
            len(message_ids), body["addLabelIds"], body["removeLabelIds"],
        )
        request = self._service.users().messages().batchModify(userId=self._user_id, body=body)
        self._execute_with_retry(request, f"batch modify {len(message_ids)} messages")

    def modify_single(
        self, message_id: str, add: frozenset[str], remove: frozenset[str]
    ) -> None:
        """Apply a label change to one message."""
        body: dict[str, Any] = {}
        if add:
            body["addLabelIds"] = sorted(add)
        if remove:
            body["removeLabelIds"] = sorted(remove)
        request = (
            self._service.users()
            .messages()
            .modify(userId=self._user_id, id=message_id, body=body)
        )
        self._execute_with_retry(request, f"modify {message_id}")

    def batch_delete(self, message_ids: Sequence[str]) -> None:
        """Move messages to trash, or delete them permanently if configured.

        The default moves messages to TRASH with a label change, which can be
        undone. ``permanent_delete`` switches to ``messages.batchDelete``.
        """
        messages = self._service.users().messages()
        if self._permanent_delete:
            request = messages.batchDelete(
                userId=self._user_id, body={"ids": list(message_ids)}
            )
            context = f"delete {len(message_ids)} messages"
        else:
            request = messages.batchModify(
                userId=self._user_id,
                body={
                    "ids": list(message_ids),
                    "addLabelIds": [TRASH],
                },
            )
            context = f"trash {len(message_ids)} messages"
        self._execute_with_retry(request, context)
