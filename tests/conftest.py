"""Shared fixtures for Gmail Labeler tests."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import pytest

from gmail_labeler.config.settings import GmailLabelerSettings
from gmail_labeler.core.exceptions import GatewayError, RequestError


class FakeGateway:
    """In-memory MailboxGateway.

    Knobs:
        labels:        message ID -> current label set; unknown IDs 404.
        batch_error:   raised by every batch_modify call when set.
        ignored:       IDs that batch_modify silently leaves untouched.
        single_errors: message ID -> error raised by modify_single.
        fetch_errors:  message ID -> error returned by get_labels_many.
        delete_error:  raised by batch_delete when set.
    """

    def __init__(self, labels: dict[str, set[str]] | None = None) -> None:
        self.labels: dict[str, set[str]] = labels or {}
        self.batch_error: GatewayError | None = None
        self.ignored: set[str] = set()
        self.single_errors: dict[str, GatewayError] = {}
        self.fetch_errors: dict[str, GatewayError] = {}
        self.delete_error: GatewayError | None = None
        self.calls: list[tuple[str, tuple[str, ...]]] = []

    def _apply(self, message_id: str, add: frozenset[str], remove: frozenset[str]) -> None:
        current = self.labels[message_id]
        current |= add
        current -= remove

    def get_message_labels(self, message_id: str) -> frozenset[str]:
        self.calls.append(("get", (message_id,)))
        if message_id not in self.labels:
            raise RequestError(f"Message {message_id} not found", code=404)
        return frozenset(self.labels[message_id])

    def get_labels_many(
        self, message_ids: Sequence[str]
    ) -> dict[str, frozenset[str] | GatewayError]:
        self.calls.append(("get_many", tuple(message_ids)))
        result: dict[str, frozenset[str] | GatewayError] = {}
        for mid in message_ids:
            if mid in self.fetch_errors:
                result[mid] = self.fetch_errors[mid]
            elif mid not in self.labels:
                result[mid] = RequestError(f"Message {mid} not found", code=404)
            else:
                result[mid] = frozenset(self.labels[mid])
        return result

    def batch_modify(
        self, message_ids: Sequence[str], add: frozenset[str], remove: frozenset[str]
    ) -> None:
        self.calls.append(("batch_modify", tuple(message_ids)))
        if self.batch_error is not None:
            raise self.batch_error
        missing = [mid for mid in message_ids if mid not in self.labels]
        if missing:
            raise RequestError(f"Invalid id value: {missing[0]}", code=400)
        for mid in message_ids:
            if mid not in self.ignored:
                self._apply(mid, add, remove)

    def modify_single(self, message_id: str, add: frozenset[str], remove: frozenset[str]) -> None:
        self.calls.append(("modify_single", (message_id,)))
        if message_id in self.single_errors:
            raise self.single_errors[message_id]
        if message_id not in self.labels:
            raise RequestError(f"Message {message_id} not found", code=404)
        self._apply(message_id, add, remove)

    def batch_delete(self, message_ids: Sequence[str]) -> None:
        self.calls.append(("batch_delete", tuple(message_ids)))
        if self.delete_error is not None:
            raise self.delete_error
        for mid in message_ids:
            if mid in self.labels:
                self.labels[mid].add("TRASH")

    def calls_named(self, name: str) -> list[tuple[str, ...]]:
        return [args for call, args in self.calls if call == name]


@pytest.fixture
def inbox_ids() -> list[str]:
    """Five message IDs, all unread in the inbox."""
    return [f"m{i}" for i in range(1, 6)]


@pytest.fixture
def gateway(inbox_ids: list[str]) -> FakeGateway:
    """Fake gateway holding the inbox_ids messages."""
    return FakeGateway({mid: {"INBOX", "UNREAD"} for mid in inbox_ids})


@pytest.fixture
def fast_settings(tmp_path: Path) -> GmailLabelerSettings:
    """Settings with no pacing delay and temp credential paths."""
    return GmailLabelerSettings(
        credentials_path=tmp_path / "creds" / "client_secret.json",
        token_path=tmp_path / "creds" / "token.json",
        inter_chunk_delay_seconds=0.0,
        chunk_size=100,
    )
