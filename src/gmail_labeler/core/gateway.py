"""Contract between the batch engine and the remote mailbox."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from gmail_labeler.core.exceptions import GatewayError


class MailboxGateway(Protocol):
    """Operations the batch engine needs from the mail service.

    Every method raises a ``GatewayError`` subclass on failure, except
    ``get_labels_many`` which reports per-message errors in its result.
    """

    def get_message_labels(self, message_id: str) -> frozenset[str]: ...

    def get_labels_many(
        self, message_ids: Sequence[str]
    ) -> dict[str, frozenset[str] | GatewayError]: ...

    def batch_modify(
        self,
        message_ids: Sequence[str],
        add: frozenset[str],
        remove: frozenset[str],
    ) -> None: ...

    def modify_single(
        self, message_id: str, add: frozenset[str], remove: frozenset[str]
    ) -> None: ...

    def batch_delete(self, message_ids: Sequence[str]) -> None: ...
