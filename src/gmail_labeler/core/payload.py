"""Validate tool-invocation arguments and turn them into a BatchRequest."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from gmail_labeler.core.exceptions import InvalidRequestError
from gmail_labeler.core.labels import FLAG_LABELS, resolve_delta
from gmail_labeler.core.models import BatchRequest

MessageId = Annotated[str, Field(min_length=1)]


class BatchUpdateArgs(BaseModel):
    """Arguments of the batch update tool, accepted in camelCase or snake_case."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    message_ids: list[MessageId] = Field(min_length=1)
    add_label_ids: list[str] | None = None
    remove_label_ids: list[str] | None = None
    mark_as_read: bool = False
    mark_as_unread: bool = False
    star: bool = False
    unstar: bool = False
    mark_as_important: bool = False
    mark_as_not_important: bool = False
    archive: bool = False
    unarchive: bool = False
    move_to_trash: bool = False

    def to_request(self) -> BatchRequest:
        if self.move_to_trash:
            return BatchRequest(message_ids=tuple(self.message_ids), trash_requested=True)

        flags = {name: getattr(self, name) for name in FLAG_LABELS}
        delta = resolve_delta(self.add_label_ids, self.remove_label_ids, **flags)
        return BatchRequest(message_ids=tuple(self.message_ids), delta=delta)


def parse_batch_request(payload: dict[str, Any]) -> BatchRequest:
    """Parse a raw tool payload.

    Raises:
        InvalidRequestError: If the payload does not match BatchUpdateArgs.
    """
    try:
        args = BatchUpdateArgs.model_validate(payload)
    except ValidationError as e:
        raise InvalidRequestError(f"Invalid batch update request: {e}") from e
    return args.to_request()
