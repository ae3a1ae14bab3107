"""Resolve raw label lists and convenience flags into a conflict-free LabelDelta."""

from __future__ import annotations

from collections.abc import Iterable

from gmail_labeler.core.models import IMPORTANT, INBOX, STARRED, UNREAD, LabelDelta

# flag name -> (label, "add" | "remove")
FLAG_LABELS: dict[str, tuple[str, str]] = {
    "mark_as_read": (UNREAD, "remove"),
    "mark_as_unread": (UNREAD, "add"),
    "star": (STARRED, "add"),
    "unstar": (STARRED, "remove"),
    "mark_as_important": (IMPORTANT, "add"),
    "mark_as_not_important": (IMPORTANT, "remove"),
    "archive": (INBOX, "remove"),
    "unarchive": (INBOX, "add"),
}


def _dedupe(labels: Iterable[str]) -> list[str]:
    """Drop repeated labels, keeping first-seen order."""
    return list(dict.fromkeys(labels))


def resolve_delta(
    add_label_ids: Iterable[str] | None = None,
    remove_label_ids: Iterable[str] | None = None,
    **flags: bool,
) -> LabelDelta:
    """Build the net label change for a request.

    Each enabled convenience flag appends one well-known label to the raw add
    or remove list. A label that ends up in both lists is dropped from both,
    so ``star=True, unstar=True`` is a no-op for STARRED.

    Args:
        add_label_ids: Raw label IDs to add.
        remove_label_ids: Raw label IDs to remove.
        **flags: Any of the keys in ``FLAG_LABELS``.

    Returns:
        LabelDelta with disjoint add/remove sets.

    Raises:
        ValueError: If an unknown flag name is passed.
    """
    unknown = set(flags) - set(FLAG_LABELS)
    if unknown:
        raise ValueError(f"Unknown label flags: {sorted(unknown)}")

    add = list(add_label_ids or [])
    remove = list(remove_label_ids or [])

    for name, (label, side) in FLAG_LABELS.items():
        if not flags.get(name):
            continue
        if side == "add":
            add.append(label)
        else:
            remove.append(label)

    unique_add = _dedupe(add)
    unique_remove = _dedupe(remove)

    final_add = [lbl for lbl in unique_add if lbl not in unique_remove]
    final_remove = [lbl for lbl in unique_remove if lbl not in unique_add]

    return LabelDelta(add=frozenset(final_add), remove=frozenset(final_remove))
