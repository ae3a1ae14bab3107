"""Tests for label delta resolution."""

from __future__ import annotations

import itertools

import pytest

from gmail_labeler.core.labels import FLAG_LABELS, resolve_delta
from gmail_labeler.core.models import LabelDelta


class TestConvenienceFlags:
    """Each flag maps onto exactly one well-known label."""

    def test_mark_as_read_alone_removes_unread(self) -> None:
        """mark_as_read with no other input resolves to remove=[UNREAD]."""
        delta = resolve_delta(mark_as_read=True)
        assert delta.add == frozenset()
        assert delta.remove == frozenset({"UNREAD"})

    @pytest.mark.parametrize(
        ("flag", "expected_add", "expected_remove"),
        [
            ("mark_as_unread", {"UNREAD"}, set()),
            ("star", {"STARRED"}, set()),
            ("unstar", set(), {"STARRED"}),
            ("mark_as_important", {"IMPORTANT"}, set()),
            ("mark_as_not_important", set(), {"IMPORTANT"}),
            ("archive", set(), {"INBOX"}),
            ("unarchive", {"INBOX"}, set()),
        ],
    )
    def test_flag_label_mapping(
        self, flag: str, expected_add: set[str], expected_remove: set[str]
    ) -> None:
        """Each flag adds or removes its own label."""
        delta = resolve_delta(**{flag: True})
        assert delta.add == expected_add
        assert delta.remove == expected_remove

    def test_false_flags_are_ignored(self) -> None:
        """Flags set to False contribute nothing."""
        delta = resolve_delta(star=False, archive=False)
        assert delta.is_empty

    def test_unknown_flag_rejected(self) -> None:
        """An unknown flag name raises ValueError."""
        with pytest.raises(ValueError, match="Unknown label flags"):
            resolve_delta(explode=True)


class TestConflictResolution:
    """A label requested on both sides is dropped from both."""

    def test_same_label_in_both_raw_lists_ends_in_neither(self) -> None:
        """add=[STARRED], remove=[STARRED] resolves to an empty delta."""
        delta = resolve_delta(["STARRED"], ["STARRED"])
        assert delta.add == frozenset()
        assert delta.remove == frozenset()

    def test_contradictory_flags_cancel_out(self) -> None:
        """star + unstar puts STARRED in both raw lists, so neither survives."""
        delta = resolve_delta(star=True, unstar=True, archive=True)
        assert "STARRED" not in delta.add
        assert "STARRED" not in delta.remove
        assert delta.remove == frozenset({"INBOX"})

    def test_flag_conflicting_with_raw_list(self) -> None:
        """A flag cancels the same label in the opposite raw list."""
        delta = resolve_delta(add_label_ids=["UNREAD", "Label_7"], mark_as_read=True)
        assert delta.add == frozenset({"Label_7"})
        assert delta.remove == frozenset()

    def test_duplicates_collapsed(self) -> None:
        """Repeated labels appear once in the delta."""
        delta = resolve_delta(["Label_1", "Label_1", "STARRED"], ["INBOX", "INBOX"], star=True)
        assert delta.add == frozenset({"Label_1", "STARRED"})
        assert delta.remove == frozenset({"INBOX"})

    def test_absent_lists_treated_as_empty(self) -> None:
        """None for both lists gives an empty delta."""
        assert resolve_delta(None, None).is_empty

    def test_resolved_sets_always_disjoint(self) -> None:
        """No combination of flags and raw lists produces overlapping sets."""
        names = list(FLAG_LABELS)
        raw = ["UNREAD", "INBOX", "Label_1"]
        for mask in itertools.product([False, True], repeat=len(names)):
            flags = dict(zip(names, mask))
            delta = resolve_delta(raw[:2], raw[1:], **flags)
            assert isinstance(delta, LabelDelta)
            assert not (delta.add & delta.remove)
