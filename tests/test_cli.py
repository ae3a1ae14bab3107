"""Tests for CLI argument parsing and payload construction."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

import scripts.cli as cli
from gmail_labeler.core.exceptions import BatchCancelledError
from gmail_labeler.core.models import ACTION_MODIFIED, BatchReport
from gmail_labeler.pipeline.aggregator import NOT_PROCESSED


class TestUpdateArgs:
    """Tests for the 'update' subcommand's argument parsing."""

    def test_defaults(self) -> None:
        """Optional overrides default to None so settings stay in charge."""
        args = cli.build_parser().parse_args(["update", "--id", "m1"])
        assert args.ids == ["m1"]
        assert args.ids_file is None
        assert args.pre_validate is None
        assert args.verify is None
        assert args.chunk_size is None
        assert args.timeout is None
        assert args.trash is False

    def test_flags_map_to_resolver_names(self) -> None:
        """Convenience switches land on the resolver's flag names."""
        args = cli.build_parser().parse_args(["update", "--id", "m1", "--mark-read", "--star"])
        assert args.mark_as_read is True
        assert args.star is True
        assert args.archive is False

    def test_strategy_switches(self) -> None:
        """--no-prevalidate, --no-verify and --chunk-size are parsed."""
        args = cli.build_parser().parse_args(
            ["update", "--id", "m1", "--no-prevalidate", "--no-verify", "--chunk-size", "50"]
        )
        assert args.pre_validate is False
        assert args.verify is False
        assert args.chunk_size == 50


class TestBuildPayload:
    """Tests for build_payload() and build_settings()."""

    def test_ids_from_flags_and_file(self, tmp_path: Path) -> None:
        """IDs come from --id first, then the file, skipping blanks and comments."""
        ids_file = tmp_path / "ids.txt"
        ids_file.write_text("m2\n\n# comment\nm3\n", encoding="utf-8")
        args = cli.build_parser().parse_args(
            ["update", "--id", "m1", "--ids-file", str(ids_file), "--add-label", "Label_1",
             "--archive"]
        )

        payload = cli.build_payload(args)

        assert payload["messageIds"] == ["m1", "m2", "m3"]
        assert payload["addLabelIds"] == ["Label_1"]
        assert payload["archive"] is True
        assert payload["moveToTrash"] is False

    def test_settings_overrides_only_when_given(self) -> None:
        """Only flags given on the command line override settings."""
        args = cli.build_parser().parse_args(["update", "--id", "m1", "--no-verify"])
        settings = cli.build_settings(args)
        assert settings.verify is False
        assert settings.pre_validate is True
        assert settings.chunk_size == 100


class TestMain:
    """Tests for main() output and exit codes."""

    def test_update_prints_report_json(self, capsys: pytest.CaptureFixture[str]) -> None:
        """'update' prints the report as JSON on stdout."""
        report = {"success": True, "action": "batch_modified"}
        with patch("scripts.cli.BatchUpdater") as mock_updater_cls:
            mock_updater = MagicMock()
            mock_updater.run_payload.return_value = report
            mock_updater_cls.return_value = mock_updater

            cli.main(["update", "--id", "m1", "--star"])

        assert json.loads(capsys.readouterr().out) == report
        payload = mock_updater.run_payload.call_args.args[0]
        assert payload["messageIds"] == ["m1"]
        assert payload["star"] is True

    def test_failures_exit_non_zero(self) -> None:
        """A report with failures exits with code 1."""
        with patch("scripts.cli.BatchUpdater") as mock_updater_cls:
            mock_updater_cls.return_value.run_payload.return_value = {"success": False}

            with pytest.raises(SystemExit) as exc_info:
                cli.main(["update", "--id", "m1", "--star"])

        assert exc_info.value.code == 1

    def test_rejects_non_positive_chunk_size(self) -> None:
        """--chunk-size 0 exits with code 1."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["update", "--id", "m1", "--chunk-size", "0"])
        assert exc_info.value.code == 1

    def test_no_command_prints_help(self) -> None:
        """Running without a subcommand exits with code 1."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 1

    def test_chunk_size_above_limit_exits_cleanly(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """--chunk-size above the settings limit exits 1 with a message, not a traceback."""
        with (
            patch("scripts.cli.BatchUpdater") as mock_updater_cls,
            pytest.raises(SystemExit) as exc_info,
        ):
            cli.main(["update", "--id", "m1", "--star", "--chunk-size", "5000"])

        assert exc_info.value.code == 1
        assert "invalid settings" in capsys.readouterr().err
        mock_updater_cls.assert_not_called()

    def test_aborted_batch_prints_partial_report(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A cancelled run prints its partial report as JSON and exits 1."""
        partial = BatchReport(
            action=ACTION_MODIFIED,
            total=2,
            successful=("m1",),
            skipped=(("m2", NOT_PROCESSED),),
        )
        with patch("scripts.cli.BatchUpdater") as mock_updater_cls:
            mock_updater_cls.return_value.run_payload.side_effect = BatchCancelledError(
                "Batch update cancelled after 1 of 2 chunks", partial_report=partial
            )

            with pytest.raises(SystemExit) as exc_info:
                cli.main(["update", "--id", "m1", "--id", "m2", "--star"])

        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert "cancelled" in captured.err
        data = json.loads(captured.out)
        assert data["successfulIds"] == ["m1"]
        assert data["skippedIds"] == [{"id": "m2", "reason": NOT_PROCESSED}]
