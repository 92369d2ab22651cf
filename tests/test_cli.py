"""Tests for the command-line entry point."""

import logging

import pytest

from flexassistant import __version__
from flexassistant.cli import log_level, main, parse_args


class TestLogLevel:
    @pytest.mark.parametrize("argv,expected", [
        ([], logging.WARNING),
        (["--debug"], logging.DEBUG),
        (["--verbose", "--debug"], logging.INFO),
        (["--quiet", "--verbose", "--debug"], logging.ERROR),
    ])
    def test_precedence(self, argv, expected):
        assert log_level(parse_args(argv)) == expected

    def test_default_config_path(self):
        assert parse_args([]).config == "flexassistant.yaml"


class TestMain:
    def test_version(self, capsys):
        assert main(["--version"]) == 0
        assert capsys.readouterr().out.strip() == f"flexassistant version {__version__}"

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("miners: [\n")
        assert main(["--config", str(path)]) == 1

    def test_missing_telegram_destination(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("telegram:\n  token: abc\n")
        assert main(["--config", str(path)]) == 1

    def test_empty_cycle(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            f"database-file: {tmp_path / 'state.db'}\n"
            "telegram:\n"
            "  token: abc\n"
            "  chat-id: 1\n"
        )
        assert main(["--config", str(path)]) == 0
        assert (tmp_path / "state.db").exists()

    def test_test_notifications_none_flagged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("telegram:\n  token: abc\n  channel-name: alerts\n")
        assert main(["--config", str(path), "--test-notifications"]) == 0

    def test_section_with_wrong_shape(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("telegram: abc\n")
        assert main(["--config", str(path)]) == 1
