"""Tests for the wingman CLI."""

import json
from pathlib import Path

import pytest

from wingman.cli import create_parser, run_cli
from wingman.store import BucketStore


@pytest.fixture
def db_path(tmp_path: Path, monkeypatch) -> Path:
    path = tmp_path / "state.db"
    monkeypatch.setenv("WINGMAN_DB_PATH", str(path))
    return path


def read_bucket(db_path: Path, bucket: str) -> dict:
    store = BucketStore(db_path)
    try:
        return store.get(bucket)
    finally:
        store.close()


class TestParser:
    """Tests for argument parsing."""

    def test_no_command_prints_help(self, capsys):
        assert run_cli([]) == 0
        assert "usage" in capsys.readouterr().out.lower()

    def test_toggle_rejects_unknown_feature(self):
        parser = create_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["toggle", "teleport", "on"])


class TestStateCommand:
    """Tests for 'wingman state'."""

    def test_shows_sections(self, db_path, capsys):
        assert run_cli(["state"]) == 0

        out = capsys.readouterr().out
        assert "Features" in out
        assert "Stats" in out
        assert "(not set)" in out


class TestSettingsCommand:
    """Tests for 'wingman settings'."""

    def test_set_and_get(self, db_path, capsys):
        assert run_cli(["settings", "decision_speed", "fast"]) == 0
        assert read_bucket(db_path, "settings")["decision_speed"] == "fast"

        capsys.readouterr()
        assert run_cli(["settings", "decision_speed"]) == 0
        assert capsys.readouterr().out.strip() == "fast"

    def test_boolean_values_parsed(self, db_path):
        run_cli(["settings", "auto_decide", "true"])
        assert read_bucket(db_path, "settings")["auto_decide"] is True

    def test_api_key_masked(self, db_path, capsys):
        run_cli(["settings", "api_key", "gsk_1234567890abcd"])
        capsys.readouterr()

        run_cli(["settings"])

        out = capsys.readouterr().out
        assert "gsk_1234567890abcd" not in out
        assert "gsk_...abcd" in out

    def test_unknown_setting(self, db_path, capsys):
        assert run_cli(["settings", "theme", "dark"]) == 1
        assert "unknown setting" in capsys.readouterr().err


class TestToggleCommand:
    """Tests for 'wingman toggle'."""

    def test_toggle_on_off(self, db_path):
        run_cli(["toggle", "chat-assist", "on"])
        assert read_bucket(db_path, "settings")["chat_assist"] is True

        run_cli(["toggle", "chat-assist", "off"])
        assert read_bucket(db_path, "settings")["chat_assist"] is False


class TestExportImportClear:
    """Tests for export, import and clear."""

    def test_export_to_stdout(self, db_path, capsys):
        run_cli(["toggle", "auto-decide", "on"])
        capsys.readouterr()

        assert run_cli(["export"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["settings"]["auto_decide"] is True

    def test_export_import_file(self, db_path, tmp_path):
        export_file = tmp_path / "backup.json"
        run_cli(["toggle", "learn-type", "off"])
        run_cli(["export", str(export_file)])
        run_cli(["clear", "--yes"])
        assert read_bucket(db_path, "settings")["learn_type"] is True

        assert run_cli(["import", str(export_file)]) == 0

        assert read_bucket(db_path, "settings")["learn_type"] is False

    def test_import_missing_file(self, db_path, tmp_path, capsys):
        assert run_cli(["import", str(tmp_path / "nope.json")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_import_invalid_file(self, db_path, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json")
        assert run_cli(["import", str(bad)]) == 1

    def test_clear_requires_yes(self, db_path):
        run_cli(["toggle", "auto-decide", "on"])

        assert run_cli(["clear"]) == 1
        assert read_bucket(db_path, "settings")["auto_decide"] is True
