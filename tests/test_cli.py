"""Unit tests for the command-line entry point."""

import json
from unittest.mock import MagicMock

import pytest

from indodoc import cli
from indodoc.common.errors import DocumentNotFoundError


@pytest.fixture
def pipeline(monkeypatch):
    """Replace the passport pipeline with a mock returning a fixed payload."""
    instance = MagicMock()
    instance.run.return_value = {"full_name": "SITI AMINAH", "sex": "P/F"}
    instance.update_history.return_value = {"sex": ["P/F"]}
    factory = MagicMock(return_value=instance)
    monkeypatch.setitem(cli.PIPELINES, "passport", factory)
    return factory


class TestParser:
    """Test argument parsing."""

    def test_document_choices(self):
        """Test only known document types are accepted."""
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["visa", "scan.jpg"])

    def test_defaults(self):
        """Test optional arguments default to off."""
        args = cli.build_parser().parse_args(["ktp", "scan.jpg"])

        assert args.history is None
        assert args.update_history is False
        assert args.debug_dir is None


class TestMain:
    """Test the main entry point."""

    def test_prints_payload(self, pipeline, tmp_path, capsys):
        """Test the payload is printed as JSON and the pools released."""
        assert cli.main(["passport", str(tmp_path / "scan.jpg")]) == 0

        assert json.loads(capsys.readouterr().out) == {"full_name": "SITI AMINAH", "sex": "P/F"}
        pipeline.return_value.terminate.assert_called_once()

    def test_history_round_trip(self, pipeline, tmp_path):
        """Test the history file is loaded and updated."""
        history_path = tmp_path / "history.json"
        history_path.write_text(json.dumps({"sex": ["L/M"]}), encoding="utf-8")

        cli.main(["passport", "scan.jpg", "--history", str(history_path), "--update-history"])

        assert pipeline.call_args.kwargs["history"] == {"sex": ["L/M"]}
        assert json.loads(history_path.read_text(encoding="utf-8")) == {"sex": ["P/F"]}

    def test_history_not_written_without_flag(self, pipeline, tmp_path):
        """Test the history file is left alone by default."""
        history_path = tmp_path / "history.json"

        cli.main(["passport", "scan.jpg", "--history", str(history_path)])

        assert not history_path.exists()

    def test_debug_dir_enables_debug_images(self, pipeline, tmp_path):
        """Test --debug-dir switches debug output on."""
        cli.main(["passport", "scan.jpg", "--debug-dir", str(tmp_path / "debug")])

        config = pipeline.call_args.kwargs["config"]
        assert config.debug.enabled is True
        assert config.debug.debug_dir == str(tmp_path / "debug")

    def test_document_not_found(self, pipeline, capsys):
        """Test a locator failure exits with status 1 and prints nothing."""
        pipeline.return_value.run.side_effect = DocumentNotFoundError("no title", code="LOC-E001")

        assert cli.main(["passport", "scan.jpg"]) == 1
        assert capsys.readouterr().out == ""
        pipeline.return_value.terminate.assert_called_once()


class TestHistoryFiles:
    """Test history file helpers."""

    def test_missing_file(self, tmp_path):
        """Test a missing file yields an empty history."""
        assert cli.load_history(tmp_path / "missing.json") == {}
        assert cli.load_history(None) == {}

    def test_save_and_load(self, tmp_path):
        """Test saved histories load back."""
        path = tmp_path / "history.json"
        cli.save_history(path, {"city": ["BANDUNG"]})

        assert cli.load_history(path) == {"city": ["BANDUNG"]}
