"""Tests for the command-line entry point."""

import json
import sys
from pathlib import Path

import pytest

from fixmyphone import main
from fixmyphone.cache import CacheStorage
from fixmyphone.database import init_db, list_submissions
from fixmyphone.models import Request, Response


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config pointing at a temporary database."""
    path = tmp_path / "config.yaml"
    path.write_text(
        f"proxy:\n  origin: https://fixmyphone.example\ndatabase:\n  path: {tmp_path / 'offline.db'}\n"
    )
    return path


def run_cli(monkeypatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["fixmyphone", *args])
    main()


class TestCli:
    """Tests for CLI subcommands."""

    def test_enqueue_queues_submission(self, monkeypatch, tmp_path: Path, config_file: Path, capsys) -> None:
        """enqueue stores the JSON file in the offline queue."""
        submission = tmp_path / "repair.json"
        submission.write_text(json.dumps({"device": "iPhone 14", "issue": "cracked screen"}))

        run_cli(monkeypatch, "enqueue", str(submission), "-c", str(config_file))

        assert "Queued submission 1" in capsys.readouterr().out
        conn = init_db(str(tmp_path / "offline.db"))
        try:
            assert list_submissions(conn)[0].data["issue"] == "cracked screen"
        finally:
            conn.close()

    def test_enqueue_rejects_non_object(self, monkeypatch, tmp_path: Path, config_file: Path) -> None:
        """A JSON array is not a submission."""
        submission = tmp_path / "repair.json"
        submission.write_text("[1, 2]")

        with pytest.raises(SystemExit) as exc_info:
            run_cli(monkeypatch, "enqueue", str(submission), "-c", str(config_file))

        assert exc_info.value.code == 1

    def test_caches_marks_current_store(self, monkeypatch, tmp_path: Path, config_file: Path, capsys) -> None:
        """caches lists every store and stars the configured version."""
        conn = init_db(str(tmp_path / "offline.db"))
        storage = CacheStorage(conn)
        storage.open("fixmyphone-v0.9.0")
        storage.open("fixmyphone-v1.0.0").put(Request.from_url("https://fixmyphone.example/"), Response())
        conn.close()

        run_cli(monkeypatch, "caches", "-c", str(config_file))

        out = capsys.readouterr().out.splitlines()
        assert out == ["  fixmyphone-v0.9.0 (0 entries)", "* fixmyphone-v1.0.0 (1 entries)"]

    def test_missing_config_exits(self, monkeypatch, tmp_path: Path) -> None:
        """A missing configuration file exits with status 1."""
        with pytest.raises(SystemExit) as exc_info:
            run_cli(monkeypatch, "caches", "-c", str(tmp_path / "missing.yaml"))

        assert exc_info.value.code == 1
