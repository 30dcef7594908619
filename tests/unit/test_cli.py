"""Tests for the seqpub command line."""

import json

import pytest

import seqpub.__main__ as cli
from seqpub.__main__ import main


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    """Leave pytest's log capture in place."""
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


def publish_args(run_dir, archive_dir, *extra):
    return [
        "publish",
        "--source-dir",
        str(run_dir.root),
        "--id-run",
        "26291",
        "--archive",
        str(archive_dir),
        "--no-inspect",
        *extra,
    ]


class TestPublish:
    def test_publishes_run(self, run_dir, archive_dir, capsys):
        run_dir.product("sample1")

        assert main(publish_args(run_dir, archive_dir)) == 0

        out = capsys.readouterr().out
        assert "Files: 5  Published: 5  Errors: 0" in out
        assert (archive_dir / "seq/26291/sample1.cram").is_file()
        assert (run_dir.root / "published.json").is_file()

    def test_rerun_publishes_nothing(self, run_dir, archive_dir, capsys):
        run_dir.product("sample1")
        main(publish_args(run_dir, archive_dir))
        capsys.readouterr()

        assert main(publish_args(run_dir, archive_dir)) == 0
        assert "Published: 0" in capsys.readouterr().out

    def test_errors_exit_status(self, run_dir, archive_dir, capsys):
        run_dir.product("sample1")
        (run_dir.root / "sample1.seqchksum").unlink()

        assert main(publish_args(run_dir, archive_dir)) == 1
        assert "Errors: 1" in capsys.readouterr().out

    def test_missing_run_id(self, run_dir, archive_dir):
        args = ["publish", "--source-dir", str(run_dir.root), "--archive", str(archive_dir)]
        assert main(args) == 2

    def test_config_file_with_overrides(self, run_dir, archive_dir, tmp_path, capsys):
        run_dir.product("sample1")
        config = tmp_path / "run.yaml"
        config.write_text(
            f"source_directory: {run_dir.root}\n"
            "id_run: 26291\n"
            f"archive:\n  location: {archive_dir}\n"
            "catalog:\n  ancillary_suffixes: []\n"
            "inspection:\n  enabled: false\n"
        )

        assert main(["publish", "--config", str(config), "--dest-collection", "/custom"]) == 0
        assert "Files: 2  Published: 2" in capsys.readouterr().out
        assert (archive_dir / "custom/sample1.cram").is_file()

    def test_corrupt_restart_file(self, run_dir, archive_dir):
        run_dir.product("sample1")
        run_dir.write("published.json", "{broken")
        assert main(publish_args(run_dir, archive_dir)) == 2


class TestStatus:
    def test_summary(self, run_dir, archive_dir, capsys):
        run_dir.product("sample1")
        main(publish_args(run_dir, archive_dir))
        capsys.readouterr()

        restart = str(run_dir.root / "published.json")
        assert main(["status", "--restart-file", restart]) == 0
        out = capsys.readouterr().out
        assert "5 files" in out
        assert "published: 5" in out

    def test_failed_records(self, tmp_path, capsys):
        restart = tmp_path / "published.json"
        restart.write_text(
            json.dumps(
                {
                    "/runs/a.cram": {
                        "remotePath": "/seq/a.cram",
                        "digest": None,
                        "timestamp": "2025-01-15T10:30:00Z",
                        "status": "failed",
                        "error": "Archive put failed",
                    }
                }
            )
        )
        assert main(["status", "--restart-file", str(restart)]) == 1
        assert "FAILED /runs/a.cram: Archive put failed" in capsys.readouterr().out

    def test_requires_restart_file(self):
        assert main(["status"]) == 2


def test_no_command(capsys):
    assert main([]) == 2
    assert "usage" in capsys.readouterr().out.lower()
