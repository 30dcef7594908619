"""Tests for environment variable expansion."""

import pytest

from seqpub.lib.env import expand_config, expand_env_vars, load_env_file


class TestExpandEnvVars:
    def test_braced_and_bare(self, monkeypatch):
        monkeypatch.setenv("SEQ_ROOT", "/seq")
        assert expand_env_vars("${SEQ_ROOT}/26291") == "/seq/26291"
        assert expand_env_vars("$SEQ_ROOT/26291") == "/seq/26291"

    def test_unset_left_verbatim(self, monkeypatch):
        monkeypatch.delenv("SEQPUB_NOT_SET", raising=False)
        assert expand_env_vars("${SEQPUB_NOT_SET}") == "${SEQPUB_NOT_SET}"

    def test_strict_raises(self, monkeypatch):
        monkeypatch.delenv("SEQPUB_NOT_SET", raising=False)
        with pytest.raises(KeyError):
            expand_env_vars("${SEQPUB_NOT_SET}", strict=True)


class TestExpandConfig:
    def test_nested(self, monkeypatch):
        monkeypatch.setenv("BUCKET", "seq-archive")
        config = {"archive": {"location": "s3://${BUCKET}"}, "list": ["$BUCKET", 3], "n": 1}
        assert expand_config(config) == {
            "archive": {"location": "s3://seq-archive"},
            "list": ["seq-archive", 3],
            "n": 1,
        }


class TestLoadEnvFile:
    def test_loads(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SEQPUB_FROM_DOTENV", "")
        monkeypatch.delenv("SEQPUB_FROM_DOTENV")
        env_file = tmp_path / ".env"
        env_file.write_text("SEQPUB_FROM_DOTENV=yes\n")

        assert load_env_file(env_file)
        assert expand_env_vars("${SEQPUB_FROM_DOTENV}") == "yes"

    def test_existing_values_kept(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SEQPUB_FROM_DOTENV", "original")
        env_file = tmp_path / ".env"
        env_file.write_text("SEQPUB_FROM_DOTENV=replaced\n")

        load_env_file(env_file)
        assert expand_env_vars("$SEQPUB_FROM_DOTENV") == "original"
