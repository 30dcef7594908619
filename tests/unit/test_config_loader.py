"""Tests for YAML settings loading."""

import pytest

from seqpub.lib.config_loader import PublisherSettings, load_settings, settings_from_dict
from seqpub.lib.errors import ConfigurationError


class TestPublisherSettings:
    def test_defaults(self):
        settings = PublisherSettings(source_directory="/runs/26291", id_run=26291)
        assert settings.collection == "/seq/26291"
        assert settings.restart_path == "/runs/26291/published.json"
        assert settings.file_format == "cram"
        assert settings.max_errors is None
        assert "seqchksum" in settings.ancillary_suffixes

    def test_dest_collection_wins(self):
        settings = PublisherSettings(
            source_directory="/runs/26291", id_run=26291, dest_collection="/other/"
        )
        assert settings.collection == "/other"

    def test_dest_collection_without_run(self):
        settings = PublisherSettings(source_directory="/runs/x", dest_collection="/seq/x")
        assert settings.collection == "/seq/x"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"id_run": None}, "dest_collection"),
            ({"id_run": "abc"}, "id_run"),
            ({"id_run": 0}, "id_run"),
            ({"file_format": "sam"}, "file_format"),
            ({"max_errors": -1}, "max_errors"),
            ({"max_errors": "many"}, "max_errors"),
            ({"source_directory": ""}, "source_directory"),
        ],
    )
    def test_invalid(self, overrides, field):
        values = {"source_directory": "/runs/26291", "id_run": 26291}
        values.update(overrides)
        with pytest.raises(ConfigurationError) as exc_info:
            PublisherSettings(**values)
        assert exc_info.value.field == field

    def test_string_numbers_coerced(self):
        settings = PublisherSettings(source_directory="/r", id_run="26291", max_errors="3")
        assert settings.id_run == 26291
        assert settings.max_errors == 3

    def test_overrides_revalidated(self):
        settings = PublisherSettings(source_directory="/r", id_run=26291)
        assert settings.with_overrides(max_errors=None) is settings
        assert settings.with_overrides(force=True).force
        with pytest.raises(ConfigurationError):
            settings.with_overrides(file_format="sam")


class TestSettingsFromDict:
    def test_sections(self, tmp_path):
        settings = settings_from_dict(
            {
                "source_directory": "./run",
                "id_run": 26291,
                "archive": {"location": "s3://bucket/irods", "region": "eu-west-2"},
                "catalog": {"qc_collection": "qc2", "genotype_suffixes": ["vcf"]},
                "inspection": {"enabled": False, "samtools": "/opt/samtools", "args": ["-T", "ref.fa"]},
            },
            tmp_path,
        )
        assert settings.source_directory == str(tmp_path / "./run")
        assert settings.archive_location == "s3://bucket/irods"
        assert settings.archive_options == {"region": "eu-west-2"}
        assert settings.qc_collection == "qc2"
        assert settings.genotype_suffixes == ["vcf"]
        assert not settings.inspect_alignments
        assert settings.samtools == "/opt/samtools"
        assert settings.samtools_args == ["-T", "ref.fa"]

    def test_unknown_keys(self):
        with pytest.raises(ConfigurationError, match="maxerrors"):
            settings_from_dict({"source_directory": "/r", "id_run": 1, "maxerrors": 3})

    def test_source_directory_required(self):
        with pytest.raises(ConfigurationError):
            settings_from_dict({"id_run": 1})

    def test_plain_relative_paths_untouched(self, tmp_path):
        settings = settings_from_dict({"source_directory": "run", "id_run": 1}, tmp_path)
        assert settings.source_directory == "run"


class TestLoadSettings:
    def test_load_with_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SEQPUB_TEST_ENDPOINT", "")
        monkeypatch.delenv("SEQPUB_TEST_ENDPOINT")
        env_file = tmp_path / ".env"
        env_file.write_text("SEQPUB_TEST_ENDPOINT=http://localhost:9000\n")
        config = tmp_path / "run.yaml"
        config.write_text(
            "source_directory: /runs/26291\n"
            "id_run: 26291\n"
            "max_errors: 10\n"
            "archive:\n"
            "  location: s3://seq-archive/irods\n"
            "  endpoint_url: ${SEQPUB_TEST_ENDPOINT}\n"
        )

        settings = load_settings(config, env_file=env_file)

        assert settings.max_errors == 10
        assert settings.archive_options["endpoint_url"] == "http://localhost:9000"

    def test_unset_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("SEQPUB_UNSET_VAR", raising=False)
        config = tmp_path / "run.yaml"
        config.write_text("source_directory: ${SEQPUB_UNSET_VAR}\nid_run: 1\n")
        with pytest.raises(ConfigurationError, match="SEQPUB_UNSET_VAR"):
            load_settings(config)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "run.yaml"
        config.write_text("source_directory: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_settings(config)

    def test_not_a_mapping(self, tmp_path):
        config = tmp_path / "run.yaml"
        config.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_settings(config)
