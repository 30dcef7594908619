"""Tests for composition file parsing."""

import json

import pytest

from seqpub.lib.composition import (
    Component,
    Composition,
    parse_composition_filename,
    read_composition_file,
)
from seqpub.lib.errors import DiscoveryError, IntegrityError


class TestParseCompositionFilename:
    def test_splits_name_directory_and_suffix(self):
        name, directory, suffix = parse_composition_filename(
            "/runs/26291/26291_1#4.composition.json"
        )
        assert name == "26291_1#4"
        assert directory == "/runs/26291"
        assert suffix == ".composition.json"

    def test_rejects_other_files(self):
        with pytest.raises(DiscoveryError):
            parse_composition_filename("/runs/26291/26291_1#4.cram")


class TestComposition:
    def test_keeps_component_order(self):
        composition = Composition.from_dict(
            {
                "components": [
                    {"id_run": 2, "position": 1},
                    {"id_run": 1, "position": 2, "tag_index": 3},
                ]
            }
        )
        assert [c.id_run for c in composition] == [2, 1]
        assert composition.id_runs == (1, 2)
        assert len(composition) == 2

    def test_freeze_is_canonical(self):
        a = Composition((Component(1, 2, 3),))
        b = Composition.from_dict({"components": [{"tag_index": 3, "position": 2, "id_run": 1}]})
        assert a.freeze() == b.freeze()
        assert a.freeze() == '{"components":[{"id_run":1,"position":2,"tag_index":3}]}'

    def test_empty_composition_rejected(self):
        with pytest.raises(ValueError):
            Composition(())

    def test_component_key(self):
        assert Component(26291, 1, 4).key == "26291:1:4"
        assert Component(26291, 1).key == "26291:1:"


class TestReadCompositionFile:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "p.composition.json"
        path.write_text(json.dumps({"components": [{"id_run": 5, "position": 1, "subset": "phix"}]}))
        composition = read_composition_file(path)
        assert composition.components[0] == Component(5, 1, None, "phix")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "p.composition.json"
        path.write_text("{not json")
        with pytest.raises(IntegrityError):
            read_composition_file(path)

    def test_missing_components(self, tmp_path):
        path = tmp_path / "p.composition.json"
        path.write_text(json.dumps({"parts": []}))
        with pytest.raises(IntegrityError):
            read_composition_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(IntegrityError):
            read_composition_file(tmp_path / "missing.composition.json")
