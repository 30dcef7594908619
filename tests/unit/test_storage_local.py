"""Tests for the local filesystem archive store."""

import pytest

from seqpub.lib.checksum import compute_file_md5
from seqpub.lib.metadata import AccessGrant, Tag
from seqpub.lib.storage import LocalArchiveStore, get_store, parse_uri
from seqpub.lib.storage.base import RemoteStore


@pytest.fixture
def store(archive_dir):
    return LocalArchiveStore(str(archive_dir))


@pytest.fixture
def local_file(tmp_path):
    path = tmp_path / "26291_1#1.cram"
    path.write_bytes(b"cram content")
    return str(path)


class TestPaths:
    def test_join(self):
        assert RemoteStore.join("/seq/26291", "a.cram") == "/seq/26291/a.cram"

    def test_normalize(self):
        assert RemoteStore.normalize("//seq/./26291//a.cram") == "seq/26291/a.cram"
        assert RemoteStore.normalize("/seq/../../etc") == "etc"

    @pytest.mark.parametrize(
        "uri,expected",
        [
            ("/archive", ("local", "/archive")),
            ("file:///archive", ("local", "/archive")),
            ("s3://bucket/prefix", ("s3", "bucket/prefix")),
        ],
    )
    def test_parse_uri(self, uri, expected):
        assert parse_uri(uri) == expected

    def test_get_store(self, archive_dir):
        store = get_store(f"file://{archive_dir}")
        assert isinstance(store, LocalArchiveStore)
        assert store.root == archive_dir.resolve()
        assert store.scheme == "local"


class TestContent:
    def test_put_and_digest(self, store, local_file):
        remote = "/seq/26291/26291_1#1.cram"
        assert not store.exists(remote)

        store.put(remote, local_file)

        assert store.exists(remote)
        assert store.digest(remote) == compute_file_md5(local_file)
        assert (store.root / "seq/26291/26291_1#1.cram").read_bytes() == b"cram content"

    def test_overwrite(self, store, local_file, tmp_path):
        remote = "/seq/26291/26291_1#1.cram"
        store.put(remote, local_file)
        other = tmp_path / "other"
        other.write_bytes(b"new content")

        store.put(remote, str(other))
        assert store.digest(remote) == compute_file_md5(str(other))

    def test_digest_missing(self, store):
        with pytest.raises(FileNotFoundError):
            store.digest("/seq/missing.cram")

    def test_failed_put_leaves_no_partial_object(self, store, tmp_path):
        with pytest.raises(FileNotFoundError):
            store.put("/seq/26291/x.cram", str(tmp_path / "does-not-exist"))
        assert not store.exists("/seq/26291/x.cram")
        assert list((store.root / "seq/26291").iterdir()) == []


class TestMetadata:
    def test_empty_for_new_object(self, store, local_file):
        store.put("/seq/a.cram", local_file)
        assert store.get_metadata("/seq/a.cram") == []
        assert store.get_permissions("/seq/a.cram") == []

    def test_set_replaces(self, store, local_file):
        store.put("/seq/a.cram", local_file)
        store.set_metadata("/seq/a.cram", [Tag.of("id_run", 1), Tag.of("sample", "x")])
        store.set_metadata("/seq/a.cram", [Tag.of("id_run", 2)])
        assert store.get_metadata("/seq/a.cram") == [Tag.of("id_run", 2)]

    def test_metadata_and_permissions_independent(self, store, local_file):
        store.put("/seq/a.cram", local_file)
        store.set_metadata("/seq/a.cram", [Tag.of("id_run", 1)])
        store.set_permissions("/seq/a.cram", [AccessGrant("ss_1"), AccessGrant("ss_1")])

        assert store.get_metadata("/seq/a.cram") == [Tag.of("id_run", 1)]
        assert store.get_permissions("/seq/a.cram") == [AccessGrant("ss_1", "read")]

    def test_sidecar_not_an_object(self, store, local_file):
        store.put("/seq/a.cram", local_file)
        store.set_metadata("/seq/a.cram", [Tag.of("id_run", 1)])
        assert (store.root / ".avu/seq/a.cram.json").is_file()
        assert not store.exists("/seq/a.cram.json")

    def test_requires_object(self, store):
        with pytest.raises(FileNotFoundError):
            store.set_metadata("/seq/missing.cram", [])
        with pytest.raises(FileNotFoundError):
            store.get_permissions("/seq/missing.cram")
