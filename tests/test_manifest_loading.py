"""
Test manifest loading and verification.

Verifies that tampered or malformed manifests are rejected before any
chunk is fetched.
"""

import pytest

from snapshot_restore import ManifestCorruptError, SnapshotIndex, load_manifest
from snapshot_restore.integrity.hashing import zero_chunk_hash

from conftest import distinct_bytes


def load(backend, timestamp=100):
    snapshot = SnapshotIndex(backend).load_snapshot(timestamp)
    return load_manifest(backend, snapshot)


class TestManifestLoading:
    """Test reading valid manifests."""

    def test_load_roundtrip(self, builder, backend):
        content = distinct_bytes(40) + bytes(16)
        expected = builder.add_snapshot(100, content)

        manifest = load(backend)

        assert manifest.file_size == 56
        assert manifest.chunk_size == 16
        assert manifest.chunks == expected.chunks
        assert manifest.chunks[-1].length == 8
        assert manifest.zero_chunk_count() == 1

    def test_declared_parameters(self, backend):
        from conftest import BackupSetBuilder

        builder = BackupSetBuilder(backend, chunk_size=32, hash_algorithm='blake3', compression='zstd')
        builder.add_snapshot(100, distinct_bytes(64))

        manifest = load(backend)

        assert manifest.chunk_size == 32
        assert manifest.hash_algorithm == 'blake3'
        assert manifest.compression == 'zstd'

    def test_metadata_preserved(self, builder, backend):
        obj = builder.build_manifest(distinct_bytes(16)).to_dict()
        obj['metadata'] = {'hostname': 'node-1'}
        builder.add_raw_manifest(100, obj)

        assert load(backend).metadata == {'hostname': 'node-1'}


class TestManifestTampering:
    """Test detection of manifests that do not match their key."""

    def test_modified_bytes(self, builder, backend, backup_dir):
        manifest = builder.add_snapshot(100, distinct_bytes(32))
        path = backup_dir / builder.layout.manifest_key(manifest.compute_hash())
        path.write_bytes(path.read_bytes().replace(b'"file_size":32', b'"file_size":33'))

        with pytest.raises(ManifestCorruptError) as exc_info:
            load(backend)
        assert exc_info.value.manifest_hash == manifest.compute_hash()

    def test_missing_manifest(self, builder, backend, backup_dir):
        manifest = builder.add_snapshot(100, distinct_bytes(32))
        (backup_dir / builder.layout.manifest_key(manifest.compute_hash())).unlink()

        with pytest.raises(ManifestCorruptError):
            load(backend)

    def test_invalid_json(self, builder, backend):
        from snapshot_restore.integrity.hashing import compute_hash

        data = b'{ invalid json }'
        manifest_hash = compute_hash(data)
        backend.write(builder.layout.manifest_key(manifest_hash), data)
        backend.write(builder.layout.snapshot_key(100), manifest_hash.encode())

        with pytest.raises(ManifestCorruptError):
            load(backend)


class TestManifestInvariants:
    """Test rejection of manifests with an impossible layout."""

    @pytest.fixture
    def manifest_obj(self, builder):
        return builder.build_manifest(distinct_bytes(48) + bytes(16)).to_dict()

    def assert_rejected(self, builder, backend, obj, reason):
        builder.add_raw_manifest(100, obj)
        with pytest.raises(ManifestCorruptError) as exc_info:
            load(backend)
        assert reason in exc_info.value.reason

    def test_gap_between_chunks(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunks'][1]['offset'] = 20
        self.assert_rejected(builder, backend, manifest_obj, 'contiguous_offsets')

    def test_overlapping_chunks(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunks'][2]['offset'] = 30
        self.assert_rejected(builder, backend, manifest_obj, 'contiguous_offsets')

    def test_first_chunk_not_at_zero(self, builder, backend, manifest_obj):
        chunks = manifest_obj['content']['chunks']
        manifest_obj['content']['chunks'] = chunks[1:]
        self.assert_rejected(builder, backend, manifest_obj, 'contiguous_offsets')

    def test_short_coverage(self, builder, backend, manifest_obj):
        manifest_obj['content']['file_size'] = 80
        self.assert_rejected(builder, backend, manifest_obj, 'full_coverage')

    def test_chunks_past_file_size(self, builder, backend, manifest_obj):
        manifest_obj['content']['file_size'] = 60
        self.assert_rejected(builder, backend, manifest_obj, 'full_coverage')

    def test_wrong_chunk_length(self, builder, backend, manifest_obj):
        chunks = manifest_obj['content']['chunks']
        chunks[0]['length'] = 8
        for chunk in chunks[1:]:
            chunk['offset'] -= 8
        manifest_obj['content']['file_size'] -= 8
        self.assert_rejected(builder, backend, manifest_obj, 'uniform_chunk_size')

    def test_bad_zero_chunk_hash(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunks'][3]['hash'] = 'ab' * 32
        self.assert_rejected(builder, backend, manifest_obj, 'zero_chunk_hash')

    def test_zero_hash_for_other_algorithm(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunks'][3]['hash'] = zero_chunk_hash(16, 'blake3')
        self.assert_rejected(builder, backend, manifest_obj, 'zero_chunk_hash')

    def test_malformed_chunk_hash(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunks'][1]['hash'] = 'not-a-digest'
        self.assert_rejected(builder, backend, manifest_obj, 'chunk_hash_format')

    def test_short_chunk_hash(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunks'][0]['hash'] = 'ab' * 16
        self.assert_rejected(builder, backend, manifest_obj, 'chunk_hash_format')

    def test_unknown_hash_algorithm(self, builder, backend, manifest_obj):
        manifest_obj['content']['hash_algorithm'] = 'md5'
        self.assert_rejected(builder, backend, manifest_obj, 'known_parameters')

    def test_unknown_compression(self, builder, backend, manifest_obj):
        manifest_obj['content']['compression'] = 'lzma'
        self.assert_rejected(builder, backend, manifest_obj, 'known_parameters')

    def test_zero_chunk_size(self, builder, backend, manifest_obj):
        manifest_obj['content']['chunk_size'] = 0
        self.assert_rejected(builder, backend, manifest_obj, 'known_parameters')

    def test_wrong_object_type(self, builder, backend, manifest_obj):
        manifest_obj['type'] = 'bundle'
        self.assert_rejected(builder, backend, manifest_obj, 'Invalid manifest type')

    def test_missing_chunk_field(self, builder, backend, manifest_obj):
        del manifest_obj['content']['chunks'][0]['hash']
        self.assert_rejected(builder, backend, manifest_obj, 'missing field')

    def test_boolean_size_rejected(self, builder, backend, manifest_obj):
        manifest_obj['content']['file_size'] = True
        self.assert_rejected(builder, backend, manifest_obj, 'must be integers')

    def test_restore_never_fetches_from_bad_manifest(self, builder, backend, restorer,
                                                     manifest_obj, destination):
        manifest_obj['content']['chunks'][1]['offset'] = 20
        builder.add_raw_manifest(100, manifest_obj)

        with pytest.raises(ManifestCorruptError):
            restorer.restore_from_backup('backups', destination, 100)

        assert backend.chunk_reads == []
        assert not destination.exists()
