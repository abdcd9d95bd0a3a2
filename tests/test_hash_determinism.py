"""
Test hash determinism.

Verifies that identical content always produces identical keys.
"""

import hashlib

import blake3
import pytest

from snapshot_restore import ChunkRef, Manifest
from snapshot_restore.integrity.canonical import canonical_json, decode_json
from snapshot_restore.integrity.hashing import (
    compute_hash,
    compute_object_hash,
    get_hash_prefix,
    new_hasher,
    zero_chunk_hash,
)
from snapshot_restore.storage.codec import decode_chunk, encode_chunk
from snapshot_restore.storage.layout import BackupSetLayout


class TestCanonicalJSON:
    """Test canonical JSON encoding."""

    def test_key_order_independent(self):
        assert canonical_json({'b': 1, 'a': 2}) == canonical_json({'a': 2, 'b': 1})

    def test_no_whitespace(self):
        assert canonical_json({'a': [1, 2]}) == b'{"a":[1,2]}'

    def test_nan_rejected(self):
        with pytest.raises(ValueError):
            canonical_json({'a': float('nan')})

    def test_decode_invalid(self):
        with pytest.raises(ValueError):
            decode_json(b'\xff{')


class TestHashing:
    """Test chunk and manifest hashing."""

    def test_sha256_matches_hashlib(self):
        assert compute_hash(b'data') == hashlib.sha256(b'data').hexdigest()

    def test_blake3_matches_library(self):
        assert compute_hash(b'data', 'blake3') == blake3.blake3(b'data').hexdigest()

    def test_unknown_algorithm(self):
        with pytest.raises(ValueError):
            new_hasher('md5')

    @pytest.mark.parametrize('algorithm', ['sha256', 'blake3'])
    @pytest.mark.parametrize('length', [1, 16, (1 << 20) + 3])
    def test_zero_chunk_hash(self, algorithm, length):
        assert zero_chunk_hash(length, algorithm) == compute_hash(bytes(length), algorithm)

    def test_manifest_hash_stable(self):
        chunks = [ChunkRef(0, 4, compute_hash(b'abcd'))]
        a = Manifest(4, 4, chunks, metadata={'x': 1, 'y': 2})
        b = Manifest(4, 4, chunks, metadata={'y': 2, 'x': 1})
        assert a.compute_hash() == b.compute_hash()
        assert a.compute_hash() == compute_object_hash(a.to_dict())

    def test_manifest_hash_changes_with_content(self):
        a = Manifest(4, 4, [ChunkRef(0, 4, compute_hash(b'abcd'))])
        b = Manifest(4, 4, [ChunkRef(0, 4, compute_hash(b'abce'))])
        assert a.compute_hash() != b.compute_hash()

    def test_hash_prefix(self):
        assert get_hash_prefix('abcdef') == 'ab'
        with pytest.raises(ValueError):
            get_hash_prefix('a')


class TestLayout:
    """Test backup-set key layout."""

    def test_root_backup_set(self):
        layout = BackupSetLayout()
        assert layout.snapshot_key(1700000000) == 'snapshots/1700000000'
        assert layout.chunk_key('abcd') == 'chunks/ab/abcd'
        assert layout.manifest_key('ef01') == 'manifests/ef/ef01'

    def test_nested_backup_set(self):
        layout = BackupSetLayout('/projects/node/')
        assert layout.snapshots_prefix == 'projects/node/snapshots'
        assert layout.chunk_key('abcd') == 'projects/node/chunks/ab/abcd'


class TestCodec:
    """Test chunk blob encoding."""

    def test_raw(self):
        assert decode_chunk(encode_chunk(b'abc', 'none'), 'none', 3) == b'abc'

    def test_zstd(self):
        data = b'abc' * 1000
        blob = encode_chunk(data, 'zstd')
        assert len(blob) < len(data)
        assert decode_chunk(blob, 'zstd', len(data)) == data

    def test_zstd_garbage(self):
        with pytest.raises(ValueError):
            decode_chunk(b'garbage', 'zstd', 16)

    def test_unknown_compression(self):
        with pytest.raises(ValueError):
            encode_chunk(b'abc', 'lz4')
        with pytest.raises(ValueError):
            decode_chunk(b'abc', 'lz4', 3)
