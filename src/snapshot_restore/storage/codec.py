"""
Chunk blob codec.

Chunk blobs are stored either raw or as a single zstd frame. The
compression mode is declared once per manifest.
"""

import zstandard as zstd

SUPPORTED_COMPRESSION = ('none', 'zstd')


def encode_chunk(data: bytes, compression: str, level: int = 3) -> bytes:
    """
    Encode chunk bytes for storage.

    The content size is written into zstd frames so decoding can check it.
    """
    if compression == 'none':
        return bytes(data)
    if compression == 'zstd':
        return zstd.ZstdCompressor(level=level, write_content_size=True).compress(data)
    raise ValueError(f"Unsupported compression: {compression}")


def decode_chunk(blob: bytes, compression: str, expected_length: int) -> bytes:
    """
    Decode a stored chunk blob back to its raw bytes.

    Args:
        blob: bytes as read from the backend
        compression: manifest-declared compression mode
        expected_length: chunk length from the manifest, bounds the output

    Raises ValueError if the blob cannot be decoded.
    """
    if compression == 'none':
        return blob
    if compression == 'zstd':
        try:
            return zstd.ZstdDecompressor().decompress(blob, max_output_size=expected_length)
        except zstd.ZstdError as e:
            raise ValueError(f"Failed to decompress chunk: {e}")
    raise ValueError(f"Unsupported compression: {compression}")
