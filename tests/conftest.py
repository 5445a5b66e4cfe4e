"""Shared fixtures for the pullchain test suite."""

import zipfile

import pytest

LOCAL_HEADER = b"PK\x03\x04"
CENTRAL_HEADER = b"PK\x01\x02"


def _patch_headers(path, local_offset, central_offset, value):
    """Rewrite one byte at the given offset of every local and central header."""
    data = bytearray(path.read_bytes())
    for signature, offset in ((LOCAL_HEADER, local_offset), (CENTRAL_HEADER, central_offset)):
        start = data.find(signature)
        while start != -1:
            data[start + offset] = value(data[start + offset])
            start = data.find(signature, start + 1)
    path.write_bytes(bytes(data))
    return path


@pytest.fixture
def encrypted_zip(tmp_path):
    """An archive whose only member carries the encryption flag."""
    path = tmp_path / "locked.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("a.txt", "secret")
    return _patch_headers(path, 6, 8, lambda flags: flags | 0x01)


@pytest.fixture
def unsupported_zip(tmp_path):
    """An archive whose only member claims an unknown compression method."""
    path = tmp_path / "odd.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("a.txt", "data")
    return _patch_headers(path, 8, 10, lambda method: 99)
