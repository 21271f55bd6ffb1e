from __future__ import annotations

import pytest

from gdsraw.source import RawSource


def test_handle_closes_when_last_use_is_released(tmp_path):
    target = tmp_path / "blob.bin"
    target.write_bytes(b"0123456789")
    source = RawSource.open(target)
    source.acquire()
    source.acquire()
    assert source.uses == 2

    source.release()
    assert not source.closed
    assert source.offset_read(4, 3) == b"3456"

    source.release()
    assert source.uses == 0
    assert source.closed


def test_release_below_zero_is_rejected(tmp_path):
    target = tmp_path / "blob.bin"
    target.write_bytes(b"x")
    source = RawSource.open(target)
    source.acquire()
    source.release()
    with pytest.raises(ValueError):
        source.release()
    assert source.uses == 0


def test_closed_source_cannot_be_reused(tmp_path):
    target = tmp_path / "blob.bin"
    target.write_bytes(b"x")
    source = RawSource.open(target)
    source.acquire().release()
    with pytest.raises(ValueError):
        source.acquire()
    with pytest.raises(ValueError):
        source.offset_read(1, 0)


def test_open_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        RawSource.open(tmp_path / "missing.gds")
