from __future__ import annotations

import io
import struct

import pytest

from gdsraw.errors import ErrorCode, RecordIOError, RecordTooLong, TruncatedRecord
from gdsraw.records import (
    ASCII,
    BGNSTR,
    BIT_ARRAY,
    ENDLIB,
    INITIAL_CAPACITY,
    INT16,
    INT32,
    REAL8,
    STRNAME,
    UNITS,
    XY,
    RecordReader,
    encode_record,
    float_to_gdsii_real,
    gdsii_real_to_float,
    int16_payload,
    int32_payload,
    iter_records,
    real8_payload,
    record_name,
    text_payload,
)

from tests import builders as gds


def test_gdsii_real_known_encodings():
    assert gdsii_real_to_float(0x4110000000000000) == 1.0
    assert gdsii_real_to_float(0xC110000000000000) == -1.0
    assert gdsii_real_to_float(0) == 0.0
    assert gdsii_real_to_float(0x3E4189374BC6A7EF) == pytest.approx(1e-3)
    assert gdsii_real_to_float(0x3944B82FA09B5A54) == pytest.approx(1e-9)


def test_float_to_gdsii_real_matches_decoder():
    assert float_to_gdsii_real(1.0) == 0x4110000000000000
    assert float_to_gdsii_real(-1.0) == 0xC110000000000000
    for value in (1e-3, 1e-9, 0.5, 2.5e-7, -123.456, 65536.0):
        assert gdsii_real_to_float(float_to_gdsii_real(value)) == value


def test_float_to_gdsii_real_rejects_out_of_range():
    with pytest.raises(ValueError):
        float_to_gdsii_real(1e300)


def test_reader_decodes_big_endian_fields():
    data = (
        encode_record(BGNSTR, INT16, int16_payload([-2, 300]))
        + encode_record(XY, INT32, int32_payload([-70000, 5, 2**31 - 1, -(2**31)]))
        + encode_record(STRNAME, ASCII, text_payload("TOP"))
    )
    reader = RecordReader(io.BytesIO(data))

    first = reader.read()
    assert first.name == "BGNSTR"
    assert first.offset == 0
    assert first.length == 8
    assert first.values() == (-2, 300)

    second = reader.read()
    assert second.offset == 8
    assert second.values() == (-70000, 5, 2**31 - 1, -(2**31))

    third = reader.read()
    assert third.text() == "TOP"
    assert third.payload == b"TOP\x00"
    assert reader.offset == len(data)


def test_bit_array_and_real8_values():
    bits = encode_record(0x1A, BIT_ARRAY, struct.pack(">H", 0x8001))
    units = encode_record(UNITS, REAL8, real8_payload([1e-3, 1e-9]))
    reader = RecordReader(io.BytesIO(bits + units))
    assert reader.read().values() == (0x8001,)
    assert reader.read().values() == pytest.approx((1e-3, 1e-9))


def test_text_drops_only_one_trailing_null():
    record_bytes = encode_record(STRNAME, ASCII, b"AB\x00\x00")
    record = RecordReader(io.BytesIO(record_bytes)).read()
    assert record.text() == "AB\x00"
    assert record.raw == record_bytes


def test_reader_grows_its_buffer_for_long_records():
    payload = int32_payload(range(1000))
    reader = RecordReader(io.BytesIO(encode_record(XY, INT32, payload)))
    record = reader.read()
    assert len(record.values()) == 1000
    assert reader.capacity >= len(payload) > INITIAL_CAPACITY


def test_reader_reports_eof_as_io_error():
    with pytest.raises(RecordIOError) as excinfo:
        RecordReader(io.BytesIO(b"\x00\x08")).read()
    assert excinfo.value.code is ErrorCode.IO_ERROR


def test_reader_reports_short_payload():
    data = encode_record(XY, INT32, int32_payload([1, 2, 3, 4]))[:-3]
    with pytest.raises(RecordIOError):
        RecordReader(io.BytesIO(data)).read()


@pytest.mark.parametrize("fail_at", [0, 4], ids=["header", "payload"])
def test_reader_turns_os_errors_into_io_errors(fail_at):
    data = encode_record(XY, INT32, int32_payload([1, 2]))
    with pytest.raises(RecordIOError) as excinfo:
        RecordReader(gds.FailingStream(data, fail_at)).read()
    assert excinfo.value.code is ErrorCode.IO_ERROR
    assert isinstance(excinfo.value.__cause__, OSError)


def test_reader_rejects_lengths_below_header_size():
    with pytest.raises(TruncatedRecord) as excinfo:
        RecordReader(io.BytesIO(b"\x00\x02\x05\x02")).read()
    assert excinfo.value.code is ErrorCode.TRUNCATED_RECORD


def test_reader_enforces_max_length():
    data = encode_record(XY, INT32, int32_payload(range(10)))
    with pytest.raises(RecordTooLong):
        RecordReader(io.BytesIO(data), max_length=16).read()


def test_record_names():
    assert record_name(BGNSTR) == "BGNSTR"
    assert record_name(0x2D) == "BOX"
    assert record_name(0x3B) == "LIBSECUR"
    assert record_name(0x70) == "UNKNOWN_0x70"


def test_iter_records_stops_at_endlib():
    data = gds.library([gds.structure("A")]) + b"\x00" * 16
    records = list(iter_records(io.BytesIO(data)))
    assert records[0].name == "HEADER"
    assert records[-1].rtype == ENDLIB
    assert [r.name for r in records].count("BGNSTR") == 1


def test_encode_record_rejects_oversized_payload():
    with pytest.raises(ValueError):
        encode_record(XY, INT32, b"\x00" * 0xFFFF)
