"""
GDSII stream record codec.

Every record in a GDSII stream file follows the same layout (big endian):

    uint16 length       # includes this 4-byte header
    uint8  record_type  # BGNLIB, BGNSTR, XY, ...
    uint8  data_type    # element type of the payload
    <length - 4 payload bytes>

Numeric payloads are decoded to host values according to the element type.
Reals use the IBM-style excess-64 encoding rather than IEEE 754.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Iterator, Sequence, Tuple

from .errors import RecordIOError, RecordTooLong, TruncatedRecord

HEADER_SIZE = 4
MAX_RECORD_LENGTH = 0xFFFF
INITIAL_CAPACITY = 1024
NAME_ENCODING = "latin-1"

RECORD_NAMES = (
    "HEADER", "BGNLIB", "LIBNAME", "UNITS", "ENDLIB", "BGNSTR",
    "STRNAME", "ENDSTR", "BOUNDARY", "PATH", "SREF", "AREF",
    "TEXT", "LAYER", "DATATYPE", "WIDTH", "XY", "ENDEL",
    "SNAME", "COLROW", "TEXTNODE", "NODE", "TEXTTYPE", "PRESENTATION",
    "SPACING", "STRING", "STRANS", "MAG", "ANGLE", "UINTEGER",
    "USTRING", "REFLIBS", "FONTS", "PATHTYPE", "GENERATIONS", "ATTRTABLE",
    "STYPTABLE", "STRTYPE", "ELFLAGS", "ELKEY", "LINKTYPE", "LINKKEYS",
    "NODETYPE", "PROPATTR", "PROPVALUE", "BOX", "BOXTYPE", "PLEX",
    "BGNEXTN", "ENDEXTN", "TAPENUM", "TAPECODE", "STRCLASS", "RESERVED",
    "FORMAT", "MASK", "ENDMASKS", "LIBDIRSIZE", "SRFNAME", "LIBSECUR",
)

# Record types consumed by the loader and the polygon extractor.
HEADER = 0x00
BGNLIB = 0x01
LIBNAME = 0x02
UNITS = 0x03
ENDLIB = 0x04
BGNSTR = 0x05
STRNAME = 0x06
ENDSTR = 0x07
BOUNDARY = 0x08
PATH = 0x09
SREF = 0x0A
AREF = 0x0B
TEXT = 0x0C
LAYER = 0x0D
DATATYPE = 0x0E
XY = 0x10
ENDEL = 0x11
SNAME = 0x12
BOX = 0x2D
BOXTYPE = 0x2E

# Element (data) types.
NO_DATA = 0
BIT_ARRAY = 1
INT16 = 2
INT32 = 3
REAL4 = 4
REAL8 = 5
ASCII = 6

DATA_TYPE_NAMES = {
    NO_DATA: "none",
    BIT_ARRAY: "bits",
    INT16: "int16",
    INT32: "int32",
    REAL4: "real4",
    REAL8: "real8",
    ASCII: "ascii",
}


def record_name(rtype: int) -> str:
    if 0 <= rtype < len(RECORD_NAMES):
        return RECORD_NAMES[rtype]
    return f"UNKNOWN_0x{rtype:02X}"


def gdsii_real_to_float(raw: int) -> float:
    """Decode an 8-byte excess-64 real (sign, 7-bit base-16 exponent, 56-bit mantissa)."""

    sign = -1.0 if raw & 0x8000000000000000 else 1.0
    exponent = ((raw >> 56) & 0x7F) - 64
    mantissa = raw & 0x00FFFFFFFFFFFFFF
    return sign * math.ldexp(mantissa, 4 * exponent - 56)


def gdsii_real4_to_float(raw: int) -> float:
    sign = -1.0 if raw & 0x80000000 else 1.0
    exponent = ((raw >> 24) & 0x7F) - 64
    mantissa = raw & 0x00FFFFFF
    return sign * math.ldexp(mantissa, 4 * exponent - 24)


def float_to_gdsii_real(value: float) -> int:
    if value == 0:
        return 0
    sign = 0
    if value < 0:
        sign = 0x8000000000000000
        value = -value
    _, exponent = math.frexp(value)
    # Smallest base-16 exponent that keeps the fraction below 1.
    exp16 = -((-exponent) // 4)
    mantissa = int(round(math.ldexp(value, 56 - 4 * exp16)))
    if mantissa >= 1 << 56:
        mantissa >>= 4
        exp16 += 1
    if not 0 <= exp16 + 64 <= 0x7F:
        raise ValueError(f"{value!r} is outside the GDSII real range")
    return sign | ((exp16 + 64) << 56) | mantissa


@dataclass(frozen=True)
class GdsRecord:
    offset: int
    length: int
    rtype: int
    dtype: int
    payload: bytes

    @property
    def name(self) -> str:
        return record_name(self.rtype)

    @property
    def raw(self) -> bytes:
        return struct.pack(">HBB", self.length, self.rtype, self.dtype) + self.payload

    def values(self) -> Tuple:
        """Payload decoded to host values according to the element type."""

        data = self.payload
        if self.dtype == INT16:
            return struct.unpack(f">{len(data) // 2}h", data[: len(data) // 2 * 2])
        if self.dtype == BIT_ARRAY:
            return struct.unpack(f">{len(data) // 2}H", data[: len(data) // 2 * 2])
        if self.dtype == INT32:
            return struct.unpack(f">{len(data) // 4}i", data[: len(data) // 4 * 4])
        if self.dtype == REAL4:
            raw = struct.unpack(f">{len(data) // 4}I", data[: len(data) // 4 * 4])
            return tuple(gdsii_real4_to_float(item) for item in raw)
        if self.dtype == REAL8:
            raw = struct.unpack(f">{len(data) // 8}Q", data[: len(data) // 8 * 8])
            return tuple(gdsii_real_to_float(item) for item in raw)
        return (data,)

    def text(self) -> str:
        data = self.payload
        if data.endswith(b"\x00"):
            data = data[:-1]
        return data.decode(NAME_ENCODING)


class RecordReader:
    """
    Sequential record reader over a binary stream.

    The reader keeps a running byte offset so callers can locate records
    without seeking, and reuses one payload buffer that grows on demand.
    """

    def __init__(self, stream: BinaryIO, *, max_length: int = MAX_RECORD_LENGTH, start_offset: int = 0) -> None:
        self.stream = stream
        self.max_length = max_length
        self.offset = start_offset
        self._buffer = bytearray(INITIAL_CAPACITY)

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    def _reserve(self, size: int) -> None:
        if size > len(self._buffer):
            self._buffer.extend(bytes(size - len(self._buffer)))

    def read(self) -> GdsRecord:
        start = self.offset
        try:
            header = self.stream.read(HEADER_SIZE)
        except OSError as exc:
            raise RecordIOError(f"Unable to read record header at offset {start}: {exc}") from exc
        if len(header) < HEADER_SIZE:
            raise RecordIOError(f"End of file reached unexpectedly at offset {start}.")
        length, rtype, dtype = struct.unpack(">HBB", header)
        if length < HEADER_SIZE:
            raise TruncatedRecord(f"Record at offset {start} declares length {length}.")
        if length > self.max_length:
            raise RecordTooLong(f"Record at offset {start} is {length} bytes (limit {self.max_length}).")
        size = length - HEADER_SIZE
        self._reserve(size)
        got = 0
        if size:
            try:
                with memoryview(self._buffer)[:size] as view:
                    got = self.stream.readinto(view) or 0
            except OSError as exc:
                raise RecordIOError(f"Unable to read record payload at offset {start}: {exc}") from exc
        if got < size:
            raise RecordIOError(f"Short read at offset {start}: expected {size} payload bytes, got {got}.")
        self.offset = start + length
        return GdsRecord(offset=start, length=length, rtype=rtype, dtype=dtype, payload=bytes(self._buffer[:size]))


def iter_records(stream: BinaryIO, *, max_length: int = MAX_RECORD_LENGTH) -> Iterator[GdsRecord]:
    """Yield records up to and including ENDLIB; stop quietly on a clean EOF."""

    reader = RecordReader(stream, max_length=max_length)
    while True:
        try:
            peek = stream.read(1)
        except OSError as exc:
            raise RecordIOError(f"Unable to read record header at offset {reader.offset}: {exc}") from exc
        if not peek:
            return
        stream.seek(-1, 1)
        record = reader.read()
        yield record
        if record.rtype == ENDLIB:
            return


def encode_record(rtype: int, dtype: int = NO_DATA, payload: bytes = b"") -> bytes:
    length = HEADER_SIZE + len(payload)
    if length > MAX_RECORD_LENGTH:
        raise ValueError(f"Record payload of {len(payload)} bytes does not fit in one record")
    return struct.pack(">HBB", length, rtype, dtype) + payload


def int16_payload(values: Iterable[int]) -> bytes:
    items = list(values)
    return struct.pack(f">{len(items)}h", *items)


def int32_payload(values: Iterable[int]) -> bytes:
    items = list(values)
    return struct.pack(f">{len(items)}i", *items)


def real8_payload(values: Sequence[float]) -> bytes:
    return b"".join(struct.pack(">Q", float_to_gdsii_real(value)) for value in values)


def text_payload(text: str) -> bytes:
    data = text.encode(NAME_ENCODING)
    if len(data) % 2:
        data += b"\x00"
    return data
