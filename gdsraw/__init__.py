"""
Lazy GDSII cell access: index a stream file once, query the reference
hierarchy, pull flattened polygon vertices and copy raw cell bytes.
"""

from .errors import ErrorCode, GdsError, InvalidRecord, RecordIOError, RecordTooLong, TruncatedRecord
from .loader import read_rawcells
from .logging import DiagnosticLog
from .polygons import PolygonAccumulator, extract_polygons
from .rawcell import DependencyEdge, RawCell, Resolved, Unresolved
from .records import (
    MAX_RECORD_LENGTH,
    GdsRecord,
    RecordReader,
    encode_record,
    float_to_gdsii_real,
    gdsii_real_to_float,
    iter_records,
    record_name,
)
from .source import RawSource

__all__ = [
    "ErrorCode",
    "GdsError",
    "InvalidRecord",
    "RecordIOError",
    "RecordTooLong",
    "TruncatedRecord",
    "read_rawcells",
    "DiagnosticLog",
    "PolygonAccumulator",
    "extract_polygons",
    "DependencyEdge",
    "RawCell",
    "Resolved",
    "Unresolved",
    "MAX_RECORD_LENGTH",
    "GdsRecord",
    "RecordReader",
    "encode_record",
    "float_to_gdsii_real",
    "gdsii_real_to_float",
    "iter_records",
    "record_name",
    "RawSource",
]
