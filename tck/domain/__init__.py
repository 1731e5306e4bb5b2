"""Record schemas and read requests shared by both read paths."""

from .query import Query
from .records import (
    FieldSpec,
    KindSchema,
    RecordKind,
    Source,
    extract_field,
    parse_record,
    public_key_hex,
    schema_for,
)


__all__ = [
    "FieldSpec",
    "KindSchema",
    "Query",
    "RecordKind",
    "Source",
    "extract_field",
    "parse_record",
    "public_key_hex",
    "schema_for",
]
