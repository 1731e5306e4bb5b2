"""Read requests against either source."""

from __future__ import annotations

from dataclasses import dataclass

from .records import RecordKind, schema_for


@dataclass(frozen=True)
class Query:
    """
    One logical fact to read: ``field`` of entity ``entity_id``.

    The field name is checked against the kind's schema on construction,
    so a typo fails before any request goes out.
    """

    kind: RecordKind
    entity_id: str
    field: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "kind", RecordKind(self.kind))
        schema_for(self.kind).field(self.field)

    @property
    def collection(self) -> str:
        return schema_for(self.kind).collection

    @property
    def filter_key(self) -> str:
        return schema_for(self.kind).filter_key
