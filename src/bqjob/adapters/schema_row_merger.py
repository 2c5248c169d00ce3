"""Merge a table schema with raw API rows into typed records.

The service returns rows as ``{"f": [{"v": value}, ...]}`` where every leaf
value is a string (or None) and nested RECORD values repeat the same shape.
"""

import base64
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Sequence

from bqjob.core.interfaces.row_merger import RowMergerPort
from bqjob.core.models.query_results import TableFieldSchema, TableSchema


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() == "true"


def _to_timestamp(value: Any) -> datetime:
    # Seconds since the epoch, possibly in exponent notation ("1.4E9")
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def _to_bytes(value: Any) -> bytes:
    return base64.b64decode(value)


_CONVERTERS: Dict[str, Callable[[Any], Any]] = {
    "BOOLEAN": _to_bool,
    "BOOL": _to_bool,
    "BYTES": _to_bytes,
    "FLOAT": float,
    "FLOAT64": float,
    "INTEGER": int,
    "INT64": int,
    "NUMERIC": Decimal,
    "BIGNUMERIC": Decimal,
    "TIMESTAMP": _to_timestamp,
    "DATE": date.fromisoformat,
    "DATETIME": datetime.fromisoformat,
    "TIME": time.fromisoformat,
}


class SchemaRowMerger(RowMergerPort):
    """Default RowMergerPort.

    Unknown types (STRING, GEOGRAPHY, JSON, ...) are passed through as
    strings. NULL stays None.
    """

    def merge(self, schema: TableSchema, raw_rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [self._merge_row(schema.fields, row) for row in raw_rows]

    def _merge_row(self, fields: Sequence[TableFieldSchema], row: Dict[str, Any]) -> Dict[str, Any]:
        cells = row.get("f") or []
        record: Dict[str, Any] = {}
        for field, cell in zip(fields, cells):
            value = cell.get("v") if isinstance(cell, dict) else cell
            record[field.name] = self._convert_field(field, value)
        return record

    def _convert_field(self, field: TableFieldSchema, value: Any) -> Any:
        if value is None:
            return [] if field.repeated else None
        if field.repeated:
            return [
                self._convert_value(field, item.get("v") if isinstance(item, dict) else item)
                for item in value
            ]
        return self._convert_value(field, value)

    def _convert_value(self, field: TableFieldSchema, value: Any) -> Any:
        if value is None:
            return None
        field_type = field.type.upper()
        if field_type in ("RECORD", "STRUCT"):
            return self._merge_row(field.fields or [], value)
        converter = _CONVERTERS.get(field_type)
        return converter(value) if converter else value
