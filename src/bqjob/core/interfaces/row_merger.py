from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from bqjob.core.models.query_results import TableSchema


class RowMergerPort(ABC):
    @abstractmethod
    def merge(self, schema: TableSchema, raw_rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Combine a schema with raw rows into records.

        Records keep the schema's column order and carry typed values.
        """
        pass
