"""
Report tables as returned by the archive.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


@dataclass
class Row:
    """One report row: a label, its metrics, row metadata and an optional subtable"""
    label: str
    columns: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    subtable_id: Optional[int] = None
    subtable: Optional["DataTable"] = None
    
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"label": self.label, **self.columns}
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        if self.subtable_id is not None:
            data["idsubdatatable"] = self.subtable_id
        if self.subtable is not None:
            data["subtable"] = self.subtable.to_list()
        return data
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Row":
        return cls(
            label=str(data.get("label", "")),
            columns=dict(data.get("columns") or {}),
            metadata=dict(data.get("metadata") or {}),
            subtable_id=data.get("idsubdatatable"),
        )


@dataclass
class DataTable:
    rows: List[Row] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    
    def get_rows_count(self) -> int:
        return len(self.rows)
    
    def filter(self, func: Callable[..., None], *args: Any) -> "DataTable":
        """Apply an in-place filter ``func(table, *args)``"""
        func(self, *args)
        return self
    
    def to_list(self) -> List[Dict[str, Any]]:
        return [row.to_dict() for row in self.rows]
    
    def to_dict(self) -> Dict[str, Any]:
        return {"metadata": dict(self.metadata), "rows": self.to_list()}
