from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .utils import _json_safe, to_datetime, to_number

# A cell is either Null (``None``) or the raw string read from the file.
Cell = Optional[str]
Row = Mapping[str, Cell]

NUMERIC = "numeric"
CATEGORICAL = "categorical"
DATETIME = "datetime"
TEXT = "text"
COLUMN_TYPES = (NUMERIC, CATEGORICAL, DATETIME, TEXT)


@dataclass(frozen=True)
class ColumnValues:
    """One column's cells with numeric conversions done once."""

    name: str
    cells: Tuple[Cell, ...]
    numbers: Tuple[Optional[float], ...]
    numeric_failures: int

    @classmethod
    def from_cells(cls, name: str, cells: Sequence[Cell]) -> "ColumnValues":
        numbers: List[Optional[float]] = []
        failures = 0
        for cell in cells:
            number = to_number(cell)
            if cell is not None and number is None:
                failures += 1
            numbers.append(number)
        return cls(name=name, cells=tuple(cells), numbers=tuple(numbers), numeric_failures=failures)

    @property
    def non_null(self) -> List[str]:
        return [cell for cell in self.cells if cell is not None]

    @property
    def null_count(self) -> int:
        return sum(1 for cell in self.cells if cell is None)

    def finite_numbers(self) -> List[float]:
        return [number for number in self.numbers if number is not None]

    def dates(self, *, strict: bool = True) -> List[Optional[datetime]]:
        return [to_datetime(cell, strict=strict) for cell in self.cells]


@dataclass(frozen=True)
class Table:
    columns: Tuple[str, ...]
    rows: Tuple[Row, ...]
    dropped_rows: int = 0
    _column_cache: Dict[str, ColumnValues] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    @classmethod
    def from_records(
        cls,
        columns: Sequence[str],
        records: Sequence[Mapping[str, Cell]],
        *,
        dropped_rows: int = 0,
    ) -> "Table":
        header = tuple(columns)
        rows = tuple(
            MappingProxyType({name: record.get(name) for name in header})
            for record in records
        )
        return cls(columns=header, rows=rows, dropped_rows=dropped_rows)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column(self, name: str) -> ColumnValues:
        if name not in self.columns:
            raise KeyError(name)
        cached = self._column_cache.get(name)
        if cached is None:
            cached = ColumnValues.from_cells(name, [row[name] for row in self.rows])
            self._column_cache[name] = cached
        return cached

    def head(self, limit: int) -> List[Dict[str, Cell]]:
        return [dict(row) for row in self.rows[:limit]]


@dataclass(frozen=True)
class ColumnProfile:
    name: str
    inferred_type: str
    unique_value_count: int
    null_count: int
    non_null_count: int
    sample_values: Tuple[str, ...]
    stats: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "inferredType": self.inferred_type,
            "uniqueValueCount": self.unique_value_count,
            "nullCount": self.null_count,
            "nonNullCount": self.non_null_count,
            "sampleValues": list(self.sample_values),
            "stats": _json_safe(dict(self.stats)),
        }


@dataclass(frozen=True)
class CorrelationPair:
    column_a: str
    column_b: str
    coefficient: float
    sample_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "columnA": self.column_a,
            "columnB": self.column_b,
            "coefficient": _json_safe(self.coefficient),
            "sampleSize": self.sample_size,
        }


@dataclass(frozen=True)
class VisualizationSpec:
    id: str
    kind: str
    title: str
    data: Tuple[Mapping[str, Any], ...]
    config: Mapping[str, Any]
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "title": self.title,
            "data": [_json_safe(dict(item)) for item in self.data],
            "config": _json_safe(dict(self.config)),
            "description": self.description,
        }


@dataclass
class PipelineResult:
    table: Table
    profiles: List[ColumnProfile]
    correlations: List[CorrelationPair]
    visualizations: List[VisualizationSpec]
    insights: List[str]
    ai_insights: List[Dict[str, Any]]
    summary: Dict[str, Any]
    phases: Dict[str, Dict[str, Any]]
    report: Optional[Dict[str, str]] = None
    previews: Dict[str, str] = field(default_factory=dict)
