"""Semantic analysis and schema context produced before SQL generation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EntityType(str, Enum):
    TABLE = "table"
    COLUMN = "column"
    AGGREGATION = "aggregation"
    DATE_RANGE = "date_range"
    CONDITION = "condition"
    SORT = "sort"
    LIMIT = "limit"
    NUMBER = "number"


class QueryIntent(str, Enum):
    GENERAL = "general"
    AGGREGATION = "aggregation"
    TREND = "trend"
    COMPARISON = "comparison"
    FILTERING = "filtering"


@dataclass(frozen=True)
class Entity:
    """Span of the NL query recognised as carrying SQL meaning."""

    text: str
    type: EntityType
    start: int
    end: int


@dataclass(frozen=True)
class SemanticAnalysis:
    """Entities, intent and confidence extracted from one NL query."""

    query: str
    entities: tuple[Entity, ...] = ()
    intent: QueryIntent = QueryIntent.GENERAL
    confidence: float = 0.0
    keywords: tuple[str, ...] = ()


@dataclass(frozen=True)
class ColumnRef:
    name: str
    data_type: str = ""


@dataclass(frozen=True)
class RelevantTable:
    name: str
    columns: tuple[ColumnRef, ...] = ()
    schema: str | None = None
    description: str | None = None

    @property
    def fqn(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.columns)


@dataclass(frozen=True)
class SchemaContext:
    """Read-only projection of the schema relevant to one request."""

    relevant_tables: tuple[RelevantTable, ...] = ()
    suggested_joins: tuple[str, ...] = ()

    @property
    def table_names(self) -> tuple[str, ...]:
        return tuple(table.name for table in self.relevant_tables)

    @property
    def is_empty(self) -> bool:
        return not self.relevant_tables

    def find_table(self, name: str) -> RelevantTable | None:
        lowered = name.lower()
        for table in self.relevant_tables:
            if table.name.lower() == lowered or table.fqn.lower() == lowered:
                return table
        return None
