"""Query decomposition types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from query_copilot.models.classification import QueryComplexity


class QueryComponentType(str, Enum):
    DATA_RETRIEVAL = "data_retrieval"
    JOIN = "join"
    FILTERING = "filtering"
    AGGREGATION = "aggregation"
    SORTING = "sorting"
    PRIMARY = "primary"


@dataclass(frozen=True)
class QueryComponent:
    """One sub-intent of a decomposed query, mirroring a SQL clause family."""

    id: int
    type: QueryComponentType
    description: str
    query: str
    required_tables: tuple[str, ...] = ()
    estimated_complexity: QueryComplexity = QueryComplexity.MEDIUM


@dataclass(frozen=True)
class QueryDecomposition:
    """Ordered components of a query.

    ``execution_order`` is the only authoritative ordering. ``dependencies``
    is part of the shape but no strategy populates it.
    """

    original_query: str
    components: tuple[QueryComponent, ...]
    execution_order: tuple[int, ...]
    dependencies: dict[int, tuple[int, ...]] = field(default_factory=dict)
    is_fallback: bool = False

    def ordered_components(self) -> tuple[QueryComponent, ...]:
        by_id = {component.id: component for component in self.components}
        return tuple(by_id[component_id] for component_id in self.execution_order)
