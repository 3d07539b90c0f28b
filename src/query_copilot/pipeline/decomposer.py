"""Split an NL query into ordered components that mirror SQL clauses."""

from __future__ import annotations

import logging

from query_copilot.models.analysis import SchemaContext
from query_copilot.models.classification import (
    QueryCategory,
    QueryClassification,
    QueryComplexity,
)
from query_copilot.models.decomposition import (
    QueryComponent,
    QueryComponentType,
    QueryDecomposition,
)
from query_copilot.pipeline.classifier import AGGREGATION_WORDS

logger = logging.getLogger(__name__)

COMPONENT_PRIORITY = {
    QueryComponentType.DATA_RETRIEVAL: 1,
    QueryComponentType.JOIN: 2,
    QueryComponentType.FILTERING: 3,
    QueryComponentType.AGGREGATION: 4,
    QueryComponentType.SORTING: 5,
}
_DEFAULT_PRIORITY = 6

_AGGREGATION_STEPS = (
    ("sum", "Calculate sum"),
    ("total", "Calculate sum"),
    ("count", "Count records"),
    ("how many", "Count records"),
    ("average", "Calculate average"),
    ("avg", "Calculate average"),
    ("mean", "Calculate average"),
    ("max", "Find maximum"),
    ("min", "Find minimum"),
)


def execution_order(components: tuple[QueryComponent, ...]) -> tuple[int, ...]:
    """Component ids by type priority, ties broken by id."""
    ranked = sorted(
        components,
        key=lambda item: (COMPONENT_PRIORITY.get(item.type, _DEFAULT_PRIORITY), item.id),
    )
    return tuple(component.id for component in ranked)


def _aggregation_step(query: str) -> str:
    words = set(AGGREGATION_WORDS.findall(query.lower()))
    for keyword, description in _AGGREGATION_STEPS:
        if keyword in words:
            return description
    return "Apply aggregation"


def fallback_decomposition(query: str) -> QueryDecomposition:
    component = QueryComponent(
        id=1,
        type=QueryComponentType.PRIMARY,
        description="Fallback single component",
        query=query,
        estimated_complexity=QueryComplexity.MEDIUM,
    )
    return QueryDecomposition(
        original_query=query,
        components=(component,),
        execution_order=(1,),
        is_fallback=True,
    )


class QueryDecomposer:
    """Stateless decomposer; ``decompose`` never raises."""

    def decompose(
        self,
        query: str,
        schema_context: SchemaContext,
        classification: QueryClassification,
    ) -> QueryDecomposition:
        try:
            if (
                classification.complexity is QueryComplexity.HIGH
                or classification.required_joins > 2
            ):
                components = self._complex(query, schema_context)
            elif classification.category is QueryCategory.AGGREGATION:
                components = self._aggregation(query, schema_context)
            else:
                components = self._single(query, schema_context, classification)

            order = execution_order(components)
            decomposition = QueryDecomposition(
                original_query=query,
                components=components,
                execution_order=order,
            )
        except Exception:
            logger.warning("Decomposition failed; using single component", exc_info=True)
            return fallback_decomposition(query)

        logger.debug(
            "Decomposed query into %d components: %s",
            len(components),
            " -> ".join(str(item) for item in order),
        )
        return decomposition

    @staticmethod
    def _complex(query: str, context: SchemaContext) -> tuple[QueryComponent, ...]:
        tables = context.table_names
        primary = tables[0] if tables else None
        components = [
            QueryComponent(
                id=1,
                type=QueryComponentType.DATA_RETRIEVAL,
                description="Primary data retrieval",
                query=f"Retrieve data from {primary}" if primary else f"Retrieve data for: {query}",
                required_tables=(primary,) if primary else (),
                estimated_complexity=QueryComplexity.LOW,
            )
        ]
        for table in tables[1:]:
            components.append(
                QueryComponent(
                    id=len(components) + 1,
                    type=QueryComponentType.JOIN,
                    description=f"Join with {table}",
                    query=f"Join data with {table}",
                    required_tables=(primary, table),
                    estimated_complexity=QueryComplexity.MEDIUM,
                )
            )
        if AGGREGATION_WORDS.search(query):
            components.append(
                QueryComponent(
                    id=len(components) + 1,
                    type=QueryComponentType.AGGREGATION,
                    description="Aggregate results",
                    query=_aggregation_step(query),
                    required_tables=tables,
                    estimated_complexity=QueryComplexity.MEDIUM,
                )
            )
        return tuple(components)

    @staticmethod
    def _aggregation(query: str, context: SchemaContext) -> tuple[QueryComponent, ...]:
        tables = context.table_names
        base = tables[0] if tables else None
        return (
            QueryComponent(
                id=1,
                type=QueryComponentType.DATA_RETRIEVAL,
                description="Retrieve base data for aggregation",
                query=f"Select base data from {base}" if base else f"Select base data for: {query}",
                required_tables=tables,
                estimated_complexity=QueryComplexity.LOW,
            ),
            QueryComponent(
                id=2,
                type=QueryComponentType.AGGREGATION,
                description="Apply aggregation functions",
                query=_aggregation_step(query),
                required_tables=tables,
                estimated_complexity=QueryComplexity.MEDIUM,
            ),
        )

    @staticmethod
    def _single(
        query: str, context: SchemaContext, classification: QueryClassification
    ) -> tuple[QueryComponent, ...]:
        return (
            QueryComponent(
                id=1,
                type=QueryComponentType.PRIMARY,
                description="Main query execution",
                query=query,
                required_tables=context.table_names,
                estimated_complexity=classification.complexity,
            ),
        )
