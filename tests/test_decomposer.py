from query_copilot.models.analysis import SchemaContext
from query_copilot.models.classification import (
    QueryCategory,
    QueryClassification,
    QueryComplexity,
)
from query_copilot.models.decomposition import QueryComponent, QueryComponentType
from query_copilot.pipeline.classifier import QueryClassifier
from query_copilot.pipeline.decomposer import QueryDecomposer, execution_order


class ExplodingContext(SchemaContext):
    @property
    def table_names(self):
        raise RuntimeError("schema context unavailable")


def _decompose(query, context):
    classification = QueryClassifier().classify(query, context)
    return QueryDecomposer().decompose(query, context, classification)


def test_execution_order_sorts_by_priority_then_id():
    components = tuple(
        QueryComponent(id=component_id, type=component_type, description="", query="")
        for component_id, component_type in (
            (1, QueryComponentType.AGGREGATION),
            (2, QueryComponentType.DATA_RETRIEVAL),
            (3, QueryComponentType.JOIN),
            (4, QueryComponentType.SORTING),
            (5, QueryComponentType.PRIMARY),
            (6, QueryComponentType.JOIN),
        )
    )

    assert execution_order(components) == (2, 3, 6, 1, 4, 5)


def test_decomposition_is_deterministic(players_deposits_context):
    query = "Top 10 players by deposits in the last 7 days"

    first = _decompose(query, players_deposits_context)
    second = _decompose(query, players_deposits_context)

    assert first.execution_order == second.execution_order
    assert first == second


def test_top_players_by_deposits_is_retrieval_then_join(players_deposits_context):
    decomposition = _decompose(
        "Top 10 players by deposits in the last 7 days", players_deposits_context
    )

    components = decomposition.ordered_components()
    assert [component.type for component in components] == [
        QueryComponentType.DATA_RETRIEVAL,
        QueryComponentType.JOIN,
    ]
    assert components[0].required_tables == ("Players",)
    assert components[1].query == "Join data with Deposits"
    assert decomposition.dependencies == {}
    assert not decomposition.is_fallback


def test_simple_lookup_is_single_primary_component(players_context):
    decomposition = _decompose(
        "Show me all blocked players from the last 7 days", players_context
    )

    assert len(decomposition.components) == 1
    component = decomposition.components[0]
    assert component.type is QueryComponentType.PRIMARY
    assert component.required_tables == ("Players",)
    assert component.estimated_complexity is QueryComplexity.LOW
    assert decomposition.execution_order == (1,)


def test_aggregation_question_gets_retrieval_and_aggregation(players_context):
    decomposition = _decompose("How many players are blocked", players_context)

    assert [component.type for component in decomposition.ordered_components()] == [
        QueryComponentType.DATA_RETRIEVAL,
        QueryComponentType.AGGREGATION,
    ]
    assert decomposition.components[1].query == "Count records"


def test_complex_aggregation_appends_aggregation_step(players_deposits_context):
    decomposition = _decompose(
        "Total deposits by players in the last 30 days", players_deposits_context
    )

    types = [component.type for component in decomposition.ordered_components()]
    assert types == [
        QueryComponentType.DATA_RETRIEVAL,
        QueryComponentType.JOIN,
        QueryComponentType.AGGREGATION,
    ]
    assert decomposition.ordered_components()[-1].query == "Calculate sum"


def test_failure_falls_back_to_single_component():
    classification = QueryClassification(
        category=QueryCategory.LOOKUP,
        complexity=QueryComplexity.HIGH,
        required_joins=3,
        confidence_score=0.5,
    )
    query = "Players joined with deposits and withdrawals"

    decomposition = QueryDecomposer().decompose(query, ExplodingContext(), classification)

    assert decomposition.is_fallback
    assert decomposition.execution_order == (1,)
    component = decomposition.components[0]
    assert component.type is QueryComponentType.PRIMARY
    assert component.query == query
    assert component.estimated_complexity is QueryComplexity.MEDIUM
