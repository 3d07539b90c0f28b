import pytest

from query_copilot.models.classification import QueryCategory, QueryComplexity
from query_copilot.pipeline.classifier import QueryClassifier


def test_blocked_players_is_low_complexity_lookup(players_context):
    result = QueryClassifier().classify(
        "Show me all blocked players from the last 7 days", players_context
    )

    assert result.category is QueryCategory.LOOKUP
    assert result.complexity is QueryComplexity.LOW
    assert result.required_joins == 0
    assert result.predicted_tables == ("Players",)


def test_top_players_by_deposits_requires_one_join(players_deposits_context):
    result = QueryClassifier().classify(
        "Top 10 players by deposits in the last 7 days", players_deposits_context
    )

    assert result.required_joins == 1
    assert result.predicted_tables == ("Players", "Deposits")
    # 3 for the join, 2 ranking, 1 grouping, 1 time window
    assert result.complexity_score == 7
    assert result.complexity is QueryComplexity.HIGH


def test_join_phrases_count_without_schema_context():
    result = QueryClassifier().classify("List orders joined with customers")

    assert result.required_joins == 1
    assert result.predicted_tables == ()


@pytest.mark.parametrize(
    ("query", "category"),
    [
        ("How many players signed up per month", QueryCategory.AGGREGATION),
        ("Average deposit amount", QueryCategory.AGGREGATION),
        ("Monthly deposit trend", QueryCategory.TREND),
        ("Compare deposits versus withdrawals", QueryCategory.COMPARISON),
        ("Show player 42", QueryCategory.LOOKUP),
    ],
)
def test_category_follows_vocabulary(query, category):
    assert QueryClassifier().classify(query).category is category


def test_nested_question_raises_complexity():
    simple = QueryClassifier().classify("Show players")
    nested = QueryClassifier().classify(
        "Show players who have deposits higher than the average and who never withdrew"
    )

    assert simple.complexity is QueryComplexity.LOW
    assert nested.complexity_score > simple.complexity_score
    assert nested.complexity is not QueryComplexity.LOW


@pytest.mark.parametrize("query", ["", "   ", None])
def test_empty_input_is_unknown(query):
    result = QueryClassifier().classify(query)

    assert result.category is QueryCategory.UNKNOWN
    assert result.complexity is QueryComplexity.MEDIUM
    assert result.required_joins == 0
    assert result.confidence_score == 0.0


@pytest.mark.parametrize(
    "query",
    ["!!!", "ñandú 🚀 ✓", "and or " * 500, "SELECT * FROM players", "\n\t42\n"],
)
def test_classification_is_total(query, players_deposits_context):
    result = QueryClassifier().classify(query, players_deposits_context)

    assert result.category in QueryCategory
    assert result.complexity in QueryComplexity
    assert result.required_joins >= 0
    assert 0.0 <= result.confidence_score <= 1.0
