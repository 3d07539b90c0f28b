import pytest

from query_copilot.schema.retrieval import (
    LexicalSchemaResolver,
    RetrievalError,
    identifier_tokens,
    retrieve_relevant_tables,
    suggest_joins,
    to_schema_context,
    tokenize,
)


def test_tokenize_drops_prefixes_and_singularizes():
    assert tokenize("tbl_Daily_actions") == {"daily", "action"}
    assert identifier_tokens("PlayerID") == {"player", "id"}
    assert tokenize("Categories") == {"category"}


def test_tied_tables_keep_question_order(players_snapshot):
    result = retrieve_relevant_tables(
        "Top 10 players by deposits in the last 7 days", players_snapshot
    )

    assert result.tables_used == ["public.Players", "public.Deposits"]
    assert result.selected_tables[0].score == result.selected_tables[1].score


def test_foreign_key_neighbours_are_added(players_snapshot):
    result = retrieve_relevant_tables("Show player status", players_snapshot, min_score=4.0)

    assert result.tables_used == ["public.Players", "public.Deposits"]
    assert not result.selected_tables[0].expanded_by_fk
    assert result.selected_tables[1].expanded_by_fk


def test_fk_expansion_can_be_disabled(players_snapshot):
    result = retrieve_relevant_tables(
        "Show player status", players_snapshot, min_score=4.0, fk_expand=False
    )

    assert result.tables_used == ["public.Players"]


def test_question_without_tokens_returns_nothing(players_snapshot):
    assert retrieve_relevant_tables("?!", players_snapshot).selected_tables == ()


def test_top_k_must_be_positive(players_snapshot):
    with pytest.raises(RetrievalError):
        retrieve_relevant_tables("players", players_snapshot, top_k=0)


def test_suggest_joins_follows_foreign_keys(players_table, deposits_table):
    assert suggest_joins([players_table, deposits_table]) == (
        "Deposits.PlayerID = Players.PlayerID",
    )
    assert suggest_joins([deposits_table]) == ()


@pytest.mark.asyncio
async def test_resolver_builds_schema_context(players_snapshot):
    context = await LexicalSchemaResolver().resolve(
        "Top 10 players by deposits in the last 7 days", players_snapshot
    )

    assert context.table_names == ("Players", "Deposits")
    assert context.suggested_joins == ("Deposits.PlayerID = Players.PlayerID",)
    players = context.find_table("public.players")
    assert players.column_names == ("PlayerID", "Status", "CreatedAt")


def test_empty_result_gives_empty_context(players_snapshot):
    context = to_schema_context(retrieve_relevant_tables("weather", players_snapshot))

    assert context.is_empty
