from query_copilot.sql.extract import alias_map, extract_tables, table_references


def test_comma_separated_from_list():
    sql = "SELECT p.PlayerID FROM Players p, public.Deposits AS d, Games WHERE d.Amount > 0"

    assert table_references(sql) == [
        ("Players", "p"),
        ("public.Deposits", "d"),
        ("Games", None),
    ]


def test_from_list_stops_at_clause_keyword():
    sql = "SELECT Status, COUNT(*) FROM Players GROUP BY Status, CreatedAt"

    assert extract_tables(sql) == ["Players"]


def test_from_list_and_joins_are_combined():
    sql = (
        "SELECT * FROM Players p, Deposits d "
        "JOIN Games g ON g.GameID = d.GameID WHERE p.PlayerID = d.PlayerID"
    )

    assert extract_tables(sql) == ["Players", "Deposits", "Games"]
    assert alias_map(sql)["g"] == "Games"


def test_cte_names_are_skipped_in_from_lists():
    sql = "WITH recent AS (SELECT PlayerID FROM Deposits) SELECT * FROM recent, Players"

    assert extract_tables(sql) == ["Deposits", "Players"]
