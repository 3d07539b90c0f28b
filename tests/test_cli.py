from query_copilot.cli import main


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "query-copilot" in capsys.readouterr().out


def test_config_check_redacts_secrets(clean_env, capsys):
    clean_env.setenv("OPENAI_API_KEY", "sk-secret")
    clean_env.setenv("POSTGRES_DSN", "postgresql://reader:pw@localhost/casino")

    assert main(["config-check"]) == 0

    out = capsys.readouterr().out
    assert "- OPENAI_API_KEY: ***" in out
    assert "sk-secret" not in out
    assert "pw@localhost" not in out


def test_config_error_exits_with_two(clean_env, capsys):
    clean_env.setenv("VALIDITY_THRESHOLD", "high")

    assert main(["config-check"]) == 2
    assert "Configuration error" in capsys.readouterr().err


def test_healthcheck_requires_dsn(clean_env, capsys):
    assert main(["healthcheck"]) == 2
    assert "POSTGRES_DSN" in capsys.readouterr().err


def test_show_cache_reports_missing_file(clean_env, tmp_path, capsys):
    clean_env.setenv("SCHEMA_CACHE_PATH", str(tmp_path / "absent.json"))

    assert main(["show-cache"]) == 1
    assert "Schema cache read failed" in capsys.readouterr().err


def test_show_cache(schema_cache_file, capsys):
    assert main(["show-cache"]) == 0
    out = capsys.readouterr().out
    assert "- database: casino" in out
    assert "- tables_and_views: 2" in out


def test_decompose_prints_plan(schema_cache_file, capsys):
    assert main(["decompose", "Top 10 players by deposits in the last 7 days"]) == 0

    out = capsys.readouterr().out
    assert "- complexity: high (7 points)" in out
    assert "- required_joins: 1" in out
    assert "[1] data_retrieval" in out
    assert "[2] join" in out


def test_retrieve_tables(schema_cache_file, capsys):
    assert main(["retrieve-tables", "blocked players"]) == 0
    assert "- public.Players score=" in capsys.readouterr().out


def test_validate_sql_accepts_valid_query(schema_cache_file, capsys):
    code = main(["validate-sql", "SELECT Status FROM Players WHERE Status = 'blocked'"])

    assert code == 0
    out = capsys.readouterr().out
    assert "SQL validation succeeded:" in out
    assert "- verdict: valid" in out


def test_validate_sql_rejects_destructive_query(schema_cache_file, capsys):
    assert main(["validate-sql", "DROP TABLE Players"]) == 1
    out = capsys.readouterr().out
    assert "SQL validation failed:" in out
    assert "Security:" in out


def test_process_query_requires_api_key(schema_cache_file, capsys):
    assert main(["process-query", "Show blocked players"]) == 2
    assert "OPENAI_API_KEY" in capsys.readouterr().err
