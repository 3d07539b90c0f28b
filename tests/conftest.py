import pytest

from query_copilot.llm.base import CompletionClient, CompletionOptions, LLMError
from query_copilot.models.analysis import ColumnRef, RelevantTable, SchemaContext
from query_copilot.models.validation import (
    BusinessLogicResult,
    ColumnValidation,
    JoinValidation,
    SchemaComplianceResult,
    SecurityResult,
    SemanticAlignmentResult,
    TableValidation,
    ValidationResult,
)
from query_copilot.pipeline.validator import LayeredValidator
from query_copilot.schema.cache import save_schema_cache
from query_copilot.schema.models import ColumnInfo, ForeignKeyInfo, SchemaSnapshot, TableInfo

ENV_KEYS = (
    "OPENAI_API_KEY",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "POSTGRES_DSN",
    "SCHEMA_CACHE_PATH",
    "DEFAULT_SCHEMA",
    "SQL_DIALECT",
    "VALIDITY_THRESHOLD",
    "CORRECTION_FLOOR",
    "MAX_CANDIDATES",
    "LARGE_TABLES",
    "REQUEST_TIMEOUT_SECONDS",
    "CACHE_TTL_SECONDS",
    "CACHE_MAX_ENTRIES",
    "LOG_LEVEL",
)


class FakeCompletionClient(CompletionClient):
    """Returns scripted responses in order; exceptions in the script are raised."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls: list[tuple[str, CompletionOptions | None]] = []

    async def complete(self, prompt, options=None):
        self.calls.append((prompt, options))
        if not self._responses:
            raise LLMError("No scripted response left.")
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    @property
    def prompts(self):
        return [prompt for prompt, _ in self.calls]


class ScriptedValidator:
    """Stands in for LayeredValidator and hands out prepared results."""

    def __init__(self, results):
        self._results = list(results)
        self.calls = []

    async def validate(self, sql, original_query, context=None, user_id=None, *, schema=None):
        self.calls.append(sql)
        return self._results.pop(0)


def build_result(sql, score, *, query="show revenue", security_passed=True):
    is_valid, can_self_correct, verdict = LayeredValidator().verdict_for(score, security_passed)
    return ValidationResult(
        sql=sql,
        original_query=query,
        security=SecurityResult(is_valid=security_passed),
        semantic_alignment=SemanticAlignmentResult(
            score=0.0,
            reason="Basic semantic alignment score: 0.00",
            is_valid=False,
        ),
        schema_compliance=SchemaComplianceResult(
            table_validation=TableValidation(),
            column_validation=ColumnValidation(),
            join_validation=JoinValidation(),
            compliance_score=score,
        ),
        business_logic=BusinessLogicResult(
            violations=(), recommendations=(), compliance_score=1.0
        ),
        overall_score=score,
        is_valid=is_valid,
        can_self_correct=can_self_correct,
        verdict=verdict,
    )


@pytest.fixture
def make_client():
    return lambda *responses: FakeCompletionClient(responses)


@pytest.fixture
def make_result():
    return build_result


@pytest.fixture
def scripted_validator():
    return ScriptedValidator


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def players_table():
    return TableInfo(
        schema_name="public",
        name="Players",
        columns=(
            ColumnInfo(name="PlayerID", data_type="integer", nullable=False),
            ColumnInfo(name="Status", data_type="text"),
            ColumnInfo(name="CreatedAt", data_type="timestamp"),
        ),
        primary_key=("PlayerID",),
    )


@pytest.fixture
def deposits_table():
    return TableInfo(
        schema_name="public",
        name="Deposits",
        columns=(
            ColumnInfo(name="PlayerID", data_type="integer", nullable=False),
            ColumnInfo(name="Amount", data_type="numeric"),
            ColumnInfo(name="CreatedAt", data_type="timestamp"),
        ),
        foreign_keys=(
            ForeignKeyInfo(
                name="deposits_player_fk",
                columns=("PlayerID",),
                ref_schema="public",
                ref_table="Players",
                ref_columns=("PlayerID",),
            ),
        ),
    )


@pytest.fixture
def players_snapshot(players_table, deposits_table):
    return SchemaSnapshot(database="casino", tables=(players_table, deposits_table))


def _relevant(table):
    return RelevantTable(
        name=table.name,
        schema=table.schema_name,
        columns=tuple(ColumnRef(column.name, column.data_type) for column in table.columns),
    )


@pytest.fixture
def players_context(players_table):
    return SchemaContext(relevant_tables=(_relevant(players_table),))


@pytest.fixture
def players_deposits_context(players_table, deposits_table):
    return SchemaContext(
        relevant_tables=(_relevant(players_table), _relevant(deposits_table)),
        suggested_joins=("Deposits.PlayerID = Players.PlayerID",),
    )


@pytest.fixture
def schema_cache_file(tmp_path, players_snapshot, clean_env):
    path = tmp_path / "schema_cache.json"
    save_schema_cache(path, players_snapshot)
    clean_env.setenv("SCHEMA_CACHE_PATH", str(path))
    return path
