"""Prompt builder and response parsing for SQL candidate generation."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum

from pydantic import ValidationError

from query_copilot.models.analysis import SchemaContext, SemanticAnalysis
from query_copilot.models.decomposition import QueryDecomposition
from query_copilot.models.generation import SQLGenerationPayload


class PromptBuildError(RuntimeError):
    """Raised when a prompt cannot be built from the given inputs."""


class PromptVariant(str, Enum):
    PRIMARY = "primary"
    AGGREGATION = "aggregation"
    TREND = "trend"
    SIMPLIFIED = "simplified"
    CORRECTION = "correction"


@dataclass(frozen=True)
class PromptBundle:
    """Inspectable prompt pair sent to the completion client."""

    question: str
    variant: PromptVariant
    tables: tuple[str, ...]
    system_prompt: str
    user_prompt: str


OUTPUT_CONTRACT = {
    "type": "object",
    "required": ["sql", "explanation", "confidence"],
    "properties": {
        "sql": {
            "type": "string",
            "description": "A single read-only SELECT query. No markdown.",
        },
        "explanation": {
            "type": "string",
            "description": "One or two sentences on how the query answers the question.",
        },
        "tables_used": {
            "type": "array",
            "items": {"type": "string"},
        },
        "confidence": {
            "type": "number",
            "minimum": 0.0,
            "maximum": 1.0,
            "description": "Estimated confidence in the interpretation.",
        },
    },
}

_VARIANT_FOCUS = {
    PromptVariant.PRIMARY: "",
    PromptVariant.AGGREGATION: (
        "Focus: answer with aggregate functions (COUNT, SUM, AVG, MIN, MAX) "
        "and a GROUP BY over the dimensions the question names.\n"
    ),
    PromptVariant.TREND: (
        "Focus: produce a time series. Bucket the relevant date column "
        "(for example with DATE_TRUNC) and ORDER BY the bucket.\n"
    ),
    PromptVariant.SIMPLIFIED: (
        "Focus: the question carries many details. Answer its core with the "
        "fewest joins and filters that still return the right rows.\n"
    ),
}

_FENCED_SQL = re.compile(r"```(?:sql)?\s*(.+?)```", re.IGNORECASE | re.DOTALL)
_BARE_SQL = re.compile(r"^\s*(SELECT|WITH)\b", re.IGNORECASE)


def _system_prompt(dialect: str) -> str:
    return (
        f"You are a {dialect} SQL generation assistant. "
        "Output JSON only and follow the response contract exactly. "
        "Generate one read-only SELECT query for human review."
    )


def render_schema(context: SchemaContext) -> str:
    if context.is_empty:
        return "- (no tables resolved; use only tables you are certain exist)"
    lines = []
    for table in context.relevant_tables:
        columns = ", ".join(
            f"{column.name} ({column.data_type})" if column.data_type else column.name
            for column in table.columns
        )
        lines.append(f"- {table.name}: {columns or '(columns unknown)'}")
    return "\n".join(lines)


def _render_analysis(analysis: SemanticAnalysis) -> str:
    entities = ", ".join(
        f"{entity.text} ({entity.type.value})" for entity in analysis.entities
    )
    return (
        f"- intent: {analysis.intent.value}\n"
        f"- entities: {entities or '(none)'}\n"
        f"- keywords: {', '.join(analysis.keywords) or '(none)'}"
    )


def _render_plan(decomposition: QueryDecomposition | None) -> str:
    if decomposition is None or decomposition.is_fallback:
        return ""
    steps = "\n".join(
        f"{position}. [{component.type.value}] {component.query}"
        for position, component in enumerate(decomposition.ordered_components(), start=1)
    )
    return f"Query plan:\n{steps}\n\n"


def build_candidate_prompt(
    analysis: SemanticAnalysis,
    context: SchemaContext,
    decomposition: QueryDecomposition | None = None,
    *,
    variant: PromptVariant = PromptVariant.PRIMARY,
    dialect: str = "postgres",
) -> PromptBundle:
    """Build the prompt for one SQL candidate."""
    question = analysis.query.strip()
    if not question:
        raise PromptBuildError("Question cannot be empty.")
    if variant is PromptVariant.CORRECTION:
        raise PromptBuildError("Use build_correction_prompt for correction requests.")

    joins = "\n".join(f"- {join}" for join in context.suggested_joins) or "- (none)"
    user_prompt = (
        f"Task: Convert the natural language question into a single {dialect} "
        "SELECT query.\n"
        "Constraints:\n"
        "- Use only tables and columns from the schema below.\n"
        "- SELECT-only. Do not emit INSERT/UPDATE/DELETE/DDL.\n"
        "- Prefer explicit column lists and table aliases. Avoid SELECT *.\n"
        "- Filter large tables with a WHERE clause when the question implies a range.\n"
        f"{_VARIANT_FOCUS[variant]}\n"
        f"Question:\n{question}\n\n"
        f"Semantic analysis:\n{_render_analysis(analysis)}\n\n"
        f"Relevant tables:\n{render_schema(context)}\n\n"
        f"Suggested joins:\n{joins}\n\n"
        f"{_render_plan(decomposition)}"
        f"Response contract (JSON Schema-like):\n"
        f"{json.dumps(OUTPUT_CONTRACT, indent=2, sort_keys=True)}\n\n"
        "Return only a JSON object matching the contract."
    )
    return PromptBundle(
        question=question,
        variant=variant,
        tables=context.table_names,
        system_prompt=_system_prompt(dialect),
        user_prompt=user_prompt,
    )


def build_correction_prompt(
    question: str,
    sql: str,
    issues: tuple[str, ...],
    context: SchemaContext,
    *,
    dialect: str = "postgres",
) -> PromptBundle:
    """Build the single structured prompt used to repair a failing query."""
    if not sql.strip():
        raise PromptBuildError("Cannot build a correction prompt for empty SQL.")
    issue_lines = "\n".join(f"- {issue}" for issue in issues) or "- (no itemized issues)"
    user_prompt = (
        "The SQL query below was generated for a business question but failed "
        "validation. Rewrite it.\n\n"
        f"Original business question:\n{question.strip()}\n\n"
        f"Generated SQL:\n{sql.strip()}\n\n"
        f"Validation issues:\n{issue_lines}\n\n"
        f"Relevant tables:\n{render_schema(context)}\n\n"
        "The corrected query must:\n"
        "1. Address every validation issue.\n"
        "2. Keep the original business intent.\n"
        "3. Use only the tables and columns listed above.\n"
        "4. Stay a single read-only SELECT statement.\n\n"
        f"Response contract (JSON Schema-like):\n"
        f"{json.dumps(OUTPUT_CONTRACT, indent=2, sort_keys=True)}\n\n"
        "Return only a JSON object matching the contract."
    )
    return PromptBundle(
        question=question.strip(),
        variant=PromptVariant.CORRECTION,
        tables=context.table_names,
        system_prompt=_system_prompt(dialect),
        user_prompt=user_prompt,
    )


def parse_sql_response(text: str) -> SQLGenerationPayload | None:
    """Read a completion as the JSON contract, falling back to raw SQL.

    Returns ``None`` when the completion carries no usable SQL.
    """
    content = (text or "").strip()
    if not content:
        return None

    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict):
        if "sql" not in data and isinstance(data.get("query"), str):
            data = {**data, "sql": data["query"]}
        try:
            return SQLGenerationPayload.model_validate(data)
        except ValidationError:
            return None

    fenced = _FENCED_SQL.search(content)
    if fenced:
        content = fenced.group(1).strip()
    if _BARE_SQL.match(content):
        try:
            return SQLGenerationPayload(sql=content)
        except ValidationError:
            return None
    return None
