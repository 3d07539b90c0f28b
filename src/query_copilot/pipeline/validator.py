"""Four-stage SQL validation combined into one weighted score.

Stages run in a fixed order (security, semantic alignment, schema
compliance, business logic) and every stage always runs. A stage that
raises is replaced by a neutral fallback result so infrastructure errors
never block a query; the security fallback is the built-in keyword screen,
so destructive statements stay blocked even then.
"""

from __future__ import annotations

import inspect
import logging
import re
from dataclasses import replace
from typing import Awaitable, Callable, TypeVar

from query_copilot.models.analysis import SchemaContext
from query_copilot.models.validation import (
    BusinessLogicResult,
    ColumnValidation,
    JoinValidation,
    SchemaComplianceResult,
    SecurityResult,
    SemanticAlignmentResult,
    TableValidation,
    ValidationResult,
    ValidationStage,
    ValidationVerdict,
)
from query_copilot.pipeline.collaborators import SecurityValidator
from query_copilot.schema.models import SchemaSnapshot
from query_copilot.sql.extract import (
    alias_map,
    code_only,
    cte_names,
    extract_tables,
    join_conditions,
    qualified_columns,
    unquote_identifier,
)
from query_copilot.sql.rules import (
    DELETE_STATEMENT,
    SELECT_STAR,
    SENSITIVE_FIELDS,
    TABLE_NAME_RULE,
    UPDATE_STATEMENT,
    WHERE_CLAUSE,
)
from query_copilot.sql.security import SqlSecurityValidator, screen_sql

logger = logging.getLogger(__name__)

T = TypeVar("T")

SECURITY_WEIGHT = 0.4
SEMANTIC_WEIGHT = 0.3
SCHEMA_WEIGHT = 0.2
BUSINESS_WEIGHT = 0.1

DEFAULT_VALIDITY_THRESHOLD = 0.6
DEFAULT_CORRECTION_FLOOR = 0.4
NEUTRAL_SCORE = 0.5

SEMANTIC_PAIR_SCORE = 0.2
SEMANTIC_VALID_SCORE = 0.4
BUSINESS_VIOLATION_PENALTY = 0.2

# (NL keyword, NL pattern, SQL construct, SQL pattern)
ALIGNMENT_PAIRS: tuple[tuple[str, re.Pattern[str], str, re.Pattern[str]], ...] = (
    (
        "top",
        re.compile(r"\btop\b", re.IGNORECASE),
        "TOP/LIMIT",
        re.compile(r"\b(?:TOP|LIMIT)\b|\bFETCH\s+FIRST\b", re.IGNORECASE),
    ),
    ("count", re.compile(r"\bcount\b", re.IGNORECASE), "COUNT", re.compile(r"\bCOUNT\s*\(", re.IGNORECASE)),
    ("sum", re.compile(r"\bsum\b", re.IGNORECASE), "SUM", re.compile(r"\bSUM\s*\(", re.IGNORECASE)),
    (
        "group",
        re.compile(r"\bgroup(?:ed|ing)?\b", re.IGNORECASE),
        "GROUP BY",
        re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE),
    ),
    (
        "order",
        re.compile(r"\border(?:ed)?\b", re.IGNORECASE),
        "ORDER BY",
        re.compile(r"\bORDER\s+BY\b", re.IGNORECASE),
    ),
)

_MISSING = object()


def combine_scores(security: float, semantic: float, schema: float, business: float) -> float:
    """Weighted overall score, each input clamped to [0, 1]."""
    parts = (
        (SECURITY_WEIGHT, security),
        (SEMANTIC_WEIGHT, semantic),
        (SCHEMA_WEIGHT, schema),
        (BUSINESS_WEIGHT, business),
    )
    total = sum(weight * min(1.0, max(0.0, score)) for weight, score in parts)
    return round(min(1.0, max(0.0, total)), 4)


def _known_tables(
    context: SchemaContext | None, schema: SchemaSnapshot | None
) -> dict[str, frozenset[str] | None] | None:
    """Lower-cased table names and FQNs mapped to their column names.

    ``None`` means no schema is known and only the naming rule applies.
    """
    known: dict[str, frozenset[str] | None] = {}
    if schema is not None and schema.tables:
        for table in schema.tables:
            columns = frozenset(name.lower() for name in table.column_names) or None
            known[table.fqn.lower()] = columns
            known.setdefault(table.name.lower(), columns)
    elif context is not None and not context.is_empty:
        for relevant in context.relevant_tables:
            columns = frozenset(name.lower() for name in relevant.column_names) or None
            known[relevant.fqn.lower()] = columns
            known.setdefault(relevant.name.lower(), columns)
    return known or None


def _lookup(known: dict[str, frozenset[str] | None], table: str) -> object:
    parts = [unquote_identifier(part).lower() for part in unquote_identifier(table).split(".")]
    for key in (".".join(parts), parts[-1]):
        if key in known:
            return known[key]
    return _MISSING


class LayeredValidator:
    """Security, semantic, schema and business checks over one SQL text."""

    def __init__(
        self,
        security_validator: SecurityValidator | None = None,
        *,
        validity_threshold: float = DEFAULT_VALIDITY_THRESHOLD,
        correction_floor: float = DEFAULT_CORRECTION_FLOOR,
        large_tables: tuple[str, ...] = (),
        dialect: str = "postgres",
    ) -> None:
        self._security = security_validator or SqlSecurityValidator(dialect=dialect)
        self.validity_threshold = validity_threshold
        self.correction_floor = correction_floor
        self._large_tables = frozenset(name.lower() for name in large_tables)

    async def validate(
        self,
        sql: str,
        original_query: str,
        context: SchemaContext | None = None,
        user_id: str | None = None,
        *,
        schema: SchemaSnapshot | None = None,
    ) -> ValidationResult:
        stages = [ValidationStage.UNVALIDATED]

        security = await self._guarded(
            "security",
            lambda: self._check_security(sql),
            lambda: self._security_fallback(sql),
        )
        stages.append(ValidationStage.SECURITY_CHECKED)

        semantic = await self._guarded(
            "semantic_alignment",
            lambda: self._check_semantic(sql, original_query),
            lambda: SemanticAlignmentResult(
                score=NEUTRAL_SCORE,
                reason="Semantic alignment check unavailable; neutral score applied",
                is_valid=True,
                fallback=True,
            ),
        )
        stages.append(ValidationStage.SEMANTIC_CHECKED)

        schema_result = await self._guarded(
            "schema_compliance",
            lambda: self._check_schema(sql, context, schema),
            lambda: SchemaComplianceResult(
                table_validation=TableValidation(),
                column_validation=ColumnValidation(),
                join_validation=JoinValidation(),
                compliance_score=NEUTRAL_SCORE,
                fallback=True,
            ),
        )
        stages.append(ValidationStage.SCHEMA_CHECKED)

        business = await self._guarded(
            "business_logic",
            lambda: self._check_business(sql),
            lambda: BusinessLogicResult(
                violations=(),
                recommendations=(),
                compliance_score=NEUTRAL_SCORE,
                fallback=True,
            ),
        )
        stages.append(ValidationStage.BUSINESS_CHECKED)

        overall = combine_scores(
            security.score,
            semantic.score,
            schema_result.compliance_score,
            business.compliance_score,
        )
        is_valid, can_self_correct, verdict = self.verdict_for(overall, security.is_valid)
        stages.append(ValidationStage.SCORED)

        result = ValidationResult(
            sql=sql,
            original_query=original_query,
            security=security,
            semantic_alignment=semantic,
            schema_compliance=schema_result,
            business_logic=business,
            overall_score=overall,
            is_valid=is_valid,
            can_self_correct=can_self_correct,
            verdict=verdict,
            completed_stages=tuple(stages),
        )
        logger.debug(
            "Validated SQL for user %s: score=%.4f verdict=%s degraded=%s",
            user_id or "-",
            overall,
            verdict.value,
            ",".join(result.degraded_stages) or "none",
        )
        return result

    def verdict_for(
        self, overall: float, security_passed: bool
    ) -> tuple[bool, bool, ValidationVerdict]:
        is_valid = overall >= self.validity_threshold and security_passed
        can_self_correct = self.correction_floor <= overall < self.validity_threshold
        if is_valid:
            verdict = ValidationVerdict.VALID
        elif can_self_correct:
            verdict = ValidationVerdict.INVALID_CORRECTABLE
        else:
            verdict = ValidationVerdict.INVALID_TERMINAL
        return is_valid, can_self_correct, verdict

    @staticmethod
    async def _guarded(
        stage: str,
        check: Callable[[], T | Awaitable[T]],
        fallback: Callable[[], T],
    ) -> T:
        try:
            outcome = check()
            if inspect.isawaitable(outcome):
                outcome = await outcome
            return outcome
        except Exception:
            logger.warning("Validation stage %s failed; using fallback", stage, exc_info=True)
            return fallback()

    async def _check_security(self, sql: str) -> SecurityResult:
        return await self._security.validate(sql)

    @staticmethod
    def _security_fallback(sql: str) -> SecurityResult:
        try:
            screened = screen_sql(sql)
        except Exception:
            logger.error("Built-in security screen failed; blocking query", exc_info=True)
            return SecurityResult(
                is_valid=False,
                violations=("Security check unavailable.",),
                fallback=True,
            )
        return replace(screened, fallback=True)

    @staticmethod
    def _check_semantic(sql: str, original_query: str) -> SemanticAlignmentResult:
        code = code_only(sql)
        matched: list[str] = []
        missing: list[str] = []
        for keyword, nl_pattern, construct, sql_pattern in ALIGNMENT_PAIRS:
            if not nl_pattern.search(original_query or ""):
                continue
            pair = f"{keyword}->{construct}"
            if sql_pattern.search(code):
                matched.append(pair)
            else:
                missing.append(pair)

        score = min(1.0, SEMANTIC_PAIR_SCORE * len(matched))
        reason = f"Basic semantic alignment score: {score:.2f}"
        if matched:
            reason += f"; matched {', '.join(matched)}"
        if missing:
            reason += f"; missing {', '.join(missing)}"
        return SemanticAlignmentResult(
            score=score,
            reason=reason,
            is_valid=score >= SEMANTIC_VALID_SCORE,
            matched=tuple(matched),
            missing=tuple(missing),
        )

    @staticmethod
    def _check_schema(
        sql: str, context: SchemaContext | None, schema: SchemaSnapshot | None
    ) -> SchemaComplianceResult:
        known = _known_tables(context, schema)
        tables = extract_tables(sql)
        if not tables:
            return SchemaComplianceResult(
                table_validation=TableValidation(issues=("No table references found in SQL.",)),
                column_validation=ColumnValidation(),
                join_validation=JoinValidation(),
                compliance_score=0.0,
            )

        valid: list[str] = []
        invalid: list[str] = []
        table_issues: list[str] = []
        for table in tables:
            parts = [unquote_identifier(part) for part in unquote_identifier(table).split(".")]
            if not all(TABLE_NAME_RULE.match(part) for part in parts):
                invalid.append(table)
                table_issues.append(f"Table '{table}' violates the naming convention.")
            elif known is not None and _lookup(known, table) is _MISSING:
                invalid.append(table)
                table_issues.append(f"Table '{table}' is not present in the schema.")
            else:
                valid.append(table)

        aliases = alias_map(sql)
        referenced: list[str] = []
        unknown: list[str] = []
        column_issues: list[str] = []
        if known is not None:
            for qualifier, column in qualified_columns(sql):
                target = aliases.get(qualifier.lower())
                if target is None:
                    continue
                referenced.append(f"{qualifier}.{column}")
                columns = _lookup(known, target)
                if isinstance(columns, frozenset) and column.lower() not in columns:
                    unknown.append(f"{qualifier}.{column}")
                    column_issues.append(
                        f"Column '{qualifier}.{column}' is not present in '{target}'."
                    )

        ctes = cte_names(sql)
        conditions = join_conditions(sql)
        join_issues: list[str] = []
        for condition in conditions:
            for qualifier, _column in qualified_columns(condition):
                lowered = qualifier.lower()
                if lowered not in aliases and lowered not in ctes:
                    join_issues.append(
                        f"Join condition '{condition}' references unknown alias '{qualifier}'."
                    )

        return SchemaComplianceResult(
            table_validation=TableValidation(
                referenced=tuple(tables),
                valid=tuple(valid),
                invalid=tuple(invalid),
                issues=tuple(table_issues),
            ),
            column_validation=ColumnValidation(
                referenced=tuple(referenced),
                unknown=tuple(unknown),
                issues=tuple(column_issues),
            ),
            join_validation=JoinValidation(
                conditions=tuple(conditions),
                issues=tuple(dict.fromkeys(join_issues)),
            ),
            compliance_score=len(valid) / len(tables),
        )

    def _check_business(self, sql: str) -> BusinessLogicResult:
        code = code_only(sql)
        violations: list[str] = []
        recommendations: list[str] = []
        has_where = bool(WHERE_CLAUSE.search(code))

        if SELECT_STAR.search(code):
            violations.append("SELECT * may impact performance")
            recommendations.append("Select only the columns the question needs.")
        if DELETE_STATEMENT.search(code) and not has_where:
            violations.append("DELETE without WHERE clause")
            recommendations.append("Add a WHERE clause that limits the affected rows.")
        if UPDATE_STATEMENT.search(code) and not has_where:
            violations.append("UPDATE without WHERE clause")
            recommendations.append("Add a WHERE clause that limits the affected rows.")
        if self._large_tables and not has_where:
            for table in extract_tables(sql):
                bare = unquote_identifier(table).split(".")[-1].lower()
                if bare in self._large_tables:
                    violations.append(f"Query on large table '{table}' without WHERE clause")
                    recommendations.append("Filter large tables by date range or key.")
        for field in sorted({match.group(0) for match in SENSITIVE_FIELDS.finditer(code)}):
            violations.append(f"Query references sensitive field '{field}'")
            recommendations.append("Exclude or mask sensitive columns.")

        return BusinessLogicResult(
            violations=tuple(violations),
            recommendations=tuple(dict.fromkeys(recommendations)),
            compliance_score=max(0.0, 1.0 - BUSINESS_VIOLATION_PENALTY * len(violations)),
        )
