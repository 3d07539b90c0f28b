"""SQL safety checks: destructive statements and injection patterns."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from query_copilot.models.validation import SecurityResult
from query_copilot.sql.extract import code_only, has_comments, strip_comments
from query_copilot.sql.parser import SQLParseError, count_statements, parse_sql
from query_copilot.sql.rules import (
    ALLOWED_QUERY_ROOT_TYPES,
    DESTRUCTIVE_KEYWORDS,
    FORBIDDEN_STATEMENT_TYPES,
    INJECTION_PATTERNS,
)

logger = logging.getLogger(__name__)


def screen_sql(sql: str) -> SecurityResult:
    """Keyword-level screen that needs no parser.

    Used on its own when the full validator is unavailable, so it must never
    let a destructive statement through.
    """
    if not sql or not sql.strip():
        return SecurityResult(is_valid=False, violations=("SQL is empty.",))

    violations: list[str] = []
    warnings: list[str] = []
    code = code_only(sql)

    keywords = sorted({match.upper() for match in DESTRUCTIVE_KEYWORDS.findall(code)})
    if keywords:
        violations.append(f"Forbidden statement keyword(s): {', '.join(keywords)}")

    if ";" in code.strip().rstrip(";"):
        violations.append("Multiple statements are not allowed.")

    uncommented = strip_comments(sql)
    for pattern, label in INJECTION_PATTERNS:
        if pattern.search(uncommented):
            violations.append(f"Injection pattern detected: {label}")

    if has_comments(sql):
        warnings.append("SQL comments detected; they are ignored by validation.")

    return SecurityResult(
        is_valid=not violations,
        violations=tuple(dict.fromkeys(violations)),
        warnings=tuple(warnings),
    )


@dataclass(frozen=True)
class SqlSecurityValidator:
    """Default security collaborator: keyword screen plus a SQLGlot walk."""

    dialect: str = "postgres"

    async def validate(self, sql: str) -> SecurityResult:
        screened = screen_sql(sql)
        if not sql or not sql.strip():
            return screened

        violations = list(screened.violations)
        warnings = list(screened.warnings)
        try:
            expression = parse_sql(sql, dialect=self.dialect)
            statements = count_statements(sql, dialect=self.dialect)
        except SQLParseError as exc:
            logger.debug("Security parse skipped: %s", exc)
            warnings.append(f"SQL could not be parsed ({exc}); keyword checks only.")
        else:
            if statements > 1:
                violations.append("Multiple statements are not allowed.")
            if not isinstance(expression, ALLOWED_QUERY_ROOT_TYPES):
                violations.append("Only SELECT query forms are allowed.")
            forbidden = sorted(
                {
                    node.key.upper()
                    for forbidden_type in FORBIDDEN_STATEMENT_TYPES
                    for node in expression.find_all(forbidden_type)
                }
            )
            if forbidden:
                violations.append(
                    "Forbidden SQL statement(s) detected: " + ", ".join(forbidden)
                )

        return SecurityResult(
            is_valid=not violations,
            violations=tuple(dict.fromkeys(violations)),
            warnings=tuple(dict.fromkeys(warnings)),
        )
