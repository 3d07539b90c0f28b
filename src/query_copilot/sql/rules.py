"""SQL safety and business rules shared by the validators."""

from __future__ import annotations

import re

from sqlglot import exp


def _optional_exp(name: str) -> type[exp.Expression] | None:
    candidate = getattr(exp, name, None)
    if isinstance(candidate, type) and issubclass(candidate, exp.Expression):
        return candidate
    return None


_FORBIDDEN_NAMES = (
    "Insert",
    "Update",
    "Delete",
    "Merge",
    "Drop",
    "Alter",
    "Create",
    # sqlglot renamed this node in newer versions.
    "Truncate",
    "TruncateTable",
    "Grant",
    "Revoke",
    "Command",
)

FORBIDDEN_STATEMENT_TYPES: tuple[type[exp.Expression], ...] = tuple(
    statement_type
    for statement_type in (_optional_exp(name) for name in _FORBIDDEN_NAMES)
    if statement_type is not None
)

ALLOWED_QUERY_ROOT_TYPES: tuple[type[exp.Expression], ...] = (
    exp.Query,
    exp.Select,
    exp.Union,
    exp.Intersect,
    exp.Except,
)

# Matched against SQL with string literals and comments removed.
DESTRUCTIVE_KEYWORDS = re.compile(
    r"\b(INSERT|UPDATE|DELETE|MERGE|ALTER|DROP|CREATE|TRUNCATE|GRANT|REVOKE|EXEC|EXECUTE|CALL)\b",
    re.IGNORECASE,
)

INJECTION_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\bxp_cmdshell\b", re.IGNORECASE), "xp_cmdshell call"),
    (re.compile(r"\bsp_executesql\b", re.IGNORECASE), "dynamic SQL execution"),
    (re.compile(r"\bwaitfor\s+delay\b", re.IGNORECASE), "time-based delay"),
    (re.compile(r"\bpg_sleep\s*\(", re.IGNORECASE), "time-based delay"),
    (re.compile(r"\b(?:or|and)\s+(\d+)\s*=\s*\1\b", re.IGNORECASE), "tautology"),
    (re.compile(r"\b(?:or|and)\s+'([^']*)'\s*=\s*'\1'", re.IGNORECASE), "tautology"),
    (re.compile(r"\binto\s+(?:out|dump)file\b", re.IGNORECASE), "file write"),
    (re.compile(r"\bunion\s+(?:all\s+)?select\s+null\b", re.IGNORECASE), "union probe"),
)

SENSITIVE_FIELDS = re.compile(
    r"\b\w*(password|passwd|ssn|credit_card|card_number)\w*\b",
    re.IGNORECASE,
)

TABLE_NAME_RULE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SELECT_STAR = re.compile(r"\bSELECT\s+(?:DISTINCT\s+|TOP\s+\d+\s+)?\*", re.IGNORECASE)
WHERE_CLAUSE = re.compile(r"\bWHERE\b", re.IGNORECASE)
DELETE_STATEMENT = re.compile(r"\bDELETE\s+FROM\b", re.IGNORECASE)
UPDATE_STATEMENT = re.compile(r"\bUPDATE\s+\S+\s+SET\b", re.IGNORECASE)
