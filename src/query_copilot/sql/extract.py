"""Regex-based extraction of identifiers from SQL text.

These helpers never fail on malformed SQL; they return whatever they can
recognise so the validator can score partially broken candidates.
"""

from __future__ import annotations

import re

_STRING_LITERAL = re.compile(r"'(?:[^']|'')*'")
_LINE_COMMENT = re.compile(r"--[^\n]*")
_BLOCK_COMMENT = re.compile(r"/\*.*?\*/", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")
# FROM inside these calls is not a table reference.
_FROM_FUNCTIONS = re.compile(
    r"\b(?:EXTRACT|SUBSTRING|TRIM|OVERLAY|POSITION)\s*\([^()]*\)", re.IGNORECASE
)

_TABLE_REF = re.compile(
    r"\b(?:FROM|JOIN)\s+([^\s,;()]+)(?:\s+(?:AS\s+)?([A-Za-z_][A-Za-z0-9_]*))?",
    re.IGNORECASE,
)
# Further entries of a comma-separated FROM list.
_LISTED_TABLE = re.compile(
    r"\s*,\s*([^\s,;()]+)(?:\s+(?:AS\s+)?([A-Za-z_][A-Za-z0-9_]*))?",
    re.IGNORECASE,
)
_CTE_NAME = re.compile(
    r"(?:\bWITH\s+(?:RECURSIVE\s+)?|,\s*)([A-Za-z_][A-Za-z0-9_]*)\s+AS\s*\(",
    re.IGNORECASE,
)
_QUALIFIED_COLUMN = re.compile(
    r"\b([A-Za-z_][A-Za-z0-9_]*)\.(\"?[A-Za-z_][A-Za-z0-9_]*\"?)(?!\s*\()"
)
_JOIN_CONDITION = re.compile(
    r"\bON\s+(.+?)(?=\b(?:WHERE|GROUP|ORDER|LIMIT|HAVING|UNION|INNER|LEFT|RIGHT|FULL|CROSS|JOIN)\b|\)|$)",
    re.IGNORECASE | re.DOTALL,
)

_ALIAS_STOPWORDS = {
    "where", "join", "inner", "left", "right", "full", "cross", "outer", "on",
    "group", "order", "limit", "having", "union", "using", "natural", "offset",
    "window", "fetch", "lateral", "as",
}


def strip_comments(sql: str) -> str:
    return _LINE_COMMENT.sub(" ", _BLOCK_COMMENT.sub(" ", sql))


def strip_literals(sql: str) -> str:
    """Blank out quoted string literals so keywords inside them are ignored."""
    return _STRING_LITERAL.sub("''", sql)


def code_only(sql: str) -> str:
    return strip_comments(strip_literals(sql))


def has_comments(sql: str) -> bool:
    stripped = strip_literals(sql)
    return bool(_LINE_COMMENT.search(stripped) or _BLOCK_COMMENT.search(stripped))


def normalize_sql(sql: str) -> str:
    """Comparable form of a statement: no comments, single spaces, lower case."""
    collapsed = _WHITESPACE.sub(" ", strip_comments(sql)).strip().rstrip(";").strip()
    return collapsed.lower()


def unquote_identifier(name: str) -> str:
    return name.strip().strip('"`[]')


def cte_names(sql: str) -> set[str]:
    return {match.group(1).lower() for match in _CTE_NAME.finditer(code_only(sql))}


def table_references(sql: str) -> list[tuple[str, str | None]]:
    """(table, alias) pairs from FROM/JOIN clauses, CTE names excluded."""
    code = _FROM_FUNCTIONS.sub(" 0 ", code_only(sql))
    ctes = cte_names(sql)
    refs: list[tuple[str, str | None]] = []
    for clause in _TABLE_REF.finditer(code):
        entry = clause
        while entry is not None:
            table, alias = entry.group(1), entry.group(2)
            if alias and alias.lower() in _ALIAS_STOPWORDS:
                # A clause keyword ends the table list.
                alias, entry = None, None
            else:
                entry = _LISTED_TABLE.match(code, entry.end())
            if unquote_identifier(table).lower() not in ctes:
                refs.append((table, alias))
    return refs


def extract_tables(sql: str) -> list[str]:
    """Distinct table references in first-seen order."""
    seen: set[str] = set()
    tables: list[str] = []
    for table, _alias in table_references(sql):
        key = table.lower()
        if key not in seen:
            seen.add(key)
            tables.append(table)
    return tables


def alias_map(sql: str) -> dict[str, str]:
    """Lower-cased alias (or bare table name) -> referenced table text."""
    mapping: dict[str, str] = {}
    for table, alias in table_references(sql):
        bare = unquote_identifier(table).split(".")[-1]
        mapping.setdefault(bare.lower(), table)
        if alias:
            mapping[alias.lower()] = table
    return mapping


def qualified_columns(sql: str) -> list[tuple[str, str]]:
    """(qualifier, column) pairs such as ``p.PlayerID``."""
    code = code_only(sql)
    pairs: list[tuple[str, str]] = []
    for match in _QUALIFIED_COLUMN.finditer(code):
        qualifier, column = match.group(1), unquote_identifier(match.group(2))
        if (qualifier, column) not in pairs:
            pairs.append((qualifier, column))
    return pairs


def join_conditions(sql: str) -> list[str]:
    code = code_only(sql)
    return [
        _WHITESPACE.sub(" ", match.group(1)).strip()
        for match in _JOIN_CONDITION.finditer(code)
    ]
