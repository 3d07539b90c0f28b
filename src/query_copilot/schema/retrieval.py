"""Heuristic schema retrieval that narrows the full schema to a request."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from query_copilot.models.analysis import ColumnRef, RelevantTable, SchemaContext
from query_copilot.schema.models import SchemaSnapshot, TableInfo

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")
_NOISE_TOKENS = {"tbl", "vw", "dim", "fact"}


class RetrievalError(RuntimeError):
    """Raised when retrieval cannot proceed safely."""


@dataclass(frozen=True)
class RetrievedTable:
    """Single retrieved table with score and match details."""

    table: TableInfo
    score: float
    reasons: tuple[str, ...]
    first_mention: int
    expanded_by_fk: bool = False

    @property
    def fqn(self) -> str:
        return self.table.fqn


@dataclass(frozen=True)
class RetrievalResult:
    question: str
    selected_tables: tuple[RetrievedTable, ...] = ()

    @property
    def tables_used(self) -> list[str]:
        return [item.fqn for item in self.selected_tables]


def _singular(token: str) -> str:
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(value: str) -> set[str]:
    """Lower-case word tokens, split on underscores too, folded to singular."""
    return {
        _singular(token)
        for token in _TOKEN_SPLIT.split(value.lower())
        if token and token not in _NOISE_TOKENS
    }


def _split_identifier(name: str) -> str:
    # PlayerID -> Player ID, dailyActions -> daily Actions
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", " ", name)


def identifier_tokens(name: str) -> set[str]:
    return tokenize(_split_identifier(name))


def _first_mention(question: str, tokens: set[str]) -> int:
    positions = [
        match.start()
        for match in re.finditer(r"[a-z0-9]+", question.lower())
        if _singular(match.group()) in tokens
    ]
    return min(positions) if positions else len(question)


def _fk_adjacency(snapshot: SchemaSnapshot) -> dict[str, set[str]]:
    graph: dict[str, set[str]] = {}
    for table in snapshot.tables:
        graph.setdefault(table.fqn, set())
        for fk in table.foreign_keys:
            graph[table.fqn].add(fk.ref_fqn)
            graph.setdefault(fk.ref_fqn, set()).add(table.fqn)
    return graph


def retrieve_relevant_tables(
    question: str,
    snapshot: SchemaSnapshot,
    *,
    top_k: int = 6,
    min_score: float = 1.0,
    fk_expand: bool = True,
) -> RetrievalResult:
    """Rank tables by lexical overlap, then add 1-hop FK neighbours.

    Ties are broken by where the table is first mentioned in the question so
    the table the user leads with comes first.
    """
    if top_k < 1:
        raise RetrievalError("top_k must be >= 1.")

    question_tokens = tokenize(question)
    if not question_tokens:
        return RetrievalResult(question=question)

    scored: list[RetrievedTable] = []
    by_fqn: dict[str, TableInfo] = {}
    for table in snapshot.tables:
        by_fqn[table.fqn] = table
        name_hits = question_tokens & identifier_tokens(table.name)
        column_hits: set[str] = set()
        description_hits = question_tokens & tokenize(table.description or "")
        for column in table.columns:
            column_hits |= question_tokens & identifier_tokens(column.name)
            column_hits |= question_tokens & tokenize(column.description or "")

        score = 0.0
        reasons: list[str] = []
        if name_hits:
            score += 4.0 + 0.5 * len(name_hits)
            reasons.append(f"table_name_match={','.join(sorted(name_hits))}")
        if column_hits:
            score += min(3.5, 1.5 + 0.4 * len(column_hits))
            reasons.append(f"column_match={','.join(sorted(column_hits))}")
        if description_hits:
            score += 1.0 + 0.1 * len(description_hits)
            reasons.append(f"description_match={','.join(sorted(description_hits))}")

        if score >= min_score:
            scored.append(
                RetrievedTable(
                    table=table,
                    score=round(score, 3),
                    reasons=tuple(reasons),
                    first_mention=_first_mention(question, name_hits or column_hits),
                )
            )

    scored.sort(key=lambda item: (-item.score, item.first_mention, item.fqn))
    selected = scored[:top_k]
    seen = {item.fqn for item in selected}

    if fk_expand and selected and len(selected) < top_k:
        graph = _fk_adjacency(snapshot)
        for base in list(selected):
            for neighbour in sorted(graph.get(base.fqn, set())):
                if len(selected) >= top_k:
                    break
                if neighbour in seen or neighbour not in by_fqn:
                    continue
                selected.append(
                    RetrievedTable(
                        table=by_fqn[neighbour],
                        score=round(max(0.5, base.score - 1.0), 3),
                        reasons=(f"fk_neighbour_of={base.fqn}",),
                        first_mention=len(question),
                        expanded_by_fk=True,
                    )
                )
                seen.add(neighbour)

    return RetrievalResult(question=question, selected_tables=tuple(selected))


def suggest_joins(tables: list[TableInfo]) -> tuple[str, ...]:
    """Join conditions implied by foreign keys between the given tables."""
    names = {table.fqn for table in tables}
    joins: list[str] = []
    for table in tables:
        for fk in table.foreign_keys:
            if fk.ref_fqn not in names or fk.ref_fqn == table.fqn:
                continue
            pairs = " AND ".join(
                f"{table.name}.{src} = {fk.ref_table}.{dst}"
                for src, dst in zip(fk.columns, fk.ref_columns)
            )
            joins.append(pairs)
    return tuple(joins)


def to_schema_context(result: RetrievalResult) -> SchemaContext:
    tables = [item.table for item in result.selected_tables]
    return SchemaContext(
        relevant_tables=tuple(
            RelevantTable(
                name=table.name,
                schema=table.schema_name,
                description=table.description,
                columns=tuple(
                    ColumnRef(name=column.name, data_type=column.data_type)
                    for column in table.columns
                ),
            )
            for table in tables
        ),
        suggested_joins=suggest_joins(tables),
    )


@dataclass(frozen=True)
class LexicalSchemaResolver:
    """Default schema context resolver backed by ``retrieve_relevant_tables``."""

    top_k: int = 6
    fk_expand: bool = True

    async def resolve(self, question: str, schema: SchemaSnapshot) -> SchemaContext:
        result = retrieve_relevant_tables(
            question, schema, top_k=self.top_k, fk_expand=self.fk_expand
        )
        logger.debug("Resolved tables for %r: %s", question, result.tables_used)
        return to_schema_context(result)
