"""Narrow contracts the pipeline consumes."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from query_copilot.models.analysis import SchemaContext, SemanticAnalysis
from query_copilot.models.validation import SecurityResult
from query_copilot.schema.models import SchemaSnapshot


@runtime_checkable
class SemanticAnalyzer(Protocol):
    async def analyze(self, text: str) -> SemanticAnalysis:
        """Extract entities and intent; must not raise on empty input."""


@runtime_checkable
class SchemaContextResolver(Protocol):
    async def resolve(self, question: str, schema: SchemaSnapshot) -> SchemaContext:
        """Return the relevant subset of ``schema``; may be empty."""


@runtime_checkable
class SchemaProvider(Protocol):
    async def get_schema(self) -> SchemaSnapshot:
        ...


@runtime_checkable
class SecurityValidator(Protocol):
    async def validate(self, sql: str) -> SecurityResult:
        """Pass/fail safety verdict; destructive statements must never pass."""
