"""Typed per-dimension validation results and their composite."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ValidationStage(str, Enum):
    UNVALIDATED = "unvalidated"
    SECURITY_CHECKED = "security_checked"
    SEMANTIC_CHECKED = "semantic_checked"
    SCHEMA_CHECKED = "schema_checked"
    BUSINESS_CHECKED = "business_checked"
    SCORED = "scored"


class ValidationVerdict(str, Enum):
    VALID = "valid"
    INVALID_CORRECTABLE = "invalid_correctable"
    INVALID_TERMINAL = "invalid_terminal"


@dataclass(frozen=True)
class SecurityResult:
    is_valid: bool
    violations: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    fallback: bool = False

    @property
    def score(self) -> float:
        return 1.0 if self.is_valid else 0.0


@dataclass(frozen=True)
class SemanticAlignmentResult:
    score: float
    reason: str
    is_valid: bool
    matched: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    fallback: bool = False


@dataclass(frozen=True)
class TableValidation:
    referenced: tuple[str, ...] = ()
    valid: tuple[str, ...] = ()
    invalid: tuple[str, ...] = ()
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class ColumnValidation:
    referenced: tuple[str, ...] = ()
    unknown: tuple[str, ...] = ()
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class JoinValidation:
    conditions: tuple[str, ...] = ()
    issues: tuple[str, ...] = ()


@dataclass(frozen=True)
class SchemaComplianceResult:
    table_validation: TableValidation
    column_validation: ColumnValidation
    join_validation: JoinValidation
    compliance_score: float
    fallback: bool = False

    @property
    def issues(self) -> tuple[str, ...]:
        return (
            self.table_validation.issues
            + self.column_validation.issues
            + self.join_validation.issues
        )

    @property
    def is_compliant(self) -> bool:
        return self.fallback or (self.compliance_score >= 1.0 and not self.issues)


@dataclass(frozen=True)
class BusinessLogicResult:
    violations: tuple[str, ...]
    recommendations: tuple[str, ...]
    compliance_score: float
    fallback: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.violations


@dataclass(frozen=True)
class ValidationResult:
    """Composite outcome of the four validation dimensions for one SQL text.

    Instances are never mutated. A successful self-correction produces a new
    result with ``is_self_corrected`` set and ``original_sql`` pointing at the
    SQL that was replaced.
    """

    sql: str
    original_query: str
    security: SecurityResult
    semantic_alignment: SemanticAlignmentResult
    schema_compliance: SchemaComplianceResult
    business_logic: BusinessLogicResult
    overall_score: float
    is_valid: bool
    can_self_correct: bool
    verdict: ValidationVerdict
    completed_stages: tuple[ValidationStage, ...] = ()
    is_self_corrected: bool = False
    original_sql: str | None = None
    correction_reason: str | None = None

    @property
    def issues(self) -> tuple[str, ...]:
        """Itemized reasons for every failed dimension."""
        items: list[str] = []
        if not self.security.is_valid:
            items.extend(f"Security: {item}" for item in self.security.violations)
            if not self.security.violations:
                items.append("Security: query failed the safety check")
        if not self.semantic_alignment.is_valid:
            items.append(f"Semantic alignment: {self.semantic_alignment.reason}")
        items.extend(
            f"Schema compliance: {item}" for item in self.schema_compliance.issues
        )
        items.extend(
            f"Business logic: {item}" for item in self.business_logic.violations
        )
        return tuple(items)

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.security.warnings + self.business_logic.violations

    @property
    def degraded_stages(self) -> tuple[str, ...]:
        stages = (
            ("security", self.security.fallback),
            ("semantic_alignment", self.semantic_alignment.fallback),
            ("schema_compliance", self.schema_compliance.fallback),
            ("business_logic", self.business_logic.fallback),
        )
        return tuple(name for name, degraded in stages if degraded)


@dataclass(frozen=True)
class SelfCorrectionAttempt:
    original_sql: str
    corrected_sql: str
    correction_reason: str
    improvement_score: float
    was_successful: bool
    issues_addressed: tuple[str, ...] = ()
    explanation: str = ""
