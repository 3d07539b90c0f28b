"""Single-shot self-correction for SQL in the correctable score band."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from query_copilot.llm.base import CompletionClient, CompletionOptions
from query_copilot.models.analysis import SchemaContext
from query_copilot.models.validation import SelfCorrectionAttempt, ValidationResult
from query_copilot.pipeline.validator import LayeredValidator
from query_copilot.prompts.sql_generation import (
    PromptBuildError,
    build_correction_prompt,
    parse_sql_response,
)
from query_copilot.schema.models import SchemaSnapshot
from query_copilot.sql.extract import normalize_sql

logger = logging.getLogger(__name__)

MAX_CORRECTION_DEPTH = 1
CORRECTION_REASON = "Improved validation score through self-correction"


@dataclass(frozen=True)
class CorrectionOutcome:
    """Result to use after correction, plus the attempt record if one was made."""

    result: ValidationResult
    attempt: SelfCorrectionAttempt | None = None

    @property
    def corrected(self) -> bool:
        return self.attempt is not None and self.attempt.was_successful


class SelfCorrector:
    """Request one revision, re-validate it and keep it only if it scores higher.

    ``depth`` counts corrections already applied to the SQL being checked;
    nothing is attempted once it reaches ``MAX_CORRECTION_DEPTH``.
    """

    def __init__(
        self,
        client: CompletionClient,
        validator: LayeredValidator,
        *,
        dialect: str = "postgres",
    ) -> None:
        self._client = client
        self._validator = validator
        self._dialect = dialect

    async def correct(
        self,
        result: ValidationResult,
        context: SchemaContext | None = None,
        *,
        schema: SchemaSnapshot | None = None,
        user_id: str | None = None,
        depth: int = 0,
    ) -> CorrectionOutcome:
        if not result.can_self_correct or depth >= MAX_CORRECTION_DEPTH:
            return CorrectionOutcome(result=result)

        issues = result.issues
        try:
            bundle = build_correction_prompt(
                result.original_query,
                result.sql,
                issues,
                context or SchemaContext(),
                dialect=self._dialect,
            )
        except PromptBuildError as exc:
            logger.warning("Self-correction skipped: %s", exc)
            return CorrectionOutcome(result=result)

        try:
            text = await self._client.complete(
                bundle.user_prompt,
                CompletionOptions(system_prompt=bundle.system_prompt, temperature=0.1),
            )
        except Exception as exc:
            logger.warning("Self-correction request failed: %s", exc)
            return CorrectionOutcome(
                result=result,
                attempt=self._rejected(result, "", f"Correction request failed: {exc}", 0.0),
            )

        payload = parse_sql_response(text)
        if payload is None or normalize_sql(payload.sql) == normalize_sql(result.sql):
            logger.info("Self-correction returned no revised SQL")
            return CorrectionOutcome(
                result=result,
                attempt=self._rejected(
                    result,
                    payload.sql if payload else "",
                    "Correction did not produce a different query",
                    0.0,
                ),
            )

        revised = await self._validator.validate(
            payload.sql,
            result.original_query,
            context,
            user_id,
            schema=schema,
        )
        improvement = round(revised.overall_score - result.overall_score, 4)
        if revised.overall_score > result.overall_score:
            logger.info(
                "Self-correction accepted: score %.4f -> %.4f",
                result.overall_score,
                revised.overall_score,
            )
            corrected = replace(
                revised,
                is_self_corrected=True,
                original_sql=result.sql,
                correction_reason=CORRECTION_REASON,
            )
            return CorrectionOutcome(
                result=corrected,
                attempt=SelfCorrectionAttempt(
                    original_sql=result.sql,
                    corrected_sql=payload.sql,
                    correction_reason=CORRECTION_REASON,
                    improvement_score=improvement,
                    was_successful=True,
                    issues_addressed=issues,
                    explanation=payload.explanation,
                ),
            )

        logger.info(
            "Self-correction rejected: score %.4f -> %.4f",
            result.overall_score,
            revised.overall_score,
        )
        return CorrectionOutcome(
            result=result,
            attempt=self._rejected(
                result,
                payload.sql,
                "Revision did not improve the validation score",
                improvement,
            ),
        )

    @staticmethod
    def _rejected(
        result: ValidationResult, corrected_sql: str, reason: str, improvement: float
    ) -> SelfCorrectionAttempt:
        return SelfCorrectionAttempt(
            original_sql=result.sql,
            corrected_sql=corrected_sql,
            correction_reason=reason,
            improvement_score=improvement,
            was_successful=False,
        )
