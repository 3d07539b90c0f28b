"""Typed payload the completion model is asked to return."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SQLGenerationPayload(BaseModel):
    """JSON output contract for SQL generation and correction prompts."""

    model_config = ConfigDict(extra="ignore")

    sql: str = Field(min_length=1)
    explanation: str = ""
    tables_used: list[str] = Field(default_factory=list)
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)

    @field_validator("sql")
    @classmethod
    def strip_sql(cls, value: str) -> str:
        normalized = value.strip().rstrip(";").strip()
        if not normalized:
            raise ValueError("sql cannot be blank.")
        return normalized
