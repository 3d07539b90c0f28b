"""Prompt builders for query-copilot."""

from query_copilot.prompts.sql_generation import (
    OUTPUT_CONTRACT,
    PromptBuildError,
    PromptBundle,
    PromptVariant,
    build_candidate_prompt,
    build_correction_prompt,
    parse_sql_response,
)

__all__ = [
    "OUTPUT_CONTRACT",
    "PromptBuildError",
    "PromptBundle",
    "PromptVariant",
    "build_candidate_prompt",
    "build_correction_prompt",
    "parse_sql_response",
]
