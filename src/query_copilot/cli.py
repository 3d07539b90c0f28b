"""Command-line entrypoint for query-copilot."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from query_copilot import __version__

_MISSING_DEPENDENCIES = (
    "Runtime dependencies are missing. "
    "Install project dependencies first (pip install -e .)."
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="query-copilot",
        description=(
            "Turn natural-language questions into validated, read-only SQL "
            "for human review."
        ),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR).",
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser(
        "config-check",
        help="Validate environment configuration for query-copilot.",
    )
    subparsers.add_parser(
        "healthcheck",
        help="Check PostgreSQL connectivity with a read-only session.",
    )
    refresh_parser = subparsers.add_parser(
        "refresh-schema",
        help="Refresh local schema cache from PostgreSQL introspection.",
    )
    refresh_parser.add_argument(
        "--schema",
        action="append",
        default=None,
        help="Schema(s) to include in cache refresh. Repeat for multiple schemas.",
    )
    subparsers.add_parser(
        "show-cache",
        help="Show metadata from the local schema cache file.",
    )

    for name, help_text in (
        ("retrieve-tables", "Select relevant tables from schema cache for a question."),
        ("classify", "Classify a question by category, complexity and joins."),
        ("decompose", "Show the component plan for a question."),
    ):
        question_parser = subparsers.add_parser(name, help=help_text)
        question_parser.add_argument("question", help="Natural language question.")
        question_parser.add_argument(
            "--top-k",
            type=int,
            default=6,
            help="Maximum number of tables to consider (default: 6).",
        )

    validate_parser = subparsers.add_parser(
        "validate-sql",
        help="Score a SQL statement on security, semantics, schema and business rules.",
    )
    validate_parser.add_argument("sql", help="SQL statement to validate.")
    validate_parser.add_argument(
        "--question",
        default="",
        help="Natural language question the SQL should answer.",
    )
    validate_parser.add_argument(
        "--self-correct",
        action="store_true",
        help="Ask the LLM for one correction when the score is correctable.",
    )

    process_parser = subparsers.add_parser(
        "process-query",
        help="Generate, validate and self-correct SQL for a question.",
    )
    process_parser.add_argument("question", help="Natural language question.")
    process_parser.add_argument(
        "--user-id",
        default="cli",
        help="Identifier recorded with the request (default: cli).",
    )
    process_parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall time budget in seconds (default: REQUEST_TIMEOUT_SECONDS).",
    )
    process_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full processed result as JSON.",
    )
    return parser


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load_settings(args: argparse.Namespace):
    from query_copilot.config import load_settings

    settings = load_settings()
    _configure_logging(args.log_level or settings.log_level)
    return settings


def _print_validation(result) -> None:
    print(f"- overall_score: {result.overall_score:.4f}")
    print(f"- verdict: {result.verdict.value}")
    print(f"- security: {'pass' if result.security.is_valid else 'fail'}")
    print(f"- semantic_alignment: {result.semantic_alignment.score:.2f}")
    print(f"- schema_compliance: {result.schema_compliance.compliance_score:.2f}")
    print(f"- business_logic: {result.business_logic.compliance_score:.2f}")
    if result.degraded_stages:
        print(f"- degraded_stages: {', '.join(result.degraded_stages)}")
    if result.is_self_corrected:
        print("- self_corrected: yes")
        print(f"- original_sql: {result.original_sql}")
    if result.issues:
        print("- issues:")
        for issue in result.issues:
            print(f"  - {issue}")
    if result.warnings:
        print("- warnings:")
        for warning in result.warnings:
            print(f"  - {warning}")
    if result.business_logic.recommendations:
        print("- recommendations:")
        for item in result.business_logic.recommendations:
            print(f"  - {item}")


def _config_check(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
    except ModuleNotFoundError:
        print(
            "Configuration tooling dependencies are missing. "
            "Install project dependencies first (pip install -e .).",
            file=sys.stderr,
        )
        return 2

    try:
        settings = _load_settings(args)
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2

    redacted = "***" if settings.openai_api_key else "(not set)"
    print("Configuration loaded successfully:")
    print(f"- OPENAI_API_KEY: {redacted}")
    print(f"- OPENAI_MODEL: {settings.openai_model}")
    print(f"- OPENAI_BASE_URL: {settings.openai_base_url}")
    print(f"- POSTGRES_DSN: {'***' if settings.postgres_dsn else '(not set)'}")
    print(f"- SCHEMA_CACHE_PATH: {settings.schema_cache_path}")
    print(f"- DEFAULT_SCHEMA: {settings.default_schema}")
    print(f"- SQL_DIALECT: {settings.sql_dialect}")
    print(f"- VALIDITY_THRESHOLD: {settings.validity_threshold}")
    print(f"- CORRECTION_FLOOR: {settings.correction_floor}")
    print(f"- MAX_CANDIDATES: {settings.max_candidates}")
    print(f"- LARGE_TABLES: {', '.join(settings.large_tables) or '(none)'}")
    print(f"- REQUEST_TIMEOUT_SECONDS: {settings.request_timeout_seconds}")
    print(f"- CACHE_TTL_SECONDS: {settings.cache_ttl_seconds}")
    print(f"- CACHE_MAX_ENTRIES: {settings.cache_max_entries}")
    print(f"- LOG_LEVEL: {settings.log_level}")
    return 0


def _healthcheck(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
        from query_copilot.db.connection import (
            DatabaseConnectionError,
            check_postgres_health,
        )
    except ModuleNotFoundError:
        print(_MISSING_DEPENDENCIES, file=sys.stderr)
        return 2

    try:
        settings = _load_settings(args)
        result = check_postgres_health(settings.validate_database_requirements())
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2
    except DatabaseConnectionError as exc:
        print(f"Healthcheck failed:\n{exc}", file=sys.stderr)
        return 1

    print("PostgreSQL healthcheck succeeded:")
    print(f"- database: {result.database}")
    print(f"- user: {result.user}")
    print(f"- server_version: {result.server_version}")
    print(f"- read_only: {result.read_only}")
    return 0


def _refresh_schema(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
        from query_copilot.schema.cache import CacheError, refresh_schema_cache
    except ModuleNotFoundError:
        print(_MISSING_DEPENDENCIES, file=sys.stderr)
        return 2

    try:
        settings = _load_settings(args)
        cached = refresh_schema_cache(
            postgres_dsn=settings.validate_database_requirements(),
            cache_path=settings.schema_cache_path,
            default_schema=settings.default_schema,
            include_schemas=args.schema,
        )
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2
    except CacheError as exc:
        print(f"Schema cache refresh failed:\n{exc}", file=sys.stderr)
        return 1

    print("Schema cache refresh succeeded:")
    print(f"- cache_path: {settings.schema_cache_path}")
    print(f"- generated_at: {cached.generated_at}")
    print(f"- database: {cached.snapshot.database}")
    print(f"- tables_and_views: {cached.snapshot.table_count}")
    return 0


def _show_cache(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
        from query_copilot.schema.cache import CacheError, load_schema_cache
    except ModuleNotFoundError:
        print(_MISSING_DEPENDENCIES, file=sys.stderr)
        return 2

    try:
        settings = _load_settings(args)
        cached = load_schema_cache(settings.schema_cache_path)
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2
    except CacheError as exc:
        print(f"Schema cache read failed:\n{exc}", file=sys.stderr)
        return 1

    print("Schema cache loaded:")
    print(f"- cache_path: {settings.schema_cache_path}")
    print(f"- cache_format_version: {cached.cache_format_version}")
    print(f"- generated_at: {cached.generated_at}")
    print(f"- database: {cached.snapshot.database}")
    print(f"- schemas: {', '.join(sorted(cached.snapshot.schemas)) or '(none)'}")
    print(f"- tables_and_views: {cached.snapshot.table_count}")
    return 0


def _question_command(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
        from query_copilot.pipeline.classifier import QueryClassifier
        from query_copilot.pipeline.decomposer import QueryDecomposer
        from query_copilot.schema.cache import CacheError, load_schema_cache
        from query_copilot.schema.retrieval import (
            RetrievalError,
            retrieve_relevant_tables,
            to_schema_context,
        )
    except ModuleNotFoundError:
        print(_MISSING_DEPENDENCIES, file=sys.stderr)
        return 2

    try:
        settings = _load_settings(args)
        cached = load_schema_cache(settings.schema_cache_path)
        retrieval = retrieve_relevant_tables(
            args.question, cached.snapshot, top_k=args.top_k
        )
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2
    except CacheError as exc:
        print(f"Schema cache read failed:\n{exc}", file=sys.stderr)
        return 1
    except RetrievalError as exc:
        print(f"Table retrieval failed:\n{exc}", file=sys.stderr)
        return 1

    if args.command == "retrieve-tables":
        print("Retrieved tables:")
        if not retrieval.selected_tables:
            print("- (none)")
        for item in retrieval.selected_tables:
            marker = " [fk-expanded]" if item.expanded_by_fk else ""
            print(f"- {item.fqn} score={item.score:.3f}{marker}")
            print(f"  reasons: {', '.join(item.reasons)}")
        return 0

    context = to_schema_context(retrieval)
    classification = QueryClassifier().classify(args.question, context)
    print("Classification:")
    print(f"- category: {classification.category.value}")
    print(f"- complexity: {classification.complexity.value} ({classification.complexity_score} points)")
    print(f"- required_joins: {classification.required_joins}")
    print(f"- confidence: {classification.confidence_score:.2f}")
    print(f"- predicted_tables: {', '.join(classification.predicted_tables) or '(none)'}")
    if args.command == "classify":
        return 0

    decomposition = QueryDecomposer().decompose(args.question, context, classification)
    print("\nComponents (execution order):")
    for component in decomposition.ordered_components():
        tables = ", ".join(component.required_tables) or "-"
        print(f"- [{component.id}] {component.type.value}: {component.description} (tables: {tables})")
    if decomposition.is_fallback:
        print("- note: decomposition fell back to a single component")
    return 0


def _validate_sql(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
        from query_copilot.pipeline import create_query_processor, create_validator
        from query_copilot.schema.cache import CacheError, load_schema_cache
        from query_copilot.schema.provider import StaticSchemaProvider
        from query_copilot.schema.retrieval import retrieve_relevant_tables, to_schema_context
    except ModuleNotFoundError:
        print(_MISSING_DEPENDENCIES, file=sys.stderr)
        return 2

    try:
        settings = _load_settings(args)
        if args.self_correct:
            settings.validate_llm_requirements()
        cached = load_schema_cache(settings.schema_cache_path)
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2
    except CacheError as exc:
        print(f"Schema cache read failed:\n{exc}", file=sys.stderr)
        return 1

    snapshot = cached.snapshot
    context = None
    if args.question.strip():
        context = to_schema_context(retrieve_relevant_tables(args.question, snapshot))

    if args.self_correct:
        processor = create_query_processor(
            settings, schema_provider=StaticSchemaProvider(snapshot)
        )
        work = processor.validate_sql(args.sql, args.question, context, "cli")
    else:
        work = create_validator(settings).validate(
            args.sql, args.question, context, "cli", schema=snapshot
        )

    try:
        result = asyncio.run(asyncio.wait_for(work, timeout=settings.request_timeout_seconds))
    except TimeoutError:
        print("SQL validation timed out.", file=sys.stderr)
        return 1

    print("SQL validation succeeded:" if result.is_valid else "SQL validation failed:")
    _print_validation(result)
    print("\nSQL:")
    print(result.sql)
    return 0 if result.is_valid else 1


def _process_query(args: argparse.Namespace) -> int:
    try:
        from query_copilot.config import ConfigError
        from query_copilot.models.query import ErrorKind
        from query_copilot.pipeline import create_query_processor
    except ModuleNotFoundError:
        print(_MISSING_DEPENDENCIES, file=sys.stderr)
        return 2

    try:
        settings = _load_settings(args)
        settings.validate_llm_requirements()
    except ConfigError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        return 2

    processor = create_query_processor(settings)
    timeout = args.timeout or settings.request_timeout_seconds
    try:
        processed = asyncio.run(
            asyncio.wait_for(processor.process_query(args.question, args.user_id), timeout=timeout)
        )
    except TimeoutError:
        print(f"Query processing timed out after {timeout:.0f}s.", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(asdict(processed), indent=2, default=str))
    else:
        print(processed.sql)
        print(f"\n{processed.explanation}")
        if processed.alternative_queries:
            print("\nAlternatives:")
            for sql in processed.alternative_queries:
                print(f"- {sql}")
        if processed.warnings:
            print("\nWarnings:")
            for warning in processed.warnings:
                print(f"- {warning}")

    failed = processed.is_degraded or processed.error_kind is ErrorKind.TERMINAL_INVALID_SQL
    return 1 if failed else 0


COMMANDS = {
    "config-check": _config_check,
    "healthcheck": _healthcheck,
    "refresh-schema": _refresh_schema,
    "show-cache": _show_cache,
    "retrieve-tables": _question_command,
    "classify": _question_command,
    "decompose": _question_command,
    "validate-sql": _validate_sql,
    "process-query": _process_query,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
