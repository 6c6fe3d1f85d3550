"""CLI entrypoint for pre-generation checks and topic validation."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import List

from rich.table import Table

from config import get_settings, policy_from_settings
from core import AudienceConfig, PreGenerationResult, ValidateTopicsResponse
from grounding import PreGenerationParams, run_pre_generation_checks, validate_topics
from sources.web_search import perform_web_search
from storage import InMemoryOutcomeStore
from utils.logger import console, setup_logger


def _load_audiences(path: str) -> List[AudienceConfig]:
    raw = str(path or "").strip()
    if not raw:
        return []
    payload = json.loads(Path(raw).read_text(encoding="utf-8"))
    return [AudienceConfig.model_validate(item) for item in payload]


def _print_check(result: PreGenerationResult) -> None:
    table = Table(title="Pre-generation checks")
    table.add_column("Topic")
    table.add_column("Confidence")
    table.add_column("Sources", justify="right")
    matched = {mapping.topic: len(mapping.matched_sources) for mapping in result.source_mappings}
    for validation in result.validated_topics:
        table.add_row(validation.topic, validation.confidence.value, str(matched.get(validation.topic, 0)))
    console.print(table)

    if result.can_proceed:
        console.print(f"[green]can proceed[/green] ({len(result.enriched_sources)} sources)")
    else:
        console.print(f"[red]blocked[/red] {result.block_reason.value}: {result.user_message}")
    if result.allocation_result is not None:
        console.print(f"diversity: {result.allocation_result.diversity_score:.0f}%")


def _print_validation(response: ValidateTopicsResponse) -> None:
    table = Table(title="Topic validation")
    table.add_column("Topic")
    table.add_column("Valid")
    table.add_column("Confidence")
    table.add_column("Note")
    for result in response.results:
        table.add_row(
            result.topic,
            "yes" if result.is_valid else "no",
            result.confidence.value,
            result.suggested_alternative or result.error or "",
        )
    console.print(table)


def main() -> None:
    parser = argparse.ArgumentParser(description="Content grounding CLI")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check")
    check.add_argument("topics", nargs="+")
    check.add_argument("--audiences-json", default="", help="file with a JSON list of audience configs")
    check.add_argument("--skip-validation", action="store_true")
    check.add_argument("--skip-enrichment", action="store_true")

    validate = sub.add_parser("validate")
    validate.add_argument("topics", nargs="+")

    args = parser.parse_args()
    setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)
    settings = get_settings()
    policy = policy_from_settings(settings)

    if args.command == "check":
        store = InMemoryOutcomeStore(max_records=settings.storage.outcome_history_size)
        params = PreGenerationParams(
            topics=args.topics,
            audiences=_load_audiences(args.audiences_json),
            skip_validation=args.skip_validation,
            skip_enrichment=args.skip_enrichment,
        )
        result = asyncio.run(run_pre_generation_checks(params, policy=policy, recorder=store))
        _print_check(result)
        print(json.dumps(result.model_dump(mode="json", exclude={"enriched_sources"}), ensure_ascii=False))
        return

    if args.command == "validate":
        response = asyncio.run(validate_topics(args.topics, search=perform_web_search, policy=policy))
        _print_validation(response)
        print(json.dumps(response.model_dump(mode="json"), ensure_ascii=False))


if __name__ == "__main__":
    main()
