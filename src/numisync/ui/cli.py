# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from numisync import app
from numisync.config import ConfigurationError, configure_logging
from numisync.domain.enums import FreshnessStatus, OverallStatus
from numisync.domain.errors import ProtectedFieldError, ValidationError
from numisync.domain.metadata import FetchSelection
from numisync.domain.progress import ProgressFilter, format_progress_report

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)


def _add_fetch_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--issue",
        action="store_true",
        help="Also match the year/mint issue and merge issue fields",
    )
    parser.add_argument(
        "--pricing",
        action="store_true",
        help="Also fetch pricing for the matched issue",
    )


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Not an integer: {value}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError(f"Must be non-negative: {value}")
    return number


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Enrich an OpenNumismat collection from Numista")
    subparsers = parser.add_subparsers(dest="command", required=True)

    search = subparsers.add_parser("search", help="Search the catalog for a collection record")
    search.add_argument("database", type=Path, help="OpenNumismat collection (.db)")
    search.add_argument("record_id", type=_positive_int, help="Record id in the coins table")
    search.add_argument(
        "--limit",
        type=_positive_int,
        default=10,
        help="Number of candidates to show (default: %(default)s)",
    )

    enrich = subparsers.add_parser("enrich", help="Merge catalog data into a collection record")
    enrich.add_argument("database", type=Path, help="OpenNumismat collection (.db)")
    enrich.add_argument("record_id", type=_positive_int, help="Record id in the coins table")
    enrich.add_argument("type_id", type=_positive_int, help="Numista type id")
    _add_fetch_flags(enrich)

    progress = subparsers.add_parser("progress", help="Summarize enrichment progress")
    progress.add_argument("database", type=Path, help="OpenNumismat collection (.db)")
    _add_fetch_flags(progress)
    progress.add_argument(
        "--status",
        type=str.upper,
        choices=[status.value for status in OverallStatus],
        help="List records with this overall status instead of the report",
    )
    progress.add_argument(
        "--freshness",
        type=str.upper,
        choices=[status.value for status in FreshnessStatus],
        help="List records whose pricing has this freshness instead of the report",
    )

    cache = subparsers.add_parser("cache", help="Inspect or manage the API cache")
    cache_sub = cache.add_subparsers(dest="cache_command", required=True)
    cache_sub.add_parser("status", help="Show cache file and lock status")
    cache_sub.add_parser("usage", help="Show this month's API usage")
    cache_sub.add_parser("clear", help="Drop cached responses (usage is kept)")
    set_limit = cache_sub.add_parser("set-limit", help="Set the monthly API call limit")
    set_limit.add_argument("limit", type=_positive_int)
    set_usage = cache_sub.add_parser("set-usage", help="Overwrite this month's usage total")
    set_usage.add_argument("total", type=_positive_int)

    return parser.parse_args(list(argv))


def _fetch_selection(args: argparse.Namespace) -> FetchSelection:
    return FetchSelection(basic=True, issue=args.issue or args.pricing, pricing=args.pricing)


def _run_search(args: argparse.Namespace) -> None:
    candidates = app.search_record(args.database, args.record_id)
    if not candidates:
        print("No catalog candidates found")
        return
    for entry in candidates[: args.limit]:
        candidate = entry.candidate
        years = f"{candidate.min_year or '?'}-{candidate.max_year or '?'}"
        issuer = candidate.issuer.name if candidate.issuer else "?"
        print(f"{entry.confidence:>3}  #{candidate.id}  {candidate.title}  ({issuer}, {years})")


def _run_enrich(args: argparse.Namespace) -> None:
    result = app.enrich_collection_record(
        args.database,
        args.record_id,
        args.type_id,
        fetch=_fetch_selection(args),
    )
    for name, value in sorted(result.updates.items()):
        print(f"{name}: {value}")
    if result.issue_match is not None:
        print(f"issue match: {result.issue_match.outcome} ({result.issue_match.method})")
    print(f"{len(result.updates)} fields merged into record {result.record_id}")
    print(f"API calls this session: {result.api_calls}")


def _run_progress(args: argparse.Namespace) -> None:
    fetch = _fetch_selection(args)
    if args.status is None and args.freshness is None:
        summary = app.collection_progress(args.database, fetch=fetch)
        print(format_progress_report(summary, collection=args.database.name))
        return

    record_filter = ProgressFilter(
        overall=OverallStatus(args.status) if args.status else None,
        pricing_freshness=FreshnessStatus(args.freshness) if args.freshness else None,
    )
    records = app.matching_records(args.database, fetch=fetch, record_filter=record_filter)
    for record in records:
        print(f"{record.get('id')}  {record.get('title') or ''}")
    print(f"{len(records)} matching records")


def _run_cache(args: argparse.Namespace) -> None:
    if args.cache_command == "status":
        report = app.cache_report()
        print(f"cache: {report.path}")
        print(f"lock: {report.lock.status}")
        if report.lock.owner is not None:
            owner = report.lock.owner
            print(f"  held by {owner.hostname} (pid {owner.pid}) since {owner.acquired_at}")
        if report.file is not None:
            print(f"valid: {report.file.valid}  size: {report.file.size}")
        print(f"entries: {report.stats.entry_count}")
        print(f"usage: {report.stats.monthly_usage.total}/{report.monthly_limit}")
        for key, usage in sorted(report.usage_by_key.items()):
            print(f"  key {key}: {usage.total}")
    elif args.cache_command == "usage":
        usage, limit = app.monthly_usage()
        print(f"{usage.month} (key {usage.key}): {usage.total}/{limit}")
        for endpoint, count in sorted(usage.by_endpoint.items()):
            print(f"  {endpoint}: {count}")
    elif args.cache_command == "clear":
        app.clear_cache()
        print("Cache cleared")
    elif args.cache_command == "set-limit":
        print(f"Monthly limit: {app.set_monthly_limit(args.limit)}")
    elif args.cache_command == "set-usage":
        print(f"Monthly usage: {app.set_monthly_usage(args.total).total}")
    else:
        raise ValueError(f"Unsupported cache command: {args.cache_command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)

    try:
        if parsed_args.command == "search":
            _run_search(parsed_args)
        elif parsed_args.command == "enrich":
            _run_enrich(parsed_args)
        elif parsed_args.command == "progress":
            _run_progress(parsed_args)
        elif parsed_args.command == "cache":
            _run_cache(parsed_args)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except (ValidationError, ProtectedFieldError, ConfigurationError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Fatal error running %s", parsed_args.command)
        sys.exit(1)
