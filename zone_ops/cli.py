#!/usr/bin/env python3
"""
Command-line interface for the School Zone Explorer

This CLI provides access to the analytics engine over the cached dataset:
- Loading a shapefile into the cache
- Inspecting the discovered schema
- Listing, summarizing and ranking ZIP codes
- Searching, filtering and paging through records
- Managing the feature cache
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from zone_processing.aggregation import SUMMARY_METRICS, gender_split, grade_distribution
from zone_processing.data_utils import properties_of, resolve_group_key, to_text
from zone_processing.field_registry import FieldRegistry
from zone_processing.schema import schema_frame
from zone_processing.session import ExplorerSession

from .config_loader import Config
from .errors import DecodeError
from .logging_config import configure_logging


def _format_number(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def positive_int(value: str) -> int:
    """argparse type for counts and page numbers that must be at least 1."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def _open_session(config: Config) -> ExplorerSession:
    """Build a session from config and load the cached data, exiting if there is none."""
    session = ExplorerSession.from_config(config)
    if not session.load_from_cache():
        logger.error("❌ No cached data available")
        logger.info("💡 Load a shapefile first: zone-explorer load data/TXelementary")
        sys.exit(1)
    return session


def load_data(args: argparse.Namespace, config: Config) -> None:
    """Decode a shapefile and store it in the cache."""
    base_path = Path(args.base) if args.base else config.get_data_path("")
    session = ExplorerSession.from_config(config)

    try:
        count = session.load_files(base_path)
    except FileNotFoundError as e:
        logger.error(f"❌ {e}")
        sys.exit(1)
    except DecodeError as e:
        logger.error(f"❌ Error loading shapefile: {e}")
        sys.exit(1)

    logger.success(f"✅ Loaded {count:,} features with {len(session.group_index):,} ZIP codes")


def show_schema(args: argparse.Namespace, config: Config) -> None:
    """Show the discovered schema."""
    session = _open_session(config)
    frame = schema_frame(session.schema, FieldRegistry())

    logger.info(f"📋 {len(session.features):,} records, {len(session.schema)} columns")
    logger.info("\n" + frame.to_string(index=False))


def list_zips(args: argparse.Namespace, config: Config) -> None:
    """List ZIP codes with their student totals."""
    session = _open_session(config)
    keys = session.zip_codes(args.search or "")

    logger.info(f"📍 {len(keys)} of {len(session.group_index)} ZIP codes")
    for key in keys:
        group = session.group_index[key]
        logger.info(f"  {key} ({_format_number(group.total_students)} students)")


def summarize(args: argparse.Namespace, config: Config) -> None:
    """Summarize a selection of ZIP codes."""
    session = _open_session(config)
    for key in args.zips:
        session.toggle_zip(key)

    summary = session.summary
    missing = [key for key in session.selection if key not in session.group_index]
    if missing:
        logger.warning(f"⚠️ ZIP codes not in the data: {missing}")

    logger.info(f"🎯 Selection: {', '.join(summary.keys) or 'none'}")
    logger.info(f"  • Records: {_format_number(summary.record_count)}")
    logger.info(f"  • Total Students: {_format_number(summary.total_students)}")
    logger.info(f"  • Female: {_format_number(summary.total_female)}")
    logger.info(f"  • Male: {_format_number(summary.total_male)}")
    logger.info(f"  • Female:Male Ratio: {_format_number(summary.female_male_ratio)}")
    logger.info(f"  • Population: {_format_number(summary.total_population)}")
    logger.info(f"  • Schools: {_format_number(summary.total_schools)}")
    logger.info(f"  • Avg Students per School: {_format_number(summary.avg_students_per_school)}")

    female_pct, male_pct = gender_split(summary)
    logger.info(f"👥 Gender split: {female_pct:.1f}% female, {male_pct:.1f}% male")

    logger.info("📊 Grade Level Distribution:")
    for label, count, percent in grade_distribution(summary, session.fields.grades):
        logger.info(f"  {label:<8} {_format_number(count):>10}  {percent:5.1f}%")

    if len(summary.keys) > 1:
        logger.info("\n" + session.selection_frame().to_string(index=False))


def rank(args: argparse.Namespace, config: Config) -> None:
    """Rank ZIP codes by a metric."""
    session = _open_session(config)
    for key in args.zips or []:
        session.toggle_zip(key)

    rows = session.ranking(args.metric, args.top)
    logger.info(f"🏆 Top {len(rows)} ZIP codes by {args.metric}")
    for position, (key, value) in enumerate(rows, 1):
        logger.info(f"  {position:>3}. {key}  {_format_number(value)}")


def search(args: argparse.Namespace, config: Config) -> None:
    """Search and filter records and show one page of matches."""
    session = _open_session(config)
    session.set_search(args.text)
    session.set_filters(district=args.district, zip_code=args.zip)
    session.go_to_page(args.page)

    page = session.current_page()
    criteria = [f"'{args.text}'"] if args.text.strip() else []
    if args.district:
        criteria.append(f"district={args.district}")
    if args.zip:
        criteria.append(f"zip={args.zip}")
    logger.info(
        f"🔍 {page.total_items:,} records match {' and '.join(criteria) or 'everything'} "
        f"(page {page.page if page.total_pages else 0} of {page.total_pages})"
    )
    for feature in page.items:
        props = properties_of(feature)
        zip_code = resolve_group_key(props, session.aliases) or "-"
        preview = ", ".join(f"{key}={to_text(value)}" for key, value in list(props.items())[:6])
        logger.info(f"  [{zip_code}] {preview}")


def list_filters(args: argparse.Namespace, config: Config) -> None:
    """List the values the search filters accept."""
    session = _open_session(config)
    options = session.filter_options()

    logger.info(f"🏫 Districts ({len(options['districts'])}): {', '.join(options['districts']) or 'none'}")
    logger.info(f"📍 ZIP codes ({len(options['zips'])}): {', '.join(options['zips']) or 'none'}")
    logger.info(f"📋 Properties ({len(options['properties'])}): {', '.join(options['properties'])}")


def manage_cache(args: argparse.Namespace, config: Config) -> None:
    """Show or clear the feature cache."""
    session = ExplorerSession.from_config(config)

    if args.action == "clear":
        if session.cache.clear():
            logger.success("🗑️ Cache cleared")
        else:
            sys.exit(1)
        return

    logger.info(f"💾 Cache: {session.cache.db_path}")
    logger.info(json.dumps(session.cache.status(), indent=2))


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Texas school zone explorer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s load data/TXelementary
  %(prog)s schema
  %(prog)s zips --search 750
  %(prog)s summary 75001 75002
  %(prog)s rank total_students --top 5
  %(prog)s search Dallas --page 2
  %(prog)s search --district "Plano ISD" --zip 75002
  %(prog)s filters
  %(prog)s cache status
        """,
    )
    parser.add_argument("--config", type=str, help="Path to config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    load_parser = subparsers.add_parser("load", help="Decode a shapefile into the cache")
    load_parser.add_argument(
        "base", nargs="?", help="Shapefile path without extension (default: from config)"
    )
    load_parser.set_defaults(func=load_data)

    schema_parser = subparsers.add_parser("schema", help="Show the discovered schema")
    schema_parser.set_defaults(func=show_schema)

    zips_parser = subparsers.add_parser("zips", help="List ZIP codes")
    zips_parser.add_argument("--search", type=str, help="Only ZIP codes containing this text")
    zips_parser.set_defaults(func=list_zips)

    summary_parser = subparsers.add_parser("summary", help="Summarize selected ZIP codes")
    summary_parser.add_argument("zips", nargs="+", help="ZIP codes to select")
    summary_parser.set_defaults(func=summarize)

    rank_parser = subparsers.add_parser("rank", help="Rank ZIP codes by a metric")
    rank_parser.add_argument(
        "metric", type=str, help=f"One of {', '.join(SUMMARY_METRICS)} or any numeric column"
    )
    rank_parser.add_argument("--zips", nargs="+", help="Only rank these ZIP codes")
    rank_parser.add_argument("--top", type=positive_int, help="Number of rows (default: from config)")
    rank_parser.set_defaults(func=rank)

    search_parser = subparsers.add_parser("search", help="Search records")
    search_parser.add_argument(
        "text", nargs="?", default="", help="Case-insensitive text to look for (default: everything)"
    )
    search_parser.add_argument("--district", type=str, help="Only records in this district")
    search_parser.add_argument("--zip", type=str, help="Only records with this ZIP code")
    search_parser.add_argument("--page", type=positive_int, default=1, help="Page number (default: 1)")
    search_parser.set_defaults(func=search)

    filters_parser = subparsers.add_parser("filters", help="List district and ZIP filter values")
    filters_parser.set_defaults(func=list_filters)

    cache_parser = subparsers.add_parser("cache", help="Manage the feature cache")
    cache_parser.add_argument("action", choices=["status", "clear"])
    cache_parser.set_defaults(func=manage_cache)

    args = parser.parse_args()
    configure_logging("DEBUG" if args.verbose else "INFO")

    if not args.command:
        parser.print_help()
        return

    try:
        config = Config(args.config)
    except FileNotFoundError as e:
        logger.critical(f"❌ Configuration error: {e}")
        sys.exit(1)

    if args.verbose:
        config.print_config_summary()
    args.func(args, config)


if __name__ == "__main__":
    main()
