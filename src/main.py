# src/main.py - v1
"""CLI entry point: lookup, verify, stats, credits, cleanup commands.

Usage:
    contactcache lookup <linkedin_url> [--org ORG] [--json]
    contactcache verify <email> [--org ORG] [--json]
    contactcache stats [--json]
    contactcache credits
    contactcache cleanup
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from contactcache.version import __version__

if TYPE_CHECKING:
    from contactcache.api.facade import EnrichmentService
    from contactcache.config.settings import Settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="contactcache",
        description=f"contactcache v{__version__} - shared contact enrichment cache",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- lookup ---
    p_lookup = subparsers.add_parser(
        "lookup", help="Find the email behind a LinkedIn profile URL",
    )
    p_lookup.add_argument("linkedin_url", help="LinkedIn profile URL")
    _add_lookup_options(p_lookup)
    p_lookup.set_defaults(func=_cmd_lookup, kind="linkedin")

    # --- verify ---
    p_verify = subparsers.add_parser(
        "verify", help="Verify an email address",
    )
    p_verify.add_argument("email", help="Email address")
    _add_lookup_options(p_verify)
    p_verify.set_defaults(func=_cmd_lookup, kind="email")

    # --- stats ---
    p_stats = subparsers.add_parser(
        "stats", help="Show cache savings report",
    )
    p_stats.add_argument(
        "--json", action="store_true", help="Print the report as JSON",
    )
    p_stats.set_defaults(func=_cmd_stats)

    # --- credits ---
    p_credits = subparsers.add_parser(
        "credits", help="Show remaining provider credits",
    )
    p_credits.set_defaults(func=_cmd_credits)

    # --- cleanup ---
    p_cleanup = subparsers.add_parser(
        "cleanup", help="Purge records past their retention window",
    )
    p_cleanup.set_defaults(func=_cmd_cleanup)

    return parser


def _add_lookup_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--org", dest="organization_id", default=None,
        help="Organization to attribute the lookup to",
    )
    parser.add_argument(
        "--json", action="store_true", help="Print the outcome as JSON",
    )


async def _run(args: argparse.Namespace) -> int:
    """Build the service, run one command, always close the service."""
    from contactcache.api.facade import build_service
    from contactcache.config.settings import load_settings

    settings = load_settings()
    _setup_logging(args.verbose, settings)
    service = build_service(settings)
    try:
        return await args.func(service, args)
    finally:
        await service.close()


async def _cmd_lookup(service: EnrichmentService, args: argparse.Namespace) -> int:
    """Resolve a LinkedIn URL or verify an email."""
    if args.kind == "linkedin":
        outcome = await service.resolve_linkedin(
            args.linkedin_url, organization_id=args.organization_id
        )
    else:
        outcome = await service.resolve_email_verification(
            args.email, organization_id=args.organization_id
        )

    if args.json:
        print(outcome.model_dump_json(indent=2))
    elif outcome.success:
        result = outcome.result
        source = "cache" if outcome.from_cache else "provider"
        print(f"\nLookup complete ({source}):")
        print(f"  Email:        {result.email}")
        print(f"  Name:         {result.name or '-'}")
        print(f"  Status:       {result.verification_status}")
        print(f"  Mailbox:      {result.email_provider or '-'}")
        print(f"  Credits used: {outcome.credits_charged}")
        if outcome.stale:
            print("  Note:         stale record served after provider failure")
    else:
        print(f"\nLookup failed: {outcome.failure_reason} ({outcome.error})")
    return 0 if outcome.success else 1


async def _cmd_stats(service: EnrichmentService, args: argparse.Namespace) -> int:
    """Display the cache savings report."""
    from contactcache.tracking.exporter import export_report_summary

    report = await service.get_analytics()
    if args.json:
        print(report.model_dump_json(indent=2))
    else:
        print(export_report_summary(report))
    return 0


async def _cmd_credits(service: EnrichmentService, args: argparse.Namespace) -> int:
    """Display remaining provider credits."""
    credits = await service.get_remaining_credits()
    print("\nRemaining credits:")
    print(f"  Finder:   {credits.finder_credits}")
    print(f"  Verifier: {credits.verifier_credits}")
    return 0


async def _cmd_cleanup(service: EnrichmentService, args: argparse.Namespace) -> int:
    """Purge expired records and history."""
    report = await service.cleanup()
    print("\nCleanup complete:")
    print(f"  Records deleted: {report.purged.records_deleted}")
    print(f"  History deleted: {report.purged.history_deleted}")
    return 0


def _setup_logging(verbose: bool, settings: Settings | None = None) -> None:
    """Configure logging for CLI usage. Text to stderr, plus LOG_FILE if set."""
    from contactcache.logging.logger import setup_logging

    if settings is None:
        setup_logging(level="DEBUG" if verbose else "INFO", log_format="text")
        return
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format="text",
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
