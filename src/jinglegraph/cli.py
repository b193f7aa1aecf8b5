"""
Command-line tools for catalog graph integrity.

This module provides:
- jinglegraph-audit: relationship direction audit with optional fix pass
- jinglegraph-reorder: APPEARS_IN order recomputation
- jinglegraph-cleanup: cleanup script listing, execution and automation
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jinglegraph.cleanup import (
    AutomationNotSupportedError,
    ScriptNotFoundError,
    create_cleanup_context,
    create_default_registry,
)
from jinglegraph.config.settings import get_settings
from jinglegraph.graph.exceptions import GraphConnectionError, UnknownRelationshipTypeError
from jinglegraph.graph.integrity import (
    RelationshipAuditor,
    RelationshipRepair,
    format_audit_report,
    format_fix_report,
)
from jinglegraph.graph.neo4j_client import get_catalog_client
from jinglegraph.graph.schema import get_relationship_schema
from jinglegraph.graph.store import RelationshipStore
from jinglegraph.graph.sync import AppearsInOrderManager
from jinglegraph.observability.logging import configure_logging


def _setup_logging() -> None:
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        format=settings.observability.log_format,
        app_name=settings.app_name,
        environment=settings.environment,
    )


def _write_json(path: str, data: dict[str, Any]) -> None:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
    print(f"Report written to {output}")


def _report_path(args: argparse.Namespace, prefix: str) -> str | None:
    """--output wins; --save picks a timestamped file in the report directory."""
    if args.output:
        return str(args.output)
    if getattr(args, "save", False):
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        return str(Path(get_settings().quality.report_directory) / f"{prefix}-{stamp}.json")
    return None


def _split_types(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [t.strip() for t in value.split(",") if t.strip()]


async def _open_store() -> RelationshipStore:
    """Connect the shared client and wrap it in a store."""
    client = get_catalog_client()
    await client.connect()
    return RelationshipStore(client)


async def _close_store() -> None:
    await get_catalog_client().close()


# =============================================================================
# Audit / fix
# =============================================================================


def create_audit_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the audit tool."""
    parser = argparse.ArgumentParser(
        prog="jinglegraph-audit",
        description="Audit relationship directions in the catalog graph and optionally fix them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s --relationship-types appears_in,versiona
  %(prog)s --fix --output reports/audit.json
  %(prog)s --save
        """,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=get_settings().quality.default_dry_run,
        help="Report what a fix would do without writing (default)",
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Apply the fixes (disables dry-run) and re-audit afterwards",
    )
    parser.add_argument(
        "--relationship-types",
        type=str,
        help="Comma-separated relationship types to audit (default: all)",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Write the JSON audit report to this path",
    )
    parser.add_argument(
        "--save",
        action="store_true",
        help="Write the JSON audit report to a timestamped file in the report directory",
    )
    return parser


async def run_audit(args: argparse.Namespace, store: RelationshipStore) -> int:
    """Audit, then preview or apply the fix pass, printing the reports."""
    auditor = RelationshipAuditor(store=store)
    repair = RelationshipRepair(store=store)
    types = _split_types(args.relationship_types)

    report = await auditor.audit(types)
    print(format_audit_report(report))
    output: dict[str, Any] = report.to_dict()

    if not report.needs_repair:
        print("\nNo incorrect relationships found.")
    elif args.fix:
        print(
            f"\nWARNING: applying fixes to {len(report.incorrect_relationships)} relationship(s) and "
            f"{len(report.duplicate_relationships)} duplicated pair(s). "
            "This modifies the database."
        )
        fix_report = await repair.fix(report, dry_run=False)
        print(format_fix_report(fix_report))
        output["fix"] = fix_report.to_dict()

        verification = await auditor.audit(types)
        output["verification"] = verification.summary.to_dict()
        if verification.needs_repair:
            print(
                f"\nVerification: {len(verification.incorrect_relationships)} incorrect "
                f"relationship(s) and {len(verification.duplicate_relationships)} duplicated pair(s) remain."
            )
        else:
            print("\nVerification: all audited relationships now have the correct direction.")
    else:
        fix_report = await repair.fix(report, dry_run=True)
        print(format_fix_report(fix_report))
        output["fix"] = fix_report.to_dict()
        print("\nRun with --fix to apply these changes.")

    path = _report_path(args, "relationship-audit")
    if path:
        _write_json(path, output)

    return 0


def audit_main(argv: list[str] | None = None) -> int:
    """Entry point for jinglegraph-audit."""
    args = create_audit_parser().parse_args(argv)
    if args.fix:
        args.dry_run = False

    _setup_logging()

    schema = get_relationship_schema()
    try:
        for name in _split_types(args.relationship_types) or []:
            schema.resolve(name)
    except UnknownRelationshipTypeError as e:
        print(f"Error: {e}", file=sys.stderr)
        print(f"Valid relationship types: {', '.join(e.valid_types)}", file=sys.stderr)
        return 1

    async def main() -> int:
        try:
            store = await _open_store()
        except GraphConnectionError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        try:
            return await run_audit(args, store)
        finally:
            await _close_store()

    return asyncio.run(main())


# =============================================================================
# Reorder
# =============================================================================


def create_reorder_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the reorder tool."""
    parser = argparse.ArgumentParser(
        prog="jinglegraph-reorder",
        description="Recompute APPEARS_IN order from timestamps",
    )
    parser.add_argument(
        "--fabrica-id",
        type=str,
        help="Recompute a single Fabrica (default: every Fabrica with Jingles)",
    )
    parser.add_argument("--output", type=str, help="Write the JSON result to this path")
    return parser


async def run_reorder(args: argparse.Namespace, store: RelationshipStore) -> int:
    manager = AppearsInOrderManager(store=store)

    if args.fabrica_id:
        result = await manager.recompute_order(args.fabrica_id)
        print(
            f"Fabrica {result.fabrica_id}: {result.updated} of {result.children} order(s) updated"
            + (f", error: {result.error}" if result.error else "")
        )
        for group in result.conflicts:
            print(f"  Timestamp conflict: {', '.join(group)}")
        data = result.to_dict()
    else:
        bulk = await manager.recompute_all_orders()
        print(f"Fabricas: {bulk.total}, succeeded: {bulk.succeeded}, failed: {bulk.failed}")
        for failed in (r for r in bulk.results if not r.success):
            print(f"  {failed.fabrica_id}: {failed.error}")
        data = bulk.to_dict()

    if args.output:
        _write_json(args.output, data)
    return 0


def reorder_main(argv: list[str] | None = None) -> int:
    """Entry point for jinglegraph-reorder."""
    args = create_reorder_parser().parse_args(argv)
    _setup_logging()

    async def main() -> int:
        try:
            store = await _open_store()
        except GraphConnectionError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        try:
            return await run_reorder(args, store)
        finally:
            await _close_store()

    return asyncio.run(main())


# =============================================================================
# Cleanup scripts
# =============================================================================


def create_cleanup_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the cleanup tool."""
    parser = argparse.ArgumentParser(
        prog="jinglegraph-cleanup",
        description="List, run and automate catalog cleanup scripts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --list
  %(prog)s --run find-jingles-zero-timestamp --output reports/zero.json
  %(prog)s --automate find-jingles-zero-timestamp --entity-ids j3k7p9a2q,j8m2n4p6r
        """,
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--list", action="store_true", help="List registered scripts")
    mode.add_argument("--run", metavar="SCRIPT_ID", help="Run a script and report its findings")
    mode.add_argument("--automate", metavar="SCRIPT_ID", help="Apply a script's fixes")
    parser.add_argument(
        "--entity-ids",
        type=str,
        help="Comma-separated entity ids to automate (default: every automatable finding)",
    )
    parser.add_argument(
        "--apply-low-confidence",
        action="store_true",
        help="Also apply suggestions marked low confidence",
    )
    parser.add_argument("--output", type=str, help="Write the JSON result to this path")
    return parser


async def run_cleanup(args: argparse.Namespace, store: RelationshipStore) -> int:
    registry = create_default_registry(create_cleanup_context(store))

    if args.list:
        for metadata in registry.list_scripts():
            flag = "automatable" if metadata.automatable else "report only"
            print(f"{metadata.id:40} [{metadata.category.value}] {flag}: {metadata.name}")
        return 0

    try:
        if args.run:
            result = await registry.execute(args.run)
            print(f"{result.script_name}: {result.total_found} found in {result.execution_time_ms} ms")
            for entity in result.entities:
                print(f"  {entity.entity_type} {entity.entity_id}: {entity.issue}")
            data = result.to_dict()
        else:
            entity_ids = _split_types(args.entity_ids)
            if entity_ids is None:
                found = await registry.execute(args.automate)
                entity_ids = list(
                    dict.fromkeys(
                        e.entity_id for e in found.entities if e.suggestion and e.suggestion.automatable
                    )
                )
            automation = await registry.automate(args.automate, entity_ids, args.apply_low_confidence)
            print(
                f"{automation.script_id}: {automation.successful} succeeded, "
                f"{automation.failed} failed, {automation.skipped} skipped"
            )
            for item in automation.results:
                if item.error:
                    print(f"  {item.entity_id} ({item.status.value}): {item.error}")
            data = automation.to_dict()
    except (ScriptNotFoundError, AutomationNotSupportedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output:
        _write_json(args.output, data)
    return 0


def cleanup_main(argv: list[str] | None = None) -> int:
    """Entry point for jinglegraph-cleanup."""
    args = create_cleanup_parser().parse_args(argv)
    _setup_logging()

    async def main() -> int:
        try:
            store = await _open_store()
        except GraphConnectionError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        try:
            return await run_cleanup(args, store)
        finally:
            await _close_store()

    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(audit_main())
