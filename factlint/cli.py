"""
Command-line interface for factlint.

Usage:
    factlint validate [--rules=a,b] [--ci] [--list] [--errors-only] [--fix] [--fixable] [-v]
    factlint fact-wrap [PAGE_ID] [--apply] [--entity=ID] [-v]
    factlint edit-log {view PAGE_ID|stats|add PAGE_ID --tool=T|health} [--json]
    factlint check-config

Global options:
    --log-file PATH  also append log records to PATH

Exit codes:
    0  clean run, or changes applied successfully
    1  issues found (or matches not applied in a dry run)
    2  a file could not be written during --fix/--apply
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .config.settings import SERVER_URL_ENV, check_settings, load_settings, require_server_url
from .edit_log.client import EditLogClient
from .edit_log.log import AGENCIES, append_edit_log, format_edit_history, format_edit_stats, log_bulk_fixes
from .facts.store import load_fact_table
from .facts.wrap import run_fact_wrap
from .logging_config import configure_logging
from .validation.engine import Severity, ValidationEngine
from .validation.reporter import format_output
from .validation.rules import all_rules

EXIT_OK = 0
EXIT_ISSUES = 1
EXIT_WRITE_FAILURE = 2

VALIDATE_TOOL = "factlint-validate"


def _settings_from_args(args: argparse.Namespace):
    return load_settings(
        config_path=getattr(args, "config", None),
        content_dir=getattr(args, "content_dir", None),
        facts_dir=getattr(args, "facts_dir", None),
    )


def cmd_validate(args: argparse.Namespace) -> int:
    """Run validation rules over the content tree."""
    try:
        if args.list:
            for rule in all_rules():
                print(f"{rule.id:<22} [{rule.scope}] {rule.description}")
            return EXIT_OK

        settings = _settings_from_args(args)
        facts = load_fact_table(settings.facts_dir, settings.derived_overlay)
        engine = ValidationEngine(settings.content_dir, facts, settings)
        engine.register_all(all_rules())

        rule_ids = [r.strip() for r in args.rules.split(",") if r.strip()] if args.rules else None
        issues = engine.validate(rule_ids)

        if args.errors_only:
            issues = [i for i in issues if i.severity == Severity.ERROR]
        if args.fixable:
            issues = [i for i in issues if i.is_fixable]

        if args.fix:
            result = engine.apply_fixes(issues)
            print(f"Fixed {result.issues_fixed} issues in {result.files_fixed} files")
            for error in result.errors:
                print(f"Error: {error.file}: {error.message}", file=sys.stderr)
            if result.fixed_paths:
                log_bulk_fixes(result.fixed_paths, tool=VALIDATE_TOOL, agency="automated",
                               note="Applied validation auto-fixes",
                               client=EditLogClient.from_settings(settings))
            if result.errors:
                return EXIT_WRITE_FAILURE
            remaining = [i for i in issues if not i.is_fixable]
            if remaining:
                print(format_output(remaining, ci=args.ci, content_dir=settings.content_dir, verbose=args.verbose))
            return EXIT_ISSUES if any(i.severity == Severity.ERROR for i in remaining) else EXIT_OK

        print(format_output(issues, ci=args.ci, content_dir=settings.content_dir, verbose=args.verbose))
        return EXIT_ISSUES if engine.get_summary(issues)["has_errors"] else EXIT_OK

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ISSUES


def cmd_fact_wrap(args: argparse.Namespace) -> int:
    """Find hardcoded fact values and wrap them in <F> tags."""
    try:
        settings = _settings_from_args(args)
        facts = load_fact_table(settings.facts_dir, settings.derived_overlay, entity=args.entity)
        report = run_fact_wrap(
            settings.content_dir,
            facts,
            page_id=args.page_id,
            entity=args.entity,
            apply=args.apply,
            edit_log=EditLogClient.from_settings(settings),
            skip_prefixes=settings.skip_prefixes,
        )
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ISSUES

    print(f"Loaded {report.fact_count} facts, {report.pattern_count} patterns")

    for result in report.files:
        if result.error:
            print(f"Error: {result.relative_path}: {result.error}", file=sys.stderr)
        if not result.matches:
            continue
        print(f"\n{result.relative_path} ({len(result.matches)} matches)")
        raw_lines = None
        if args.verbose:
            try:
                with open(result.path, 'r', encoding='utf-8') as f:
                    raw_lines = f.read().split("\n")
            except OSError:
                raw_lines = None
        for match in result.matches:
            print(f'  + L{match.line}: "{match.matched_text}" -> <F e="{match.entity}" f="{match.fact_id}">')
            if args.verbose and raw_lines and not args.apply and match.line <= len(raw_lines):
                print(f"      {raw_lines[match.line - 1].strip()[:120]}")

    total = report.total_matches
    files = len(report.files_with_matches)
    print()
    if args.apply:
        written = len(report.written_files)
        print(f"Applied {total} wraps across {written} files")
        if report.failures:
            print(f"{len(report.failures)} files failed", file=sys.stderr)
            return EXIT_WRITE_FAILURE
        return EXIT_OK

    if total:
        print(f"{total} wraps across {files} files (dry run, use --apply to write)")
        return EXIT_ISSUES
    print("No unwrapped fact values found")
    return EXIT_OK


def cmd_edit_log(args: argparse.Namespace) -> int:
    """Query or append to the remote edit log."""
    try:
        settings = _settings_from_args(args)
        require_server_url(settings)
        client = EditLogClient.from_settings(settings)

        if args.action == "health":
            if client.is_available():
                print("Edit-log server: healthy")
                return EXIT_OK
            print("Edit-log server: unavailable", file=sys.stderr)
            return EXIT_ISSUES

        if args.action == "add":
            entry = append_edit_log(args.page_id, args.tool, args.agency,
                                    requested_by=args.requested_by, note=args.note, client=client)
            if entry is None:
                print(f"Error: edit not recorded for {args.page_id}", file=sys.stderr)
                return EXIT_ISSUES
            print(f"Logged {entry.tool} edit for {entry.page_id} ({entry.date})")
            return EXIT_OK

        if args.action == "view":
            data = client.entries_for_page(args.page_id)
        else:
            data = client.stats()
        if data is None:
            print(f"Error: edit-log server not available. Check {SERVER_URL_ENV}.", file=sys.stderr)
            return EXIT_ISSUES

        if args.action == "view":
            entries = data.get("entries", []) if isinstance(data, dict) else data
            print(json.dumps(entries, indent=2) if args.json else format_edit_history(args.page_id, entries))
        else:
            print(json.dumps(data, indent=2) if args.json else format_edit_stats(data))
        return EXIT_OK

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ISSUES


def cmd_check_config(args: argparse.Namespace) -> int:
    """Report which settings are configured."""
    try:
        settings = _settings_from_args(args)
        status = check_settings(settings)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ISSUES

    for name, state in status.items():
        print(f"{name}: {state}")
    if status["content_dir"] == "MISSING" or status["facts_dir"] == "MISSING":
        print("\nSet paths in config/factlint.yaml or pass --content-dir/--facts-dir.")
        return EXIT_ISSUES
    return EXIT_OK


def _add_path_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--content-dir", help="Content root (default from config)")
    parser.add_argument("--facts-dir", help="Fact store directory (default from config)")
    parser.add_argument("--config", help="Path to factlint.yaml")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        prog="factlint",
        description="Content validation and fact annotation for MDX pages"
    )
    parser.add_argument("--log-file", help="Also append log records to this file")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Run validation rules")
    validate_parser.add_argument("--rules", help="Comma-separated rule ids (default: all)")
    validate_parser.add_argument("--ci", action="store_true", help="JSON output")
    validate_parser.add_argument("--list", action="store_true", help="List available rules")
    validate_parser.add_argument("--errors-only", action="store_true", help="Only report errors")
    validate_parser.add_argument("--fix", action="store_true", help="Apply auto-fixes")
    validate_parser.add_argument("--fixable", action="store_true", help="Only report fixable issues")
    validate_parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    _add_path_options(validate_parser)
    validate_parser.set_defaults(func=cmd_validate)

    # fact-wrap command
    wrap_parser = subparsers.add_parser("fact-wrap", help="Wrap hardcoded fact values in <F> tags")
    wrap_parser.add_argument("page_id", nargs="?", help="Only process this page")
    wrap_parser.add_argument("--apply", action="store_true", help="Write changes (default: dry run)")
    wrap_parser.add_argument("--entity", help="Only use facts from this entity")
    wrap_parser.add_argument("-v", "--verbose", action="store_true", help="Show line context for each match")
    _add_path_options(wrap_parser)
    wrap_parser.set_defaults(func=cmd_fact_wrap)

    # edit-log command
    log_parser = subparsers.add_parser("edit-log", help="Query or append to the edit log")
    log_parser.add_argument("--json", action="store_true", help="JSON output")
    log_parser.add_argument("--config", help="Path to factlint.yaml")
    log_actions = log_parser.add_subparsers(dest="action", help="Actions")
    log_actions.required = True

    view_parser = log_actions.add_parser("view", help="Show edit history for a page")
    view_parser.add_argument("page_id", help="Page id")
    log_actions.add_parser("stats", help="Show edit-log statistics")
    log_actions.add_parser("health", help="Check the edit-log server")
    add_parser = log_actions.add_parser("add", help="Record one edit")
    add_parser.add_argument("page_id", help="Page id")
    add_parser.add_argument("--tool", required=True, help="Tool that made the edit")
    add_parser.add_argument("--agency", choices=AGENCIES, default="human", help="Who directed the edit")
    add_parser.add_argument("--requested-by", help="Person who asked for the edit")
    add_parser.add_argument("--note", help="Free-text reason")
    log_parser.set_defaults(func=cmd_edit_log, verbose=False)

    # check-config command
    check_parser = subparsers.add_parser("check-config", help="Check configuration")
    _add_path_options(check_parser)
    check_parser.set_defaults(func=cmd_check_config, verbose=False)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_ISSUES

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING, log_file=args.log_file)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
