"""mcpdecl CLI: compile and dry-run check declarative server definitions."""

import argparse
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import Dict, List, Optional


def _parse_rule_overrides(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated --rule RULE=SEVERITY flags."""
    overrides: Dict[str, str] = {}
    for value in values or []:
        rule, sep, severity = value.partition("=")
        if not sep or not rule or severity not in ("off", "warn", "error"):
            raise ValueError(f"Invalid --rule '{value}'. Expected RULE=off|warn|error")
        overrides[rule.strip()] = severity
    return overrides


def main():
    """Main CLI entry point for mcpdecl commands."""
    # Get version for --version argument (handle PackageNotFoundError)
    try:
        mcpdecl_version = get_version("mcpdecl")
    except PackageNotFoundError:
        mcpdecl_version = "dev"

    parser = argparse.ArgumentParser(
        prog="mcpdecl",
        description="mcpdecl: static compiler for declarative MCP server definitions"
    )
    parser.add_argument("--version", action="version", version=f"mcpdecl {mcpdecl_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # check command
    check_parser = subparsers.add_parser(
        "check",
        help="Dry run: compile, validate skills and check implementations",
        parents=[parent_parser]
    )
    check_parser.add_argument(
        "file",
        type=Path,
        help="Path to the server definition entry file"
    )
    check_parser.add_argument(
        "--strict",
        action="store_true",
        default=None,
        help="Treat every validation warning as an error"
    )
    check_parser.add_argument(
        "--no-validation",
        dest="validation_enabled",
        action="store_false",
        default=None,
        help="Skip skill validation rules"
    )
    check_parser.add_argument(
        "--rule",
        action="append",
        default=None,
        metavar="RULE=SEVERITY",
        help="Override one rule's severity (off, warn, error); may be repeated"
    )
    check_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the check result as canonical JSON instead of the report"
    )
    check_parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output"
    )

    # compile command
    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile a server definition into parse_result.json",
        parents=[parent_parser]
    )
    compile_parser.add_argument(
        "file",
        type=Path,
        help="Path to the server definition entry file"
    )
    compile_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output directory for parse_result.json (prints to stdout when omitted)"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # configure structlog (respects MCPDECL_DEBUG env var)
    from .logging_config import configure_logging

    configure_logging()

    if args.command == "check":
        # Lazy import: only import the kernel when a command runs
        from .api import check
        from .kernel.errors import CompilerError
        from .kernel.program import discover_project_config
        from .kernel.validation import load_validation_config

        try:
            entry = Path(args.file).resolve()
            project_config = discover_project_config(entry.parent)

            overrides = dict(project_config.validation)
            overrides["rules"] = {
                **(project_config.validation.get("rules") or {}),
                **_parse_rule_overrides(args.rule),
            }
            overrides["strict"] = args.strict
            overrides["enabled"] = args.validation_enabled
            validation_config = load_validation_config(overrides)

            result = check(entry, validation_config=validation_config, project_config=project_config)
        except CompilerError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        if args.json:
            from ._internal.canonical_json import canonical_dumps

            print(canonical_dumps(result))
        elif not args.quiet:
            from ._internal.reporting.warning_report import format_warnings

            findings = result.errors + result.warnings
            print(format_warnings(findings, color=False if args.no_color else None), end="")
            status = "OK" if result.ok else "FAILED"
            print(f"[{status}] Check complete: {entry}")
            print(f"  Errors: {len(result.errors)}")
            print(f"  Warnings: {len(result.warnings)}")

        if not result.ok:
            sys.exit(1)
    elif args.command == "compile":
        from .api import compile_file
        from .kernel.errors import CompilerError
        from ._internal.canonical_json import canonical_dumps

        try:
            result = compile_file(Path(args.file).resolve())
        except CompilerError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        payload = canonical_dumps(result) + "\n"
        if args.out is not None:
            output_dir = Path(args.out).resolve()
            output_dir.mkdir(parents=True, exist_ok=True)
            out_path = output_dir / "parse_result.json"
            out_path.write_text(payload, encoding="utf-8")
            if not args.quiet:
                print("[OK] Compile complete")
                print(f"  Output: {out_path}")
                print(f"  Tools: {len(result.tools)}")
                print(f"  Resources: {len(result.resources)}")
                print(f"  Prompts: {len(result.prompts)}")
                print(f"  Diagnostics: {len(result.diagnostics)}")
        else:
            print(payload, end="")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
