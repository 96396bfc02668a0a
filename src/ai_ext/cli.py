"""
Command-line interface for ai-ext.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ai_ext.compiler import Compiler, ExtensionValidationError
from ai_ext.config import AiExtConfig
from ai_ext.loaders.manifest import ManifestNotFoundError
from ai_ext.logging import setup_logging
from ai_ext.models import BuildOptions, BuildResult
from ai_ext.resolver import ResolveResult, resolve_extension
from ai_ext.runtime.server import run_runtime_server
from ai_ext.scaffold import init_extension
from ai_ext.targets.registry import UnknownTargetError

console = Console()
# stdout belongs to the MCP transport while serving
err_console = Console(stderr=True)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Portable skills, agents, hooks and tools across AI coding hosts",
        prog="ai-ext",
    )

    # Global options
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Init command
    init_parser = subparsers.add_parser("init", help="Initialize a new extension project")
    init_parser.add_argument("-d", "--dir", default=".", help="Directory to initialize")
    init_parser.add_argument("-n", "--name", help="Extension name")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate an extension without compiling")
    validate_parser.add_argument("-d", "--dir", default=".", help="Extension directory")
    validate_parser.add_argument(
        "--fix",
        action="store_true",
        help="Quote YAML descriptions that would not parse, rewriting the files",
    )
    validate_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )

    # Build command
    build_parser = subparsers.add_parser("build", help="Compile an extension for target host(s)")
    build_parser.add_argument(
        "-t",
        "--target",
        nargs="+",
        action="extend",
        dest="targets",
        help="Target host(s): claude, kilocode, opencode (default: from ai-ext.yaml, else all)",
    )
    build_parser.add_argument("-d", "--dir", default=".", help="Extension source directory")
    build_parser.add_argument("-o", "--out-dir", help="Output directory (default: <dir>/dist/<target>)")
    build_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be generated without writing",
    )
    build_parser.add_argument(
        "--fix",
        action="store_true",
        help="Quote YAML descriptions that would not parse before building",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the runtime MCP server (stdio transport)")
    serve_parser.add_argument("-d", "--dir", default=".", help="Extension directory")

    args = parser.parse_args()

    # Setup logging based on verbosity
    if getattr(args, "verbose", False):
        setup_logging("DEBUG")
    else:
        setup_logging("WARNING")

    if args.command == "init":
        cmd_init(args)
    elif args.command == "validate":
        cmd_validate(args)
    elif args.command == "build":
        cmd_build(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()


def _fail(message: str, out: Console = console) -> None:
    out.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def cmd_init(args: argparse.Namespace) -> None:
    """Initialize a new extension project."""
    try:
        manifest_path = init_extension(args.dir, name=args.name)
    except FileExistsError as e:
        _fail(str(e))
        return

    console.print(f"[green]Extension initialized at {escape(str(manifest_path.parent))}[/green]")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Edit extension.yaml to configure your extension")
    console.print("  2. Add skills, agents, hooks, tools, and policies")
    console.print("  3. Run 'ai-ext validate' to check your extension")
    console.print("  4. Run 'ai-ext build --target <host>' to compile for a specific host")


def _print_findings(result: ResolveResult) -> None:
    errors = result.error_findings
    warnings = result.warning_findings

    if errors:
        console.print(f"\n[bold red]{len(errors)} error(s):[/bold red]")
        for e in errors:
            console.print(f"  [red]✗[/red] {escape(str(e))}")

    if warnings:
        console.print(f"\n[bold yellow]{len(warnings)} warning(s):[/bold yellow]")
        for w in warnings:
            console.print(f"  [yellow]⚠[/yellow] {escape(str(w))}")


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate an extension."""
    directory = Path(args.dir).resolve()
    config = AiExtConfig.discover(directory)

    try:
        result = resolve_extension(
            directory, fix_yaml_descriptions=args.fix or config.fix_yaml_descriptions
        )
    except ManifestNotFoundError as e:
        _fail(str(e))
        return

    if args.json:
        data = {
            "valid": result.valid,
            "name": result.ir.name,
            "components": result.ir.counts(),
            "errors": [e.to_dict() for e in result.errors],
        }
        console.print_json(json.dumps(data))
        if not result.valid:
            sys.exit(1)
        return

    console.print(f"\n[bold]Validating extension at {escape(str(directory))}[/bold]")

    table = Table(title="Components")
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right")
    for kind, count in result.ir.counts().items():
        table.add_row(kind.capitalize(), str(count))
    console.print(table)

    _print_findings(result)

    if result.valid:
        console.print("\n[green]Extension is valid.[/green]")
    else:
        console.print("\n[red]Extension has errors. Fix them before building.[/red]")
        sys.exit(1)


def _print_build_result(result: BuildResult, dry_run: bool) -> None:
    console.print(f"\n[bold]{result.target}[/bold]: {len(result.files)} file(s)")

    if dry_run:
        for path in result.files:
            console.print(f"  [dim]\\[dry][/dim] {escape(path)}")
    elif result.out_dir is not None:
        console.print(f"  [dim]Written to {escape(str(result.out_dir))}[/dim]")

    if result.warnings:
        console.print(f"  {len(result.warnings)} warning(s):")
        for w in result.warnings:
            color = "dim" if w.severity == "info" else "yellow"
            console.print(
                f"    [{color}]\\[{w.severity}][/{color}] {escape(w.component)}: {escape(w.message)}"
            )

    if result.compensation_requirements:
        console.print("  Runtime required for:")
        for r in result.compensation_requirements:
            console.print(f"    - {escape(r.feature)}: {escape(r.reason)}")
        console.print("  Run 'ai-ext serve' to start the runtime MCP server.")


def cmd_build(args: argparse.Namespace) -> None:
    """Compile an extension for one or more targets."""
    directory = Path(args.dir).resolve()
    config = AiExtConfig.discover(directory)
    compiler = Compiler(config=config)
    targets = args.targets or list(config.default_targets)

    options = BuildOptions(
        target=targets[0],
        source_dir=directory,
        out_dir=Path(args.out_dir).resolve() if args.out_dir else None,
        dry_run=args.dry_run,
        fix_yaml_descriptions=args.fix,
        verbose=getattr(args, "verbose", False),
    )

    try:
        results = compiler.compile_many(targets, options)
    except (UnknownTargetError, ManifestNotFoundError, ExtensionValidationError, OSError) as e:
        _fail(str(e))
        return

    for result in results:
        _print_build_result(result, args.dry_run)

    console.print(f"\n[green]Done.[/green] Built {len(results)} target(s).")


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the runtime MCP server on stdio."""
    directory = Path(args.dir).resolve()
    config = AiExtConfig.discover(directory)

    try:
        result = resolve_extension(directory)
    except ManifestNotFoundError as e:
        _fail(str(e), err_console)
        return

    if not result.valid:
        _fail(str(ExtensionValidationError(result.error_findings)), err_console)
        return

    counts = result.ir.counts()
    err_console.print(
        f"[dim]ai-ext runtime server starting "
        f"({counts['tools']} tools, {counts['hooks']} hooks)...[/dim]"
    )
    asyncio.run(run_runtime_server(result.ir, project_dir=Path.cwd(), config=config))


if __name__ == "__main__":
    main()
