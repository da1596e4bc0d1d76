"""Command-line entry point: ``pks-init PROJECT_NAME [options]``."""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml  # type: ignore[import-untyped]
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pks.config import PksConfig, load_config
from pks.logging_utils import RunLogger
from pks.registry import InitializerRegistry
from pks.service import InitializationService
from pks.types import (
    OPTION_BOOL,
    OPTION_INTEGER,
    OPTION_STRING_ARRAY,
    InitializerOption,
)

# Short flags owned by pks-init itself
_RESERVED_SHORT = {"h", "t", "d", "f"}


def build_parser(options: Sequence[InitializerOption]) -> argparse.ArgumentParser:
    """Build the argument parser, including every initializer option.

    Initializer options default to None so that only values the user
    actually passed end up in the run's option map.
    """
    parser = argparse.ArgumentParser(
        prog="pks-init",
        description="Initialize a new project from a template",
    )
    parser.add_argument(
        "project_name",
        nargs="?",
        help="Name of the project to create",
    )
    parser.add_argument(
        "-t", "--template",
        type=str,
        default=None,
        help="Project template (default: console, or default_template from config)",
    )
    parser.add_argument(
        "-d", "--description",
        type=str,
        default=None,
        help="Project description",
    )
    parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Overwrite existing files",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Never prompt; keep existing files unless --force is given",
    )
    parser.add_argument(
        "--target",
        type=Path,
        default=None,
        metavar="DIR",
        help="Target directory (default: ./PROJECT_NAME)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Configuration file (default: .pks/config.yaml if present)",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Write run logs under DIR",
    )
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="List available templates and exit",
    )
    parser.add_argument(
        "--list-initializers",
        action="store_true",
        help="List registered initializers and exit",
    )

    group = parser.add_argument_group("initializer options")
    taken_long = {action.dest for action in parser._actions}
    taken_short = set(_RESERVED_SHORT)
    for option in options:
        dest = option.name.replace("-", "_")
        if dest in taken_long:
            continue
        taken_long.add(dest)

        flags = [f"--{option.name}"]
        if option.short_name and len(option.short_name) == 1 and option.short_name not in taken_short:
            taken_short.add(option.short_name)
            flags.insert(0, f"-{option.short_name}")

        kwargs: Dict[str, Any] = {"dest": dest, "default": None, "help": option.description}
        if option.value_type == OPTION_BOOL:
            kwargs["action"] = "store_true"
        elif option.value_type == OPTION_INTEGER:
            kwargs["type"] = int
        elif option.value_type == OPTION_STRING_ARRAY:
            kwargs["nargs"] = "*"
        else:
            kwargs["type"] = str
        if option.default_value is not None and option.value_type != OPTION_BOOL:
            kwargs["help"] = f"{option.description} (default: {option.default_value})"

        group.add_argument(*flags, **kwargs)

    return parser


def collect_options(
    args: argparse.Namespace,
    options: Sequence[InitializerOption],
    defaults: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Merge configured default options with the ones passed on the command line.

    Command-line values win. Keys use the option names (``remote-url``),
    not argparse destinations.
    """
    collected: Dict[str, Any] = dict(defaults or {})
    for option in options:
        value = getattr(args, option.name.replace("-", "_"), None)
        if value is None or value is False:
            continue
        collected[option.name] = value
    if args.non_interactive:
        collected["non-interactive"] = True
    return collected


def validate_options(options: Sequence[InitializerOption], values: Dict[str, Any]) -> List[str]:
    """Run each option's validator against the supplied value."""
    errors = []
    for option in options:
        if option.name not in values:
            continue
        error = option.validate(values[option.name])
        if error:
            errors.append(f"--{option.name}: {error}")
    return errors


def print_templates(console: Console, service: InitializationService) -> None:
    table = Table(title="Available Templates")
    table.add_column("Name", style="cyan")
    table.add_column("Display Name")
    table.add_column("Description")
    table.add_column("Source", style="dim")
    for template in service.get_available_templates():
        source = "built-in" if template.is_builtin else template.path
        table.add_row(template.name, template.display_name, template.description, source)
    console.print(table)


def print_initializers(console: Console, registry: InitializerRegistry) -> None:
    table = Table(title="Initializers")
    table.add_column("Order", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    for initializer in registry.get_all():
        order = f"[red]{initializer.order}[/]" if initializer.is_critical else str(initializer.order)
        table.add_row(order, initializer.id, initializer.name, initializer.description)
    console.print(table)
    console.print("[dim]Initializers in red stop the run when they fail.[/]")


def main(argv: Optional[Sequence[str]] = None, console: Optional[Console] = None) -> int:
    """CLI entry point for pks-init.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    console = console or Console()
    registry = InitializerRegistry(console=console)
    registry.discover_and_register()
    unit_options = registry.get_all_options()

    parser = build_parser(unit_options)
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Cannot load configuration: {escape(str(e))}[/]", highlight=False)
        return 1

    service = InitializationService(
        registry,
        console=console,
        templates_base_path=config.user_templates_dir(),
        lock_runs=config.lock_runs,
        show_summary=config.show_summary,
    )

    if args.list_templates:
        print_templates(console, service)
        return 0
    if args.list_initializers:
        print_initializers(console, registry)
        return 0

    if not args.project_name:
        console.print("[red]Project name is required[/]")
        parser.print_usage()
        return 1

    validation = service.validate_project_name(args.project_name)
    if not validation.is_valid:
        console.print(f"[red]Error: {escape(validation.error_message or '')}[/]", highlight=False)
        return 1

    requested = args.template or config.default_template
    known = {t.name.lower(): t.name for t in service.get_available_templates()}
    template = known.get(requested.lower())
    if template is None:
        console.print(f"[red]Template '{escape(requested)}' not found.[/]", highlight=False)
        print_templates(console, service)
        return 1

    options = collect_options(args, unit_options, config.default_options)
    errors = validate_options(unit_options, options)
    if errors:
        for error in errors:
            console.print(f"[red]Error: {escape(error)}[/]", highlight=False)
        return 1

    run_logger = _make_run_logger(args.log_dir, config)
    registry.run_logger = run_logger
    service.run_logger = run_logger

    target = args.target or Path(os.getcwd()) / args.project_name
    context = service.create_context(
        project_name=args.project_name,
        template=template,
        target_directory=str(Path(target).resolve()),
        force=args.force,
        options=options,
        description=args.description,
    )

    summary = asyncio.run(service.initialize_project(context))
    if not summary.success:
        return 1

    console.print()
    console.print("[bold]Next steps:[/]")
    console.print(f"  cd {escape(context.target_directory)}")
    return 0


def _make_run_logger(log_dir: Optional[Path], config: PksConfig) -> Optional[RunLogger]:
    base_dir = log_dir or (Path(config.logs_dir).expanduser() if config.logs_dir else None)
    if base_dir is None:
        return None
    return RunLogger(base_dir=str(base_dir))


if __name__ == "__main__":
    sys.exit(main())
