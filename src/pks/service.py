"""Initialization service: the entry point for creating a project."""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from pks.config import DEFAULT_TEMPLATES_DIR, USER_TEMPLATES_DIR_KEY
from pks.coordination import try_lock
from pks.logging_utils import RunLogger
from pks.registry import InitializerRegistry
from pks.types import InitializationContext, InitializationSummary, TemplateInfo, ValidationResult
from pks.validation import ensure_directory, validate_project_name, validate_target_directory

TEMPLATE_METADATA_FILE = "template.json"

BUILTIN_TEMPLATES = (
    TemplateInfo(
        name="console",
        display_name="Console Application",
        description="A simple .NET console application",
        tags=["dotnet", "console", "basic"],
    ),
    TemplateInfo(
        name="api",
        display_name="Web API",
        description="ASP.NET Core Web API application",
        tags=["dotnet", "api", "web", "aspnetcore"],
    ),
    TemplateInfo(
        name="web",
        display_name="Web Application",
        description="ASP.NET Core MVC web application",
        tags=["dotnet", "web", "mvc", "aspnetcore"],
    ),
    TemplateInfo(
        name="agent",
        display_name="Agentic Application",
        description="AI-powered agentic application with automation capabilities",
        tags=["dotnet", "ai", "agent", "automation"],
    ),
)


class InitializationService:
    """Validates the target, runs the registry and summarizes the run."""

    def __init__(
        self,
        registry: InitializerRegistry,
        console: Optional[Console] = None,
        run_logger: Optional[RunLogger] = None,
        templates_base_path: Optional[Path] = None,
        lock_runs: bool = True,
        show_summary: bool = True,
    ):
        self.registry = registry
        self.console = console or registry.console
        self.run_logger = run_logger or registry.run_logger
        self.templates_base_path = Path(templates_base_path) if templates_base_path else DEFAULT_TEMPLATES_DIR
        self.lock_runs = lock_runs
        self.show_summary = show_summary

    async def initialize_project(self, context: InitializationContext) -> InitializationSummary:
        """Run every applicable initializer against the context.

        Never raises: validation problems and unexpected errors come back as
        a failed summary with ``error_message`` set.
        """
        summary = InitializationSummary(
            project_name=context.project_name,
            template=context.template,
            target_directory=context.target_directory,
            start_time=datetime.now(),
        )

        lock = None
        try:
            self._log(f"Initializing '{context.project_name}' ({context.template}) in {context.target_directory}")

            validation = self.validate_project_name(context.project_name)
            if validation.is_valid:
                validation = self.validate_target_directory(context.target_directory, context.force)
            if not validation.is_valid:
                return self._fail(summary, validation.error_message)

            if self.lock_runs:
                lock = try_lock(context.target_directory)
                if lock is None:
                    return self._fail(
                        summary,
                        f"Another initialization is already running for '{context.target_directory}'",
                    )

            created = self.ensure_directory(context.target_directory)
            if not created.is_valid:
                return self._fail(summary, created.error_message)

            context.set_metadata(USER_TEMPLATES_DIR_KEY, str(self.templates_base_path))
            summary.results = await self.registry.execute_all(context)
            summary.run_warnings = list(context.warnings)
            summary.collect_statistics()
            if not summary.success:
                failed = sum(1 for r in summary.results if not r.success)
                summary.error_message = f"{failed} initializer(s) failed"
        except Exception as e:
            summary.success = False
            summary.error_message = str(e)
            self.console.print(f"[red]Initialization error: {escape(str(e))}[/]", highlight=False)
            self._log(f"Orchestration failed: {e}", level="ERROR")
        finally:
            if lock is not None:
                lock.release()

        return self._finish(summary)

    def _fail(self, summary: InitializationSummary, message: Optional[str]) -> InitializationSummary:
        summary.success = False
        summary.error_message = message
        self._log(f"Validation failed: {message}", level="ERROR")
        return self._finish(summary)

    def _finish(self, summary: InitializationSummary) -> InitializationSummary:
        summary.end_time = datetime.now()
        if self.run_logger:
            try:
                self.run_logger.finalize(summary)
            except OSError as e:
                self._log_unavailable(e)
        if self.show_summary:
            try:
                self.display_summary(summary)
            except Exception as e:
                summary.run_warnings.append(f"Could not display summary: {e}")
        return summary

    def _log(self, message: str, level: str = "INFO") -> None:
        if not self.run_logger:
            return
        try:
            self.run_logger.log(message, level=level)
        except OSError as e:
            self._log_unavailable(e)

    def _log_unavailable(self, error: OSError) -> None:
        self.console.print(f"[yellow]Cannot write run log: {escape(str(error))}[/]", highlight=False)

    def validate_target_directory(self, target_directory: str, force: bool) -> ValidationResult:
        return validate_target_directory(target_directory, force)

    def ensure_directory(self, target_directory: str) -> ValidationResult:
        return ensure_directory(target_directory)

    def validate_project_name(self, project_name: str) -> ValidationResult:
        return validate_project_name(project_name)

    def create_context(
        self,
        project_name: str,
        template: str,
        target_directory: str,
        force: bool,
        options: Dict[str, Any],
        description: Optional[str] = None,
    ) -> InitializationContext:
        """Build a context for a run.

        The run is interactive unless ``options`` contains ``non-interactive``.
        """
        return InitializationContext(
            project_name=project_name,
            template=template,
            target_directory=target_directory,
            working_directory=os.getcwd(),
            description=description,
            force=force,
            interactive="non-interactive" not in options,
            options=options,
        )

    def get_available_templates(self) -> List[TemplateInfo]:
        """Templates found under the templates directory plus the built-in set.

        A ``template.json`` in a template directory overrides the generated
        display name and description; unreadable metadata is ignored.
        """
        templates: List[TemplateInfo] = []

        if self.templates_base_path.is_dir():
            for template_dir in sorted(p for p in self.templates_base_path.iterdir() if p.is_dir()):
                templates.append(_load_template_info(template_dir))

        for builtin in BUILTIN_TEMPLATES:
            templates.append(TemplateInfo(
                name=builtin.name,
                display_name=builtin.display_name,
                description=builtin.description,
                tags=list(builtin.tags),
            ))

        return sorted(templates, key=lambda t: t.display_name)

    def render_summary(self, summary: InitializationSummary) -> Panel:
        """Build the summary panel shown at the end of a run."""
        lines = [
            f"[bold]Project:[/] {escape(summary.project_name)}",
            f"[bold]Template:[/] {escape(summary.template)}",
            f"[bold]Location:[/] {escape(summary.target_directory)}",
            f"[bold]Duration:[/] {summary.duration.total_seconds():.1f}s",
        ]
        if summary.files_created > 0:
            lines.append(f"[bold]Files Created:[/] {summary.files_created}")
        if summary.warnings_count > 0:
            lines.append(f"[bold yellow]Warnings:[/] {summary.warnings_count}")
        if summary.errors_count > 0:
            lines.append(f"[bold red]Errors:[/] {summary.errors_count}")
        if not summary.success and summary.error_message:
            lines.append("")
            lines.append(f"[red]Error: {escape(summary.error_message)}[/]")

        if summary.success:
            title = "[bold green]✓ Initialization Complete[/]"
        else:
            title = "[bold red]✗ Initialization Failed[/]"

        return Panel(
            "\n".join(lines),
            title=title,
            box=box.DOUBLE,
            border_style="green" if summary.success else "red",
            expand=False,
        )

    def display_summary(self, summary: InitializationSummary) -> None:
        self.console.print()
        self.console.print(self.render_summary(summary))


def _load_template_info(template_dir: Path) -> TemplateInfo:
    name = template_dir.name
    info = TemplateInfo(
        name=name,
        display_name=name.replace("-", " ").replace("_", " "),
        description=f"Template for {name} projects",
        path=str(template_dir),
    )

    metadata_path = template_dir / TEMPLATE_METADATA_FILE
    if not metadata_path.is_file():
        return info

    try:
        metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return info
    if not isinstance(metadata, dict):
        return info

    # Fields with the wrong type keep their defaults
    display_name = metadata.get("displayName")
    if isinstance(display_name, str) and display_name:
        info.display_name = display_name
    description = metadata.get("description")
    if isinstance(description, str) and description:
        info.description = description
    tags = metadata.get("tags")
    if isinstance(tags, list) and all(isinstance(tag, str) for tag in tags):
        info.tags = list(tags)
    author = metadata.get("author")
    if isinstance(author, str):
        info.author = author
    version = metadata.get("version")
    if isinstance(version, str):
        info.version = version
    default_options = metadata.get("defaultOptions")
    if isinstance(default_options, dict):
        info.default_options = dict(default_options)
    return info
