"""Tests for pks.service, including end-to-end initialization runs."""

import asyncio
import json
import shutil
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from pks.base_initializer import CodeInitializer
from pks.coordination import run_lock
from pks.initializers import ProjectTemplateInitializer
from pks.logging_utils import RunLogger
from pks.registry import InitializerRegistry
from pks.service import InitializationService
from pks.template_initializer import TemplateInitializer
from pks.types import InitializationResult


class WriteOne(CodeInitializer):
    id = "write-one"
    name = "Write One"
    order = 10

    async def execute_code(self, context, result):
        await self.create_file(Path(context.target_directory) / "hello.txt", "hi", context, result)


class Fails(CodeInitializer):
    id = "fails"
    name = "Fails"

    def __init__(self, order):
        self.order = order

    async def execute_code(self, context, result):
        raise RuntimeError("broken step")


class Flag(CodeInitializer):
    id = "flag"
    name = "Flag"

    def __init__(self, order):
        self.order = order
        self.ran = False

    async def execute_code(self, context, result):
        self.ran = True


def _service(console, *units, **kwargs):
    registry = InitializerRegistry(console=console)
    for unit in units:
        registry.register(unit)
    return InitializationService(registry, console=console, **kwargs)


class TestEndToEnd:

    def test_happy_path_single_unit(self, console, make_context):
        ctx = make_context()
        summary = asyncio.run(_service(console, WriteOne()).initialize_project(ctx))

        assert summary.success
        assert summary.files_created == 1
        assert summary.errors_count == 0
        assert summary.error_message is None
        assert summary.end_time is not None
        assert (Path(ctx.target_directory) / "hello.txt").read_text() == "hi"

    def test_missing_target_created(self, console, make_context):
        ctx = make_context()
        assert not Path(ctx.target_directory).exists()
        asyncio.run(_service(console).initialize_project(ctx))
        assert Path(ctx.target_directory).is_dir()

    def test_critical_short_circuit(self, console, make_context):
        later = Flag(60)
        summary = asyncio.run(_service(console, Fails(10), later).initialize_project(make_context()))

        assert not summary.success
        assert len(summary.results) == 1
        assert not summary.results[0].success
        assert later.ran is False

    def test_non_critical_continuation(self, console, make_context):
        later = Flag(70)
        summary = asyncio.run(_service(console, Fails(60), later).initialize_project(make_context()))

        assert not summary.success
        assert len(summary.results) == 2
        assert later.ran is True
        assert summary.error_message == "1 initializer(s) failed"

    def test_non_empty_directory_without_force(self, console, make_context):
        ctx = make_context()
        Path(ctx.target_directory).mkdir()
        (Path(ctx.target_directory) / "existing.txt").write_text("x")
        unit = Flag(60)

        summary = asyncio.run(_service(console, unit).initialize_project(ctx))

        assert not summary.success
        assert summary.results == []
        assert "not empty" in summary.error_message
        assert unit.ran is False

    def test_non_empty_directory_with_force(self, console, make_context):
        ctx = make_context(force=True)
        Path(ctx.target_directory).mkdir()
        (Path(ctx.target_directory) / "existing.txt").write_text("x")
        summary = asyncio.run(_service(console, WriteOne()).initialize_project(ctx))
        assert summary.success

    def test_placeholder_rendering(self, console, make_context, tmp_path):
        class Rendered(TemplateInitializer):
            id = "rendered"
            name = "Rendered"
            order = 20
            template_directory = "simple"

        template = tmp_path / "templates" / "simple"
        template.mkdir(parents=True)
        (template / "Program.txt").write_text("Hello {{ProjectName}}")
        ctx = make_context(project_name="Acme")

        unit = Rendered(template_base_path=tmp_path / "templates")
        summary = asyncio.run(_service(console, unit).initialize_project(ctx))

        assert summary.success
        assert (Path(ctx.target_directory) / "Program.txt").read_text() == "Hello Acme"

    def test_invalid_project_name_runs_nothing(self, console, make_context):
        unit = Flag(60)
        summary = asyncio.run(_service(console, unit).initialize_project(make_context(project_name="CON")))
        assert not summary.success
        assert "reserved system name" in summary.error_message
        assert unit.ran is False

    def test_run_warnings_carried_to_summary(self, console, make_context):
        class Picky(Flag):
            async def should_run(self, context):
                raise ValueError("cannot decide")

        summary = asyncio.run(_service(console, Picky(60), WriteOne()).initialize_project(make_context()))
        assert summary.success
        assert summary.run_warnings == ["Error checking if Flag should run: cannot decide"]
        assert summary.warnings_count == 0

    def test_orchestration_error_becomes_failed_summary(self, console, make_context):
        service = _service(console, WriteOne())
        with patch.object(service.registry, "execute_all", AsyncMock(side_effect=RuntimeError("registry exploded"))):
            summary = asyncio.run(service.initialize_project(make_context()))
        assert not summary.success
        assert summary.error_message == "registry exploded"

    def test_concurrent_run_rejected(self, console, make_context):
        ctx = make_context()
        with run_lock(ctx.target_directory) as held:
            assert held is not None
            summary = asyncio.run(_service(console, WriteOne()).initialize_project(ctx))
        assert not summary.success
        assert "Another initialization is already running" in summary.error_message

    def test_lock_released_after_run(self, console, make_context):
        ctx = make_context()
        asyncio.run(_service(console, WriteOne()).initialize_project(ctx))
        with run_lock(ctx.target_directory) as lock:
            assert lock is not None

    def test_lock_can_be_disabled(self, console, make_context):
        ctx = make_context()
        with run_lock(ctx.target_directory):
            summary = asyncio.run(_service(console, WriteOne(), lock_runs=False).initialize_project(ctx))
        assert summary.success

    def test_run_log_written(self, console, make_context, tmp_path):
        run_logger = RunLogger(base_dir=str(tmp_path / "logs"))
        registry = InitializerRegistry(console=console, run_logger=run_logger)
        registry.register(WriteOne())
        service = InitializationService(registry, console=console)

        asyncio.run(service.initialize_project(make_context()))

        log = run_logger.run_log_path.read_text(encoding="utf-8")
        assert "Run Summary" in log
        assert "Status: SUCCESS" in log
        assert (run_logger.unit_logs_dir / "write-one.log").exists()

    def test_run_log_failure_does_not_raise(self, console, make_context, tmp_path):
        run_logger = RunLogger(base_dir=str(tmp_path / "logs"))
        shutil.rmtree(run_logger.run_dir)
        service = _service(console, WriteOne(), run_logger=run_logger)

        summary = asyncio.run(service.initialize_project(make_context()))

        assert summary.success
        assert summary.end_time is not None
        assert "Cannot write run log" in console.file.getvalue()

    def test_validation_failure_with_broken_run_log(self, console, make_context, tmp_path):
        run_logger = RunLogger(base_dir=str(tmp_path / "logs"))
        shutil.rmtree(run_logger.run_dir)
        service = _service(console, run_logger=run_logger)

        summary = asyncio.run(service.initialize_project(make_context(project_name="CON")))

        assert not summary.success
        assert "reserved system name" in summary.error_message

    def test_summary_display_error_recorded(self, console, make_context):
        service = _service(console, WriteOne())
        with patch.object(service, "display_summary", side_effect=RuntimeError("no terminal")):
            summary = asyncio.run(service.initialize_project(make_context()))
        assert summary.success
        assert summary.run_warnings == ["Could not display summary: no terminal"]

    def test_user_templates_dir_passed_to_initializers(self, console, make_context, tmp_path):
        user_dir = tmp_path / "user-templates"
        (user_dir / "console").mkdir(parents=True)
        (user_dir / "console" / "mine.txt").write_text("{{ProjectName}} from user dir")
        ctx = make_context(project_name="Acme")

        service = _service(console, ProjectTemplateInitializer(), templates_base_path=user_dir)
        summary = asyncio.run(service.initialize_project(ctx))

        assert summary.success
        assert (Path(ctx.target_directory) / "mine.txt").read_text() == "Acme from user dir"


class TestSummaryDisplay:

    def test_success_panel(self, console, make_context):
        asyncio.run(_service(console, WriteOne()).initialize_project(make_context()))
        output = console.file.getvalue()
        assert "✓ Initialization Complete" in output
        assert "Files Created: 1" in output

    def test_failure_panel(self, console, make_context):
        ctx = make_context()
        Path(ctx.target_directory).mkdir()
        (Path(ctx.target_directory) / "f").write_text("x")
        asyncio.run(_service(console).initialize_project(ctx))
        output = console.file.getvalue()
        assert "✗ Initialization Failed" in output
        assert "not empty" in output

    def test_summary_can_be_hidden(self, console, make_context):
        asyncio.run(_service(console, WriteOne(), show_summary=False).initialize_project(make_context()))
        assert "Initialization Complete" not in console.file.getvalue()


class TestCreateContext:

    def test_interactive_by_default(self, console):
        ctx = _service(console).create_context("Acme", "api", "/tmp/acme", False, {"mcp": True}, "desc")
        assert ctx.interactive
        assert ctx.description == "desc"
        assert ctx.options == {"mcp": True}

    def test_non_interactive_option(self, console):
        ctx = _service(console).create_context("Acme", "api", "/tmp/acme", True, {"non-interactive": True})
        assert not ctx.interactive
        assert ctx.force


class TestTemplates:

    def test_builtins_always_listed(self, console, tmp_path):
        service = _service(console, templates_base_path=tmp_path / "missing")
        names = [t.name for t in service.get_available_templates()]
        assert sorted(names) == ["agent", "api", "console", "web"]

    def test_user_templates_with_metadata(self, console, tmp_path):
        base = tmp_path / "templates"
        (base / "my-lib").mkdir(parents=True)
        (base / "worker").mkdir()
        (base / "worker" / "template.json").write_text(json.dumps({
            "displayName": "Background Worker",
            "description": "Hosted service",
            "tags": ["dotnet"],
            "author": "Acme",
        }))
        (base / "broken").mkdir()
        (base / "broken" / "template.json").write_text("{not json")

        templates = {t.name: t for t in _service(console, templates_base_path=base).get_available_templates()}

        assert templates["my-lib"].display_name == "my lib"
        assert templates["worker"].display_name == "Background Worker"
        assert templates["worker"].author == "Acme"
        assert not templates["worker"].is_builtin
        assert templates["broken"].description == "Template for broken projects"
        assert templates["console"].is_builtin

    @pytest.mark.parametrize("metadata", [
        {"tags": 5},
        {"tags": ["dotnet", 3]},
        {"defaultOptions": "abc"},
        {"displayName": 5},
        {"description": ["not", "text"]},
        {"author": 1, "version": 2.0},
    ])
    def test_wrongly_typed_metadata_uses_defaults(self, console, tmp_path, metadata):
        base = tmp_path / "templates"
        (base / "custom").mkdir(parents=True)
        (base / "custom" / "template.json").write_text(json.dumps(metadata))

        templates = {t.name: t for t in _service(console, templates_base_path=base).get_available_templates()}

        custom = templates["custom"]
        assert custom.display_name == "custom"
        assert custom.description == "Template for custom projects"
        assert custom.tags == []
        assert custom.author is None
        assert custom.version is None
        assert custom.default_options == {}

    def test_non_object_metadata_ignored(self, console, tmp_path):
        base = tmp_path / "templates"
        (base / "listed").mkdir(parents=True)
        (base / "listed" / "template.json").write_text("[1, 2]")
        templates = {t.name: t for t in _service(console, templates_base_path=base).get_available_templates()}
        assert templates["listed"].display_name == "listed"

    def test_sorted_by_display_name(self, console, tmp_path):
        templates = _service(console, templates_base_path=tmp_path).get_available_templates()
        display = [t.display_name for t in templates]
        assert display == sorted(display)


class TestResultFactoriesInService:

    def test_failed_unit_without_message_is_explained(self, console, make_context):
        class Silent(CodeInitializer):
            id = "silent"
            name = "Silent"
            order = 60

            async def execute(self, context):
                return InitializationResult(success=False)

            async def execute_code(self, context, result):
                pass

        summary = asyncio.run(_service(console, Silent()).initialize_project(make_context()))
        assert summary.results[0].message == "Silent failed without reporting a reason"
