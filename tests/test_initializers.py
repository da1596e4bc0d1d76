"""Tests for the built-in initializers in pks.initializers."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from unittest.mock import AsyncMock, patch

from pks.config import USER_TEMPLATES_DIR_KEY
from pks.initializers import (
    PROJECT_ID_KEY,
    REPOSITORY_URL_KEY,
    AgenticFeaturesInitializer,
    ClaudeDocumentationInitializer,
    McpConfigurationInitializer,
    ProjectIdentityInitializer,
    ProjectTemplateInitializer,
    ReadmeInitializer,
)


def _run(unit, ctx):
    return asyncio.run(unit.execute(ctx))


class TestProjectTemplateInitializer:

    def test_is_critical(self):
        assert ProjectTemplateInitializer().is_critical

    def test_renders_bundled_console_template(self, make_context):
        ctx = make_context(project_name="Acme", template="console")
        unit = ProjectTemplateInitializer()
        assert asyncio.run(unit.should_run(ctx))
        result = _run(unit, ctx)
        out = Path(ctx.target_directory)

        assert result.success
        assert (out / "Acme.csproj").is_file()
        assert "<RootNamespace>Acme</RootNamespace>" in (out / "Acme.csproj").read_text()
        assert "Hello from Acme!" in (out / "Program.cs").read_text()
        assert not (out / "template.json").exists()

    def test_api_template_has_nested_files(self, make_context):
        ctx = make_context(project_name="Shop", template="api")
        _run(ProjectTemplateInitializer(), ctx)
        assert (Path(ctx.target_directory) / "Controllers" / "StatusController.cs").is_file()

    def test_unknown_template_excluded(self, make_context):
        ctx = make_context(template="does-not-exist")
        assert asyncio.run(ProjectTemplateInitializer().should_run(ctx)) is False
        assert "template directory not found" in ctx.warnings[0]

    def test_user_template_takes_priority(self, make_context, tmp_path):
        user_dir = tmp_path / "user-templates"
        (user_dir / "console").mkdir(parents=True)
        (user_dir / "console" / "custom.txt").write_text("custom {{ProjectName}}")
        ctx = make_context(project_name="Acme")
        _run(ProjectTemplateInitializer(user_templates_dir=user_dir), ctx)
        out = Path(ctx.target_directory)
        assert (out / "custom.txt").read_text() == "custom Acme"
        assert not (out / "Program.cs").exists()

    def test_user_dir_falls_back_to_bundled(self, make_context, tmp_path):
        ctx = make_context(template="web")
        unit = ProjectTemplateInitializer(user_templates_dir=tmp_path / "empty")
        assert unit.resolve_template_path(ctx) == unit.template_base_path / "web"

    def test_user_dir_from_context_metadata(self, make_context, tmp_path):
        user_dir = tmp_path / "from-service"
        (user_dir / "web").mkdir(parents=True)
        ctx = make_context(template="web")
        ctx.set_metadata(USER_TEMPLATES_DIR_KEY, str(user_dir))
        assert ProjectTemplateInitializer().resolve_template_path(ctx) == user_dir / "web"

    def test_broken_config_file_not_read(self, make_context, tmp_path, monkeypatch):
        (tmp_path / ".pks").mkdir()
        (tmp_path / ".pks" / "config.yaml").write_text("default_options: [1, 2]\n")
        monkeypatch.chdir(tmp_path)
        ctx = make_context()
        ctx.set_metadata(USER_TEMPLATES_DIR_KEY, str(tmp_path / "empty"))

        unit = ProjectTemplateInitializer()
        assert asyncio.run(unit.should_run(ctx)) is True
        assert ctx.warnings == []


class TestProjectIdentityInitializer:

    def test_skipped_without_options(self, make_context):
        assert asyncio.run(ProjectIdentityInitializer().should_run(make_context())) is False

    def test_runs_for_remote_url(self, make_context):
        ctx = make_context(options={"remote-url": "https://github.com/acme/app.git"})
        assert asyncio.run(ProjectIdentityInitializer().should_run(ctx))

    def test_writes_identity_and_metadata(self, make_context):
        ctx = make_context(project_name="My App", options={"github": True})
        result = _run(ProjectIdentityInitializer(), ctx)
        out = Path(ctx.target_directory)

        assert result.success
        identity = json.loads((out / ".pks" / "project.json").read_text())
        assert identity["name"] == "My App"
        assert identity["project_id"].startswith("pks-my-app-")
        assert ctx.get_metadata(PROJECT_ID_KEY) == identity["project_id"]
        assert (out / ".pks" / "project-info.md").is_file()
        assert result.message == f"Project identity created. Project ID: {identity['project_id']}"
        assert any("without --remote-url" in w for w in result.warnings)

    def test_remote_url_recorded(self, make_context):
        ctx = make_context(options={"remote-url": "https://github.com/acme/app.git"})
        _run(ProjectIdentityInitializer(), ctx)
        assert ctx.get_metadata(REPOSITORY_URL_KEY) == "https://github.com/acme/app.git"

    def test_git_unavailable_warns(self, make_context):
        ctx = make_context(options={"init-git": True})
        unit = ProjectIdentityInitializer()
        with patch.object(unit, "tool_available", AsyncMock(return_value=False)):
            result = _run(unit, ctx)
        assert result.success
        assert "git is not available" in result.warnings[0]

    def test_git_init_and_remote(self, make_context):
        ctx = make_context(options={"init-git": True, "remote-url": "https://example.com/r.git"})
        unit = ProjectIdentityInitializer()
        run_command = AsyncMock(return_value=(True, "", ""))
        with patch.object(unit, "tool_available", AsyncMock(return_value=True)), \
                patch.object(unit, "run_command", run_command):
            result = _run(unit, ctx)

        assert result.data["git_initialized"] is True
        commands = [call.args for call in run_command.call_args_list]
        assert commands == [
            ("git", "init"),
            ("git", "remote", "add", "origin", "https://example.com/r.git"),
        ]

    def test_git_init_failure_is_warning(self, make_context):
        ctx = make_context(options={"init-git": True})
        unit = ProjectIdentityInitializer()
        with patch.object(unit, "tool_available", AsyncMock(return_value=True)), \
                patch.object(unit, "run_command", AsyncMock(return_value=(False, "", "fatal: nope\n"))):
            result = _run(unit, ctx)
        assert result.success
        assert result.errors == []
        assert result.warnings == ["git init failed: fatal: nope"]
        assert "git_initialized" not in result.data


class TestAgenticFeaturesInitializer:

    def test_only_runs_when_enabled(self, make_context):
        unit = AgenticFeaturesInitializer()
        assert not asyncio.run(unit.should_run(make_context()))
        assert asyncio.run(unit.should_run(make_context(options={"agentic": True})))

    def test_writes_agent_config(self, make_context):
        ctx = make_context(options={"agentic": True, "ai-provider": "azure"})
        ctx.set_metadata(PROJECT_ID_KEY, "pks-demo-00000000")
        result = _run(AgenticFeaturesInitializer(), ctx)
        agents = Path(ctx.target_directory) / ".pks" / "agents"

        config = json.loads((agents / "agent-config.json").read_text())
        assert config["default_provider"] == "azure"
        assert config["project_id"] == "pks-demo-00000000"
        assert (agents / "README.md").read_text().startswith("# Demo Agents")
        assert result.message == "Agent configuration created (provider: azure)"

    def test_invalid_provider_fails(self, make_context):
        ctx = make_context(options={"agentic": True, "ai-provider": "skynet"})
        result = _run(AgenticFeaturesInitializer(), ctx)
        assert not result.success
        assert "ai-provider must be one of" in result.message

    def test_provider_option_validator(self):
        provider = [o for o in AgenticFeaturesInitializer().get_options() if o.name == "ai-provider"][0]
        assert provider.validate("local") is None
        assert provider.validate("skynet") is not None


class TestMcpConfigurationInitializer:

    def test_applies_to(self, make_context, tmp_path):
        unit = McpConfigurationInitializer()
        assert not asyncio.run(unit.applies_to(make_context()))
        assert asyncio.run(unit.applies_to(make_context(options={"mcp": True})))
        assert asyncio.run(unit.applies_to(make_context(template="Agent")))

    def test_renders_mcp_json(self, make_context):
        ctx = make_context(project_name="Acme", options={"mcp": True, "enable-sse": True, "mcp-tools": "a,b"})
        result = _run(McpConfigurationInitializer(), ctx)
        config = json.loads((Path(ctx.target_directory) / ".mcp.json").read_text())

        server = config["mcpServers"]["acme-cli"]
        assert server["args"] == ["mcp", "--project", "Acme"]
        assert server["env"]["PKS_TOOLS"] == "a,b"
        assert config["settings"] == {
            "enableStdio": True,
            "enableSse": True,
            "serverUrl": "https://localhost:8080",
            "enableAuth": False,
            "toolCount": 2,
        }
        assert result.data["mcp_sse"] == "enabled"
        assert "Configure environment variables for secure API keys and endpoints" in result.warnings


class TestClaudeDocumentationInitializer:

    def test_project_id_defaults_to_not_set(self, make_context):
        ctx = make_context(project_name="Acme", template="api")
        _run(ClaudeDocumentationInitializer(), ctx)
        text = (Path(ctx.target_directory) / "CLAUDE.md").read_text()
        assert "**Project ID**: not-set" in text
        assert "ASP.NET Core 8 Web API" in text
        assert "{{" not in text

    def test_reads_project_id_from_metadata(self, make_context):
        ctx = make_context()
        ctx.set_metadata(PROJECT_ID_KEY, "pks-demo-abcdef12")
        _run(ClaudeDocumentationInitializer(), ctx)
        assert "pks-demo-abcdef12" in (Path(ctx.target_directory) / "CLAUDE.md").read_text()

    def test_optional_sections(self, make_context):
        ctx = make_context(project_name="Acme", options={"include-tdd": True, "include-docker": True})
        _run(ClaudeDocumentationInitializer(), ctx)
        text = (Path(ctx.target_directory) / "CLAUDE.md").read_text()
        assert "## Test-Driven Development" in text
        assert "docker build -t acme ." in text


class TestReadmeInitializer:

    def test_default_readme_and_mit_license(self, make_context):
        ctx = make_context(project_name="Acme")
        result = _run(ReadmeInitializer(), ctx)
        out = Path(ctx.target_directory)

        readme = (out / "README.md").read_text()
        assert readme.startswith("# Acme\n")
        assert "## Contributing" in readme
        assert "img.shields.io" in readme
        license_text = (out / "LICENSE").read_text()
        assert license_text.startswith("MIT License")
        assert f"Copyright (c) {datetime.now().year} Acme" in license_text
        assert result.message == "Generated README.md and MIT LICENSE"
        assert len(result.affected_files) == 2

    def test_apache_license(self, make_context):
        ctx = make_context(options={"license": "Apache-2.0"})
        _run(ReadmeInitializer(), ctx)
        assert (Path(ctx.target_directory) / "LICENSE").read_text().startswith("Apache License")

    def test_unknown_license_is_all_rights_reserved(self, make_context):
        ctx = make_context(options={"license": "Proprietary"})
        _run(ReadmeInitializer(), ctx)
        assert "All rights reserved." in (Path(ctx.target_directory) / "LICENSE").read_text()

    def test_uses_identity_metadata(self, make_context):
        ctx = make_context()
        ctx.set_metadata(PROJECT_ID_KEY, "pks-demo-12345678")
        ctx.set_metadata(REPOSITORY_URL_KEY, "https://github.com/acme/demo.git")
        _run(ReadmeInitializer(), ctx)
        readme = (Path(ctx.target_directory) / "README.md").read_text()
        assert "git clone https://github.com/acme/demo.git" in readme
        assert "Project ID: `pks-demo-12345678`" in readme
