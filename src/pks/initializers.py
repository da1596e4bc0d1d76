"""Built-in initializers run by ``pks-init``.

Order determines execution sequence; anything below 50 is critical and
stops the run when it fails:

    10  project-template    project file tree for the chosen template
    15  project-identity    .pks/ identity files, optional git setup
    50  agentic-features    agent configuration
    75  mcp-configuration   .mcp.json
    85  claude-docs         CLAUDE.md
    90  readme              README.md and LICENSE
"""

import json
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pks.base_initializer import CodeInitializer
from pks.config import DEFAULT_TEMPLATES_DIR, USER_TEMPLATES_DIR_KEY
from pks.template_initializer import BUILTIN_TEMPLATES_DIR, TemplateInitializer
from pks.types import InitializationContext, InitializationResult, InitializerOption

# Metadata keys shared between initializers
PROJECT_ID_KEY = "ProjectId"
REPOSITORY_URL_KEY = "RepositoryUrl"

AI_PROVIDERS = ("openai", "azure", "local")
DEFAULT_MCP_TOOLS = "init,agent,deploy,status"


class ProjectTemplateInitializer(TemplateInitializer):
    """Render the project template tree selected by ``context.template``.

    A template of the same name in the user templates directory takes
    priority over the bundled one.
    """

    id = "project-template"
    name = "Project Template"
    description = "Creates the project file structure from the selected template"
    order = 10

    template_base_path = BUILTIN_TEMPLATES_DIR / "projects"
    ignore_files = frozenset({"template.json"})

    def __init__(self, template_base_path: Optional[Path] = None, user_templates_dir: Optional[Path] = None):
        super().__init__(template_base_path)
        self.user_templates_dir = Path(user_templates_dir) if user_templates_dir else None

    def resolve_template_path(self, context: InitializationContext) -> Path:
        user_dir = Path(
            self.user_templates_dir
            or context.get_metadata(USER_TEMPLATES_DIR_KEY)
            or DEFAULT_TEMPLATES_DIR
        )
        if (user_dir / context.template).is_dir():
            return user_dir / context.template
        return Path(self.template_base_path) / context.template


class ProjectIdentityInitializer(CodeInitializer):
    """Give the project a stable identity and optionally a git repository."""

    id = "project-identity"
    name = "Project Identity"
    description = "Creates the .pks project identity and sets up git integration"
    order = 15

    def get_options(self) -> List[InitializerOption]:
        return [
            InitializerOption.flag("github", "Enable GitHub integration", "g"),
            InitializerOption.flag("init-git", "Initialize a local git repository"),
            InitializerOption.string("remote-url", "Existing GitHub repository URL", default_value=""),
        ]

    async def should_run(self, context: InitializationContext) -> bool:
        return (
            context.get_bool("github")
            or context.get_bool("init-git")
            or bool(context.get_str("remote-url"))
        )

    async def execute_code(self, context: InitializationContext, result: InitializationResult) -> None:
        target = Path(context.target_directory)
        project_id = _generate_project_id(context.project_name)
        remote_url = context.get_str("remote-url") or ""

        identity = {
            "project_id": project_id,
            "name": context.project_name,
            "description": context.description or "",
            "template": context.template,
            "remote_url": remote_url or None,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        await self.create_file(
            target / ".pks" / "project.json",
            json.dumps(identity, indent=2) + "\n",
            context,
            result,
        )
        await self.create_file(
            target / ".pks" / "project-info.md",
            _project_info_markdown(identity, context),
            context,
            result,
        )

        context.set_metadata(PROJECT_ID_KEY, project_id)
        if remote_url:
            context.set_metadata(REPOSITORY_URL_KEY, remote_url)
        result.data["project_id"] = project_id

        if context.get_bool("init-git"):
            await self._init_git(target, remote_url, result)
        elif context.get_bool("github") and not remote_url:
            result.warnings.append("GitHub integration enabled without --remote-url; no remote configured")

        result.message = f"Project identity created. Project ID: {project_id}"

    async def _init_git(self, target: Path, remote_url: str, result: InitializationResult) -> None:
        if not await self.tool_available("git"):
            result.warnings.append("git is not available; skipped repository initialization")
            return

        ok, _, err = await self.run_command("git", "init", cwd=target)
        if not ok:
            result.warnings.append(f"git init failed: {err.strip()}")
            return
        result.data["git_initialized"] = True

        if remote_url:
            ok, _, err = await self.run_command("git", "remote", "add", "origin", remote_url, cwd=target)
            if not ok:
                result.warnings.append(f"Could not add remote 'origin': {err.strip()}")


def _generate_project_id(project_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", project_name.lower()).strip("-") or "project"
    return f"pks-{slug}-{uuid.uuid4().hex[:8]}"


def _project_info_markdown(identity: Dict[str, Any], context: InitializationContext) -> str:
    remote = identity["remote_url"] or "Not configured"
    return (
        f"# {context.project_name} - Project Information\n\n"
        "## Identity\n\n"
        f"- **Project ID**: {identity['project_id']}\n"
        f"- **Name**: {context.project_name}\n"
        f"- **Template**: {context.template}\n"
        f"- **Description**: {identity['description'] or 'No description'}\n\n"
        "## Integration Status\n\n"
        f"- **Repository**: {remote}\n\n"
        f"*Generated on {identity['created_at']}*\n"
    )


def _validate_ai_provider(value: Any) -> Optional[str]:
    if value is None or value in AI_PROVIDERS:
        return None
    return f"ai-provider must be one of: {', '.join(AI_PROVIDERS)}"


class AgenticFeaturesInitializer(CodeInitializer):
    """Add agent configuration for AI-assisted automation."""

    id = "agentic-features"
    name = "Agentic Features"
    description = "Adds AI automation and agentic capabilities to the project"
    order = 50

    def get_options(self) -> List[InitializerOption]:
        provider = InitializerOption.string(
            "ai-provider", "AI provider to use (openai, azure, local)", default_value="openai"
        )
        provider.validator = _validate_ai_provider
        return [
            InitializerOption.flag("agentic", "Enable agentic features", "a"),
            InitializerOption.flag("enable-monitoring", "Enable intelligent monitoring"),
            InitializerOption.flag("enable-auto-scaling", "Enable automatic scaling"),
            provider,
        ]

    async def should_run(self, context: InitializationContext) -> bool:
        return context.get_bool("agentic")

    async def pre_execute(self, context: InitializationContext, result: InitializationResult) -> None:
        error = _validate_ai_provider(context.get_str("ai-provider"))
        if error:
            raise ValueError(error)

    async def execute_code(self, context: InitializationContext, result: InitializationResult) -> None:
        agents_dir = Path(context.target_directory) / ".pks" / "agents"
        provider = context.get_str("ai-provider", "openai")
        config = {
            "project": context.project_name,
            "project_id": context.get_metadata(PROJECT_ID_KEY),
            "default_provider": provider,
            "enable_monitoring": context.get_bool("enable-monitoring", True),
            "enable_auto_scaling": context.get_bool("enable-auto-scaling", False),
            "agents": [
                {
                    "id": "automation-001",
                    "name": "Automation Agent",
                    "description": "Provides intelligent automation for common development tasks",
                },
            ],
        }

        await self.create_file(
            agents_dir / "agent-config.json", json.dumps(config, indent=2) + "\n", context, result
        )
        await self.create_file(agents_dir / "README.md", self.replace_placeholders(_AGENTS_README, context), context, result)
        result.message = f"Agent configuration created (provider: {provider})"


_AGENTS_README = """\
# {{ProjectName}} Agents

Agents configured for this project live in `agent-config.json`.

## Commands

```bash
pks agent status
pks agent run automation-001 "generate service for User entity"
```
"""


class McpConfigurationInitializer(TemplateInitializer):
    """Render .mcp.json so AI tools can reach the project's MCP server."""

    id = "mcp-configuration"
    name = "MCP Configuration"
    description = "Creates MCP (Model Context Protocol) configuration for AI tool integration"
    order = 75

    template_directory = "mcp"

    def get_options(self) -> List[InitializerOption]:
        return [
            InitializerOption.flag("mcp", "Enable MCP server configuration", "m"),
            InitializerOption.flag("enable-stdio", "Enable stdio transport for local MCP server"),
            InitializerOption.flag("enable-sse", "Enable SSE transport for remote MCP server"),
            InitializerOption.string("server-url", "Base URL for remote MCP server", default_value="https://localhost:8080"),
            InitializerOption.string("mcp-tools", "Comma-separated list of tools to expose", default_value=DEFAULT_MCP_TOOLS),
            InitializerOption.flag("enable-auth", "Enable OAuth 2.0 authentication"),
            InitializerOption.string("env-prefix", "Environment variable prefix", default_value="PKS"),
        ]

    async def applies_to(self, context: InitializationContext) -> bool:
        return (
            context.get_bool("mcp")
            or context.get_bool("enable-mcp")
            or context.template.lower() in ("agent", "agentic")
        )

    def placeholders(self, context: InitializationContext) -> Dict[str, str]:
        tools = context.get_str("mcp-tools", DEFAULT_MCP_TOOLS) or DEFAULT_MCP_TOOLS
        mapping = super().placeholders(context)
        mapping.update({
            "{{MCP.EnableStdio}}": _json_bool(context.get_bool("enable-stdio", True)),
            "{{MCP.EnableSSE}}": _json_bool(context.get_bool("enable-sse", False)),
            "{{MCP.ServerUrl}}": context.get_str("server-url", "https://localhost:8080") or "",
            "{{MCP.Tools}}": tools,
            "{{MCP.ToolCount}}": str(len([t for t in tools.split(",") if t.strip()])),
            "{{MCP.EnableAuth}}": _json_bool(context.get_bool("enable-auth", False)),
            "{{MCP.EnvPrefix}}": context.get_str("env-prefix", "PKS") or "PKS",
            "{{MCP.ProjectTool}}": context.project_name.lower() + "-cli",
        })
        return mapping

    async def post_process_template(self, context: InitializationContext, result: InitializationResult) -> None:
        if context.get_bool("enable-stdio", True):
            result.data["mcp_stdio"] = "enabled"
        if context.get_bool("enable-sse", False):
            result.data["mcp_sse"] = "enabled"
        if context.get_bool("enable-auth", False):
            result.data["mcp_auth"] = "enabled"
            result.warnings.append("Remember to configure OAuth 2.0 credentials for authentication")
        result.warnings.append("Configure environment variables for secure API keys and endpoints")


def _json_bool(value: bool) -> str:
    return "true" if value else "false"


class ClaudeDocumentationInitializer(TemplateInitializer):
    """Render CLAUDE.md guidance for AI assistants working in the project."""

    id = "claude-docs"
    name = "CLAUDE.md Documentation"
    description = "Creates CLAUDE.md project documentation for AI assistants"
    order = 85

    template_directory = "claude-docs"

    def get_options(self) -> List[InitializerOption]:
        return [
            InitializerOption.string("tech-stack", "Primary technology stack"),
            InitializerOption.string("test-framework", "Testing framework (xUnit, NUnit, MSTest)", default_value="xUnit"),
            InitializerOption.flag("include-tdd", "Include TDD practices and testing guidance"),
            InitializerOption.flag("include-docker", "Include Docker development commands"),
        ]

    def placeholders(self, context: InitializationContext) -> Dict[str, str]:
        mapping = super().placeholders(context)
        mapping.update({
            "{{ProjectId}}": str(context.get_metadata(PROJECT_ID_KEY, "not-set")),
            "{{RepositoryUrl}}": str(context.get_metadata(REPOSITORY_URL_KEY, "Not configured")),
            "{{TechStack}}": context.get_str("tech-stack") or _infer_tech_stack(context.template),
            "{{TestFramework}}": context.get_str("test-framework", "xUnit") or "xUnit",
            "{{Features.Mcp}}": _enabled(context.get_bool("mcp")),
            "{{Features.Agentic}}": _enabled(context.get_bool("agentic")),
        })
        return mapping

    async def process_template_content(
        self,
        content: str,
        template_file: Path,
        target_file: Path,
        context: InitializationContext,
    ) -> str:
        if target_file.name != "CLAUDE.md":
            return content
        sections = []
        if context.get_bool("include-tdd"):
            sections.append(_TDD_SECTION)
        if context.get_bool("include-docker"):
            sections.append(self.replace_placeholders(_DOCKER_SECTION, context))
        if not sections:
            return content
        return content.rstrip("\n") + "\n\n" + "\n".join(sections)


def _infer_tech_stack(template: str) -> str:
    return {
        "console": ".NET 8 Console Application",
        "api": "ASP.NET Core 8 Web API",
        "web": "ASP.NET Core 8 MVC",
        "agent": ".NET 8 Agentic Application",
    }.get(template.lower(), f".NET 8 {template} project")


def _enabled(value: bool) -> str:
    return "Enabled" if value else "Disabled"


_TDD_SECTION = """\
## Test-Driven Development

1. Write a failing test that describes the behaviour.
2. Write the minimum code to make it pass.
3. Refactor with the test suite green.

Run `dotnet test` before every commit.
"""

_DOCKER_SECTION = """\
## Docker

```bash
docker build -t {{project_name}} .
docker run --rm {{project_name}}
```
"""


class ReadmeInitializer(CodeInitializer):
    """Generate README.md and a LICENSE file."""

    id = "readme"
    name = "README Generator"
    description = "Creates a README.md file and a LICENSE for the project"
    order = 90

    def get_options(self) -> List[InitializerOption]:
        return [
            InitializerOption.flag("include-badges", "Include status badges in README", "b"),
            InitializerOption.flag("include-contributing", "Include contributing guidelines", "c"),
            InitializerOption.string("license", "License type (MIT, Apache-2.0, GPL-3.0)", "l", "MIT"),
        ]

    async def execute_code(self, context: InitializationContext, result: InitializationResult) -> None:
        target = Path(context.target_directory)
        license_name = context.get_str("license", "MIT") or "MIT"

        readme = self._readme(context, license_name)
        await self.create_file(target / "README.md", readme, context, result)
        await self.create_file(target / "LICENSE", _license_text(license_name, context), context, result)

        result.message = f"Generated README.md and {license_name} LICENSE"

    def _readme(self, context: InitializationContext, license_name: str) -> str:
        name = context.project_name
        repo_url = context.get_metadata(REPOSITORY_URL_KEY) or f"https://github.com/your-username/{name.lower()}.git"
        description = context.description or f"A .NET {context.template} application built with PKS CLI."

        parts = [f"# {name}\n"]
        if context.get_bool("include-badges", True):
            parts.append(
                f"[![License](https://img.shields.io/badge/license-{license_name}-blue.svg)](LICENSE)\n"
                "[![PKS CLI](https://img.shields.io/badge/PKS-CLI-cyan.svg)](https://github.com/pksorensen/pks-cli)\n"
            )
        parts.append(f"{description}\n")
        parts.append(
            "## Getting Started\n\n"
            "```bash\n"
            f"git clone {repo_url}\n"
            f"cd {name}\n"
            "dotnet restore\n"
            "dotnet build\n"
            "dotnet run\n"
            "```\n"
        )
        if context.get_bool("agentic"):
            parts.append(
                "## Agentic Features\n\n"
                "Agent configuration lives in `.pks/agents/`. Check agent status with `pks agent status`.\n"
            )
        project_id = context.get_metadata(PROJECT_ID_KEY)
        if project_id:
            parts.append(f"## Project Identity\n\nProject ID: `{project_id}`\n")
        if context.get_bool("include-contributing", True):
            parts.append(_CONTRIBUTING)
        parts.append(
            "## License\n\n"
            f"This project is licensed under the {license_name} License - see the [LICENSE](LICENSE) file for details.\n"
        )
        return "\n".join(parts)


_CONTRIBUTING = """\
## Contributing

1. Fork the repository
2. Create a feature branch (`git checkout -b feature/amazing-feature`)
3. Commit your changes (`git commit -m 'Add amazing feature'`)
4. Push to the branch (`git push origin feature/amazing-feature`)
5. Open a Pull Request
"""

_MIT_LICENSE = """\
MIT License

Copyright (c) {year} {holder}

Permission is hereby granted, free of charge, to any person obtaining a copy
of this software and associated documentation files (the "Software"), to deal
in the Software without restriction, including without limitation the rights
to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
copies of the Software, and to permit persons to whom the Software is
furnished to do so, subject to the following conditions:

The above copyright notice and this permission notice shall be included in all
copies or substantial portions of the Software.

THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
SOFTWARE.
"""

_APACHE_LICENSE = """\
Apache License
Version 2.0, January 2004
http://www.apache.org/licenses/

Copyright {year} {holder}

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

_RESERVED_LICENSE = """\
Copyright (c) {year} {holder}

All rights reserved.
"""


def _license_text(license_name: str, context: InitializationContext) -> str:
    template = {
        "MIT": _MIT_LICENSE,
        "APACHE-2.0": _APACHE_LICENSE,
    }.get(license_name.upper(), _RESERVED_LICENSE)
    return template.format(year=datetime.now().year, holder=context.project_name)


# Registration list used by InitializerRegistry.discover_and_register
BUILTIN_INITIALIZERS = (
    ProjectTemplateInitializer,
    ProjectIdentityInitializer,
    AgenticFeaturesInitializer,
    McpConfigurationInitializer,
    ClaudeDocumentationInitializer,
    ReadmeInitializer,
)
