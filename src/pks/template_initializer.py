"""Template-driven initializers.

A template is a directory tree. Rendering reproduces the tree under the
target directory, substituting placeholders in file and directory names
and in the content of text files. Files whose extension is not in the
text allow-list are copied byte-for-byte.
"""

import traceback
from pathlib import Path
from typing import FrozenSet, Optional

from pks.base_initializer import BaseInitializer
from pks.types import InitializationContext, InitializationResult


# Templates bundled with the package
BUILTIN_TEMPLATES_DIR = Path(__file__).parent / "templates"

TEMPLATE_EXTENSIONS: FrozenSet[str] = frozenset({
    ".cs", ".csproj", ".sln", ".json", ".xml", ".yml", ".yaml", ".md", ".txt",
    ".config", ".props", ".targets", ".py", ".toml", ".ini", ".cfg",
})

IGNORE_DIRECTORIES: FrozenSet[str] = frozenset({
    ".git", ".vs", ".vscode-test", ".idea", "bin", "obj", "node_modules", "__pycache__",
})


class TemplateInitializer(BaseInitializer):
    """Initializer that renders a template tree into the target directory.

    Subclasses set ``template_directory`` (relative to ``template_base_path``)
    and may override:

    - ``applies_to`` for their own run condition
    - ``placeholders`` to add tokens
    - ``process_template_content`` to transform a file before it is written
    - ``post_process_template`` for follow-up work once the tree is written
    """

    template_directory: str = ""
    template_base_path: Path = BUILTIN_TEMPLATES_DIR / "initializers"
    template_extensions: FrozenSet[str] = TEMPLATE_EXTENSIONS
    ignore_directories: FrozenSet[str] = IGNORE_DIRECTORIES
    ignore_files: FrozenSet[str] = frozenset()

    def __init__(self, template_base_path: Optional[Path] = None):
        if template_base_path is not None:
            self.template_base_path = Path(template_base_path)

    @property
    def template_path(self) -> Path:
        return Path(self.template_base_path) / self.template_directory

    def resolve_template_path(self, context: InitializationContext) -> Path:
        """Template tree to render for this run."""
        return self.template_path

    async def applies_to(self, context: InitializationContext) -> bool:
        """Initializer-specific run condition, checked before the template exists check."""
        return True

    async def should_run(self, context: InitializationContext) -> bool:
        if not await self.applies_to(context):
            return False

        template_path = self.resolve_template_path(context)
        if not template_path.is_dir():
            context.add_warning(f"{self.name}: template directory not found: {template_path}")
            return False

        return True

    async def execute_internal(self, context: InitializationContext) -> InitializationResult:
        template_path = self.resolve_template_path(context)
        if not template_path.is_dir():
            return InitializationResult.failure(f"Template directory not found: {template_path}")

        result = InitializationResult.ok(f"Applied template from {template_path.name}")
        try:
            target = Path(context.target_directory)
            self.ensure_directory_exists(target)
            await self._process_directory(template_path, target, context, result)
            await self.post_process_template(context, result)
        except Exception as e:
            return InitializationResult(
                success=False,
                message=f"Template processing failed: {e}",
                details=traceback.format_exc(),
                affected_files=result.affected_files,
                warnings=result.warnings,
            )
        return result

    async def _process_directory(
        self,
        template_dir: Path,
        target_dir: Path,
        context: InitializationContext,
        result: InitializationResult,
    ) -> None:
        entries = sorted(template_dir.iterdir(), key=lambda p: p.name)

        for entry in entries:
            if entry.is_file() and entry.name not in self.ignore_files:
                await self._process_file(entry, template_dir, target_dir, context, result)

        for entry in entries:
            if not entry.is_dir() or entry.name in self.ignore_directories:
                continue
            target_subdir = target_dir / self.replace_placeholders(entry.name, context)
            self.ensure_directory_exists(target_subdir)
            await self._process_directory(entry, target_subdir, context, result)

    async def _process_file(
        self,
        template_file: Path,
        template_dir: Path,
        target_dir: Path,
        context: InitializationContext,
        result: InitializationResult,
    ) -> None:
        relative = template_file.relative_to(template_dir).as_posix()
        target_file = target_dir / self.replace_placeholders(relative, context)

        if template_file.suffix.lower() in self.template_extensions:
            content = template_file.read_text(encoding="utf-8")
            content = self.replace_placeholders(content, context)
            content = await self.process_template_content(content, template_file, target_file, context)
            written = await self.write_file(target_file, content, context)
        else:
            written = await self.copy_file(template_file, target_file, context)

        if written:
            result.affected_files.append(str(target_file))
        else:
            result.warnings.append(f"Skipped existing file: {target_file}")

    async def process_template_content(
        self,
        content: str,
        template_file: Path,
        target_file: Path,
        context: InitializationContext,
    ) -> str:
        return content

    async def post_process_template(self, context: InitializationContext, result: InitializationResult) -> None:
        pass
