"""Initializer contract and shared base classes.

An initializer is one step of ``pks-init``. The registry sorts initializers
by ``order`` (then ``name``), asks each one whether it applies to the run,
and executes the applicable ones in sequence.

Example:
    class LicenseInitializer(CodeInitializer):
        id = "license"
        name = "License"
        description = "Writes a LICENSE file"
        order = 95

        async def execute_code(self, context, result):
            path = Path(context.target_directory) / "LICENSE"
            await self.create_file(path, "All rights reserved.", context, result)
"""

import asyncio
import shutil
import traceback
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from rich.prompt import Confirm

from pks.types import InitializationContext, InitializationResult, InitializerOption

# Initializers ordered below this abort the run when they fail
CRITICAL_ORDER_THRESHOLD = 50

DEFAULT_ORDER = 100

PathLike = Union[str, Path]


class Initializer(ABC):
    """Contract every initializer fulfils."""

    id: str = ""
    name: str = ""
    description: str = ""
    order: int = DEFAULT_ORDER

    @property
    def is_critical(self) -> bool:
        return self.order < CRITICAL_ORDER_THRESHOLD

    async def should_run(self, context: InitializationContext) -> bool:
        """Decide whether this initializer applies to the run."""
        return True

    @abstractmethod
    async def execute(self, context: InitializationContext) -> InitializationResult:
        """Run the initializer and report what it did."""

    def get_options(self) -> List[InitializerOption]:
        """Command-line options this initializer contributes."""
        return []

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} order={self.order}>"


def build_placeholders(context: InitializationContext, now: Optional[datetime] = None) -> Dict[str, str]:
    """Build the standard placeholder mapping for a context.

    Args:
        context: Run context supplying project name, description and template.
        now: Timestamp for date placeholders (defaults to the current time).

    Returns:
        Mapping of literal token to replacement text.
    """
    now = now or datetime.now()
    description = context.description or ""
    return {
        "{{ProjectName}}": context.project_name,
        "{{Project.Name}}": context.project_name,
        "{{PROJECT_NAME}}": context.project_name.upper(),
        "{{project_name}}": context.project_name.lower(),
        "{{Description}}": description,
        "{{Project.Description}}": description,
        "{{Template}}": context.template,
        "{{Project.Template}}": context.template,
        "{{Date}}": now.strftime("%Y-%m-%d"),
        "{{DateTime}}": now.strftime("%Y-%m-%d %H:%M:%S"),
        "{{Year}}": str(now.year),
    }


def replace_placeholders(content: str, replacements: Dict[str, str]) -> str:
    """Literal find-and-replace of every token in ``replacements``."""
    for token, value in replacements.items():
        content = content.replace(token, value)
    return content


class BaseInitializer(Initializer):
    """Initializer with an exception boundary and file-writing helpers.

    Subclasses implement ``execute_internal``. Any exception it raises is
    turned into a failed result, so a broken initializer never escapes as
    a Python exception.
    """

    async def execute(self, context: InitializationContext) -> InitializationResult:
        try:
            return await self.execute_internal(context)
        except Exception as e:
            return InitializationResult.failure(
                f"Failed to execute {self.name}: {e}",
                traceback.format_exc(),
            )

    @abstractmethod
    async def execute_internal(self, context: InitializationContext) -> InitializationResult:
        """Initializer body."""

    def placeholders(self, context: InitializationContext) -> Dict[str, str]:
        """Placeholder mapping for this initializer.

        Override to add initializer-specific tokens on top of the standard ones.
        """
        return build_placeholders(context)

    def replace_placeholders(self, content: str, context: InitializationContext) -> str:
        return replace_placeholders(content, self.placeholders(context))

    async def should_overwrite_file(self, file_path: PathLike, context: InitializationContext) -> bool:
        """Decide whether an existing file may be replaced.

        Missing files are always written. Existing files are replaced when
        ``force`` is set, kept in non-interactive runs, and otherwise the
        user is asked.
        """
        path = Path(file_path)
        if not path.exists():
            return True
        if context.force:
            return True
        if not context.interactive:
            return False
        return Confirm.ask(f"File [yellow]{path.name}[/] already exists. Overwrite?")

    def ensure_directory_exists(self, directory: PathLike) -> None:
        Path(directory).mkdir(parents=True, exist_ok=True)

    async def write_file(self, file_path: PathLike, content: str, context: InitializationContext) -> bool:
        """Write a text file, creating parent directories.

        Returns:
            True if the file was written, False if an existing file was kept.
        """
        path = Path(file_path)
        self.ensure_directory_exists(path.parent)
        if not await self.should_overwrite_file(path, context):
            return False
        path.write_text(content, encoding="utf-8")
        return True

    async def copy_file(self, source: PathLike, destination: PathLike, context: InitializationContext) -> bool:
        """Copy a file byte-for-byte, creating parent directories.

        Returns:
            True if copied, False if the source is missing or the destination was kept.
        """
        src = Path(source)
        dest = Path(destination)
        if not src.is_file():
            return False
        self.ensure_directory_exists(dest.parent)
        if not await self.should_overwrite_file(dest, context):
            return False
        shutil.copyfile(src, dest)
        return True


class CodeInitializer(BaseInitializer):
    """Initializer that produces files from Python code rather than a template tree.

    Execution runs ``pre_execute``, ``execute_code`` and ``post_execute``
    against a shared success result that the hooks fill in.
    """

    async def execute_internal(self, context: InitializationContext) -> InitializationResult:
        result = InitializationResult.ok(f"Executed {self.name} logic")
        try:
            await self.pre_execute(context, result)
            await self.execute_code(context, result)
            await self.post_execute(context, result)
        except Exception as e:
            return InitializationResult.failure(
                f"Code execution failed: {e}", traceback.format_exc()
            )
        return result

    @abstractmethod
    async def execute_code(self, context: InitializationContext, result: InitializationResult) -> None:
        """Main initializer logic."""

    async def pre_execute(self, context: InitializationContext, result: InitializationResult) -> None:
        pass

    async def post_execute(self, context: InitializationContext, result: InitializationResult) -> None:
        pass

    def create_directory_structure(self, base_path: PathLike, *directories: str) -> None:
        for directory in directories:
            self.ensure_directory_exists(Path(base_path) / directory)

    async def create_file(
        self,
        file_path: PathLike,
        content: str,
        context: InitializationContext,
        result: InitializationResult,
    ) -> None:
        """Write a file and record it on the result (or warn if it was kept)."""
        if await self.write_file(file_path, content, context):
            result.affected_files.append(str(file_path))
        else:
            result.warnings.append(f"Skipped existing file: {file_path}")

    async def modify_file(
        self,
        file_path: PathLike,
        modifier: Callable[[str], str],
        context: InitializationContext,
        result: InitializationResult,
    ) -> None:
        """Rewrite an existing file through ``modifier``; unchanged content is not recorded."""
        path = Path(file_path)
        if not path.is_file():
            result.warnings.append(f"File not found for modification: {file_path}")
            return
        content = path.read_text(encoding="utf-8")
        modified = modifier(content)
        if modified != content:
            path.write_text(modified, encoding="utf-8")
            result.affected_files.append(str(file_path))

    async def append_to_file(
        self,
        file_path: PathLike,
        content: str,
        context: InitializationContext,
        result: InitializationResult,
    ) -> None:
        """Append placeholder-substituted content to a file, creating it if needed."""
        path = Path(file_path)
        self.ensure_directory_exists(path.parent)
        with open(path, 'a', encoding='utf-8') as f:
            f.write(self.replace_placeholders(content, context))
        result.affected_files.append(str(file_path))

    async def run_command(
        self,
        command: str,
        *args: str,
        cwd: Optional[PathLike] = None,
    ) -> Tuple[bool, str, str]:
        """Run an external command.

        Returns:
            Tuple of (exit code was zero, stdout, stderr).
        """
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            cwd=str(cwd) if cwd else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        return (
            process.returncode == 0,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def tool_available(self, tool: str, *version_args: str) -> bool:
        """Check that an external tool runs (``<tool> --version`` by default)."""
        try:
            ok, _, _ = await self.run_command(tool, *(version_args or ("--version",)))
        except OSError:
            return False
        return ok
