"""Project name and target directory validation.

Validation is kept free of side effects: ``validate_target_directory`` only
inspects the filesystem, and ``ensure_directory`` is the explicit step that
creates a missing target (and doubles as the permission probe).
"""

from pathlib import Path
from typing import List, Union

from pks.types import ValidationResult


MAX_PROJECT_NAME_LENGTH = 255

INVALID_NAME_CHARS = ('/', '\\', ':', '*', '?', '<', '>', '|', '"', '\0')

RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


def validate_project_name(project_name: str) -> ValidationResult:
    """Check that a project name is usable as a directory name on any OS.

    Rules are applied in order and the first failure wins.

    Args:
        project_name: Candidate project name.

    Returns:
        ValidationResult describing the first rule violated, if any.
    """
    if not project_name or not project_name.strip():
        return ValidationResult.invalid("Project name cannot be empty")

    if len(project_name) > MAX_PROJECT_NAME_LENGTH:
        return ValidationResult.invalid(
            f"Project name is too long (maximum {MAX_PROJECT_NAME_LENGTH} characters)"
        )

    found: List[str] = []
    for ch in project_name:
        if ch in INVALID_NAME_CHARS and ch not in found:
            found.append(ch)
    if found:
        listed = ", ".join(repr(c) for c in found)
        return ValidationResult.invalid(
            f"Project name contains invalid characters: {listed}"
        )

    if project_name.upper() in RESERVED_NAMES:
        return ValidationResult.invalid(
            f"'{project_name}' is a reserved system name and cannot be used"
        )

    if project_name.startswith('.') or project_name.endswith('.'):
        return ValidationResult.invalid("Project name cannot start or end with a dot")

    if project_name.startswith(' ') or project_name.endswith(' '):
        return ValidationResult.invalid("Project name cannot start or end with a space")

    return ValidationResult.valid()


def validate_target_directory(target_directory: Union[str, Path], force: bool) -> ValidationResult:
    """Check whether a target directory may receive a new project.

    Does not touch the filesystem beyond reading it. A missing directory is
    valid here; ``ensure_directory`` decides whether it can be created.

    Args:
        target_directory: Where the project will be written.
        force: Allow writing into a non-empty directory.

    Returns:
        ValidationResult for the directory.
    """
    if not str(target_directory).strip():
        return ValidationResult.invalid("Target directory path cannot be empty")

    path = Path(target_directory)
    if path.exists():
        if not path.is_dir():
            return ValidationResult.invalid(
                f"'{target_directory}' exists and is not a directory"
            )
        if not force and any(path.iterdir()):
            return ValidationResult.invalid(
                f"Directory '{target_directory}' is not empty. Use --force to overwrite."
            )

    return ValidationResult.valid()


def ensure_directory(target_directory: Union[str, Path]) -> ValidationResult:
    """Create the target directory if it is missing.

    Args:
        target_directory: Directory to create.

    Returns:
        Valid result, or invalid with the OS error when creation fails.
    """
    try:
        Path(target_directory).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return ValidationResult.invalid(
            f"Cannot create directory '{target_directory}': {e}"
        )
    return ValidationResult.valid()
