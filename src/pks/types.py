"""Type definitions for the PKS initializer pipeline."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional


class InitializerError(Exception):
    """Base class for initializer pipeline errors."""


class InitializerConfigurationError(InitializerError):
    """A registered initializer factory could not build its unit."""


class OptionTypeError(InitializerError, TypeError):
    """An option or metadata value is present but has the wrong type."""


# Value types an initializer option can declare
OPTION_BOOL = "bool"
OPTION_STRING = "str"
OPTION_INTEGER = "int"
OPTION_STRING_ARRAY = "list[str]"


@dataclass
class InitializerOption:
    """A command-line option contributed by an initializer."""
    name: str
    description: str
    short_name: Optional[str] = None
    value_type: str = OPTION_BOOL
    default_value: Any = None
    required: bool = False
    is_array: bool = False
    validator: Optional[Callable[[Any], Optional[str]]] = None

    def validate(self, value: Any) -> Optional[str]:
        """Run the validator against a candidate value.

        Returns:
            Error message, or None when the value is acceptable.
        """
        if self.validator is None:
            return None
        return self.validator(value)

    @staticmethod
    def flag(name: str, description: str, short_name: Optional[str] = None) -> 'InitializerOption':
        """Create a boolean flag option (defaults to False)."""
        return InitializerOption(
            name=name,
            description=description,
            short_name=short_name,
            value_type=OPTION_BOOL,
            default_value=False,
        )

    @staticmethod
    def string(
        name: str,
        description: str,
        short_name: Optional[str] = None,
        default_value: Optional[str] = None,
        required: bool = False,
    ) -> 'InitializerOption':
        """Create a string option."""
        return InitializerOption(
            name=name,
            description=description,
            short_name=short_name,
            value_type=OPTION_STRING,
            default_value=default_value,
            required=required,
        )

    @staticmethod
    def integer(
        name: str,
        description: str,
        short_name: Optional[str] = None,
        default_value: Optional[int] = None,
        required: bool = False,
    ) -> 'InitializerOption':
        """Create an integer option."""
        return InitializerOption(
            name=name,
            description=description,
            short_name=short_name,
            value_type=OPTION_INTEGER,
            default_value=default_value,
            required=required,
        )

    @staticmethod
    def string_array(
        name: str,
        description: str,
        short_name: Optional[str] = None,
        default_value: Optional[List[str]] = None,
    ) -> 'InitializerOption':
        """Create a multi-valued string option."""
        return InitializerOption(
            name=name,
            description=description,
            short_name=short_name,
            value_type=OPTION_STRING_ARRAY,
            default_value=default_value,
            is_array=True,
        )


@dataclass
class InitializationContext:
    """Per-run input shared by every initializer.

    ``options`` is caller input and is never written by initializers.
    ``metadata`` is scratch space initializers use to hand discoveries to
    later initializers in the same run.
    """
    project_name: str
    template: str
    target_directory: str
    working_directory: str
    description: Optional[str] = None
    force: bool = False
    interactive: bool = True
    options: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)  # run-level, not tied to a result

    def get_option(self, key: str, default: Any = None) -> Any:
        """Get an option value.

        Falls back to ``default`` when the key is absent, None, or (given a
        non-None default) holds a value of a different type.
        """
        return _lenient(self.options.get(key), default)

    def get_metadata(self, key: str, default: Any = None) -> Any:
        """Get a metadata value; same fallback rules as ``get_option``."""
        return _lenient(self.metadata.get(key), default)

    def set_metadata(self, key: str, value: Any) -> None:
        """Record a metadata value for later initializers."""
        self.metadata[key] = value

    def add_warning(self, message: str) -> None:
        """Record a run-level warning (e.g. an initializer excluded itself)."""
        self.warnings.append(message)

    # Typed accessors: absent/None -> default, wrong type -> OptionTypeError

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self._typed(key, bool, default)

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._typed(key, str, default)

    def get_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self.options.get(key)
        if isinstance(value, bool):
            raise OptionTypeError(f"Option '{key}' expected int, got bool")
        return self._typed(key, int, default)

    def get_str_list(self, key: str, default: Optional[List[str]] = None) -> List[str]:
        value = self.options.get(key)
        if value is None:
            return list(default or [])
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return list(value)
        raise OptionTypeError(
            f"Option '{key}' expected list[str], got {type(value).__name__}"
        )

    def _typed(self, key: str, expected: type, default: Any) -> Any:
        value = self.options.get(key)
        if value is None:
            return default
        if not isinstance(value, expected):
            raise OptionTypeError(
                f"Option '{key}' expected {expected.__name__}, got {type(value).__name__}"
            )
        return value


def _lenient(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if default is not None and not isinstance(value, type(default)):
        return default
    return value


@dataclass
class InitializationResult:
    """Outcome of a single initializer execution."""
    success: bool
    message: Optional[str] = None
    details: Optional[str] = None  # exception traceback or extra detail
    affected_files: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_explained(self) -> bool:
        """True unless this is a failure carrying neither message nor errors."""
        return self.success or bool(self.errors) or bool(self.message)

    @staticmethod
    def ok(message: Optional[str] = None, details: Optional[str] = None) -> 'InitializationResult':
        """Create a successful result."""
        return InitializationResult(success=True, message=message, details=details)

    @staticmethod
    def failure(message: str, details: Optional[str] = None) -> 'InitializationResult':
        """Create a failed result."""
        return InitializationResult(success=False, message=message, details=details)

    @staticmethod
    def ok_with_warnings(message: Optional[str] = None, *warnings: str) -> 'InitializationResult':
        """Create a successful result carrying warnings."""
        return InitializationResult(success=True, message=message, warnings=list(warnings))


@dataclass
class InitializationSummary:
    """Aggregate outcome of one initialization run."""
    project_name: str
    template: str
    target_directory: str
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    success: bool = False
    error_message: Optional[str] = None
    results: List[InitializationResult] = field(default_factory=list)
    run_warnings: List[str] = field(default_factory=list)
    files_created: int = 0
    warnings_count: int = 0
    errors_count: int = 0

    @property
    def duration(self) -> timedelta:
        if self.end_time is None:
            return timedelta(0)
        return self.end_time - self.start_time

    def collect_statistics(self) -> None:
        """Recompute success and counters from ``results``."""
        self.success = all(r.success for r in self.results)
        self.files_created = len({f for r in self.results for f in r.affected_files})
        self.warnings_count = sum(len(r.warnings) for r in self.results)
        self.errors_count = sum(len(r.errors) for r in self.results)


@dataclass
class TemplateInfo:
    """A project template offered by ``pks-init``."""
    name: str
    display_name: str
    description: str
    path: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    author: Optional[str] = None
    version: Optional[str] = None
    default_options: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_builtin(self) -> bool:
        return not self.path


@dataclass
class ValidationResult:
    """Outcome of a validation check."""
    is_valid: bool
    error_message: Optional[str] = None

    @staticmethod
    def valid() -> 'ValidationResult':
        return ValidationResult(is_valid=True)

    @staticmethod
    def invalid(message: str) -> 'ValidationResult':
        return ValidationResult(is_valid=False, error_message=message)
