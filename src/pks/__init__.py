"""PKS project initializer pipeline."""

from pks.base_initializer import BaseInitializer, CodeInitializer, Initializer
from pks.registry import InitializerRegistry
from pks.service import InitializationService
from pks.template_initializer import TemplateInitializer
from pks.types import (
    InitializationContext,
    InitializationResult,
    InitializationSummary,
    InitializerConfigurationError,
    InitializerError,
    InitializerOption,
    OptionTypeError,
    TemplateInfo,
    ValidationResult,
)

__version__ = "0.1.0"

__all__ = [
    "BaseInitializer",
    "CodeInitializer",
    "Initializer",
    "InitializerRegistry",
    "InitializationService",
    "TemplateInitializer",
    "InitializationContext",
    "InitializationResult",
    "InitializationSummary",
    "InitializerConfigurationError",
    "InitializerError",
    "InitializerOption",
    "OptionTypeError",
    "TemplateInfo",
    "ValidationResult",
]
