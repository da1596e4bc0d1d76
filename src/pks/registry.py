"""Initializer registry: ordering, selection and sequential execution."""

import traceback
from typing import Callable, Dict, Iterable, List, Optional, Union

from rich.console import Console
from rich.markup import escape

from pks.base_initializer import Initializer
from pks.logging_utils import RunLogger
from pks.types import (
    InitializationContext,
    InitializationResult,
    InitializerConfigurationError,
    InitializerOption,
)

InitializerFactory = Callable[[], Initializer]


class InitializerRegistry:
    """Holds the known initializers and runs the ones that apply.

    Initializers are registered either as instances or as zero-argument
    factories (a class, or a ``functools.partial`` closing over
    collaborators). Factories are built once, on first use, and the
    instance is reused for the rest of the process.
    """

    def __init__(self, console: Optional[Console] = None, run_logger: Optional[RunLogger] = None):
        self.console = console or Console()
        self.run_logger = run_logger
        self._entries: List[Union[Initializer, InitializerFactory]] = []
        self._resolved: Dict[int, Initializer] = {}
        self._discovered = False

    def register(self, initializer: Initializer) -> None:
        """Register an initializer instance. Duplicate IDs are not checked."""
        self._entries.append(initializer)

    def register_type(self, factory: InitializerFactory) -> None:
        """Register a factory that builds an initializer on first use."""
        self._entries.append(factory)

    def discover_and_register(self, factories: Optional[Iterable[InitializerFactory]] = None) -> int:
        """Register the built-in initializers (or an explicit factory list).

        Only the first call registers anything; later calls are no-ops.

        Returns:
            Number of initializers registered by this call.
        """
        if self._discovered:
            self.console.print("[dim]Initializers already registered; skipping discovery[/]")
            return 0

        if factories is None:
            from pks.initializers import BUILTIN_INITIALIZERS
            factories = BUILTIN_INITIALIZERS

        count = 0
        for factory in factories:
            self.register_type(factory)
            count += 1

        self._discovered = True
        if count:
            self.console.print(f"[dim]Registered {count} initializers[/]")
        return count

    def _resolve(self, index: int, entry: Union[Initializer, InitializerFactory]) -> Initializer:
        if isinstance(entry, Initializer):
            return entry
        if index in self._resolved:
            return self._resolved[index]

        factory_name = getattr(entry, "__name__", repr(entry))
        try:
            initializer = entry()
        except Exception as e:
            raise InitializerConfigurationError(
                f"Cannot construct initializer from {factory_name}: {e}"
            ) from e
        if not isinstance(initializer, Initializer):
            raise InitializerConfigurationError(
                f"Factory {factory_name} returned {type(initializer).__name__}, not an Initializer"
            )

        self._resolved[index] = initializer
        return initializer

    def _in_registration_order(self) -> List[Initializer]:
        return [self._resolve(i, entry) for i, entry in enumerate(self._entries)]

    def get_all(self) -> List[Initializer]:
        """All initializers sorted by order, then name; ties keep registration order.

        Raises:
            InitializerConfigurationError: If a registered factory cannot build its unit.
        """
        return sorted(self._in_registration_order(), key=lambda i: (i.order, i.name))

    def get_by_id(self, initializer_id: str) -> Optional[Initializer]:
        """Case-insensitive lookup by ID."""
        wanted = initializer_id.lower()
        for initializer in self.get_all():
            if initializer.id.lower() == wanted:
                return initializer
        return None

    def get_all_options(self) -> List[InitializerOption]:
        """Options from every initializer, deduplicated by name.

        When two initializers declare the same option name the one
        registered first wins.
        """
        seen: Dict[str, InitializerOption] = {}
        for initializer in self._in_registration_order():
            for option in initializer.get_options():
                if option.name not in seen:
                    seen[option.name] = option
        return list(seen.values())

    async def get_applicable(self, context: InitializationContext) -> List[Initializer]:
        """Initializers whose ``should_run`` accepts the context, in execution order.

        A predicate that raises excludes its initializer and records one
        run warning; it never aborts planning.
        """
        applicable: List[Initializer] = []
        for initializer in self.get_all():
            try:
                if await initializer.should_run(context):
                    applicable.append(initializer)
            except Exception as e:
                warning = f"Error checking if {initializer.name} should run: {e}"
                context.add_warning(warning)
                self.console.print(f"[yellow]Warning: {escape(warning)}[/]", highlight=False)
                if self.run_logger:
                    self.run_logger.log(warning, level="WARNING")
        return applicable

    async def execute_all(self, context: InitializationContext) -> List[InitializationResult]:
        """Execute applicable initializers in order.

        Execution is strictly sequential. A failed critical initializer
        (order below 50) stops the run; its result is the last one returned.
        """
        applicable = await self.get_applicable(context)
        results: List[InitializationResult] = []

        self.console.print(f"[cyan]Running {len(applicable)} initializers...[/]")
        if self.run_logger:
            names = ", ".join(i.id for i in applicable) or "none"
            self.run_logger.log(f"Applicable initializers: {names}")

        for initializer in applicable:
            if self.run_logger:
                self.run_logger.log(f"Running initializer: {initializer.name}")

            try:
                result = await initializer.execute(context)
            except Exception as e:
                result = InitializationResult.failure(
                    f"Exception in {initializer.name}: {e}",
                    traceback.format_exc(),
                )

            if not result.is_explained:
                result.message = f"{initializer.name} failed without reporting a reason"

            results.append(result)
            self._report(initializer, result)

            if not result.success and initializer.is_critical:
                stop = f"Critical initializer {initializer.name} failed. Stopping execution."
                self.console.print(f"[red]{escape(stop)}[/]", highlight=False)
                if self.run_logger:
                    self.run_logger.log(stop, level="ERROR")
                break

        return results

    def _report(self, initializer: Initializer, result: InitializationResult) -> None:
        if result.success and result.warnings:
            self.console.print(
                f"[yellow]⚠ {escape(initializer.name)}: {escape(result.message or 'Completed with warnings')}[/]",
                highlight=False,
            )
            for warning in result.warnings:
                self.console.print(f"[dim]  Warning: {escape(warning)}[/]", highlight=False)
        elif result.success:
            self.console.print(
                f"[green]✓ {escape(initializer.name)}: {escape(result.message or 'Completed successfully')}[/]",
                highlight=False,
            )
        else:
            self.console.print(
                f"[red]✗ {escape(initializer.name)}: {escape(result.message or 'Failed')}[/]",
                highlight=False,
            )
            for error in result.errors:
                self.console.print(f"[dim]  Error: {escape(error)}[/]", highlight=False)

        if self.run_logger:
            self.run_logger.log_unit_result(initializer.id, initializer.name, result)
