"""Logging utilities for PKS - File-based logging for initialization runs."""

from datetime import datetime
from pathlib import Path
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from pks.types import InitializationResult, InitializationSummary


class RunLogger:
    """Manages logging for a single ``pks-init`` run.

    Creates a unique directory for each run and manages two types of logs:
    1. Run log - pipeline-level events (planning, unit outcomes, summary)
    2. Per-unit logs - affected files, warnings, errors and tracebacks
    """

    def __init__(self, base_dir: str = "logs"):
        """Initialize the run logger.

        Args:
            base_dir: Base directory for all log runs (default: "logs")
        """
        self.run_id = self._generate_run_id()
        self.base_dir = Path(base_dir)
        self.run_dir = self.base_dir / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.run_log_path = self.run_dir / "init.log"
        self.unit_logs_dir = self.run_dir / "units"
        self.unit_logs_dir.mkdir(exist_ok=True)

        self._init_run_log()

    def _generate_run_id(self) -> str:
        """Generate a unique run ID with timestamp and short UUID.

        Returns:
            Run ID in format: YYYYMMDD_HHMMSS_<short-uuid>
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        short_uuid = str(uuid.uuid4())[:8]
        return f"{timestamp}_{short_uuid}"

    def _init_run_log(self) -> None:
        with open(self.run_log_path, 'w', encoding='utf-8') as f:
            f.write("=" * 80 + "\n")
            f.write("PKS Initialization Log\n")
            f.write("=" * 80 + "\n")
            f.write(f"Run ID: {self.run_id}\n")
            f.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write("=" * 80 + "\n\n")

    def log(self, message: str, level: str = "INFO") -> None:
        """Log a message to the run log.

        Args:
            message: Message to log
            level: Log level (INFO, WARNING, ERROR, etc.)
        """
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        with open(self.run_log_path, 'a', encoding='utf-8') as f:
            f.write(f"[{timestamp}] [{level}] {message}\n")

    def log_unit_result(self, unit_id: str, unit_name: str, result: 'InitializationResult') -> Path:
        """Write the detail of one initializer outcome to its own log file.

        Args:
            unit_id: Initializer ID (used for the file name)
            unit_name: Initializer display name
            result: The result the initializer produced

        Returns:
            Path to the unit log file
        """
        safe_id = unit_id.replace('/', '_').replace('\\', '_')
        log_path = self.unit_logs_dir / f"{safe_id}.log"
        status = "SUCCESS" if result.success else "FAILURE"

        with open(log_path, 'w', encoding='utf-8') as f:
            f.write("=" * 80 + "\n")
            f.write(f"Initializer: {unit_id}\n")
            f.write(f"Name: {unit_name}\n")
            f.write(f"Status: {status}\n")
            f.write("=" * 80 + "\n")
            if result.message:
                f.write(f"Message: {result.message}\n")
            for path in result.affected_files:
                f.write(f"File: {path}\n")
            for warning in result.warnings:
                f.write(f"Warning: {warning}\n")
            for error in result.errors:
                f.write(f"Error: {error}\n")
            if result.details:
                f.write("\nDetails:\n")
                f.write(result.details.rstrip() + "\n")

        line = f"{unit_name}: {status}"
        if result.message:
            line += f" - {result.message}"
        self.log(line, level="INFO" if result.success else "ERROR")
        return log_path

    def finalize(self, summary: 'InitializationSummary') -> None:
        """Write the run summary to the run log."""
        with open(self.run_log_path, 'a', encoding='utf-8') as f:
            f.write("\n" + "=" * 80 + "\n")
            f.write("Run Summary\n")
            f.write("=" * 80 + "\n")
            f.write(f"Completed: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write(f"Project: {summary.project_name}\n")
            f.write(f"Template: {summary.template}\n")
            f.write(f"Location: {summary.target_directory}\n")
            f.write(f"Status: {'SUCCESS' if summary.success else 'FAILURE'}\n")
            f.write(f"Initializers run: {len(summary.results)}\n")
            f.write(f"Files created: {summary.files_created}\n")
            f.write(f"Warnings: {summary.warnings_count}\n")
            f.write(f"Errors: {summary.errors_count}\n")
            if summary.error_message:
                f.write(f"Error: {summary.error_message}\n")
            f.write(f"Duration: {summary.duration.total_seconds():.1f}s\n")
            f.write("=" * 80 + "\n")

    def get_run_id(self) -> str:
        return self.run_id

    def get_run_dir(self) -> Path:
        return self.run_dir
