"""Test configuration for PKS tests."""
import io
import sys
import os
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

# Fix Windows encoding issues with the check marks in console output
if sys.platform == 'win32':
    os.environ.setdefault('PYTHONIOENCODING', 'utf-8')

from rich.console import Console  # noqa: E402

from pks.config import reset_config  # noqa: E402
from pks.types import InitializationContext  # noqa: E402


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Keep the cached configuration from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def console() -> Console:
    """Console that records output instead of printing it."""
    return Console(file=io.StringIO(), width=200, force_terminal=False, color_system=None)


@pytest.fixture
def make_context(tmp_path: Path):
    """Factory for contexts targeting a fresh directory under tmp_path."""
    def _make(**overrides) -> InitializationContext:
        values = {
            "project_name": "Demo",
            "template": "console",
            "target_directory": str(tmp_path / "out"),
            "working_directory": str(tmp_path),
            "interactive": False,
        }
        values.update(overrides)
        return InitializationContext(**values)
    return _make
