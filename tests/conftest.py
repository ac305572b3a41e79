"""Root conftest.py for test configuration.

``pythonpath`` in pyproject.toml puts ``src/`` and the repo root on the
import path; fixtures here keep diff runs from sharing correlation state.
"""

from collections.abc import Iterator

import pytest

from diffcov.core.logging import clear_run_id


@pytest.fixture(autouse=True)
def _isolated_run_id() -> Iterator[None]:
    """Start and end every test without a bound run id."""
    clear_run_id()
    yield
    clear_run_id()
