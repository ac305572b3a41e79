"""Test fixtures for git module."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pygit2
import pytest

from diffcov.git import GitRevisionStore
from tests.repo_helpers import init_repo

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture
def temp_repo(tmp_path: Path) -> Generator[pygit2.Repository, None, None]:
    """Create a temporary git repository with initial commit on master."""
    yield init_repo(tmp_path / "repo")


@pytest.fixture
def store(temp_repo: pygit2.Repository) -> GitRevisionStore:
    """Revision store over temp_repo."""
    return GitRevisionStore(Path(temp_repo.workdir))
