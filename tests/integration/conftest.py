"""Shared fixtures for integration tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pygit2
import pytest

from tests.repo_helpers import commit_files, create_branch, create_tag, init_repo

FOO_PATH = "src/main/java/pkg/Foo.java"
UTIL_PATH = "src/main/java/pkg/Util.java"
GONE_PATH = "src/main/java/pkg/Gone.java"

FOO_V1 = """package pkg;

public class Foo {
    int bar() {
        return 1;
    }

    int baz() {
        return 2;
    }
}
"""

FOO_V2 = """package pkg;

public class Foo {
    int bar() {
        return 10;
    }

    int baz() {
        return 2;
    }

    void qux() {
    }
}
"""

UTIL = """package pkg;

class Util {
    static int twice(int x) {
        return x * 2;
    }
}
"""

GONE = """package pkg;

class Gone {
    void bye() {
    }
}
"""


@pytest.fixture
def java_repo(tmp_path: Path) -> Generator[Path, None, None]:
    """Create a Java repository with two lines of history.

    Layout:
    - master (tag v1.0): Foo v1, Util, Gone
    - feature (tag v1.1): Foo v2, Util unchanged, Gone deleted, README edited
    """
    repo_path = tmp_path / "java_repo"
    repo: pygit2.Repository = init_repo(repo_path)

    commit_files(repo, {FOO_PATH: FOO_V1, UTIL_PATH: UTIL, GONE_PATH: GONE}, "Add sources")
    create_tag(repo, "v1.0")

    create_branch(repo, "feature")
    commit_files(
        repo,
        {FOO_PATH: FOO_V2, GONE_PATH: None, "README.md": "# Changed\n"},
        "Change Foo, drop Gone",
    )
    create_tag(repo, "v1.1")

    yield repo_path
