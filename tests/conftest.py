"""
Pytest configuration and shared fixtures.

Provides git repositories (with and without a bare remote), in-memory
transports, fixed clocks and an isolated configuration environment.
"""

import subprocess
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from litebrite.core.config import LitebriteConfig, SyncConfig, clear_cache
from litebrite.core.items.graph import ItemGraph
from litebrite.core.items.models import Document
from litebrite.core.sync import MemoryRemote, MemoryTransport, SyncService

LB_ENV_VARS = ("LB_ACTOR", "LB_BRANCH", "LB_REMOTE", "LB_GIT_TIMEOUT", "LB_PUBLISH_RETRIES")


def run_git(repo: Path, *args: str) -> str:
    """Run git in *repo* and return stripped stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def init_repo(repo: Path, user: str = "Test User") -> Path:
    """Create a git repository with a configured identity and one commit."""
    repo.mkdir(parents=True, exist_ok=True)
    run_git(repo, "init")
    run_git(repo, "config", "user.email", "test@example.com")
    run_git(repo, "config", "user.name", user)
    (repo / "README.md").write_text("# Test Repo\n")
    run_git(repo, "add", "README.md")
    run_git(repo, "commit", "-m", "Initial commit")
    return repo


# ==============================================================================
# Environment
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep user config, .env files and LB_* variables out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in LB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()


# ==============================================================================
# Clocks
# ==============================================================================


class FakeClock:
    """Deterministic clock that advances one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def id_factory() -> Callable[..., str]:
    """Sequential ids lb-0001, lb-0002, ... for readable assertions."""
    counter = iter(range(1, 10_000))

    def next_id(title: str, existing: object) -> str:
        return f"lb-{next(counter):04d}"

    return next_id


@pytest.fixture
def graph(clock: FakeClock, id_factory: Callable[..., str]) -> ItemGraph:
    """An ItemGraph over an empty document."""
    return ItemGraph(Document(), clock=clock, id_factory=id_factory)


# ==============================================================================
# Git repositories
# ==============================================================================


@pytest.fixture
def git() -> Callable[..., str]:
    """The run_git helper, for tests that inspect repositories directly."""
    return run_git


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with an initial commit."""
    return init_repo(tmp_path / "repo")


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """Create a bare repository to act as the shared remote."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    run_git(remote, "init", "--bare")
    return remote


@pytest.fixture
def git_repo_with_remote(git_repo: Path, bare_remote: Path) -> Path:
    """A git repository whose `origin` is the bare remote."""
    run_git(git_repo, "remote", "add", "origin", str(bare_remote))
    return git_repo


@pytest.fixture
def second_clone(tmp_path: Path, bare_remote: Path) -> Path:
    """Another actor's repository sharing the same bare remote."""
    repo = init_repo(tmp_path / "bob", user="bob")
    run_git(repo, "remote", "add", "origin", str(bare_remote))
    return repo


# ==============================================================================
# In-memory transports
# ==============================================================================


@pytest.fixture
def memory_remote() -> MemoryRemote:
    return MemoryRemote()


@pytest.fixture
def make_service(
    memory_remote: MemoryRemote, clock: FakeClock
) -> Callable[..., SyncService]:
    """Factory for SyncServices sharing one in-memory remote."""

    def factory(actor: str = "alice", *, remote: bool = True, retries: int = 1) -> SyncService:
        transport = MemoryTransport(memory_remote if remote else None, actor=actor)
        config = LitebriteConfig(sync=SyncConfig(max_publish_retries=retries))
        return SyncService(transport, config, clock=clock)

    return factory
