from collections.abc import Generator
from pathlib import Path
from unittest.mock import patch

import pytest

from benchguard.artifacts import ArtifactCache
from benchguard.config import BenchConfig
from benchguard.exceptions import GitCommandError, GitQueryError
from benchguard.repo import WorkingTreeState

_BENCH_ENV_VARS = (
    "BENCH_PRIMARY_BRANCH",
    "BENCH_ARTIFACTS_DIR",
    "BENCH_BUILD_COMMAND",
    "BENCH_BINARY_PATH",
    "BENCH_WORKLOAD_PATH",
    "BENCH_MULTI_CHUNK_SUBDIR",
    "BENCH_HARNESS",
    "BENCH_WARMUP",
    "BENCH_RUNS",
    "BENCH_MODE",
    "BENCH_HARNESS_TIMEOUT",
    "BENCH_LOG_LEVEL",
    "BENCH_LOG_DIR",
    "BENCH_EVENT_LOG",
    "BENCH_DOTENV_PATH",
)


class FakeGitRepo:
    """In-memory stand-in for GitRepo that records every mutating call."""

    def __init__(self, branch: str = "feature", clean: bool = True) -> None:
        self.branch = branch
        self.clean = clean
        self.calls: list[tuple[str, ...]] = []
        self.fail_on: dict[tuple[str, ...], str] = {}
        self.query_error: str | None = None
        self.stash_depth = 0
        self.unignored: set[str] = set()

    def _mutate(self, *call: str) -> None:
        self.calls.append(call)
        if call in self.fail_on:
            raise GitCommandError(list(call), 1, self.fail_on[call])

    def current_branch(self) -> str:
        if self.query_error:
            raise GitQueryError(self.query_error)
        return self.branch

    def head_commit(self) -> str:
        return "0123456789abcdef0123456789abcdef01234567"

    def is_clean(self) -> bool:
        if self.query_error:
            raise GitQueryError(self.query_error)
        return self.clean

    def working_tree_state(self) -> WorkingTreeState:
        return WorkingTreeState.CLEAN if self.is_clean() else WorkingTreeState.DIRTY

    def is_ignored(self, path: str | Path) -> bool:
        if self.query_error:
            raise GitQueryError(self.query_error)
        return str(path) not in self.unignored

    def stash(self) -> None:
        self._mutate("stash", "--include-untracked")
        self.stash_depth += 1
        self.clean = True

    def checkout(self, ref: str) -> None:
        self._mutate("checkout", ref)
        self.branch = ref

    def stash_pop(self) -> None:
        self._mutate("stash", "pop")
        self.stash_depth -= 1
        self.clean = False

    @property
    def checkouts(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "checkout"]

    @property
    def stash_ops(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if call[0] == "stash"]


class RecordingDriver:
    """Build driver double: writes a fake binary into the cache and remembers the branch."""

    def __init__(self, cache: ArtifactCache, repo: FakeGitRepo, source_dir: Path) -> None:
        self.cache = cache
        self.repo = repo
        self.source_dir = source_dir
        self.builds: list[tuple[str, str]] = []
        self.fail_labels: dict[str, Exception] = {}
        self.skip_store: set[str] = set()

    def build_and_cache(self, label: str) -> Path:
        self.builds.append((label, self.repo.branch))
        if label in self.fail_labels:
            raise self.fail_labels[label]
        if label in self.skip_store:
            return self.cache.path_for(label)
        built = self.source_dir / f"built-{len(self.builds)}"
        built.write_text(f"binary built on {self.repo.branch}\n", encoding="utf-8")
        return self.cache.store(label, built)


class FakeHarness:
    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.calls: list[tuple[Path, Path, str]] = []

    def build_command(self, current: Path, baseline: Path, workload: str) -> list[str]:
        return ["hyperfine", str(current), str(baseline), workload]

    def run(self, current: Path, baseline: Path, workload: str) -> int:
        self.calls.append((current, baseline, workload))
        return self.returncode


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _BENCH_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def event_log_path(tmp_path: Path) -> Generator[Path, None, None]:
    """Route the run event log into tmp_path and enable it for every test."""
    log_file = tmp_path / "events" / "runs.jsonl"
    with (
        patch("benchguard.config.settings.BENCH_EVENT_LOG", True),
        patch("benchguard.config.settings.LOG_PATH", log_file),
    ):
        yield log_file


@pytest.fixture
def bench_config(tmp_path: Path) -> BenchConfig:
    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    return BenchConfig(repo_dir=repo_dir, artifacts_dir=repo_dir / "tmp")


@pytest.fixture
def cache(bench_config: BenchConfig) -> ArtifactCache:
    return ArtifactCache(bench_config.artifacts_dir, bench_config.binary_name)


@pytest.fixture
def fake_repo() -> FakeGitRepo:
    return FakeGitRepo()


@pytest.fixture
def driver(cache: ArtifactCache, fake_repo: FakeGitRepo, tmp_path: Path) -> RecordingDriver:
    source_dir = tmp_path / "build-output"
    source_dir.mkdir()
    return RecordingDriver(cache, fake_repo, source_dir)


@pytest.fixture
def harness() -> FakeHarness:
    return FakeHarness(returncode=0)
