import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_state_dir

from .compat import env_bool, env_float, env_int

logger = logging.getLogger(__name__)

__all__ = [
    "BenchConfig",
    "RunConfiguration",
    "reload_logging_settings",
]

# Defaults mirror the mako benchmark setup: cargo release build compared with hyperfine.
DEFAULT_PRIMARY_BRANCH = "master"
DEFAULT_ARTIFACTS_DIR = "tmp"
DEFAULT_BUILD_COMMAND = "cargo build --release"
DEFAULT_BINARY_PATH = "target/release/mako"
DEFAULT_WORKLOAD_PATH = "./tmp/three10x"
DEFAULT_MULTI_CHUNK_SUBDIR = "multiChunks"
DEFAULT_HARNESS = "hyperfine"
DEFAULT_WARMUP = 3
DEFAULT_RUNS = 10
DEFAULT_MODE = "production"

# Console logging level (overridden by --verbose)
BENCH_LOG_LEVEL = os.getenv("BENCH_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Run event log (JSONL, off by default)
# - Linux: ~/.local/state/benchguard
# - macOS: ~/Library/Application Support/benchguard
# Directory is created lazily when the first event is written
def _get_log_dir() -> Path:
    override = os.getenv("BENCH_LOG_DIR", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(user_state_dir("benchguard", appauthor=False))


BENCH_EVENT_LOG = env_bool("BENCH_EVENT_LOG", default=False)
LOG_DIR = _get_log_dir()
LOG_PATH = LOG_DIR / "runs.jsonl"
MAX_LOG_SIZE_BYTES = 10 * 1024 * 1024


def reload_logging_settings() -> None:
    """Re-read logging settings after the environment changed (e.g. a .env was loaded)."""
    global BENCH_LOG_LEVEL, BENCH_EVENT_LOG, LOG_DIR, LOG_PATH

    BENCH_LOG_LEVEL = os.getenv("BENCH_LOG_LEVEL", "INFO").strip().upper() or "INFO"
    BENCH_EVENT_LOG = env_bool("BENCH_EVENT_LOG", default=False)
    LOG_DIR = _get_log_dir()
    LOG_PATH = LOG_DIR / "runs.jsonl"


@dataclass(frozen=True)
class RunConfiguration:
    """Inputs of a single benchmark run; never mutated while the run is in flight."""

    baseline_ref: str
    workload_path: str
    skip_baseline_build: bool = False
    force_rebuild: bool = False


@dataclass(frozen=True)
class BenchConfig:
    repo_dir: Path
    artifacts_dir: Path
    primary_branch: str = DEFAULT_PRIMARY_BRANCH
    build_command: tuple[str, ...] = tuple(shlex.split(DEFAULT_BUILD_COMMAND))
    binary_path: Path = Path(DEFAULT_BINARY_PATH)
    workload_path: str = DEFAULT_WORKLOAD_PATH
    multi_chunk_subdir: str = DEFAULT_MULTI_CHUNK_SUBDIR
    harness: str = DEFAULT_HARNESS
    warmup: int = DEFAULT_WARMUP
    runs: int = DEFAULT_RUNS
    mode: str = DEFAULT_MODE
    harness_timeout: float | None = None

    @property
    def binary_name(self) -> str:
        return self.binary_path.name

    @property
    def built_binary(self) -> Path:
        """Absolute location of the binary produced by the build command."""
        if self.binary_path.is_absolute():
            return self.binary_path
        return self.repo_dir / self.binary_path

    def resolve_workload(self, case: str | None = None, *, multi_chunks: bool = False) -> str:
        """Pick the workload path: explicit case wins, then the multi-chunk variant."""
        if case:
            return case
        if multi_chunks:
            return f"{self.workload_path.rstrip('/')}/{self.multi_chunk_subdir}"
        return self.workload_path

    @classmethod
    def from_env(cls, repo_dir: str | Path | None = None) -> "BenchConfig":
        base = Path(repo_dir or os.getcwd()).expanduser().resolve()
        if not base.is_dir():
            raise RuntimeError(f"Repository directory does not exist or is not a directory: {base}")

        artifacts_raw = os.getenv("BENCH_ARTIFACTS_DIR", "").strip() or DEFAULT_ARTIFACTS_DIR
        artifacts_dir = Path(artifacts_raw).expanduser()
        if not artifacts_dir.is_absolute():
            artifacts_dir = base / artifacts_dir

        build_raw = os.getenv("BENCH_BUILD_COMMAND", "").strip() or DEFAULT_BUILD_COMMAND
        build_command = tuple(shlex.split(build_raw))
        if not build_command:
            raise RuntimeError("BENCH_BUILD_COMMAND must not be empty")

        primary_branch = os.getenv("BENCH_PRIMARY_BRANCH", "").strip() or DEFAULT_PRIMARY_BRANCH
        logger.debug("Using repo_dir=%s artifacts_dir=%s", base, artifacts_dir)

        return cls(
            repo_dir=base,
            artifacts_dir=artifacts_dir,
            primary_branch=primary_branch,
            build_command=build_command,
            binary_path=Path(os.getenv("BENCH_BINARY_PATH", "").strip() or DEFAULT_BINARY_PATH),
            workload_path=os.getenv("BENCH_WORKLOAD_PATH", "").strip() or DEFAULT_WORKLOAD_PATH,
            multi_chunk_subdir=os.getenv("BENCH_MULTI_CHUNK_SUBDIR", "").strip()
            or DEFAULT_MULTI_CHUNK_SUBDIR,
            harness=os.getenv("BENCH_HARNESS", "").strip() or DEFAULT_HARNESS,
            warmup=env_int("BENCH_WARMUP", default=DEFAULT_WARMUP, minimum=0),
            runs=env_int("BENCH_RUNS", default=DEFAULT_RUNS, minimum=1),
            mode=os.getenv("BENCH_MODE", "").strip() or DEFAULT_MODE,
            harness_timeout=env_float("BENCH_HARNESS_TIMEOUT"),
        )
