import logging
from dataclasses import dataclass
from pathlib import Path

from .artifacts import CURRENT_LABEL, ArtifactCache, ArtifactRecord
from .build import BuildDriver
from .config import BenchConfig, RunConfiguration
from .exceptions import BaselineMissingError, BenchError, OutputsNotIgnoredError
from .harness import HarnessRunner
from .observability import log_event, new_run_id
from .repo import CheckoutGuard, GitRepo, WorkingTreeState

logger = logging.getLogger(__name__)


def needs_baseline_build(run: RunConfiguration, primary_branch: str, cached: bool) -> tuple[bool, str]:
    """Decide whether the baseline artifact must be (re)built.

    The primary branch keeps moving, so its cached binary is presumed stale unless the
    caller explicitly skips the build. Any other ref is presumed immutable and the cache
    is trusted unless it is empty or a rebuild is forced.

    Returns:
        ``(rebuild, reason)``.
    """
    if run.baseline_ref == primary_branch:
        if run.skip_baseline_build:
            return False, "primary branch build skipped by request"
        return True, "primary branch moves; cached binary presumed stale"
    if run.force_rebuild:
        return True, "rebuild forced"
    if not cached:
        return True, "no cached artifact"
    return False, "cached artifact trusted for fixed ref"


@dataclass(frozen=True)
class RunPlan:
    current_branch: str
    tree_state: WorkingTreeState
    current: ArtifactRecord
    baseline: ArtifactRecord
    rebuild_baseline: bool
    reason: str
    workload_path: str
    harness_command: list[str]
    unignored_outputs: tuple[Path, ...] = ()

    @property
    def clean(self) -> bool:
        return self.tree_state is WorkingTreeState.CLEAN


class Orchestrator:
    """Builds the current and baseline binaries, then hands both to the harness."""

    def __init__(
        self,
        config: BenchConfig,
        *,
        repo: GitRepo | None = None,
        cache: ArtifactCache | None = None,
        driver: BuildDriver | None = None,
        harness: HarnessRunner | None = None,
    ) -> None:
        self.config = config
        self.repo = repo or GitRepo(config.repo_dir)
        self.cache = cache or ArtifactCache(config.artifacts_dir, config.binary_name)
        self.driver = driver or BuildDriver(config, self.cache)
        self.harness = harness or HarnessRunner(config)

    def plan(self, run: RunConfiguration) -> RunPlan:
        """Inspect the repository and cache without changing anything."""
        current_branch = self.repo.current_branch()
        tree_state = self.repo.working_tree_state()
        current = self.cache.record(CURRENT_LABEL)
        baseline = self.cache.record(run.baseline_ref)
        rebuild, reason = needs_baseline_build(run, self.config.primary_branch, baseline.exists)
        unignored: tuple[Path, ...] = ()
        if rebuild:
            unignored = self._unignored_outputs(current.path, baseline.path)
        return RunPlan(
            current_branch=current_branch,
            tree_state=tree_state,
            current=current,
            baseline=baseline,
            rebuild_baseline=rebuild,
            reason=reason,
            workload_path=run.workload_path,
            harness_command=self.harness.build_command(
                current.path, baseline.path, run.workload_path
            ),
            unignored_outputs=unignored,
        )

    def _unignored_outputs(self, *artifacts: Path) -> tuple[Path, ...]:
        """Files the run writes inside the work tree that git would see as untracked.

        A baseline rebuild stashes untracked files and then writes these paths again on
        the other ref, so any of them left visible to git breaks `git stash pop`.
        """
        repo_dir = self.config.repo_dir
        unignored = []
        for path in (*artifacts, self.config.built_binary):
            if not path.is_relative_to(repo_dir):
                continue
            relative = path.relative_to(repo_dir)
            if not self.repo.is_ignored(relative):
                unignored.append(relative)
        return tuple(unignored)

    def run(self, run: RunConfiguration) -> int:
        """Execute one benchmark run and return the harness exit status."""
        run_id = new_run_id()
        try:
            return self._run(run, run_id)
        except BenchError as exc:
            log_event(
                {
                    "kind": "run_error",
                    "error_code": exc.error_code,
                    "error": exc.message,
                }
            )
            raise

    def _run(self, run: RunConfiguration, run_id: str) -> int:
        plan = self.plan(run)
        logger.info("Run %s: current branch %s (clean=%s)", run_id, plan.current_branch, plan.clean)
        logger.info(
            "Baseline %s -> %s (cached=%s)", run.baseline_ref, plan.baseline.path, plan.baseline.exists
        )
        log_event(
            {
                "kind": "run_start",
                "current_branch": plan.current_branch,
                "clean": plan.clean,
                "baseline_ref": run.baseline_ref,
                "baseline_path": str(plan.baseline.path),
                "baseline_cached": plan.baseline.exists,
                "workload_path": run.workload_path,
            }
        )

        # Fail before any build when policy forbids building and nothing is cached.
        if not plan.rebuild_baseline and not plan.baseline.exists:
            raise BaselineMissingError(run.baseline_ref, str(plan.baseline.path))
        if plan.unignored_outputs:
            raise OutputsNotIgnoredError([str(path) for path in plan.unignored_outputs])

        current_path = self.driver.build_and_cache(CURRENT_LABEL)

        logger.info("Baseline rebuild: %s (%s)", plan.rebuild_baseline, plan.reason)
        log_event(
            {
                "kind": "baseline_decision",
                "rebuild": plan.rebuild_baseline,
                "reason": plan.reason,
            }
        )
        if plan.rebuild_baseline:
            # The current build has written into the work tree since the plan was made.
            guard = CheckoutGuard(self.repo, run.baseline_ref, tree_state=plan.tree_state)
            guard.run(lambda: self.driver.build_and_cache(run.baseline_ref))

        baseline_path = self._verified_baseline(run.baseline_ref)
        return self.harness.run(current_path, baseline_path, run.workload_path)

    def _verified_baseline(self, ref: str) -> Path:
        record = self.cache.record(ref)
        if not record.exists:
            raise BaselineMissingError(ref, str(record.path))
        return record.path
