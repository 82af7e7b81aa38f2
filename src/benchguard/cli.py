import logging
import os
import shlex
import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from .config import BenchConfig, RunConfiguration, reload_logging_settings
from .config import settings as bench_settings
from .exceptions import BenchError, GuardFatalError
from .harness import HarnessRunner
from .orchestrator import Orchestrator

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_GUARD_FATAL = 3
EXIT_INTERRUPTED = 130


def _load_env() -> None:
    dotenv_path = os.getenv("BENCH_DOTENV_PATH", "").strip()
    if dotenv_path:
        path = Path(dotenv_path).expanduser()
        if path.exists():
            load_dotenv(path)
        else:
            click.echo(f"Warning: BENCH_DOTENV_PATH does not exist: {dotenv_path}", err=True)
            load_dotenv()
    else:
        load_dotenv()
    reload_logging_settings()


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else bench_settings.BENCH_LOG_LEVEL
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )


@click.command()
@click.option(
    "--baseline",
    default=None,
    help="Git ref to compare against (default: BENCH_PRIMARY_BRANCH or 'master')",
)
@click.option("--case", "case_path", default=None, help="Workload path (overrides --multi-chunks)")
@click.option(
    "--multi-chunks",
    is_flag=True,
    help="Use the multi-chunk variant of the default workload",
)
@click.option(
    "--skip-baseline-build",
    is_flag=True,
    help="Reuse the cached primary-branch binary instead of rebuilding it",
)
@click.option("--force", is_flag=True, help="Rebuild the baseline binary even if it is cached")
@click.option(
    "--repo",
    "repo_dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Repository root (default: current directory)",
)
@click.option(
    "--harness-arg",
    "harness_args",
    multiple=True,
    help="Extra argument passed through to the harness (repeatable)",
)
@click.option("--dry-run", is_flag=True, help="Print the plan without building or touching git")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(
    baseline: str | None,
    case_path: str | None,
    multi_chunks: bool,
    skip_baseline_build: bool,
    force: bool,
    repo_dir: Path | None,
    harness_args: tuple[str, ...],
    dry_run: bool,
    verbose: bool,
) -> None:
    """Benchmark the current tree against a baseline git ref.

    Builds the current tree, builds (or reuses) the baseline binary on a temporary
    checkout of BASELINE with local changes stashed, then compares both with the
    benchmark harness. Exits with the harness's exit status.
    """
    _load_env()
    _configure_logging(verbose)

    try:
        config = BenchConfig.from_env(repo_dir)
    except RuntimeError as e:
        click.echo(f"Error loading config: {e}", err=True)
        sys.exit(EXIT_ERROR)

    run = RunConfiguration(
        baseline_ref=baseline or config.primary_branch,
        workload_path=config.resolve_workload(case_path, multi_chunks=multi_chunks),
        skip_baseline_build=skip_baseline_build,
        force_rebuild=force,
    )
    orchestrator = Orchestrator(config, harness=HarnessRunner(config, harness_args))

    try:
        if dry_run:
            plan = orchestrator.plan(run)
            click.echo("Plan:")
            click.echo(f"  current branch: {plan.current_branch} (clean={plan.clean})")
            click.echo(f"  current binary: {plan.current.path}")
            click.echo(f"  baseline:       {run.baseline_ref} -> {plan.baseline.path}")
            click.echo(f"  cached:         {plan.baseline.exists}")
            click.echo(f"  rebuild:        {plan.rebuild_baseline} ({plan.reason})")
            click.echo(f"  workload:       {plan.workload_path}")
            click.echo(f"  harness:        {shlex.join(plan.harness_command)}")
            if plan.unignored_outputs:
                outputs = ", ".join(str(path) for path in plan.unignored_outputs)
                click.echo(f"  not ignored:    {outputs} (the run would stop; add to .gitignore)")
            return

        exit_code = orchestrator.run(run)
    except GuardFatalError as e:
        click.echo(f"FATAL: {e.message}", err=True)
        click.echo(e.remediation, err=True)
        sys.exit(EXIT_GUARD_FATAL)
    except BenchError as e:
        click.echo(f"Error [{e.error_code}]: {e.message}", err=True)
        sys.exit(EXIT_ERROR)
    except KeyboardInterrupt:
        click.echo(
            "Interrupted. If a baseline build was in progress, check `git status` and "
            "`git stash list` and restore your branch manually.",
            err=True,
        )
        sys.exit(EXIT_INTERRUPTED)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
