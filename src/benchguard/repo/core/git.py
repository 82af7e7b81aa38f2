import logging
import subprocess  # nosec B404
from enum import Enum
from pathlib import Path

from ...exceptions import GitCommandError, GitQueryError

logger = logging.getLogger(__name__)

_QUERY_TIMEOUT_SECONDS = 10


class WorkingTreeState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"


def _format_output(stdout: str, stderr: str) -> str:
    stdout_text = (stdout or "").strip()
    stderr_text = (stderr or "").strip()
    if stderr_text and stdout_text and stdout_text != stderr_text:
        return f"{stderr_text}\n{stdout_text}"
    return stderr_text or stdout_text


class GitRepo:
    """Thin wrapper around the git CLI for one working tree.

    Queries (`current_branch`, `is_clean`, `is_ignored`) never change repository state and raise
    `GitQueryError`. Mutations (`stash`, `checkout`, `stash_pop`) raise
    `GitCommandError` and are only meant to be driven by `CheckoutGuard`.
    """

    def __init__(self, repo_dir: str | Path) -> None:
        self.repo_dir = Path(repo_dir)

    def _launch_query(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(  # nosec B603 B607
                ["git", *args],
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
                check=False,
                timeout=_QUERY_TIMEOUT_SECONDS,
            )
        except FileNotFoundError as exc:
            raise GitQueryError(f"git executable not found: {exc}") from exc
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise GitQueryError(f"git {' '.join(args)} failed: {exc}") from exc

    def _query(self, args: list[str]) -> str:
        result = self._launch_query(args)
        if result.returncode != 0:
            detail = _format_output(result.stdout, result.stderr) or "unknown error"
            raise GitQueryError(
                f"git {' '.join(args)} failed in {self.repo_dir} (code {result.returncode}): {detail}"
            )
        return result.stdout or ""

    def _run(self, args: list[str]) -> str:
        logger.info("$ git %s", " ".join(args))
        try:
            result = subprocess.run(  # nosec B603 B607
                ["git", *args],
                cwd=self.repo_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise GitCommandError(args, None, str(exc)) from exc

        output = _format_output(result.stdout, result.stderr)
        if result.returncode != 0:
            raise GitCommandError(args, result.returncode, output)
        if output:
            logger.debug("%s", output)
        return output

    def current_branch(self) -> str:
        branch = self._query(["rev-parse", "--abbrev-ref", "HEAD"]).strip()
        if not branch:
            raise GitQueryError(f"Cannot determine current branch in {self.repo_dir}")
        return branch

    def head_commit(self) -> str:
        return self._query(["rev-parse", "HEAD"]).strip()

    def is_clean(self) -> bool:
        """Return True iff `git status --porcelain` lists no tracked or untracked changes."""
        return not self._query(["status", "--porcelain"]).strip()

    def working_tree_state(self) -> WorkingTreeState:
        return WorkingTreeState.CLEAN if self.is_clean() else WorkingTreeState.DIRTY

    def is_ignored(self, path: str | Path) -> bool:
        """Return True if git ignores ``path`` (relative to the repo root; need not exist)."""
        args = ["check-ignore", "-q", "--", str(path)]
        result = self._launch_query(args)
        # check-ignore exits 1 when the path is not ignored
        if result.returncode in (0, 1):
            return result.returncode == 0
        detail = _format_output(result.stdout, result.stderr) or "unknown error"
        raise GitQueryError(
            f"git {' '.join(args)} failed in {self.repo_dir} (code {result.returncode}): {detail}"
        )

    def stash(self) -> None:
        self._run(["stash", "--include-untracked"])

    def checkout(self, ref: str) -> None:
        self._run(["checkout", ref])

    def stash_pop(self) -> None:
        self._run(["stash", "pop"])
