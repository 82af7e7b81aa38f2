import logging
from collections.abc import Callable
from enum import Enum
from types import TracebackType
from typing import TypeVar

from ..exceptions import CheckoutError, GitCommandError, GuardFatalError
from ..observability import log_event
from .core.git import GitRepo, WorkingTreeState

logger = logging.getLogger(__name__)

T = TypeVar("T")

# `git rev-parse --abbrev-ref HEAD` prints this when HEAD is detached
_DETACHED_HEAD = "HEAD"


class GuardState(str, Enum):
    READY = "ready"
    STASHED = "stashed"
    CHECKED_OUT_OTHER = "checked_out_other"
    BUILT_OR_FAILED = "built_or_failed"
    CHECKED_OUT_ORIGINAL = "checked_out_original"
    UNSTASHED = "unstashed"
    DONE = "done"


class CheckoutGuard:
    """Run work on another git ref and always try to put the working tree back.

    Entering the guard stashes uncommitted changes (untracked included) when the tree
    is dirty, then checks out ``ref``. Leaving it checks out the original branch and
    pops the stash, whether or not the guarded work raised. Failures of the guarded
    work are re-raised only after restoration; failures of restoration itself become
    `GuardFatalError` because the repository may then be on the wrong branch or have
    its changes parked in the stash.

    Usage::

        with CheckoutGuard(repo, "v1.2"):
            driver.build_and_cache("v1.2")

    ``tree_state`` is the cleanliness observed when the run started; when omitted the
    guard reads it on entry. A guard instance is single-use.
    """

    def __init__(self, repo: GitRepo, ref: str, tree_state: WorkingTreeState | None = None) -> None:
        self.repo = repo
        self.ref = ref
        self.tree_state = tree_state
        self.state = GuardState.READY
        self.history: list[GuardState] = [GuardState.READY]
        self.original_branch: str | None = None
        self.stashed = False
        self._restore_target: str | None = None

    def run(self, action: Callable[[], T]) -> T:
        with self:
            return action()

    def __enter__(self) -> "CheckoutGuard":
        if self.state is not GuardState.READY:
            raise RuntimeError("CheckoutGuard cannot be entered twice")
        if not self.ref or self.ref.startswith("-"):
            raise CheckoutError(self.ref, "not a valid git reference")

        # Queries only; a GitQueryError here leaves the repository untouched.
        self.original_branch = self.repo.current_branch()
        self._restore_target = self.original_branch
        if self.original_branch == _DETACHED_HEAD:
            self._restore_target = self.repo.head_commit()
        if self.tree_state is None:
            self.tree_state = self.repo.working_tree_state()
        clean = self.tree_state is WorkingTreeState.CLEAN
        logger.info(
            "Guarding checkout of %s (current=%s, clean=%s)", self.ref, self.original_branch, clean
        )

        if not clean:
            try:
                self.repo.stash()
            except GitCommandError as exc:
                raise CheckoutError(
                    self.ref, f"could not stash local changes: {exc.output or exc}"
                ) from exc
            self.stashed = True
            self._transition(GuardState.STASHED)

        try:
            self.repo.checkout(self.ref)
        except GitCommandError as exc:
            error = CheckoutError(self.ref, exc.output or str(exc))
            self._transition(GuardState.BUILT_OR_FAILED)
            self._restore(error)
            raise error from exc
        self._transition(GuardState.CHECKED_OUT_OTHER)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self._transition(GuardState.BUILT_OR_FAILED)
        if exc is not None and not isinstance(exc, Exception):
            # Interrupts are not rolled back automatically.
            logger.error(
                "Interrupted while on %s; the repository was not restored.\n%s",
                self.ref,
                self._remediation(),
            )
            log_event({"kind": "guard_interrupted", "level": "error", "ref": self.ref})
            return False
        if exc is not None:
            logger.warning(
                "Work on %s failed (%s); restoring %s before re-raising",
                self.ref,
                type(exc).__name__,
                self._restore_target,
            )
        self._restore(exc)
        return False

    def _restore(self, pending: BaseException | None) -> None:
        target = self._restore_target or ""
        try:
            self.repo.checkout(target)
        except GitCommandError as exc:
            self._fatal(
                f"Could not switch back to {target!r} after working on {self.ref!r}: "
                f"{exc.output or exc}",
                pending,
                exc,
            )
        self._transition(GuardState.CHECKED_OUT_ORIGINAL)

        if self.stashed:
            try:
                self.repo.stash_pop()
            except GitCommandError as exc:
                self._fatal(
                    f"Could not re-apply stashed changes on {target!r}: {exc.output or exc}",
                    pending,
                    exc,
                )
            self._transition(GuardState.UNSTASHED)
        self._transition(GuardState.DONE)

    def _fatal(self, message: str, pending: BaseException | None, cause: GitCommandError) -> None:
        remediation = self._remediation()
        logger.critical("%s\n%s", message, remediation)
        log_event(
            {
                "kind": "guard_fatal",
                "ref": self.ref,
                "state": self.state.value,
                "stashed": self.stashed,
                "error": message,
            }
        )
        raise GuardFatalError(message, remediation=remediation, original=pending) from cause

    def _remediation(self) -> str:
        target = self._restore_target or self.original_branch or "<your branch>"
        steps = [
            "Manual recovery required:",
            "  git status",
            f"  git checkout {target}",
        ]
        if self.stashed:
            steps.append("  git stash list    # your uncommitted changes are in the top entry")
            steps.append("  git stash pop")
        return "\n".join(steps)

    def _transition(self, state: GuardState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("CheckoutGuard(%s) -> %s", self.ref, state.value)
        log_event(
            {"kind": "guard_transition", "level": "debug", "ref": self.ref, "state": state.value}
        )
