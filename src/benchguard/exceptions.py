class BenchError(RuntimeError):
    """Base class for benchguard errors."""

    error_code: str = "BENCH_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class GitQueryError(BenchError):
    """A read-only git query failed (not a work tree, git missing, non-zero exit)."""

    error_code = "GIT_QUERY_ERROR"


class GitCommandError(BenchError):
    """A mutating git command exited non-zero or could not be launched."""

    error_code = "GIT_COMMAND_ERROR"

    def __init__(self, args: list[str], returncode: int | None, output: str = "") -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.output = output
        details = f": {output}" if output else ""
        code = "not started" if returncode is None else f"code {returncode}"
        super().__init__(f"git {' '.join(args)} failed ({code}){details}")


class CheckoutError(BenchError):
    """Switching to the baseline ref was refused; restoration still ran."""

    error_code = "CHECKOUT_ERROR"

    def __init__(self, ref: str, detail: str) -> None:
        self.ref = ref
        self.detail = detail
        super().__init__(f"Cannot check out {ref!r}: {detail}")


class BuildError(BenchError):
    """The release build exited non-zero or produced no binary."""

    error_code = "BUILD_ERROR"

    def __init__(self, exit_code: int | None, captured_output: str, message: str | None = None) -> None:
        self.exit_code = exit_code
        self.captured_output = captured_output
        super().__init__(message or f"Release build failed with exit code {exit_code}")


class ArtifactWriteError(BenchError):
    """Copying a built binary into the artifact cache failed."""

    error_code = "ARTIFACT_WRITE_ERROR"

    def __init__(self, label: str, path: str, reason: str) -> None:
        self.label = label
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot store artifact {label!r} at {path}: {reason}")


class OutputsNotIgnoredError(BenchError):
    """Files written during a run live in the work tree but are not git-ignored.

    The checkout guard would stash them together with the user's changes and the
    baseline build would then recreate them, so `git stash pop` could not succeed.
    """

    error_code = "OUTPUTS_NOT_IGNORED"

    def __init__(self, paths: list[str]) -> None:
        self.paths = list(paths)
        super().__init__(
            "Build outputs inside the repository are not git-ignored: "
            f"{', '.join(self.paths)}. Add them to .gitignore or set "
            "BENCH_ARTIFACTS_DIR to a directory outside the repository."
        )


class BaselineMissingError(BenchError):
    """No baseline artifact exists after the rebuild decision."""

    error_code = "BASELINE_MISSING"

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        super().__init__(
            f"Baseline artifact for {label!r} not found at {path}. "
            "Run without --skip-baseline-build (or with --force) to build it."
        )


class GuardFatalError(BenchError):
    """Restoring the original branch or stash failed; the repository needs manual attention.

    Attributes:
        remediation: Instructions for recovering the working tree by hand.
        original: The build or checkout failure that was pending, if any.
    """

    error_code = "GUARD_FATAL"

    def __init__(
        self,
        message: str,
        *,
        remediation: str,
        original: BaseException | None = None,
    ) -> None:
        self.remediation = remediation
        self.original = original
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.message}\n{self.remediation}"


class HarnessError(BenchError):
    """The benchmark harness could not be started or exceeded its timeout."""

    error_code = "HARNESS_ERROR"
