import logging
import shlex
import subprocess  # nosec B404
import time
from collections.abc import Sequence
from pathlib import Path

from ..config import BenchConfig
from ..exceptions import HarnessError
from ..observability import log_event

logger = logging.getLogger(__name__)


class HarnessRunner:
    """Invokes the statistical benchmark harness (hyperfine by default).

    Both binaries run against the same workload with the same ``--mode`` flag. The
    harness output goes straight to the terminal; only the exit status is returned.
    """

    def __init__(self, config: BenchConfig, extra_args: Sequence[str] = ()) -> None:
        self.config = config
        self.extra_args = tuple(extra_args)

    def benchmark_command(self, binary: Path, workload: str) -> str:
        return " ".join(
            [shlex.quote(str(binary)), shlex.quote(workload), "--mode", shlex.quote(self.config.mode)]
        )

    def build_command(self, current: Path, baseline: Path, workload: str) -> list[str]:
        return [
            self.config.harness,
            "--warmup",
            str(self.config.warmup),
            "--runs",
            str(self.config.runs),
            *self.extra_args,
            self.benchmark_command(current, workload),
            self.benchmark_command(baseline, workload),
        ]

    def run(self, current: Path, baseline: Path, workload: str) -> int:
        command = self.build_command(current, baseline, workload)
        timeout = self.config.harness_timeout
        logger.info("$ %s", shlex.join(command))
        log_event({"kind": "harness_start", "command": command, "timeout_s": timeout})

        started = time.monotonic()
        try:
            result = subprocess.run(  # nosec B603
                command,
                cwd=self.config.repo_dir,
                check=False,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise HarnessError(
                f"Benchmark harness {self.config.harness!r} not found; is it installed and on PATH?"
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise HarnessError(f"Benchmark harness timed out after {timeout}s") from exc
        except OSError as exc:
            raise HarnessError(f"Cannot run benchmark harness: {exc}") from exc

        duration_ms = int((time.monotonic() - started) * 1000)
        log_event(
            {
                "kind": "harness_complete",
                "returncode": result.returncode,
                "duration_ms": duration_ms,
            }
        )
        if result.returncode != 0:
            logger.warning("Benchmark harness exited with status %d", result.returncode)
        return result.returncode
