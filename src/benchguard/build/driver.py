import logging
import subprocess  # nosec B404
import time
from pathlib import Path

from ..artifacts import ArtifactCache
from ..config import BenchConfig
from ..exceptions import BuildError
from ..observability import log_event

logger = logging.getLogger(__name__)

_OUTPUT_TAIL_LINES = 40


def _combine_output(stdout: str, stderr: str) -> str:
    parts = [text.strip() for text in (stdout or "", stderr or "") if text and text.strip()]
    return "\n".join(parts)


def _tail(output: str, lines: int = _OUTPUT_TAIL_LINES) -> str:
    return "\n".join(output.splitlines()[-lines:])


class BuildDriver:
    """Runs the release build in the working tree and files the binary in the cache."""

    def __init__(self, config: BenchConfig, cache: ArtifactCache) -> None:
        self.config = config
        self.cache = cache

    def build_release(self) -> Path:
        command = list(self.config.build_command)
        logger.info("$ %s", " ".join(command))
        started = time.monotonic()
        try:
            result = subprocess.run(  # nosec B603
                command,
                cwd=self.config.repo_dir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise BuildError(None, "", f"Cannot run build command {command[0]!r}: {exc}") from exc

        output = _combine_output(result.stdout, result.stderr)
        duration_ms = int((time.monotonic() - started) * 1000)
        if result.returncode != 0:
            logger.error("Build failed (exit %d):\n%s", result.returncode, _tail(output))
            log_event(
                {
                    "kind": "build_error",
                    "command": command,
                    "returncode": result.returncode,
                    "duration_ms": duration_ms,
                    "output": _tail(output),
                }
            )
            raise BuildError(result.returncode, output)

        built = self.config.built_binary
        if not built.is_file():
            raise BuildError(
                result.returncode,
                output,
                f"Build succeeded but no binary was found at {built}",
            )
        logger.debug("Build finished in %dms", duration_ms)
        return built

    def build_and_cache(self, label: str) -> Path:
        built = self.build_release()
        stored = self.cache.store(label, built)
        log_event({"kind": "artifact_built", "label": label, "path": str(stored)})
        return stored
