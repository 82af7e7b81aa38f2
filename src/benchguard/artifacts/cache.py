import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import ArtifactWriteError

logger = logging.getLogger(__name__)

CURRENT_LABEL = "current"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_label(label: str) -> str:
    """Make a git ref usable as a single path component (``feature/x`` -> ``feature-x``)."""
    cleaned = _UNSAFE_CHARS.sub("-", label.strip())
    # Leading dots would make hidden files or "..".
    cleaned = cleaned.lstrip(".")
    return cleaned or "-"


@dataclass(frozen=True)
class ArtifactRecord:
    label: str
    path: Path
    exists: bool


class ArtifactCache:
    """Built binaries on disk, one file per label.

    Baselines live at ``<dir>/<binary>-<sanitized ref>`` and the current tree's build at
    ``<dir>/<binary>@current``. Presence at the expected path is the only validity check.
    """

    def __init__(self, directory: Path, binary_name: str) -> None:
        self.directory = Path(directory)
        self.binary_name = binary_name

    def path_for(self, label: str) -> Path:
        if label == CURRENT_LABEL:
            return self.directory / f"{self.binary_name}@{CURRENT_LABEL}"
        return self.directory / f"{self.binary_name}-{sanitize_label(label)}"

    def exists(self, label: str) -> bool:
        return self.path_for(label).is_file()

    def record(self, label: str) -> ArtifactRecord:
        path = self.path_for(label)
        return ArtifactRecord(label=label, path=path, exists=path.is_file())

    def store(self, label: str, built_binary: Path) -> Path:
        target = self.path_for(label)
        # Copy to a sibling first so a failed copy never leaves a truncated artifact behind.
        partial = target.with_name(f".{target.name}.partial")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            shutil.copy2(built_binary, partial)
            partial.replace(target)
        except OSError as exc:
            try:
                partial.unlink(missing_ok=True)
            except OSError:
                logger.debug("Could not remove partial artifact %s", partial)
            raise ArtifactWriteError(label, str(target), str(exc)) from exc
        logger.info("Stored %s artifact at %s", label, target)
        return target
