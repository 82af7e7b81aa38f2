import glob
import json
import logging
import threading
from datetime import UTC, datetime
from typing import Any

from ..config import settings
from .context import get_run_id

logger = logging.getLogger(__name__)

MAX_ROTATED_LOGS = 5
_LOG_LOCK = threading.Lock()

_LEVELS = frozenset({"debug", "info", "warning", "error"})

# Long free-form values (build output, stderr) are clipped before they hit the log.
_TRUNCATE_KEYS: frozenset[str] = frozenset({"output", "stderr", "error", "detail"})
_MAX_VALUE_LEN = 2000


def truncate_value(value: str, max_len: int = _MAX_VALUE_LEN) -> str:
    if not value or len(value) <= max_len:
        return value
    suffix = f"... [truncated, len={len(value)}]"
    if max_len <= len(suffix):
        return value[:max_len]
    return f"{value[: max_len - len(suffix)]}{suffix}"


def _normalize_level(value: object, *, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip().lower()
    if text in _LEVELS:
        return text
    if text == "warn":
        return "warning"
    return default


def _clip_event(event: dict[str, Any]) -> dict[str, Any]:
    return {
        k: truncate_value(v) if isinstance(v, str) and k in _TRUNCATE_KEYS else v
        for k, v in event.items()
    }


def rotate_log_if_needed() -> None:
    try:
        log_path = settings.LOG_PATH
        if log_path.exists() and log_path.stat().st_size > settings.MAX_LOG_SIZE_BYTES:
            ts = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
            stem = log_path.stem
            suffix = log_path.suffix
            rotated_path = log_path.with_name(f"{stem}.{ts}{suffix}")
            log_path.rename(rotated_path)
            logger.debug("Rotated event log to %s", rotated_path)

            pattern = f"{glob.escape(stem)}.*{glob.escape(suffix)}"
            rotated_logs = sorted(log_path.parent.glob(pattern), reverse=True)
            for old_log in rotated_logs[MAX_ROTATED_LOGS:]:
                old_log.unlink(missing_ok=True)
                logger.debug("Cleaned up old event log: %s", old_log)
    except OSError as exc:
        logger.warning("Failed to rotate event log: %s", exc)


def log_event(event: dict[str, Any]) -> None:
    """Append a single JSON event to the run event log.

    Args:
        event: Event data to log. Will be enriched with timestamp, run_id and level.
    """
    if not settings.BENCH_EVENT_LOG:
        return

    event = dict(event)
    try:
        event.setdefault("timestamp", datetime.now(UTC).isoformat())
        event.setdefault("run_id", get_run_id())
        if "level" not in event:
            kind = str(event.get("kind", "")).lower()
            event["level"] = "error" if kind.endswith("error") or kind.endswith("fatal") else "info"
        event["level"] = _normalize_level(event["level"], default="info")
        event = _clip_event(event)

        with _LOG_LOCK:
            if settings.LOG_PATH.is_dir():
                logger.warning("Event log path is a directory, skipping log write")
                return
            settings.LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
            rotate_log_if_needed()
            with open(settings.LOG_PATH, "a", encoding="utf-8") as f:
                f.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Failed to write event log: %s", exc)
