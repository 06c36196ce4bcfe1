"""Root logging setup and structured event log file."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

_event_log_path: Optional[str] = None
_event_log_file: Optional[Any] = None


def configure_root_logging(level: int | str = logging.INFO) -> None:
    """Configure root logger with a consistent format."""
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
        root.addHandler(h)


def set_event_log_path(path: Optional[str]) -> None:
    """Direct tracker events to an append-only JSON lines file."""
    global _event_log_path, _event_log_file
    clear_event_log_path()
    _event_log_path = path
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        _event_log_file = open(path, "a", encoding="utf-8")


def clear_event_log_path() -> None:
    """Clear event log path and close file."""
    global _event_log_path, _event_log_file
    if _event_log_file is not None:
        _event_log_file.close()
        _event_log_file = None
    _event_log_path = None


def event_log(event: str, level: str = "info", **kwargs: Any) -> None:
    """Write a structured event line to the event log file and the tracker.events logger."""
    payload = {
        "ts": datetime.now(tz=timezone.utc).isoformat(),
        "event": event,
        "level": level,
        **kwargs,
    }
    if _event_log_file is not None:
        _event_log_file.write(json.dumps(payload, default=str) + "\n")
        _event_log_file.flush()
    logger = logging.getLogger("tracker.events")
    log_fn = getattr(logger, level.lower(), logger.info)
    log_fn("%s %s", event, kwargs)


def event_log_path() -> Optional[str]:
    """Return current event log file path, if set."""
    return _event_log_path
