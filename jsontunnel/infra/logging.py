import json
import logging
import time
from typing import Any, Dict

_logger = logging.getLogger("jsontunnel")


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """
    Emit one structured event as a single JSON line.

    Reason:
    - Free-form log messages are hard to filter across retries.
    Benefit:
    - Every attempt of a run can be found by its run_id, kind, attempt, etc.
    """
    if not _logger.isEnabledFor(level):
        return

    payload: Dict[str, Any] = {
        "ts": time.time(),
        "event": event,
        **fields,
    }
    _logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
