import json
import sys
from datetime import datetime, timezone


_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}
_threshold = _LEVELS["info"]


def configure_logging(level: str) -> None:
    global _threshold
    _threshold = _LEVELS.get((level or "info").lower(), _LEVELS["info"])


def log_event(level: str, event: str, **fields) -> None:
    if _LEVELS.get(level.lower(), _LEVELS["info"]) < _threshold:
        return
    payload = {
        "ts": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": level.lower(),
        "event": event,
    }
    payload.update(fields or {})
    sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")
