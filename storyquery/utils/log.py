from __future__ import annotations
import json, logging, sys
from typing import Any, Dict, TextIO

# Attributes every LogRecord carries; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime", "taskName"}

class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # expression/context/error and friends
        for k, v in vars(record).items():
            if k not in _RECORD_ATTRS:
                payload[k] = v
        return json.dumps(payload, separators=(",", ":"), default=repr)

def get_logger(
    name: str = "storyquery",
    level: str = "INFO",
    structured_json: bool = True,
    stream: TextIO | None = None,
) -> logging.Logger:
    """Configure `name` once; later calls return the same logger untouched."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    handler = logging.StreamHandler(stream or sys.stderr)
    if structured_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
