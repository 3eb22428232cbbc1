"""JSONL sink for resolver diagnostics.

One JSON object per line. Resolution fields passed through ``extra``
(specifier, referrer, address, package) are grouped under "resolution" so a
log can be filtered per import; any other extras stay at the top level.
"""

import json
import logging
from datetime import UTC
from datetime import datetime
from pathlib import Path

SCHEMA = {"name": "noderesolve.log", "ver": "1.1.0"}
RESOLUTION_FIELDS = ("specifier", "referrer", "address", "package")

# Attributes every LogRecord carries; anything else came in through extra.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class JsonlHandler(logging.Handler):
    """Appends records to a JSONL file, creating its directory on first use."""

    def __init__(self, path: str, level: int = logging.NOTSET):
        super().__init__(level)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def format_record(self, record: logging.LogRecord) -> dict:
        data = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "lvl": record.levelname,
            "schema": SCHEMA,
            "logger": record.name,
            "source": f"{record.module}:{record.lineno}",
            "message": record.getMessage(),
        }

        extras = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        resolution = {field: extras.pop(field) for field in RESOLUTION_FIELDS if field in extras}
        if resolution:
            data["resolution"] = resolution
        for key, value in extras.items():
            data.setdefault(key, value)

        if record.exc_info:
            data["exc"] = logging.Formatter().formatException(record.exc_info)
        return data

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self.format_record(record), ensure_ascii=False, default=str)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)


def init_json_logging(path: str, level: str = "INFO") -> JsonlHandler:
    """Route every record at level or above to the JSONL file at path.

    A handler installed by an earlier call is replaced, never duplicated.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for existing in [h for h in root.handlers if isinstance(h, JsonlHandler)]:
        root.removeHandler(existing)
        existing.close()

    handler = JsonlHandler(path)
    root.addHandler(handler)
    return handler
