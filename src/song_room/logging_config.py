import logging
import sys
from typing import Iterable

CONTEXT_FIELDS = ("room_id", "hash")

# httpx logs every short-link lookup at INFO
_QUIET_LOGGERS = ("httpx", "httpcore")


class RoomContextFormatter(logging.Formatter):
    """Appends `key=value` room context to each line; records logged without it show `-`."""

    def __init__(self, fields: Iterable[str] = CONTEXT_FIELDS) -> None:
        self._fields = tuple(fields)
        context = " ".join(f"{name}=%({name})s" for name in self._fields)
        super().__init__(fmt=f"%(asctime)s %(levelname)s %(name)s %(message)s {context}".rstrip())

    def format(self, record: logging.LogRecord) -> str:
        for name in self._fields:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return super().format(record)


def configure_logging(level: str = "INFO") -> None:
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(RoomContextFormatter())
    root.setLevel(level.upper())
    root.addHandler(handler)
