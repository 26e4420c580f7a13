import json
import logging
import os
import threading

logger = logging.getLogger(__name__)


def _run_inline(target, *args):
    target(*args)


class EventLogger:
    """
    Append-only JSON-lines log of emitted spin events.
    Writes are handed to ``spawn`` (a background task starter) so callers never
    wait on disk; failures are reported to the log and never raised.
    """

    def __init__(self, path, spawn=None):
        self.path = path
        self._spawn = spawn or _run_inline
        self._lock = threading.Lock()

    def append(self, event):
        self._spawn(self._write, event)

    def _write(self, event):
        try:
            line = json.dumps(event, ensure_ascii=False) + "\n"
            with self._lock:
                directory = os.path.dirname(self.path)
                if directory:
                    os.makedirs(directory, exist_ok=True)
                with open(self.path, 'a', encoding='utf-8') as f:
                    f.write(line)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"💥 Error writing event log '{self.path}': {e}")
