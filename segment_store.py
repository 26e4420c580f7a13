import json
import logging
import os
import shutil
import threading
from datetime import datetime

from errors import SegmentPersistenceError, SegmentValidationError

logger = logging.getLogger(__name__)

DEFAULT_SEGMENTS = [
    {"id": "SKU_A", "text": "Premio A", "color": "#eae56f"},
    {"id": "SKU_B", "text": "Premio B", "color": "#89f26e"},
    {"id": "SKU_C", "text": "Premio C", "color": "#7de6ef"},
    {"id": "SKU_D", "text": "Premio D", "color": "#e7706f"},
    {"id": "SKU_E", "text": "Premio E", "color": "#a17cf3"},
    {"id": "SKU_F", "text": "Premio F", "color": "#f49e4c"},
]

REQUIRED_FIELDS = ('id', 'text', 'color')


def default_segments():
    return [dict(segment) for segment in DEFAULT_SEGMENTS]


def validate_segments(segments):
    """Raise SegmentValidationError unless every segment has non-empty string id, text and color"""
    if not isinstance(segments, list) or not segments:
        raise SegmentValidationError("Invalid segments data")

    for segment in segments:
        if not isinstance(segment, dict):
            raise SegmentValidationError("Each segment must have id, text, and color")
        for key in REQUIRED_FIELDS:
            value = segment.get(key)
            if not isinstance(value, str) or not value:
                raise SegmentValidationError("Each segment must have id, text, and color")


class SegmentStore:
    """
    Process-wide owner of the prize segment list.
    The in-memory list is the source of truth; the JSON file is a mirror
    rewritten after every replace.
    """

    def __init__(self, path):
        self.path = path
        self._segments = []
        self._lock = threading.Lock()
        self._file_lock = threading.Lock()

    def load(self):
        """Read segments from disk, writing the defaults when no file exists yet"""
        if not os.path.exists(self.path):
            segments = default_segments()
            self._save(segments)
            logger.info(f"🆕 No segments file at '{self.path}', created {len(segments)} default segments")
        else:
            segments = self._read()

        with self._lock:
            self._segments = segments
        return list(segments)

    def current(self):
        with self._lock:
            return list(self._segments)

    def count(self):
        with self._lock:
            return len(self._segments)

    def replace(self, new_segments):
        """
        Swap the whole segment list and persist it.
        The in-memory swap is not rolled back if the disk write fails.
        """
        validate_segments(new_segments)
        segments = list(new_segments)

        with self._lock:
            self._segments = segments
            try:
                self._save(segments)
            except (OSError, TypeError, ValueError) as e:
                logger.error(f"💥 Segments updated in memory but not saved to '{self.path}': {e}")
                raise SegmentPersistenceError("Failed to update segments") from e

        logger.info(f"🎡 Segments replaced: {len(segments)} segments")
        return list(segments)

    def _read(self):
        with self._file_lock:
            try:
                with open(self.path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if not isinstance(data, list) or not data:
                    raise ValueError("segments file must hold a non-empty list")
                logger.info(f"📂 Loaded {len(data)} segments from '{self.path}'")
                return data
            except ValueError as e:
                logger.error(f"🚨 CORRUPTION: '{self.path}' unreadable ({e}). Auto-recovering...")
                backup_path = self._backup()
                if backup_path:
                    logger.info(f"🔒 Corrupted file backed up as: {backup_path}")

        segments = default_segments()
        self._save(segments)
        logger.info("✅ Recovery complete. Segments reset to defaults.")
        return segments

    def _save(self, segments):
        """Write atomically through a temp file"""
        directory = os.path.dirname(self.path)
        with self._file_lock:
            if directory:
                os.makedirs(directory, exist_ok=True)
            temp_path = f"{self.path}.tmp"
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    json.dump(segments, f, indent=2, ensure_ascii=False)
                os.replace(temp_path, self.path)
            except (OSError, TypeError, ValueError):
                if os.path.exists(temp_path):
                    os.remove(temp_path)
                raise
        logger.debug(f"💾 Segments saved: {self.path}")

    def _backup(self):
        backup_path = f"{self.path}.{datetime.now().strftime('%Y%m%d_%H%M%S')}.bak"
        try:
            shutil.copy2(self.path, backup_path)
        except OSError as e:
            logger.error(f"💥 Backup creation failed: {e}")
            return None
        return backup_path
