"""
Local device storage for the guest schedule.

LocalStore is a small key-value string store (think browser localStorage)
persisted as one JSON object in:

    ~/.examplanner/local_storage.json

The schedule lives under a single key as a JSON list of exam objects. Reading
is deliberately forgiving: a missing, unreadable or corrupted store never
crashes the application, it just yields an empty schedule.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from examplanner.errors import StorageCorrupt
from examplanner.log import get_logger
from examplanner.model import ExamRecord, dedupe_by_id

log = get_logger(__name__)

DEFAULT_SCHEDULE_KEY = "mcgill-exam-schedule"


class LocalStore:
    """
    Key-value string storage backed by a JSON file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        # First run: file does not exist yet
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning("local_store_unreadable", path=str(self.path), error=str(e))
            return {}

        if not isinstance(data, dict):
            log.warning("local_store_unreadable", path=str(self.path), error="not a JSON object")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")

    def get_item(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


# ---------------------------------------------------------------------------
# Schedule (de)serialization
# ---------------------------------------------------------------------------


def encode_schedule(records: Iterable[ExamRecord]) -> str:
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False)


def decode_schedule(text: str) -> List[ExamRecord]:
    """
    Decode a stored schedule.

    Raises StorageCorrupt if the text is not a JSON list. Single entries that
    cannot be rebuilt are skipped; duplicate ids collapse to the first one.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise StorageCorrupt(f"schedule is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise StorageCorrupt(f"schedule must be a list, got {type(data).__name__}")

    records: List[ExamRecord] = []
    for i, item in enumerate(data):
        try:
            records.append(ExamRecord.from_dict(item))
        except ValueError as e:
            log.warning("stored_exam_skipped", index=i, error=str(e))

    return dedupe_by_id(records)


def load_schedule(store: LocalStore, key: str = DEFAULT_SCHEDULE_KEY) -> List[ExamRecord]:
    """
    Load the guest schedule. Absent or corrupted data -> empty schedule.
    """
    text = store.get_item(key)
    if text is None:
        return []

    try:
        return decode_schedule(text)
    except StorageCorrupt as e:
        log.warning("local_schedule_corrupt", key=key, error=str(e))
        return []


def save_schedule(store: LocalStore, records: Iterable[ExamRecord], key: str = DEFAULT_SCHEDULE_KEY) -> None:
    store.set_item(key, encode_schedule(records))
