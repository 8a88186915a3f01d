"""
Central data model definitions used across the project.

This module defines the canonical structure of ExamRecord and UserAccount so that:
- the parser, the local store and the account service share the same field names
- exam identity is derived in exactly one place (make_exam_id)
- records read back from storage get the same id the parser would give them
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Tuple

from examplanner.log import get_logger

log = get_logger(__name__)


class SourceKind(str, Enum):
    CURRENT = "current"
    HISTORICAL = "historical"


class ViewMode(str, Enum):
    CURRENT = "CURRENT"
    HISTORICAL = "HISTORICAL"


class Location(NamedTuple):
    building: str
    room: str


def _join_distinct(values: List[str]) -> str:
    out: List[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
    return ", ".join(out)


def make_exam_id(
    course: str,
    section: str,
    year: str,
    exam_type: str,
    start_time: str,
    room: str,
) -> str:
    """
    Build the stable identifier of an exam.

    The id only depends on the key fields, never on where the exam was found
    in the source text, so re-parsing the same catalog gives the same ids.
    """
    course_n = course.strip().upper()
    section_n = section.strip().upper()
    year_n = year.strip().upper()

    key = "|".join(
        [
            course_n,
            section_n,
            year_n,
            exam_type.strip().upper(),
            start_time.strip(),
            room.strip().upper(),
        ]
    )
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]
    return f"{course_n.replace(' ', '')}-{section_n or '0'}-{year_n}-{digest}"


@dataclass(frozen=True)
class ExamRecord:
    """
    One scheduled exam occurrence.

    An exam may be held in several rooms; `locations` keeps them in the order
    they were found. `rows` lists the 1-based source lines that contributed.
    """

    course: str
    section: str
    year: str
    exam_type: str
    start_time: str
    end_time: str
    locations: Tuple[Location, ...] = ()
    rows: Tuple[int, ...] = ()
    row_start: int = 0
    row_end: int = 0
    course_title: str = ""
    id: str = ""

    @property
    def building(self) -> str:
        return _join_distinct([loc.building for loc in self.locations])

    @property
    def room(self) -> str:
        return _join_distinct([loc.room for loc in self.locations])

    @classmethod
    def create(
        cls,
        course: str,
        section: str,
        year: str,
        exam_type: str,
        start_time: str,
        end_time: str,
        locations: Tuple[Location, ...] = (),
        rows: Tuple[int, ...] = (),
        course_title: str = "",
    ) -> "ExamRecord":
        """
        Build a record and derive its id from the key fields.
        """
        course = course.strip().upper()
        locations = tuple(Location(b.strip(), r.strip()) for b, r in locations)
        room = _join_distinct([loc.room for loc in locations])
        return cls(
            course=course,
            section=section.strip(),
            year=year.strip(),
            exam_type=exam_type.strip(),
            start_time=start_time.strip(),
            end_time=end_time.strip(),
            locations=locations,
            rows=tuple(rows),
            row_start=rows[0] if rows else 0,
            row_end=rows[-1] if rows else 0,
            course_title=course_title.strip(),
            id=make_exam_id(course, section, year, exam_type, start_time, room),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course": self.course,
            "section": self.section,
            "year": self.year,
            "examType": self.exam_type,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "building": self.building,
            "room": self.room,
            "locations": [[loc.building, loc.room] for loc in self.locations],
            "rows": list(self.rows),
            "rowStart": self.row_start,
            "rowEnd": self.row_end,
            "courseTitle": self.course_title,
            "id": self.id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExamRecord":
        """
        Rebuild a record from its stored form.

        The id is always derived again with make_exam_id. Raises ValueError
        when the payload has no course or start time.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected an object, got {type(data).__name__}")

        def s(key: str) -> str:
            value = data.get(key)
            return "" if value is None else str(value)

        if not s("course").strip() or not s("startTime").strip():
            raise ValueError("Stored exam is missing course or startTime")

        locations: List[Location] = []
        raw_locations = data.get("locations")
        if isinstance(raw_locations, list):
            for item in raw_locations:
                if isinstance(item, (list, tuple)) and len(item) == 2:
                    locations.append(Location(str(item[0]), str(item[1])))
        elif s("building") or s("room"):
            locations.append(Location(s("building"), s("room")))

        rows: List[int] = []
        raw_rows = data.get("rows")
        if isinstance(raw_rows, list):
            rows = [int(x) for x in raw_rows if isinstance(x, int) or str(x).isdigit()]

        record = cls.create(
            course=s("course"),
            section=s("section"),
            year=s("year"),
            exam_type=s("examType"),
            start_time=s("startTime"),
            end_time=s("endTime"),
            locations=tuple(locations),
            rows=tuple(rows),
            course_title=s("courseTitle"),
        )

        stored_id = s("id")
        if stored_id and stored_id != record.id:
            log.debug("exam_id_rederived", stored_id=stored_id, exam_id=record.id)

        return record


@dataclass
class UserAccount:
    """
    Represents one signed-in user as delivered by the account service.
    """

    id: str
    name: str
    email: str
    saved_schedule: List[ExamRecord] = field(default_factory=list)
    saved_searches: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "savedSchedule": [r.to_dict() for r in self.saved_schedule],
            "savedSearches": list(self.saved_searches),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserAccount":
        """
        Raises ValueError when the payload is not an object. Saved lists of
        the wrong shape are logged and read as empty.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a user object, got {type(data).__name__}")

        raw_schedule = data.get("savedSchedule") or []
        if not isinstance(raw_schedule, list):
            log.warning("saved_exam_skipped", user_id=data.get("id"), error="savedSchedule is not a list")
            raw_schedule = []

        schedule: List[ExamRecord] = []
        for item in raw_schedule:
            try:
                schedule.append(ExamRecord.from_dict(item))
            except ValueError as e:
                log.warning("saved_exam_skipped", user_id=data.get("id"), error=str(e))

        raw_searches = data.get("savedSearches") or []
        if not isinstance(raw_searches, list):
            log.warning("saved_search_skipped", user_id=data.get("id"), error="savedSearches is not a list")
            raw_searches = []

        searches = [str(x) for x in raw_searches if str(x).strip()]

        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "") or ""),
            email=str(data.get("email", "") or ""),
            saved_schedule=schedule,
            saved_searches=searches,
        )


def dedupe_by_id(records: List[ExamRecord]) -> List[ExamRecord]:
    """
    Keep the first record for every id, preserving order.
    """
    seen: set[str] = set()
    out: List[ExamRecord] = []
    for r in records:
        if r.id in seen:
            continue
        seen.add(r.id)
        out.append(r)
    return out

