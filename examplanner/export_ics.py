"""
iCalendar (.ics) export of the exam schedule.

The file can be imported into:
- Google Calendar
- Outlook
- Apple Calendar
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from examplanner.conflicts import timed_exams
from examplanner.model import ExamRecord


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS fields (very small subset, sufficient for our use).
    """
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _dt_local(dt: datetime) -> str:
    return dt.strftime("%Y%m%dT%H%M00")


def export_exams_to_ics(exams: Iterable[ExamRecord], out_path: str | Path) -> int:
    """
    Export exams to an .ics file. Returns number of exported exams.

    Exams without a parseable date/time are left out.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    lines.append("BEGIN:VCALENDAR")
    lines.append("VERSION:2.0")
    lines.append("PRODID:-//examplanner//EN")
    lines.append("CALSCALE:GREGORIAN")

    dtstamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    count = 0
    for start, end, exam in timed_exams(list(exams)):
        summary = f"{exam.course} {exam.exam_type}".strip()
        if exam.course_title:
            summary = f"{summary} - {exam.course_title}"

        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{_ics_escape(exam.id)}@examplanner")
        lines.append(f"DTSTAMP:{dtstamp}")
        lines.append(f"DTSTART:{_dt_local(start)}")
        lines.append(f"DTEND:{_dt_local(end)}")
        lines.append(f"SUMMARY:{_ics_escape(summary)}")
        location = " / ".join(f"{b} {r}".strip() for b, r in exam.locations)
        if location:
            lines.append(f"LOCATION:{_ics_escape(location)}")
        lines.append(f"DESCRIPTION:{_ics_escape(f'Section {exam.section} | {exam.year}')}")
        lines.append("END:VEVENT")
        count += 1

    lines.append("END:VCALENDAR")

    # ICS standard uses CRLF
    out.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8")
    return count
