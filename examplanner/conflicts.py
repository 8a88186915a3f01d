"""
Conflict detection for scheduled exams.

Two checks are offered:

- clashes:   two exams overlap in time
             overlap rule: start < other_end AND end > other_start
- hardships: three or more exams start within a 24 hour window

Exams whose start/end cannot be parsed as a date + time are ignored.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from examplanner.model import ExamRecord

TIME_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %I:%M %p",
    "%d-%b-%Y %H:%M",
    "%d-%b-%Y %I:%M %p",
)

HARDSHIP_WINDOW = timedelta(hours=24)
HARDSHIP_MIN_EXAMS = 3


def parse_exam_time(value: str) -> Optional[datetime]:
    """
    Parse an exam start/end string. Returns None for unknown formats.
    """
    text = " ".join(value.strip().split())
    if not text:
        return None
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def timed_exams(exams: List[ExamRecord]) -> List[Tuple[datetime, datetime, ExamRecord]]:
    """
    Pair every exam with its parsed start/end, sorted by start.
    """
    out: List[Tuple[datetime, datetime, ExamRecord]] = []
    for exam in exams:
        start = parse_exam_time(exam.start_time)
        end = parse_exam_time(exam.end_time)
        if start is None:
            continue
        if end is None:
            # "09:00" style end times belong to the start date
            try:
                end = datetime.combine(start.date(), datetime.strptime(exam.end_time.strip(), "%H:%M").time())
            except ValueError:
                continue
        # if end <= start, treat as invalid / skip
        if end <= start:
            continue
        out.append((start, end, exam))
    out.sort(key=lambda t: t[0])
    return out


def find_conflicts(exams: List[ExamRecord]) -> List[Tuple[ExamRecord, ExamRecord]]:
    """
    Find overlapping exam pairs (A, B) ordered by start time, each pair once.
    """
    timed = timed_exams(exams)
    conflicts: List[Tuple[ExamRecord, ExamRecord]] = []

    for i in range(len(timed)):
        s1, e1, a = timed[i]
        for j in range(i + 1, len(timed)):
            s2, e2, b = timed[j]
            if s2 >= e1:
                # sorted by start: nothing later can overlap a
                break
            if s1 < e2 and e1 > s2:
                conflicts.append((a, b))

    return conflicts


def find_hardships(exams: List[ExamRecord]) -> List[List[ExamRecord]]:
    """
    Return maximal groups of >= 3 exams whose starts lie within 24 hours.

    A group that is contained in an earlier reported group is not repeated.
    """
    timed = timed_exams(exams)
    groups: List[List[ExamRecord]] = []
    last_end_index = -1

    for i in range(len(timed)):
        start_i = timed[i][0]
        j = i
        while j + 1 < len(timed) and timed[j + 1][0] - start_i < HARDSHIP_WINDOW:
            j += 1
        if j - i + 1 >= HARDSHIP_MIN_EXAMS and j > last_end_index:
            groups.append([t[2] for t in timed[i : j + 1]])
            last_end_index = j

    return groups
