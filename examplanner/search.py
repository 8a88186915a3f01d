"""
Search / filter over the parsed exam universe.

A query is a comma-separated list of course code fragments, e.g.

    "comp 202, math1"

Every term is trimmed and uppercased; an exam matches when its course code
contains any term. Results are then split into the current or historical
view by the exam's term tag.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from examplanner.account import AccountService
from examplanner.config import DEFAULT_CURRENT_TERMS
from examplanner.model import ExamRecord, ViewMode


def split_query(query: str) -> List[str]:
    return [t.strip().upper() for t in (query or "").split(",") if t.strip()]


def is_current_term(year: str, current_terms: Optional[Iterable[str]] = None) -> bool:
    terms = {t.strip().upper() for t in (DEFAULT_CURRENT_TERMS if current_terms is None else current_terms)}
    return year.strip().upper() in terms


def filter_exams(
    exams: Iterable[ExamRecord],
    query: str,
    view_mode: ViewMode = ViewMode.CURRENT,
    current_terms: Optional[Iterable[str]] = None,
) -> List[ExamRecord]:
    """
    Return exams matching the query inside the chosen view, in universe order.

    An empty query returns no results.
    """
    terms = split_query(query)
    if not terms:
        return []

    current = None if current_terms is None else list(current_terms)
    want_current = ViewMode(view_mode) is ViewMode.CURRENT

    out: List[ExamRecord] = []
    for exam in exams:
        code = exam.course.upper()
        if not any(term in code for term in terms):
            continue
        if is_current_term(exam.year, current) == want_current:
            out.append(exam)
    return out


def save_search(account: AccountService, query: str) -> bool:
    """
    Store a search for the signed-in user (newest first).

    Returns False for guests or empty queries. A query that is already saved
    is not stored twice.
    """
    user = account.user
    if not account.is_authenticated or user is None:
        return False

    trimmed = (query or "").strip()
    if not trimmed:
        return False

    if trimmed not in user.saved_searches:
        account.update_user(saved_searches=[trimmed] + list(user.saved_searches))
    return True
