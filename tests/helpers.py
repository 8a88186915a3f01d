"""
Shared fixtures for the test-suite.
"""

from dataclasses import replace
from typing import Any, List, Optional

from examplanner.account import AccountService
from examplanner.errors import RemotePersistFailure
from examplanner.model import ExamRecord, Location, UserAccount


def make_exam(course: str = "COMP202", section: str = "1", start: str = "2026-04-14 09:00", **kw: Any) -> ExamRecord:
    fields = dict(
        course=course,
        section=section,
        year="W2026",
        exam_type="Final",
        start_time=start,
        end_time=kw.pop("end", "2026-04-14 12:00"),
        locations=(Location("BuildingA", "Room1"),),
        rows=(1,),
    )
    fields.update(kw)
    return ExamRecord.create(**fields)


class FakeAccount(AccountService):
    """
    In-memory account service that records every update call.
    """

    def __init__(self, user: Optional[UserAccount] = None, is_loading: bool = False, fail: bool = False) -> None:
        self._user = user
        self.is_loading = is_loading
        self.fail = fail
        self.updates: List[dict] = []

    @property
    def user(self) -> Optional[UserAccount]:
        return self._user

    def login(self, user: UserAccount) -> None:
        self._user = user

    def logout(self) -> None:
        self._user = None

    def update_user(self, **fields: Any) -> UserAccount:
        self.updates.append(fields)
        if self.fail:
            raise RemotePersistFailure("account service down")
        assert self._user is not None
        self._user = replace(self._user, **fields)
        return self._user
