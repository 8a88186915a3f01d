"""
Schedule reconciliation.

The reconciler owns the one authoritative in-memory schedule and mirrors it
into exactly one store at a time:

    UNINITIALIZED  -> auth not resolved yet, nothing is read or written
    GUEST          -> the local device store is the source of truth
    AUTHENTICATED  -> the signed-in user's saved schedule is the source of truth

On every auth switch (first resolution, sign-in, sign-out) the in-memory
schedule is REPLACED by the newly authoritative store. Guest and account
schedules are never merged; stale device state must not leak into an account.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional, Tuple

from examplanner.account import AccountService
from examplanner.errors import RemotePersistFailure
from examplanner.log import get_logger
from examplanner.model import ExamRecord, dedupe_by_id
from examplanner.storage import DEFAULT_SCHEDULE_KEY, LocalStore, load_schedule, save_schedule

log = get_logger(__name__)


class ScheduleState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    GUEST = "GUEST"
    AUTHENTICATED = "AUTHENTICATED"


class ScheduleReconciler:
    """
    Holds the user's exam schedule and decides where it is persisted.

    The account service and the local store are passed in explicitly; the
    reconciler reads no global state.
    """

    def __init__(
        self,
        account: AccountService,
        local_store: LocalStore,
        storage_key: str = DEFAULT_SCHEDULE_KEY,
    ) -> None:
        self.account = account
        self.local_store = local_store
        self.storage_key = storage_key

        self._schedule: List[ExamRecord] = []
        self._state = ScheduleState.UNINITIALIZED
        self._user_id: Optional[str] = None
        self._initialized = False

    # -- read access ---------------------------------------------------------

    @property
    def state(self) -> ScheduleState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def schedule(self) -> List[ExamRecord]:
        return list(self._schedule)

    def contains(self, exam_id: str) -> bool:
        return any(r.id == exam_id for r in self._schedule)

    def __len__(self) -> int:
        return len(self._schedule)

    # -- auth transitions ----------------------------------------------------

    def _target(self) -> Tuple[ScheduleState, Optional[str]]:
        user = self.account.user
        if self.account.is_authenticated and user is not None:
            return ScheduleState.AUTHENTICATED, user.id
        return ScheduleState.GUEST, None

    def sync_auth(self) -> ScheduleState:
        """
        Re-evaluate the authentication state.

        Call this whenever sign-in status may have changed. While the account
        service is still loading nothing happens. When the (state, user) pair
        differs from the last one, the schedule is replaced by the stored value
        of the newly authoritative source.
        """
        if self.account.is_loading:
            return self._state

        target, user_id = self._target()
        if self._initialized and (target, user_id) == (self._state, self._user_id):
            return self._state

        previous = self._state
        if target is ScheduleState.AUTHENTICATED:
            user = self.account.user
            assert user is not None
            loaded = list(user.saved_schedule)
        else:
            loaded = load_schedule(self.local_store, self.storage_key)

        self._schedule = dedupe_by_id(loaded)
        self._state = target
        self._user_id = user_id
        self._initialized = True

        log.info(
            "schedule_source_switched",
            previous=previous.value,
            state=target.value,
            user_id=user_id,
            exams=len(self._schedule),
        )
        return self._state

    # -- mutations -----------------------------------------------------------

    def toggle(self, record: ExamRecord) -> List[ExamRecord]:
        """
        Remove the exam if it is scheduled, otherwise append it at the end.
        """
        if self.contains(record.id):
            updated = [r for r in self._schedule if r.id != record.id]
        else:
            updated = self._schedule + [record]
        return self.replace(updated)

    def remove(self, exam_id: str) -> List[ExamRecord]:
        """
        Remove the exam with this id. Unknown ids are ignored.
        """
        if not self.contains(exam_id):
            return self.schedule
        return self.replace([r for r in self._schedule if r.id != exam_id])

    def replace(self, records: Iterable[ExamRecord]) -> List[ExamRecord]:
        """
        Set the whole schedule and write it through to the authoritative store.

        Raises RemotePersistFailure if the account update fails; the new
        schedule is kept in memory either way.
        """
        self._schedule = dedupe_by_id(list(records))
        self._persist()
        return self.schedule

    def _persist(self) -> None:
        if not self._initialized or self.account.is_loading:
            log.debug("schedule_persist_skipped", state=self._state.value)
            return

        if self._state is ScheduleState.GUEST:
            save_schedule(self.local_store, self._schedule, self.storage_key)
            return

        user = self.account.user
        if user is None or user.id != self._user_id:
            # auth changed behind our back; wait for sync_auth()
            log.debug("schedule_persist_skipped", state=self._state.value, reason="user changed")
            return

        if list(user.saved_schedule) == self._schedule:
            return

        try:
            self.account.update_user(saved_schedule=list(self._schedule))
        except RemotePersistFailure as e:
            log.error("schedule_persist_failed", user_id=user.id, error=str(e))
            raise
