"""
Error taxonomy.

Nothing in the core is fatal:
- MalformedRow     -> the row is skipped, parsing continues
- StorageCorrupt   -> the local schedule is treated as empty
- AccountError     -> surfaced to the caller, in-memory state is kept
"""


class ExamPlannerError(Exception):
    """Base exception for all examplanner errors."""

    pass


class MalformedRow(ExamPlannerError):
    """A catalog line that cannot produce a minimally valid exam record."""

    def __init__(self, line_no: int, reason: str) -> None:
        super().__init__(f"line {line_no}: {reason}")
        self.line_no = line_no
        self.reason = reason


class StorageCorrupt(ExamPlannerError):
    """The local store holds data that cannot be deserialized."""

    pass


class AccountError(ExamPlannerError):
    """Base class for failures talking to the account service."""

    pass


class RemotePersistFailure(AccountError):
    """An account update did not go through.

    The in-memory schedule is still the visible truth, it is just not durable
    until the next successful write.
    """

    pass


class AccountUnavailable(AccountError):
    """The account service could not resolve the current user."""

    pass


class ScrapeError(ExamPlannerError):
    """Downloading a raw catalog failed."""

    pass
