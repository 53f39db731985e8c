"""
Error Taxonomy

Nothing here is fatal to the practice flow: every failure degrades to
"operate on local state only".
"""


class NclexCoachError(Exception):
    """Base class for state engine errors."""


class MalformedPersistedDataError(NclexCoachError):
    """The local snapshot document exists but cannot be parsed."""


class MalformedImportRowError(NclexCoachError):
    """An import row is missing a required field."""

    def __init__(self, reason: str, row_number: int = None):
        self.reason = reason
        self.row_number = row_number
        where = f"row {row_number}: " if row_number is not None else ""
        super().__init__(f"{where}{reason}")


class ImportFileError(NclexCoachError):
    """The import file could not be read as CSV."""


class RemoteSyncError(NclexCoachError):
    """Base class for remote store failures."""

    action = "remote operation"

    def __init__(self, user_id: str, cause: Exception = None):
        self.user_id = user_id
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause else "unknown error"
        super().__init__(f"{self.action} failed for user {user_id[:20]}: {detail}")


class RemotePullError(RemoteSyncError):
    action = "pull"


class RemotePushError(RemoteSyncError):
    action = "push"
