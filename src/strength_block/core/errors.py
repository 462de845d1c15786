"""
Exception types shared by the ledger, attendance and role components.

Pure calculations raise plain ValueError on malformed input; everything
here describes a failure that involves persistence or caller scope.
"""


class StrengthBlockError(Exception):
    """Base class for all strength-block errors."""

    pass


class WriteError(StrengthBlockError):
    """Raised when the document store rejects or cannot accept a write."""

    pass


class StoreUnavailableError(WriteError):
    """Raised when the document store cannot be reached."""

    pass


class AccessDeniedError(WriteError, PermissionError):
    """Raised when the caller is not authorized for the target scope.

    Also a built-in PermissionError, so callers may catch either.
    Never retried automatically.
    """

    pass


class SaveError(StrengthBlockError):
    """Raised when an attendance sheet could not be saved.

    Local edits are kept so the save can be retried.
    """

    def __init__(self, team: str, message: str):
        super().__init__(f"Could not save attendance for {team}: {message}")
        self.team = team


class LoadError(StrengthBlockError):
    """Raised when one team's attendance sheet could not be loaded."""

    def __init__(self, team: str, message: str):
        super().__init__(f"Could not load attendance for {team}: {message}")
        self.team = team


class DuplicateDateError(StrengthBlockError, ValueError):
    """Raised when renaming an attendance date onto an existing date."""

    def __init__(self, date: str):
        super().__init__(f"Date {date} already exists on this sheet.")
        self.date = date


class ValidationError(StrengthBlockError, ValueError):
    """Raised when data validation fails."""

    pass
