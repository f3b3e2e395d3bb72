"""Error taxonomy shared by the ledger operations and the HTTP layer."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class. ``code`` names the failure, ``status_code`` is its HTTP mapping."""

    code = "internal"
    status_code = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "error": self.code}


class InvalidArgument(LedgerError):
    code = "invalid_argument"
    status_code = 400


class NotFound(LedgerError):
    code = "not_found"
    status_code = 404


class FailedPrecondition(LedgerError):
    code = "failed_precondition"
    status_code = 400


class InvalidToken(LedgerError):
    code = "invalid_token"
    status_code = 400


class Internal(LedgerError):
    code = "internal"
    status_code = 500


def require(**fields: object) -> None:
    """Raise InvalidArgument naming every empty field."""
    missing = [name for name, value in fields.items() if value is None or value == ""]
    if missing:
        raise InvalidArgument(f"Missing required field(s): {', '.join(missing)}")
