"""Error taxonomy shared by the data store, session, composer and form layers."""

from typing import List, Optional


class AppError(Exception):
    """Base class for errors that views catch and render inline."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ---------- Auth ----------

class AuthError(AppError):
    pass


class InvalidCredentials(AuthError):
    def __init__(self, message: str = "Invalid login credentials"):
        super().__init__(message)


class DuplicateEmail(AuthError):
    def __init__(self, message: str = "User already registered"):
        super().__init__(message)


class WeakPassword(AuthError):
    def __init__(self, message: str = "Password should be at least 6 characters"):
        super().__init__(message)


# ---------- Data ----------

class DataStoreError(AppError):
    """Failure reported by the external data store; message kept verbatim."""

    def __init__(self, message: str, table: Optional[str] = None):
        super().__init__(message)
        self.table = table


class NotFoundError(AppError):
    def __init__(self, message: str = "Portfolio not found"):
        super().__init__(message)


class LoadFailed(AppError):
    def __init__(self, message: str = "Failed to load portfolio"):
        super().__init__(message)


class SaveFailed(AppError):
    pass


class FormValidationError(AppError):
    """Raised before any write when required form fields are empty."""

    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__("Please fill in all required fields: " + ", ".join(missing))
