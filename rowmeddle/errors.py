"""Exceptions raised by rowmeddle."""


class MeddlerError(Exception):
    """Base class for every error raised by this package."""


class DriverError(MeddlerError):
    """An error reported by the database driver, wrapped with context.

    ``message`` says which operation failed and ``error`` is the exception
    the driver raised.
    """

    def __init__(self, message, error):
        super().__init__(message, error)
        self.message = message
        self.error = error

    def __str__(self):
        return f"{self.message}: {self.error}"


class NoRowsError(MeddlerError, LookupError):
    """Raised when a query that must produce a row produced none."""

    def __init__(self, message="no rows in result set"):
        super().__init__(message)


def driver_err(err):
    """Return ``(original, True)`` for a driver error, else ``(err, False)``."""
    if isinstance(err, DriverError):
        return err.error, True
    return err, False