class LedgerError(Exception):
    """Base class for everything the ledger core raises."""


class ValidationError(LedgerError, ValueError):
    """Malformed or missing input, raised before the store is touched."""


class NotFoundError(LedgerError, LookupError):
    """A mutation targeted an id that does not exist (any more)."""


class StoreError(LedgerError):
    """The backing store rejected or could not complete an operation."""


class BatchError(StoreError):
    """A bulk delete failed to commit; none of its deletes were applied."""

    def __init__(self, message: str, ids=()):
        super().__init__(message)
        self.ids = list(ids)
