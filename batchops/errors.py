"""Exceptions raised by the batch pipeline."""


class BatchError(Exception):
    """Base exception for batch pipeline errors."""


class BatchValidationError(BatchError):
    """Malformed filter, operation or options that the schema layer let through."""


class EmptySelectionError(BatchError):
    """A commit resolved to zero rows after skip filtering and selection."""


class BackupNotFoundError(BatchError):
    """A rollback points at a backup file that is missing or unreadable."""
