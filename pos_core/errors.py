"""Exceptions raised by the persistence layer.

Callers only need to tell apart three situations: the store could not be
brought up, a write was rolled back, or a row they asked to change is gone.
Reads by id never raise for a missing row, they return ``None``.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for every error raised by ``pos_core``."""


class DatabaseInitError(PosError):
    """The database file could not be opened or its schema prepared."""


class MigrationError(DatabaseInitError):
    """A required schema migration failed."""


class NotInitializedError(PosError):
    """A data operation was attempted before ``Database.initialize()``."""


class TransactionError(PosError):
    """A storage failure aborted a transaction; nothing from it was kept."""


class NotFoundError(PosError):
    """The row targeted by an update does not exist."""


class SaleNotFoundError(NotFoundError):
    pass


class ProductNotFoundError(NotFoundError):
    pass


class CustomerNotFoundError(NotFoundError):
    pass


class InvalidOrderDateError(PosError, ValueError):
    """An order date could not be parsed as an ISO date or date-time."""


class InvoiceSequenceExhaustedError(PosError):
    """More than 999 invoices were requested for one order day."""
