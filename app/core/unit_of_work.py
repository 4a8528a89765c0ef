"""
Explicit unit of work wrapping a single database transaction.

A UnitOfWork is opened once per public service operation and handed to
every collaborator that writes (ledger store, outbox publisher) so that all
of their writes land in the same transaction on the same connection.

Usage:
    from core.unit_of_work import UnitOfWork

    with UnitOfWork() as uow:
        payment = store.lock_payment(uow, payment_id)
        store.save_payment(uow, payment)
        outbox.add_event(..., uow=uow)
    # committed here, or rolled back if the block raised
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import DEFAULT_DB_ALIAS, transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class UnitOfWork:
    """
    Context manager around ``transaction.atomic`` bound to one DB alias.

    Entering a UnitOfWork while another transaction is already open on the
    same alias creates a savepoint, matching ``transaction.atomic`` nesting.

    Attributes:
        using: Database alias all writes must target
    """

    def __init__(self, using: str | None = None):
        self.using = using or DEFAULT_DB_ALIAS
        self._atomic: transaction.Atomic | None = None

    def __enter__(self) -> UnitOfWork:
        if self._atomic is not None:
            raise RuntimeError("UnitOfWork is already active")
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool | None:
        atomic, self._atomic = self._atomic, None
        return atomic.__exit__(exc_type, exc_value, traceback)

    @property
    def is_active(self) -> bool:
        """True while the transaction is open."""
        return (
            self._atomic is not None
            and transaction.get_connection(self.using).in_atomic_block
        )

    def ensure_active(self) -> None:
        """Raise if called outside the transaction this unit of work owns."""
        if not self.is_active:
            raise RuntimeError("Write attempted outside an active UnitOfWork")

    @contextmanager
    def savepoint(self) -> Generator[None, None, None]:
        """
        Nested savepoint inside the unit of work.

        Used around inserts that may hit a unique constraint so the outer
        transaction survives the IntegrityError.
        """
        with transaction.atomic(using=self.using):
            yield
