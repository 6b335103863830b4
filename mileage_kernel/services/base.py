"""
BaseService -- abstract base for kernel services that write.

Responsibility:
    Provides the common constructor and transaction contract for every
    service in the kernel layer.  Services receive a SQLAlchemy ``Session``
    from the caller and flush their changes into it.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Transaction contract:
    A service constructed with ``auto_commit=True`` (the default) owns the
    unit of work of each public operation: it commits on success and rolls
    back on any exception.  With ``auto_commit=False`` it only flushes and
    the caller owns commit/rollback, so several operations can share one
    transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from mileage_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller.  Reads go through
        selectors; writes are flushed, then committed only when
        ``auto_commit`` is set.
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        """
        Args:
            session: SQLAlchemy session for database operations.
            auto_commit: Commit on success / roll back on failure.
        """
        self.session = session
        self._auto_commit = auto_commit

    def _commit(self) -> None:
        if self._auto_commit:
            self.session.commit()
        else:
            self.session.flush()

    def _rollback(self) -> None:
        if self._auto_commit:
            self.session.rollback()
