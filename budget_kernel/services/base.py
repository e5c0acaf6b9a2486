"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write service in the kernel.  Services receive a SQLAlchemy
    ``Session`` and persist via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries belong to the caller (``session_scope()`` in
    the scheduler, orchestrator, or engine facade).  A service never
    commits or rolls back, so flag flips and period inserts issued by
    different services inside one scope stay atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from budget_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide aggregate read models -- those belong in
          ``budget_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
