"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract.  Services receive
    the caller's ``Session`` and persist with ``session.flush()``; they
    never commit or roll back.  The caller (facade operation or sweep
    step, via ``session_scope``) owns the transaction, which is what makes
    a role swap plus its period generation a single atomic unit.
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
        - Does NOT provide read-only listing -- see ``budget_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
