"""
portal/repository.py

Requisition store access.

The service layer talks to a RequisitionRepository instead of the global
SQLAlchemy session so the store can be swapped (tests use an in-memory fake).

Transaction pattern (same as the rest of the app):
    repository.add(obj)   -> flush, id available
    log_action(...)       -> audit row in the same session
    repository.save(obj)  -> commit

Concurrency:
- Requisition.version is an SQLAlchemy version_id_col. A write that lost a
  race raises StaleDataError, mapped to ConflictError. Callers re-read and
  retry; nothing is retried here.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from .errors import ConflictError, ExternalServiceError, PortalError
from .extensions import db
from .models import Requisition
from .visibility import list_for, scope_query

logger = logging.getLogger(__name__)


class RequisitionRepository:
    """Store interface. Subclasses provide all/get/add/save."""

    def all(self) -> List[Requisition]:
        raise NotImplementedError

    def get(self, requisition_id: int) -> Optional[Requisition]:
        raise NotImplementedError

    def add(self, requisition: Requisition) -> Requisition:
        raise NotImplementedError

    def save(self, requisition: Requisition) -> Requisition:
        raise NotImplementedError

    def discard(self) -> None:
        """Drop pending, unsaved changes."""

    def list_visible(self, role: str | None, user_id: Any, department: str | None) -> List[Requisition]:
        return list_for(self.all(), role, user_id, department)


class SqlAlchemyRequisitionRepository(RequisitionRepository):
    """Repository backed by the Flask-SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session or db.session

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Concurrent update lost during %s: %s", action, exc)
            raise ConflictError() from exc
        except IntegrityError as exc:
            self.session.rollback()
            logger.warning("Integrity error during %s: %s", action, exc)
            raise ConflictError("Requisition conflicts with an existing record") from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Store failure during %s: %s", action, exc)
            raise ExternalServiceError("Failed to access the requisition store") from exc
        except PortalError:
            # raised by ORM flush hooks (e.g. the history guard)
            self.session.rollback()
            raise

    def _ordered(self, query):
        return query.order_by(Requisition.created_at.desc(), Requisition.id.desc())

    def all(self) -> List[Requisition]:
        with self._guard("list"):
            return self._ordered(Requisition.query).all()

    def list_visible(self, role: str | None, user_id: Any, department: str | None) -> List[Requisition]:
        with self._guard("list"):
            return self._ordered(scope_query(Requisition.query, role, user_id, department)).all()

    def get(self, requisition_id: int) -> Optional[Requisition]:
        with self._guard("get"):
            return self.session.get(Requisition, requisition_id)

    def add(self, requisition: Requisition) -> Requisition:
        with self._guard("create"):
            self.session.add(requisition)
            self.session.flush()
        return requisition

    def save(self, requisition: Requisition) -> Requisition:
        with self._guard("save"):
            self.session.add(requisition)
            self.session.commit()
        return requisition

    def discard(self) -> None:
        self.session.rollback()
