"""
Store adapters used by the lifecycle engines.

Each store wraps a SQLAlchemy session and exposes the small document-store
contract the engines rely on: find_many, find_by_id, a conditional update_one
and insert_one. Every write commits (or rolls back) its own transaction, so one
call is one atomic change to one entity.
"""

from contextlib import contextmanager
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceError
from .models import DocumentRequest, BlotterCase, PickupSlot


class SqlAlchemyStore:
    model = None

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _transaction(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Could not {action} {self.model.__tablename__}: {exc}") from exc

    def _apply(self, entity_id: int, match: Dict[str, Any], patch: Dict[str, Any]) -> bool:
        q = self.db.query(self.model).filter(self.model.id == entity_id)
        for column, value in match.items():
            q = q.filter(getattr(self.model, column) == value)
        return q.update(patch, synchronize_session=False) == 1

    def _finish(self, applied: bool) -> bool:
        if applied:
            self.db.commit()
        else:
            self.db.rollback()
        # Loaded instances are stale after a bulk UPDATE.
        self.db.expire_all()
        return applied

    def find_many(self, statuses: Optional[Iterable[Any]] = None, is_expired: Optional[bool] = None) -> List[Any]:
        """
        Fetch entities filtered by status set and/or expiry flag.

        Args:
            statuses (Iterable, optional): Only return entities in one of these statuses.
            is_expired (bool, optional): Only return entities with this expiry flag.

        Returns:
            list: Matching entities ordered by id.

        Raises:
            PersistenceError: If the query fails.
        """
        with self._transaction("query"):
            q = self.db.query(self.model)
            if statuses is not None:
                q = q.filter(self.model.status.in_(list(statuses)))
            if is_expired is not None:
                q = q.filter(self.model.is_expired == is_expired)
            return q.order_by(self.model.id).all()

    def find_by_id(self, entity_id: int):
        with self._transaction("load"):
            return self.db.query(self.model).filter(self.model.id == entity_id).first()

    def update_one(
        self,
        entity_id: int,
        match: Dict[str, Any],
        patch: Dict[str, Any],
        extra: Iterable[Any] = (),
    ) -> bool:
        """
        Apply `patch` to one entity only if its current columns equal `match`.

        The conditional UPDATE and any `extra` rows (notes, meetings, document
        records) are committed in the same transaction; extras are discarded when
        the match fails.

        Args:
            entity_id (int): Primary key of the entity.
            match (dict): Column values the row must still have.
            patch (dict): Column values to write.
            extra (Iterable): New child rows to insert alongside the update.

        Returns:
            bool: True if the row matched and was updated.

        Raises:
            PersistenceError: If the database rejects the write.
        """
        with self._transaction("update"):
            applied = self._apply(entity_id, match, patch)
            if applied:
                self.db.add_all(list(extra))
            return self._finish(applied)

    def insert_one(self, entity) -> int:
        with self._transaction("insert into"):
            self.db.add(entity)
            self.db.commit()
            self.db.refresh(entity)
            return entity.id


class RequestStore(SqlAlchemyStore):
    model = DocumentRequest

    def replace_pickup_slots(
        self,
        request_id: int,
        match: Dict[str, Any],
        patch: Dict[str, Any],
        slots: Iterable[PickupSlot],
        extra: Iterable[Any] = (),
    ) -> bool:
        """Conditionally update a request and swap its whole slot list in one transaction."""
        with self._transaction("update"):
            applied = self._apply(request_id, match, patch)
            if applied:
                (
                    self.db.query(PickupSlot)
                    .filter(PickupSlot.request_id == request_id)
                    .delete(synchronize_session=False)
                )
                self.db.add_all(list(slots))
                self.db.add_all(list(extra))
            return self._finish(applied)

    def book_pickup_slot(
        self,
        request_id: int,
        slot_date: date,
        slot_time: str,
        match: Dict[str, Any],
        patch: Dict[str, Any],
        extra: Iterable[Any] = (),
    ) -> bool:
        """
        Take one available slot and update the request, or do neither.

        Returns:
            bool: False if the slot was already taken or the request no longer matches.
        """
        with self._transaction("update"):
            booked = (
                self.db.query(PickupSlot)
                .filter(
                    PickupSlot.request_id == request_id,
                    PickupSlot.date == slot_date,
                    PickupSlot.time == slot_time,
                    PickupSlot.is_available.is_(True),
                )
                .update({"is_available": False}, synchronize_session=False)
            ) == 1
            applied = booked and self._apply(request_id, match, patch)
            if applied:
                self.db.add_all(list(extra))
            return self._finish(applied)


class BlotterStore(SqlAlchemyStore):
    model = BlotterCase
