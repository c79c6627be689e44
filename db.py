# db.py

#============================================================#
#                          Rubi To-Do                        #
#============================================================#
# Purpose     : Live document store. JSON documents grouped  #
#               by collection, pushed to subscribers after   #
#               every committed write (SQLite/Postgres)      #
#============================================================#


from __future__ import annotations

import inspect
import logging
import threading
import uuid
import weakref
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import create_engine, Column, String, DateTime, JSON, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings

log = logging.getLogger(__name__)

TASKS = "client_tasks"
CLIENTS = "clients"
STAFF = "staff"
FREELANCERS = "freelancers"


def make_engine(url: str):
    kwargs = {"pool_pre_ping": True, "future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


# ---- Engine / Session ----
DATABASE_URL = get_settings().database_url

engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Document(Base):
    __tablename__ = "documents"
    id = Column(String(36), primary_key=True)
    collection = Column(String, index=True, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


def init_db(bind=None):
    Base.metadata.create_all(bind or engine)


# ---- errors ----
class StoreError(Exception):
    code = "unavailable"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class PermissionDeniedError(StoreError):
    code = "permission-denied"


class NotFoundError(StoreError):
    code = "not-found"


_DENIED_MARKERS = ("permission denied", "insufficient privilege", "readonly database", "read-only")


def _translate(exc: Exception) -> StoreError:
    text = str(getattr(exc, "orig", None) or exc)
    if any(m in text.lower() for m in _DENIED_MARKERS):
        return PermissionDeniedError(text)
    return StoreError(text)


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


# Placeholder replaced by the commit time of the write that carries it
SERVER_TIMESTAMP = _ServerTimestamp()


def _materialize(data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    stamp = now.isoformat()
    return {k: (stamp if v is SERVER_TIMESTAMP else v) for k, v in data.items()}


def _snapshot(row: Document) -> Dict[str, Any]:
    out = dict(row.data or {})
    out["id"] = row.id
    return out


@dataclass(frozen=True)
class Query:
    """One collection, at most one equality filter, one ordering field."""
    collection: str
    where: Optional[Tuple[str, Any]] = None
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


def _order_key(value):
    # numbers sort before strings, never compared with them
    return (isinstance(value, str), value)


def _apply_query(docs: List[Dict[str, Any]], q: Query) -> List[Dict[str, Any]]:
    if q.where is not None:
        field, expected = q.where
        docs = [d for d in docs if d.get(field) == expected]
    if q.order_by:
        present = [d for d in docs if d.get(q.order_by) not in (None, "")]
        missing = [d for d in docs if d.get(q.order_by) in (None, "")]
        present.sort(key=lambda d: _order_key(d.get(q.order_by)), reverse=q.descending)
        docs = present + missing
    if q.limit is not None:
        docs = docs[: q.limit]
    return docs


def _callback_ref(fn: Optional[Callable]) -> Optional[Callable[[], Optional[Callable]]]:
    """Bound methods are held weakly so a dropped subscriber can be collected."""
    if fn is None:
        return None
    if inspect.ismethod(fn):
        return weakref.WeakMethod(fn)
    return lambda: fn


class Subscription:
    def __init__(self, store: "DocumentStore", query: Query,
                 on_change: Callable[[List[Any]], None],
                 on_error: Optional[Callable[[StoreError], None]] = None,
                 transform: Optional[Callable[[List[Dict[str, Any]]], List[Any]]] = None):
        self.query = query
        self._store = store
        self._on_change = _callback_ref(on_change)
        self._on_error = _callback_ref(on_error)
        self._transform = transform
        self.active = True

    @property
    def alive(self) -> bool:
        return self.active and self._on_change() is not None

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._store._detach(self)

    def deliver(self) -> None:
        if not self.active:
            return
        on_change = self._on_change()
        if on_change is None:
            log.debug("subscriber to %s was collected; releasing", self.query.collection)
            self.unsubscribe()
            return
        try:
            docs = self._store.query(self.query)
        except StoreError as e:
            log.warning("subscription to %s failed: %s", self.query.collection, e)
            on_error = self._on_error() if self._on_error is not None else None
            if on_error is not None:
                on_error(e)
            return
        on_change(self._transform(docs) if self._transform is not None else docs)


class DocumentStore:
    """Collection-scoped document reads, writes and live subscriptions.

    Every committed write re-runs the queries of all live subscriptions on the
    written collection and pushes the fresh snapshot, including to the writer.
    There is no versioning: concurrent writes to one field resolve as
    last-write-wins.
    """

    def __init__(self, bind=None):
        if bind is None:
            self.engine = engine
            self._session_factory = SessionLocal
        else:
            self.engine = bind
            self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=bind, future=True)
        self._subscriptions: List[Subscription] = []
        # script threads of several sessions subscribe and write concurrently
        self._subs_lock = threading.Lock()

    # ---- reads ----
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            with self._session_factory() as s:
                row = s.get(Document, doc_id)
                if row is None or row.collection != collection:
                    return None
                return _snapshot(row)
        except SQLAlchemyError as e:
            raise _translate(e) from e

    def query(self, q: Query) -> List[Dict[str, Any]]:
        try:
            with self._session_factory() as s:
                rows = s.execute(
                    select(Document)
                    .where(Document.collection == q.collection)
                    .order_by(Document.created_at.asc(), Document.id.asc())
                ).scalars().all()
                docs = [_snapshot(r) for r in rows]
        except SQLAlchemyError as e:
            raise _translate(e) from e
        return _apply_query(docs, q)

    def subscribe(self, q: Query, on_change, on_error=None, transform=None) -> Subscription:
        """Push ``transform(docs)`` (or the raw docs) to ``on_change`` now and after every write.

        A bound-method listener is held weakly: once its object is collected
        the subscription is released on the next write.
        """
        sub = Subscription(self, q, on_change, on_error, transform)
        with self._subs_lock:
            self._subscriptions.append(sub)
        sub.deliver()
        return sub

    def _detach(self, sub: Subscription) -> None:
        with self._subs_lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    def _notify(self, collection: str) -> None:
        with self._subs_lock:
            dead = [s for s in self._subscriptions if not s.alive]
            for s in dead:
                s.active = False
            self._subscriptions = [s for s in self._subscriptions if s.active]
            targets = [s for s in self._subscriptions if s.query.collection == collection]
        if dead:
            log.debug("released %d subscription(s) of collected listeners", len(dead))
        for sub in targets:
            try:
                sub.deliver()
            except Exception:
                # the write is already committed; one bad listener must not hide it
                log.exception("listener on %s raised", collection)

    # ---- writes ----
    def add(self, collection: str, data: Dict[str, Any]) -> str:
        return self.batch_add(collection, [data])[0]

    def batch_add(self, collection: str, docs: Iterable[Dict[str, Any]]) -> List[str]:
        """Insert all documents in one transaction: all commit or none do."""
        ids: List[str] = []
        now = _utcnow()
        try:
            with self._session_factory() as s:
                for i, data in enumerate(docs):
                    doc_id = uuid.uuid4().hex
                    # keeps batch order stable under created_at ordering
                    created = now + timedelta(microseconds=i)
                    s.add(Document(id=doc_id, collection=collection,
                                   data=_materialize(dict(data), created),
                                   created_at=created, updated_at=created))
                    ids.append(doc_id)
                s.commit()
        except SQLAlchemyError as e:
            raise _translate(e) from e
        log.info("added %d document(s) to %s", len(ids), collection)
        self._notify(collection)
        return ids

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        now = _utcnow()
        try:
            with self._session_factory() as s:
                row = s.get(Document, doc_id)
                if row is None:
                    s.add(Document(id=doc_id, collection=collection,
                                   data=_materialize(dict(data), now),
                                   created_at=now, updated_at=now))
                else:
                    row.data = _materialize(dict(data), now)
                s.commit()
        except SQLAlchemyError as e:
            raise _translate(e) from e
        self._notify(collection)

    def update(self, collection: str, doc_id: str, delta: Dict[str, Any]) -> None:
        now = _utcnow()
        try:
            with self._session_factory() as s:
                row = s.get(Document, doc_id)
                if row is None or row.collection != collection:
                    raise NotFoundError(f"{collection}/{doc_id} does not exist")
                merged = dict(row.data or {})
                merged.update(_materialize(dict(delta), now))
                row.data = merged
                s.commit()
        except SQLAlchemyError as e:
            raise _translate(e) from e
        log.debug("updated %s/%s fields=%s", collection, doc_id, sorted(delta))
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            with self._session_factory() as s:
                row = s.get(Document, doc_id)
                if row is not None and row.collection == collection:
                    s.delete(row)
                    s.commit()
        except SQLAlchemyError as e:
            raise _translate(e) from e
        log.info("deleted %s/%s", collection, doc_id)
        self._notify(collection)
