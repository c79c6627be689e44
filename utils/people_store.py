# utils/people_store.py
import logging
from typing import Callable, List, Optional

from pydantic import ValidationError

import db
from db import Query, StoreError, Subscription
from models.people import Client, Freelancer, Staff

log = logging.getLogger(__name__)


def _to_staff(doc) -> Staff:
    return Staff(id=doc.get("id"), name=doc.get("name") or "", email=doc.get("email") or "",
                 job_role=doc.get("job_role") or doc.get("jobRole") or "",
                 department=doc.get("department") or "", status=doc.get("status") or "Active")


def _to_freelancer(doc) -> Freelancer:
    return Freelancer(id=doc.get("id"), name=doc.get("name") or "", email=doc.get("email") or "",
                      specialization=doc.get("specialization") or "", rate=str(doc.get("rate") or ""),
                      status=doc.get("status") or "Active")


class PeopleStore:
    """Read-only feeds of staff, freelancers and clients, ordered by name."""

    def __init__(self, store: db.DocumentStore):
        self.store = store

    def _subscribe(self, collection, order_by, convert, on_change, on_error) -> Subscription:
        def _convert_all(docs):
            out = []
            for d in docs:
                try:
                    out.append(convert(d))
                except ValidationError as e:
                    log.warning("skipping malformed %s document %s: %s", collection, d.get("id"), e)
            return out

        return self.store.subscribe(Query(collection, order_by=order_by), on_change, on_error,
                                    transform=_convert_all)

    def subscribe_staff(self, on_change: Callable[[List[Staff]], None],
                        on_error: Optional[Callable[[StoreError], None]] = None) -> Subscription:
        return self._subscribe(db.STAFF, "name", _to_staff, on_change, on_error)

    def subscribe_freelancers(self, on_change: Callable[[List[Freelancer]], None],
                              on_error: Optional[Callable[[StoreError], None]] = None) -> Subscription:
        return self._subscribe(db.FREELANCERS, "name", _to_freelancer, on_change, on_error)

    def subscribe_clients(self, on_change: Callable[[List[Client]], None],
                          on_error: Optional[Callable[[StoreError], None]] = None) -> Subscription:
        return self._subscribe(db.CLIENTS, "company", Client.from_document, on_change, on_error)
