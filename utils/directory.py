# utils/directory.py
"""Assignee directory.

Flattens internal staff, freelancers and the contacts of the relevant client
into one searchable list, and translates between stored composite tokens
(``rubi:<id>``, ``freelancer:<id>``, ``staff:<email>``) and the
``"Name (label)"`` text people read and type.
"""
import logging
import re
from typing import Iterable, List, Optional, Sequence

from models.assignee import AssigneeRef, DirectoryEntry, SourceKind, kind_from_label
from models.people import Client, Freelancer, Staff

log = logging.getLogger(__name__)

_LABEL_SUFFIX_RE = re.compile(r"\s*\(([^)]+)\)\s*$")


def build_directory(staff: Iterable[Staff], freelancers: Iterable[Freelancer],
                    client: Optional[Client]) -> List[DirectoryEntry]:
    entries = []
    for s in staff:
        if s.id:
            entries.append(DirectoryEntry(AssigneeRef(SourceKind.INTERNAL_STAFF, s.id), s.name))
    for f in freelancers:
        if f.id:
            entries.append(DirectoryEntry(AssigneeRef(SourceKind.FREELANCER, f.id), f.name))
    if client is not None:
        for p in client.contacts:
            if p.email:
                entries.append(DirectoryEntry(AssigneeRef(SourceKind.CLIENT_CONTACT, p.email), p.name))
    return sorted(entries, key=lambda e: (e.display_name or "").casefold())


def split_label(label: str):
    """'A. Lee (rubi)' -> ('A. Lee', SourceKind.INTERNAL_STAFF); unknown suffix -> (label, None)."""
    text = (label or "").strip()
    m = _LABEL_SUFFIX_RE.search(text)
    if not m:
        return text, None
    kind = kind_from_label(m.group(1))
    if kind is None:
        return text, None
    return text[: m.start()].strip(), kind


class AssigneeDirectory:
    """Directory value for one moment of the three source collections.

    Recreate it whenever staff, freelancers, clients or the relevant client
    change; it holds no state of its own beyond its inputs.
    """

    def __init__(self, staff: Sequence[Staff] = (), freelancers: Sequence[Freelancer] = (),
                 clients: Sequence[Client] = (), client_id: Optional[str] = None):
        self.staff = list(staff)
        self.freelancers = list(freelancers)
        self.clients = list(clients)
        self.client_id = client_id or None
        self.entries = build_directory(self.staff, self.freelancers, self.client(self.client_id))

    def client(self, client_id: Optional[str]) -> Optional[Client]:
        if not client_id:
            return None
        return next((c for c in self.clients if c.id == client_id), None)

    def for_client(self, client_id: Optional[str]) -> "AssigneeDirectory":
        if (client_id or None) == self.client_id:
            return self
        return AssigneeDirectory(self.staff, self.freelancers, self.clients, client_id)

    # ---- token -> text ----
    def _name_for(self, ref: AssigneeRef, client_id: Optional[str]) -> Optional[str]:
        if ref.kind is SourceKind.INTERNAL_STAFF:
            hit = next((s for s in self.staff if s.id == ref.source_id), None)
            return hit.name if hit else None
        if ref.kind is SourceKind.FREELANCER:
            hit = next((f for f in self.freelancers if f.id == ref.source_id), None)
            return hit.name if hit else None
        # contacts: the task's own client first, then any loaded client
        scoped = self.client(client_id or self.client_id)
        ordered = ([scoped] if scoped else []) + [c for c in self.clients if c is not scoped]
        for c in ordered:
            person = c.find_contact(ref.source_id)
            if person is not None:
                return person.name
        return None

    def resolve(self, token: str, client_id: Optional[str] = None) -> str:
        ref = AssigneeRef.parse(token)
        if ref is None:
            return token
        name = self._name_for(ref, client_id)
        if name is None:
            return token
        return f"{name} {ref.kind.role_label}"

    def resolve_all(self, tokens: Iterable[str], client_id: Optional[str] = None) -> List[str]:
        return [self.resolve(t, client_id) for t in tokens]

    def first_name_key(self, tokens: Sequence[str], client_id: Optional[str] = None) -> Optional[str]:
        if not tokens:
            return None
        return self.resolve(tokens[0], client_id).casefold()

    # ---- text -> token ----
    def encode(self, label: str, client_id: Optional[str] = None, unmatched: Optional[list] = None) -> str:
        """Token for an exported label.

        A label whose name is not found still yields ``<kind>:<name>`` so the
        import can proceed; the label is appended to ``unmatched`` when given.
        """
        name, kind = split_label(label)
        if kind is None:
            return (label or "").strip()

        target = client_id or self.client_id
        if kind is SourceKind.INTERNAL_STAFF:
            pool = [(s.name, s.id) for s in self.staff if s.id]
        elif kind is SourceKind.FREELANCER:
            pool = [(f.name, f.id) for f in self.freelancers if f.id]
        else:
            c = self.client(target)
            pool = [(p.name, p.email) for p in (c.contacts if c else []) if p.email]

        hit = next((sid for n, sid in pool if n == name), None)
        if hit is None:
            folded = name.casefold()
            hit = next((sid for n, sid in pool if (n or "").casefold() == folded), None)
        if hit is None:
            log.warning("no %s named %r; keeping a best-effort reference", kind.value, name)
            if unmatched is not None:
                unmatched.append(label)
            hit = name
        return AssigneeRef(kind, hit).token

    # ---- picker ----
    def search(self, text: str = "", exclude: Iterable[str] = ()) -> List[DirectoryEntry]:
        needle = (text or "").strip().casefold()
        skip = set(exclude)
        return [e for e in self.entries
                if e.token not in skip
                and (not needle or needle in e.display_name.casefold() or needle in e.role_label.casefold())]
