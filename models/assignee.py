# models/assignee.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SourceKind(str, Enum):
    """Where an assignee lives. The value is the token prefix."""
    INTERNAL_STAFF = "rubi"
    FREELANCER = "freelancer"
    CLIENT_CONTACT = "staff"

    @property
    def role_label(self) -> str:
        return f"({self.value})"


def kind_from_label(label: str) -> Optional[SourceKind]:
    """'rubi' or '(rubi)' -> SourceKind.INTERNAL_STAFF; None if unknown."""
    key = (label or "").strip().strip("()").strip().lower()
    for kind in SourceKind:
        if kind.value == key:
            return kind
    return None


@dataclass(frozen=True)
class AssigneeRef:
    kind: SourceKind
    source_id: str

    @property
    def token(self) -> str:
        return f"{self.kind.value}:{self.source_id}"

    @classmethod
    def parse(cls, token: str) -> Optional["AssigneeRef"]:
        """Tagged ref for a stored token; None for plain (legacy) tokens."""
        if not token or ":" not in token:
            return None
        prefix, source_id = token.split(":", 1)
        kind = kind_from_label(prefix)
        if kind is None or not source_id:
            return None
        return cls(kind, source_id)

    def __str__(self):
        return self.token


@dataclass(frozen=True)
class DirectoryEntry:
    ref: AssigneeRef
    display_name: str

    @property
    def role_label(self) -> str:
        return self.ref.kind.role_label

    @property
    def token(self) -> str:
        return self.ref.token

    @property
    def label(self) -> str:
        return f"{self.display_name} {self.role_label}"
