# models/people.py
from sqlmodel import SQLModel, Field
from typing import Optional, List, Dict, Any

from utils.formatting import sentence_case

MAIN_CONTACT_ROLE = "Main Contact"


class Staff(SQLModel):
    id: Optional[str] = None
    name: str = ""
    email: str = ""
    job_role: str = ""
    department: str = ""
    status: str = "Active"


class Freelancer(SQLModel):
    id: Optional[str] = None
    name: str = ""
    email: str = ""
    specialization: str = ""
    rate: str = ""
    status: str = "Active"


class ClientContact(SQLModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    role: str = ""


class ContactError(ValueError):
    pass


class Client(SQLModel):
    id: Optional[str] = None
    company: str = ""
    contacts: List[ClientContact] = Field(default_factory=list)

    @property
    def main_contact(self) -> Optional[ClientContact]:
        return self.contacts[0] if self.contacts else None

    def find_contact(self, email: str) -> Optional[ClientContact]:
        key = (email or "").strip().lower()
        return next((c for c in self.contacts if c.email and c.email.lower() == key), None)

    def add_contact(self, name: str, email: str = "", phone: str = "", role: str = "") -> ClientContact:
        if not (name or "").strip():
            raise ContactError("A contact needs a name.")
        if email and self.find_contact(email) is not None:
            raise ContactError("A contact with this email already exists.")
        contact = ClientContact(name=sentence_case(name), email=email.strip(), phone=phone.strip(),
                                role=sentence_case(role) or ("Contact" if self.contacts else MAIN_CONTACT_ROLE))
        self.contacts.append(contact)
        return contact

    def remove_contact(self, index: int) -> ClientContact:
        """Remove a contact. The main contact stays while anyone else is listed."""
        if index < 0 or index >= len(self.contacts):
            raise ContactError("No such contact.")
        if index == 0 and len(self.contacts) > 1:
            raise ContactError("The main contact cannot be removed while other contacts exist.")
        return self.contacts.pop(index)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "Client":
        """Build a client from a stored document, folding in legacy contact fields."""
        raw = doc.get("contacts")
        if raw is None:
            raw = doc.get("people")
        contacts = [ClientContact(name=p.get("name", "") or "", email=p.get("email", "") or "",
                                  phone=p.get("phone", "") or "",
                                  role=p.get("role") or p.get("jobRole") or "")
                    for p in (raw or []) if isinstance(p, dict)]

        # older documents kept the main contact at top level
        top_name = doc.get("contactPerson") or ""
        top_email = doc.get("email") or ""
        top_phone = doc.get("phone") or ""
        if not contacts and (top_name or top_email):
            contacts = [ClientContact(name=top_name, email=top_email, phone=top_phone, role=MAIN_CONTACT_ROLE)]
        elif contacts and (top_name or top_email):
            first = contacts[0]
            contacts[0] = ClientContact(name=top_name or first.name, email=top_email or first.email,
                                        phone=top_phone or first.phone, role=first.role or MAIN_CONTACT_ROLE)

        return cls(id=doc.get("id"), company=doc.get("company") or doc.get("name") or "", contacts=contacts)

    def to_document(self) -> Dict[str, Any]:
        return {"company": self.company, "contacts": [c.model_dump() for c in self.contacts]}
