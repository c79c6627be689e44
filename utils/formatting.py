# utils/formatting.py
import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser

_ISO_RE = re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$")
# any URI scheme; a digit after the colon is a host:port, not a scheme
_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.\-]*:(?!\d)", re.IGNORECASE)


def parse_date(x) -> Optional[date]:
    """Lenient date parse. ISO first, then day-first (DD/MM/YYYY) text."""
    if x is None or x == "":
        return None
    if isinstance(x, datetime):
        return x.date()
    if isinstance(x, date):
        return x
    s = str(x).strip()
    if not s or s == "--":
        return None
    if _ISO_RE.match(s):
        # dateutil's dayfirst would swap month and day here
        y, m, d = (int(p) for p in s.split("-"))
        return date(y, m, d)
    return parser.parse(s, dayfirst=True).date()


def to_iso(x) -> str:
    """ISO string for a date-ish value; '' for empty. Raises ValueError when unparseable."""
    try:
        d = parse_date(x)
    except (ValueError, OverflowError, parser.ParserError) as e:
        raise ValueError(f"Not a date: {x!r}") from e
    return d.isoformat() if d else ""


def display_date(iso: Optional[str]) -> str:
    """'2024-01-10' -> '10/01/2024'. Empty stays empty; non-ISO text passes through."""
    if not iso:
        return ""
    s = str(iso)
    if _ISO_RE.match(s):
        y, m, d = s.split("-")
        return f"{d.zfill(2)}/{m.zfill(2)}/{y}"
    return s


def today_iso(today: Optional[date] = None) -> str:
    return (today or date.today()).isoformat()


def sentence_case(value) -> str:
    if not value:
        return ""
    s = str(value).strip()
    return s[:1].upper() + s[1:]


def normalize_link(value) -> str:
    s = (value or "").strip()
    if s and not _SCHEME_RE.match(s):
        s = "https://" + s
    return s


def format_hours(value) -> str:
    v = float(value or 0)
    return str(int(v)) if v.is_integer() else f"{v:g}"
