import re
import unicodedata
from datetime import date, datetime
from typing import Any, List, Optional

NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
SPACES_RE = re.compile(r"\s+")
DMY_RE = re.compile(r"^(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})$")

TRUE_STRINGS = {"si", "sí", "yes", "y", "true", "t"}


def strip_diacritics(s: str) -> str:
    decomposed = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_name(s: Optional[str]) -> str:
    """Canonical comparable form of a person name.

    Lowercase, no diacritics, anything outside [a-z0-9] turned into a
    single space, trimmed. None and "" both give "".
    """
    if not s:
        return ""
    text = strip_diacritics(str(s).strip()).lower()
    text = NON_ALNUM_RE.sub(" ", text)
    return SPACES_RE.sub(" ", text).strip()


def tokenize(s: Optional[str]) -> List[str]:
    return [t for t in normalize_name(s).split(" ") if len(t) >= 2]


def normalize_header(s: Any) -> str:
    if s is None:
        return ""
    return strip_diacritics(str(s)).strip().lower()


def parse_bool(v: Any) -> bool:
    if v is True or v == 1:
        return True
    if v is None or v is False:
        return False
    return str(v).strip().lower() in TRUE_STRINGS or str(v).strip() == "1"


def parse_date(v: Any) -> Optional[date]:
    """
    Parse a spreadsheet date cell.

    Accepts date/datetime objects, d/m/yyyy or d-m-yy strings (two-digit
    years are taken as 20yy) and ISO-8601 strings. Returns None otherwise.
    """
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v

    s = str(v).strip()
    m = DMY_RE.match(s)
    if m:
        day, month, year = m.groups()
        full_year = int("20" + year) if len(year) == 2 else int(year)
        try:
            return date(full_year, int(month), int(day))
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


def format_fecha_origen(d: date) -> str:
    # d/m/yyyy, no zero padding
    return f"{d.day}/{d.month}/{d.year}"
