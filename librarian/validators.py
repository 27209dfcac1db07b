import re
from datetime import date, datetime
from typing import Optional

DATE_FORMAT = "%Y-%m-%d"

# The data file joins fields with commas and rows with newlines, unescaped.
_FORBIDDEN = (",", "\n", "\r")


def parse_date(text: str) -> date:
    """Parse a ``yyyy-MM-dd`` date; raises ValueError on anything else."""
    return datetime.strptime((text or "").strip(), DATE_FORMAT).date()


def format_date(value: Optional[date]) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


class IdValidator:
    """Identifiers for books and readers: one token, storable in a data row."""

    @staticmethod
    def is_valid_id(raw: Optional[str]) -> bool:
        if raw is None:
            return False
        text = raw.strip()
        if not text:
            return False
        return not re.search(r"[\s,]", text)


class TextValidator:
    """Checks for free-text fields (titles, names, departments...)."""

    @staticmethod
    def validate_field(text: Optional[str], required: bool = True) -> bool:
        if text is None:
            return not required
        t = text.strip()
        if not t:
            return not required
        return not any(ch in t for ch in _FORBIDDEN)

    @staticmethod
    def sanitize(text: Optional[str]) -> str:
        if text is None:
            return ""
        return re.sub(r"\s+", " ", text).strip()
