"""Shared pieces for the Kuler domain records."""

from datetime import date, datetime
from email.utils import parsedate_to_datetime
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict


class Record(BaseModel):
    """Immutable record parsed from a relay item. Accepts wire keys or field names."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )


def parse_date(value: str, formats: Iterable[str]) -> Optional[date]:
    """Parse value with the first matching strptime format, falling back to RFC 2822."""
    value = (value or "").strip()
    if not value:
        return None

    for fmt in formats:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    try:
        return parsedate_to_datetime(value).date()
    except (TypeError, ValueError):
        return None
