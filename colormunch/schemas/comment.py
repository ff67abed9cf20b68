"""Theme comment record."""

from datetime import date
from typing import Any, Dict, Optional

from pydantic import Field

from colormunch.schemas.base import Record, parse_date


class Comment(Record):
    """A comment left on a Kuler theme."""
    text: str = Field("", alias="comment")
    author: str = ""
    posted_at: str = Field("", alias="postedAt")  # mm/dd/yyyy as sent by the API

    @property
    def posted_date(self) -> Optional[date]:
        return parse_date(self.posted_at, ("%m/%d/%Y", "%Y-%m-%d"))

    def get_data(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "author": self.author,
            "posted_date": self.posted_date,
        }

    def __str__(self) -> str:
        return f"{self.text}<br />Author: {self.author}<br />Posted: {self.posted_at}"
