"""Pydantic records for Kuler themes, swatches, comments and relay items."""

from colormunch.schemas.comment import Comment
from colormunch.schemas.theme import RGB, Swatch, Theme
from colormunch.schemas.feed import CommentItem, FeedResponse, ThemeItem

__all__ = [
    "Comment",
    "RGB",
    "Swatch",
    "Theme",
    "CommentItem",
    "FeedResponse",
    "ThemeItem",
]
