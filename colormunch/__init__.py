"""ColorMunch: async client and relay for the Kuler color themes API."""

__version__ = "0.1.0"

from colormunch.core.events import COMPLETE, FAILED, EventChannel, FeedEvent
from colormunch.schemas.comment import Comment
from colormunch.schemas.theme import RGB, Swatch, Theme
from colormunch.services.client import ColorMunch
from colormunch.services.feed_loader import FeedLoader, LoaderState
from colormunch.services.validation import CommentFilter, ListType, SearchFilter

__all__ = [
    "COMPLETE",
    "FAILED",
    "ColorMunch",
    "Comment",
    "CommentFilter",
    "EventChannel",
    "FeedEvent",
    "FeedLoader",
    "ListType",
    "LoaderState",
    "RGB",
    "SearchFilter",
    "Swatch",
    "Theme",
]
