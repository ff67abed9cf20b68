"""Theme and swatch records."""

import html
import logging
import random
import re
from datetime import date
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from pydantic import Field, PrivateAttr, field_validator, model_validator

from colormunch.core.events import COMPLETE, FAILED, EventChannel, FeedEvent
from colormunch.schemas.base import Record, parse_date
from colormunch.schemas.comment import Comment
from colormunch.services.validation import ITEMS_PER_PAGE, START_INDEX, CommentFilter

logger = logging.getLogger(__name__)

HEX_DIGITS = re.compile(r"[0-9A-Fa-f]{6}")

# Swatches at or above this brightness take dark text
DARK_THRESHOLD = 192


class RGB(NamedTuple):
    r: int
    g: int
    b: int


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _default_index(swatch: Any, position: int) -> Any:
    if not isinstance(swatch, dict):
        return swatch
    if _to_int(swatch.get("swatchIndex", swatch.get("index"))) is not None:
        return swatch
    swatch = {key: value for key, value in swatch.items() if key != "index"}
    swatch["swatchIndex"] = position
    return swatch


class Swatch(Record):
    """One color of a theme. Channel meaning depends on color_mode."""
    hex_color: str = Field(..., alias="swatchHexColor")
    color_mode: str = Field("", alias="swatchColorMode")
    channels: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    index: int = Field(0, alias="swatchIndex")

    @model_validator(mode="before")
    @classmethod
    def _collect_channels(cls, data: Any) -> Any:
        if isinstance(data, dict) and "channels" not in data:
            data = dict(data)
            data["channels"] = tuple(_to_float(data.get(f"swatchChannel{n}")) for n in range(1, 5))
        return data

    @field_validator("index", mode="before")
    @classmethod
    def _lenient_index(cls, value: Any) -> int:
        index = _to_int(value)
        return 0 if index is None else index

    @field_validator("hex_color", mode="before")
    @classmethod
    def _normalize_hex(cls, value: Any) -> str:
        value = str(value).strip()
        if value[:2].lower() == "0x":
            value = value[2:]
        elif value.startswith("#"):
            value = value[1:]
        if not HEX_DIGITS.fullmatch(value):
            raise ValueError(f"Invalid swatch hex color: {value!r}")
        return value

    @property
    def hex_int(self) -> int:
        return int(f"0x{self.hex_color}", 16)

    @property
    def rgb(self) -> RGB:
        value = self.hex_int
        return RGB(value >> 16 & 255, value >> 8 & 255, value & 255)

    @property
    def brightness(self) -> int:
        return max(self.rgb)

    @property
    def is_dark(self) -> bool:
        """Whether light text reads better on top of this color."""
        return self.brightness < DARK_THRESHOLD

    def to_html(self, extra_class: str = "") -> str:
        """20x20 colored square markup with a hidden hex label."""
        classes = ["cm-swatch"]
        if self.is_dark:
            classes.append("cm-swatch--dark")
        if extra_class:
            classes.append(extra_class)
        return (
            f'<div class="{" ".join(classes)}" style="background-color: #{self.hex_color}">'
            f'<span class="cm-swatch-label">{self.hex_color}</span></div>'
        )

    def get_data(self) -> Dict[str, Any]:
        return {
            "hex_color": self.hex_color,
            "color_mode": self.color_mode,
            "channels": list(self.channels),
            "rgb": self.rgb._asdict(),
            "index": self.index,
            "is_dark": self.is_dark,
        }

    def __str__(self) -> str:
        return self.hex_color


class Theme(Record):
    """
    A Kuler theme: a named palette with its metadata.

    Themes are only built from items that carry at least one swatch. Comments
    are fetched on demand through a nested client, one request at a time.
    """
    id: str = Field(..., alias="themeID")
    title: str = Field("", alias="themeTitle")
    description: str = ""  # HTML: image, artist, id, posted date and hex values
    image: str = Field("", alias="themeImage")
    link: str = ""
    created_at: str = Field("", alias="themeCreatedAt")  # yyyymmdd
    edited_at: str = Field("", alias="themeEditedAt")  # yyyymmdd
    tags: Tuple[str, ...] = Field(default_factory=tuple, alias="themeTags")
    rating: float = Field(0.0, alias="themeRating")
    download_count: int = Field(0, alias="themeDownloadCount")
    author_id: str = ""
    author: str = ""
    swatches: Tuple[Swatch, ...] = Field(..., min_length=1, alias="themeSwatches")

    _events: EventChannel = PrivateAttr(default_factory=EventChannel)
    _client_factory: Optional[Callable[[], Any]] = PrivateAttr(default=None)
    _comments_client: Any = PrivateAttr(default=None)
    _comments_loaded: bool = PrivateAttr(default=False)

    @model_validator(mode="before")
    @classmethod
    def _flatten_author(cls, data: Any) -> Any:
        if isinstance(data, dict) and "themeAuthor" in data:
            data = dict(data)
            author = data.pop("themeAuthor") or {}
            if isinstance(author, dict):
                data.setdefault("author_id", author.get("authorID") or "")
                data.setdefault("author", author.get("authorLabel") or "")
        return data

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [tag.strip() for tag in value.split(",") if tag.strip()]
        return value

    @field_validator("swatches", mode="before")
    @classmethod
    def _unwrap_swatches(cls, value: Any) -> Any:
        # relay shape: {"swatch": [...]}, or a bare object when there is only one
        if isinstance(value, dict):
            value = value.get("swatch")
        if isinstance(value, dict):
            value = [value]
        if not isinstance(value, (list, tuple)):
            return value or []
        # a missing or blank swatchIndex falls back to the position in the theme
        return [_default_index(swatch, position) for position, swatch in enumerate(value)]

    @staticmethod
    def has_swatches(item: Any) -> bool:
        """Whether a raw relay item carries any swatch data."""
        if not isinstance(item, dict):
            return False
        swatches = item.get("themeSwatches")
        if isinstance(swatches, dict):
            swatches = swatches.get("swatch")
        return bool(swatches)

    # ============================================
    # Derived fields
    # ============================================

    @property
    def created_date(self) -> Optional[date]:
        return parse_date(self.created_at, ("%Y%m%d", "%Y/%m/%d", "%Y-%m-%d"))

    @property
    def edited_date(self) -> Optional[date]:
        return parse_date(self.edited_at, ("%Y%m%d", "%Y/%m/%d", "%Y-%m-%d"))

    @property
    def swatch_count(self) -> int:
        return len(self.swatches)

    def get_swatch_by_index(self, index: int) -> Optional[Swatch]:
        return self.swatches[index] if 0 <= index < len(self.swatches) else None

    def get_random_swatch(self) -> Optional[Swatch]:
        return random.choice(self.swatches) if self.swatches else None

    def to_html(self) -> str:
        """Theme block markup: label plus one numbered square per swatch."""
        squares = "".join(
            swatch.to_html(extra_class=f"cm-swatch--{position}")
            for position, swatch in enumerate(self.swatches, start=1)
        )
        return (
            f'<div id="cm-theme_{html.escape(self.id)}" class="cm-theme">'
            f'<span class="cm-theme-label">{html.escape(self.title)}</span>{squares}</div>'
        )

    # ============================================
    # Comments
    # ============================================

    @property
    def events(self) -> EventChannel:
        """Channel for this theme's comment-loading COMPLETE / FAILED events."""
        return self._events

    def bind_client_factory(self, factory: Callable[[], Any]) -> None:
        """Set how this theme builds the nested client used to load its comments."""
        self._client_factory = factory

    async def load_comments(self, start_index: int = START_INDEX, items_per_page: int = ITEMS_PER_PAGE) -> FeedEvent:
        """
        Load the comments for this theme.

        Events dispatched on ``theme.events``:
            FAILED: busy is True if a comments request for this theme is
                already running, otherwise message explains the error
            COMPLETE: comments are readable via the getters; empty is True
                if there were none
        """
        if self._client_factory is None:
            raise RuntimeError("load_comments(): theme is not bound to a client")

        if self._comments_client is not None and self._comments_client.busy:
            detail = FeedEvent(message="Busy", busy=True)
            self._events.emit(FAILED, detail)
            return detail

        client = self._client_factory()
        self._comments_client = client
        self._comments_loaded = False

        client.on(COMPLETE, self._on_comments_complete)
        client.on(FAILED, self._on_comments_failed)
        try:
            return await client.load_comments(
                CommentFilter.BY_THEME_ID, self.id, start_index, items_per_page
            )
        finally:
            client.off(COMPLETE, self._on_comments_complete)
            client.off(FAILED, self._on_comments_failed)
            await client.aclose()

    def _on_comments_complete(self, detail: FeedEvent) -> None:
        self._comments_loaded = True
        logger.debug(f"Comments loaded for theme {self.id}: {detail.message}")
        self._events.emit(COMPLETE, detail)

    def _on_comments_failed(self, detail: FeedEvent) -> None:
        self._events.emit(FAILED, detail)

    @property
    def comments_loaded(self) -> bool:
        return self._comments_loaded

    @property
    def comment_count(self) -> int:
        """Number of loaded comments, -1 until they have been loaded."""
        return self._comments_client.comment_count if self._comments_loaded else -1

    @property
    def comments(self) -> Optional[List[Comment]]:
        return self._comments_client.comments if self._comments_loaded else None

    def get_comment_by_index(self, index: int) -> Optional[Comment]:
        return self._comments_client.get_comment_by_index(index) if self._comments_loaded else None

    def get_random_comment(self) -> Optional[Comment]:
        return self._comments_client.get_random_comment() if self._comments_loaded else None

    def get_data(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "link": self.link,
            "rating": self.rating,
            "download_count": self.download_count,
            "author": self.author,
            "author_id": self.author_id,
            "tags": list(self.tags),
            "created_date": self.created_date,
            "edited_date": self.edited_date,
            "swatches": [swatch.get_data() for swatch in self.swatches],
            "comments_loaded": self.comments_loaded,
            "comments": [comment.get_data() for comment in self.comments] if self.comments_loaded else None,
        }

    def __str__(self) -> str:
        return self.description
