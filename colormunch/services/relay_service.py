"""
Relay service: forwards allow-listed Kuler requests with the server-held key
and converts the RSS/XML result into flat JSON items.
"""

import logging
import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Union
from urllib.parse import urlparse

import httpx

from colormunch.core.config import Settings, get_settings
from colormunch.schemas.feed import (
    AuthorItem,
    CommentItem,
    SwatchItem,
    SwatchList,
    ThemeItem,
)

logger = logging.getLogger(__name__)

WHITESPACE = re.compile(r"\s+")


class UpstreamError(Exception):
    """The Kuler API could not be reached or returned something unreadable."""


# =============================================
# XML helpers (kuler: children are matched by local name)
# =============================================

def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child(element: Optional[ET.Element], name: str) -> Optional[ET.Element]:
    if element is None:
        return None
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _children(element: Optional[ET.Element], name: str) -> List[ET.Element]:
    if element is None:
        return []
    return [child for child in element if _local_name(child.tag) == name]


def _text(element: Optional[ET.Element], name: str, collapse: bool = False) -> str:
    child = _child(element, name)
    if child is None:
        return ""
    text = "".join(child.itertext())
    if collapse:
        text = WHITESPACE.sub(" ", text)
    return text.strip()


def _number(value: str, cast):
    try:
        return cast(value)
    except ValueError:
        return cast(0)


class RelayService:
    """Allow-listing and XML conversion for the relay endpoint."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def is_referer_allowed(self, referer: Optional[str]) -> bool:
        """Check the caller's Referer host against the allow-list (empty = everyone)."""
        allowed = self.settings.allowed_domains_list
        if not allowed:
            return True
        if not referer:
            return False
        host = (urlparse(referer).hostname or "").lower()
        return host in allowed

    def resolve_endpoint(self, request_url: Optional[str]) -> Optional[str]:
        """Return the upstream base URL if request_url targets a registered endpoint."""
        if not request_url:
            return None
        base = request_url.split("?", 1)[0]
        if base in self.settings.upstream_endpoints:
            return base
        return None

    def build_upstream_url(self, request_url: str) -> str:
        return str(httpx.URL(request_url).copy_add_param("key", self.settings.kuler_api_key))

    async def fetch_items(
        self,
        client: httpx.AsyncClient,
        request_url: str,
        endpoint: str,
    ) -> List[Union[ThemeItem, CommentItem]]:
        """
        Fetch an allow-listed request from Kuler and convert its items.

        Raises:
            UpstreamError: on transport failure, error status or malformed XML
        """
        try:
            response = await client.get(
                self.build_upstream_url(request_url),
                timeout=self.settings.upstream_timeout_seconds,
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            # never log the full upstream url, it carries the key
            logger.error(f"Upstream request to {endpoint} failed: {type(e).__name__}")
            raise UpstreamError(f"Upstream request failed: {type(e).__name__}") from e

        try:
            items = self.parse_feed(response.content, endpoint)
        except ET.ParseError as e:
            logger.error(f"Failed to parse upstream feed from {endpoint}: {e}")
            raise UpstreamError(f"Invalid XML from upstream: {e}") from e

        logger.info(f"Relayed {len(items)} items from {endpoint}")
        return items

    def parse_feed(self, xml_text: Union[str, bytes], endpoint: str) -> List[Union[ThemeItem, CommentItem]]:
        """Convert every channel/item of an RSS document to a relay item."""
        root = ET.fromstring(xml_text)
        channel = root if _local_name(root.tag) == "channel" else _child(root, "channel")
        items = _children(channel, "item")

        if endpoint == self.settings.comments_api:
            return [self.parse_comment(item) for item in items]
        return [self.parse_theme(item) for item in items]

    @staticmethod
    def parse_theme(item: ET.Element) -> ThemeItem:
        data = _child(item, "themeItem")
        author = _child(data, "themeAuthor")
        swatches = _children(_child(data, "themeSwatches"), "swatch")

        download_count = _text(data, "themeDownLoadCount") or _text(data, "themeDownloadCount")

        return ThemeItem(
            title=_text(item, "title"),
            link=_text(item, "link"),
            description=_text(item, "description", collapse=True),
            pub_date=_text(item, "pubDate"),
            theme_id=_text(data, "themeID"),
            theme_title=_text(data, "themeTitle"),
            theme_image=_text(data, "themeImage"),
            theme_author=AuthorItem(
                author_id=_text(author, "authorID"),
                author_label=_text(author, "authorLabel"),
            ),
            theme_tags=_text(data, "themeTags", collapse=True),
            theme_rating=_number(_text(data, "themeRating") or "0", float),
            theme_download_count=_number(download_count or "0", int),
            theme_created_at=_text(data, "themeCreatedAt"),
            theme_edited_at=_text(data, "themeEditedAt"),
            theme_swatches=SwatchList(swatch=[
                SwatchItem(
                    hex_color=_text(swatch, "swatchHexColor"),
                    color_mode=_text(swatch, "swatchColorMode"),
                    channel1=_text(swatch, "swatchChannel1"),
                    channel2=_text(swatch, "swatchChannel2"),
                    channel3=_text(swatch, "swatchChannel3"),
                    channel4=_text(swatch, "swatchChannel4"),
                    index=_text(swatch, "swatchIndex"),
                )
                for swatch in swatches
            ]),
        )

    @staticmethod
    def parse_comment(item: ET.Element) -> CommentItem:
        data = _child(item, "commentItem")
        return CommentItem(
            comment=_text(data, "comment"),
            author=_text(data, "author"),
            posted_at=_text(data, "postedAt"),
        )
