"""
ColorMunch client for the Kuler themes API.

Builds list / search / comments queries, sends them through the relay with a
FeedLoader and turns the result into Theme and Comment records.
"""

import logging
import random
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from colormunch.core.config import Settings, get_settings
from colormunch.core.events import COMPLETE, FAILED, EventChannel, FeedEvent
from colormunch.schemas.comment import Comment
from colormunch.schemas.theme import Theme
from colormunch.services.feed_loader import FeedLoader, LoaderState, check_proxy_url
from colormunch.services.validation import (
    ITEMS_PER_PAGE,
    START_INDEX,
    TIME_SPAN,
    ListType,
    SearchFilter,
    coerce_enum,
    strip_html_tags,
    validate_comment_search,
    validate_list_type,
    validate_theme_search,
)

logger = logging.getLogger(__name__)


class ColorMunch(EventChannel):
    """
    Client for the Kuler API, talking through the relay at proxy_url.

    Every load method dispatches one of:
        FAILED: busy is True if a request is already in progress,
            otherwise message explains what went wrong
        COMPLETE: results are readable via the getters; empty is True if
            nothing was found

    Only one request may be in flight per instance.
    """

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__()
        self.settings = settings or get_settings()
        proxy_url = self.settings.relay_url if proxy_url is None else proxy_url
        check_proxy_url(proxy_url, "ColorMunch()")

        self.proxy_url = proxy_url
        self._http_client = http_client
        self._feed_loader: Optional[FeedLoader] = None
        self.state = LoaderState.IDLE
        self._themes: List[Theme] = []
        self._comments: List[Comment] = []

    async def __aenter__(self) -> "ColorMunch":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._feed_loader is not None:
            await self._feed_loader.aclose()

    # ============================================
    # Public load methods
    # ============================================

    async def load_themes(
        self,
        list_type=ListType.MOST_RECENT,
        start_index: int = START_INDEX,
        time_span: int = TIME_SPAN,
        items_per_page: int = ITEMS_PER_PAGE,
    ) -> FeedEvent:
        """
        Load a Kuler themes list.

        Args:
            list_type: A ListType (default MOST_RECENT)
            start_index: 0-based index of the first item
            time_span: Limit to themes from the last N days (0 = no limit)
            items_per_page: Maximum number of items, 1-100
        """
        list_type = ListType.MOST_RECENT if list_type is None else list_type
        error = validate_list_type(list_type)
        if error:
            return self._fail(f"load_themes(): {error}")

        url = self._build_url(self.settings.themes_api, {
            "listType": coerce_enum(ListType, list_type).value,
            "startIndex": start_index,
            "timeSpan": time_span,
            "itemsPerPage": items_per_page,
        })
        return await self._get_feed(url, self._parse_themes, "get_themes_feed()")

    async def search_themes(
        self,
        query: str,
        filter=SearchFilter.NONE,
        start_index: int = START_INDEX,
        items_per_page: int = ITEMS_PER_PAGE,
    ) -> FeedEvent:
        """
        Search Kuler themes.

        Args:
            query: The search term (required)
            filter: A SearchFilter narrowing the search (default NONE).
                HEX accepts "ABCDEF" or "0xABCDEF".
            start_index: 0-based index of the first item
            items_per_page: Maximum number of items, 1-100
        """
        if not query or not isinstance(query, str):
            raise ValueError("search_themes(): query argument is required and cannot be an empty string.")

        filter = SearchFilter.NONE if filter is None else filter

        error = validate_theme_search(filter, query)
        if error:
            return self._fail(f"search_themes(): {error}")

        search_filter = coerce_enum(SearchFilter, filter)
        search_query = query if search_filter is SearchFilter.NONE else f"{search_filter.value}:{query}"
        url = self._build_url(self.settings.search_api, {
            "searchQuery": search_query,
            "startIndex": start_index,
            "itemsPerPage": items_per_page,
        })
        return await self._get_feed(url, self._parse_themes, "get_themes_feed()")

    async def load_comments(
        self,
        filter,
        query,
        start_index: int = START_INDEX,
        items_per_page: int = ITEMS_PER_PAGE,
    ) -> FeedEvent:
        """
        Load Kuler theme comments.

        Args:
            filter: CommentFilter.BY_EMAIL (comments on themes by that user)
                or CommentFilter.BY_THEME_ID
            query: The email address or themeID
            start_index: 0-based index of the first item
            items_per_page: Maximum number of items, 1-100
        """
        if filter is None:
            raise ValueError("load_comments(): filter argument is required")
        if query is None:
            raise ValueError("load_comments(): query argument is required")

        query = str(query)
        error = validate_comment_search(filter, query)
        if error:
            return self._fail(f"load_comments(): {error}")

        filter_name = getattr(filter, "value", filter)
        url = self._build_url(self.settings.comments_api, {
            filter_name: query,
            "startIndex": start_index,
            "itemsPerPage": items_per_page,
        })
        return await self._get_feed(url, self._parse_comments, "get_comments_feed()")

    # ============================================
    # Loading and parsing
    # ============================================

    @staticmethod
    def _build_url(base_url: str, params: Dict[str, Any]) -> str:
        # tags must go before encoding turns < and > into %3C / %3E
        params = {
            name: strip_html_tags(value) if isinstance(value, str) else value
            for name, value in params.items()
        }
        return str(httpx.URL(base_url, params=params))

    def _fail(self, message: str) -> FeedEvent:
        detail = FeedEvent(message=message)
        self.emit(FAILED, detail)
        return detail

    def _new_loader(self) -> FeedLoader:
        return FeedLoader(self.proxy_url, http_client=self._http_client, settings=self.settings)

    async def _get_feed(
        self,
        url: str,
        parser: Callable[[List[Any]], FeedEvent],
        caller: str,
    ) -> FeedEvent:
        if self.busy:
            detail = FeedEvent(message="Busy", busy=True)
            self.emit(FAILED, detail)
            return detail

        self.state = LoaderState.AWAITING_RESPONSE
        try:
            if self._feed_loader is None:
                self._feed_loader = self._new_loader()
            result = await self._feed_loader.load(url)
            event_name, detail = self._handle_result(result, parser, caller)
        finally:
            self.state = LoaderState.IDLE

        self.emit(event_name, detail)
        return detail

    def _handle_result(
        self,
        result: FeedEvent,
        parser: Callable[[List[Any]], FeedEvent],
        caller: str,
    ) -> Tuple[str, FeedEvent]:
        if result.busy:
            return FAILED, result
        if result.data and isinstance(result.data.get("items"), list):
            detail = parser(result.data["items"])
            return COMPLETE, detail
        if result.message:
            return FAILED, FeedEvent(message=result.message)
        return FAILED, FeedEvent(message=f"{caller}: load error")

    def _parse_themes(self, items: List[Any]) -> FeedEvent:
        themes: List[Theme] = []
        for item in items:
            if not Theme.has_swatches(item):
                logger.debug("Skipping theme without swatches")
                continue
            try:
                theme = Theme.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping malformed theme item: {e.error_count()} validation error(s)")
                continue
            theme.bind_client_factory(self._new_comments_client)
            themes.append(theme)

        self._themes = themes
        logger.info(f"Parsed {len(themes)} of {len(items)} theme items")
        if not themes:
            return FeedEvent(message="0 themes found", empty=True)
        return FeedEvent(message="Themes loaded and ready")

    def _parse_comments(self, items: List[Any]) -> FeedEvent:
        comments: List[Comment] = []
        for item in items:
            try:
                comments.append(Comment.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed comment item: {e.error_count()} validation error(s)")

        self._comments = comments
        logger.info(f"Parsed {len(comments)} of {len(items)} comment items")
        if not comments:
            return FeedEvent(message="0 comments found", empty=True)
        return FeedEvent(message="Comments loaded and ready")

    def _new_comments_client(self) -> "ColorMunch":
        return ColorMunch(self.proxy_url, http_client=self._http_client, settings=self.settings)

    # ============================================
    # Getters
    # ============================================

    @property
    def busy(self) -> bool:
        return self.state is LoaderState.AWAITING_RESPONSE

    @property
    def loader(self) -> Optional[FeedLoader]:
        return self._feed_loader

    @property
    def themes(self) -> List[Theme]:
        return list(self._themes)

    @property
    def theme_count(self) -> int:
        return len(self._themes)

    def get_theme_by_index(self, index: int) -> Optional[Theme]:
        return self._themes[index] if 0 <= index < len(self._themes) else None

    def get_random_theme(self) -> Optional[Theme]:
        return random.choice(self._themes) if self._themes else None

    @property
    def comments(self) -> List[Comment]:
        return list(self._comments)

    @property
    def comment_count(self) -> int:
        return len(self._comments)

    def get_comment_by_index(self, index: int) -> Optional[Comment]:
        return self._comments[index] if 0 <= index < len(self._comments) else None

    def get_random_comment(self) -> Optional[Comment]:
        return random.choice(self._comments) if self._comments else None

    def get_data(self) -> Dict[str, Any]:
        return {"themes": self.themes, "comments": self.comments}
