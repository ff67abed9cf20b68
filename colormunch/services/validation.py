"""Argument enumerations and validators for the Kuler query builders."""

import re
from enum import Enum
from typing import Optional, Union

# Email shape accepted by the Kuler API
EMAIL_PATTERN = re.compile(
    r"^(([^<>()\[\]\\.,;:\s@\"]+(\.[^<>()\[\]\\.,;:\s@\"]+)*)|(\".+\"))"
    r"@((\[[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\])|(([a-zA-Z\-0-9]+\.)+[a-zA-Z]{2,}))$"
)

# FFFFFF or 0xFFFFFF
HEX_PATTERN = re.compile(r"^(0x)?[0-9A-Fa-f]{6}$")

# themeID / userID: optional sign, digits only
ID_PATTERN = re.compile(r"^[-+]?[0-9]*$")

HTML_TAG_PATTERN = re.compile(r"<.*?>")

# Defaults shared by every query
START_INDEX = 0
TIME_SPAN = 0
ITEMS_PER_PAGE = 20


class ListType(str, Enum):
    """Theme list orderings."""
    MOST_RECENT = "recent"
    POPULAR = "popular"
    HIGHEST_RATED = "rating"
    RANDOM = "random"


class SearchFilter(str, Enum):
    """Theme search filters. NONE searches titles, tags, authors, ids and hex values."""
    NONE = ""
    THEME_ID = "themeID"
    USER_ID = "userID"
    EMAIL = "email"
    TAG = "tag"
    HEX = "hex"
    TITLE = "title"


class CommentFilter(str, Enum):
    """Comment lookups."""
    BY_THEME_ID = "themeID"
    BY_EMAIL = "email"


def strip_html_tags(value: str) -> str:
    return HTML_TAG_PATTERN.sub("", value)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.fullmatch(value))


def is_valid_hex(value: str) -> bool:
    return bool(HEX_PATTERN.fullmatch(value))


def is_valid_id(value: str) -> bool:
    return bool(ID_PATTERN.fullmatch(value))


def coerce_enum(enum_cls, value: Union[str, Enum, None]):
    """Return the enum member for value, or None if it is not one."""
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        return None


def validate_list_type(list_type) -> Optional[str]:
    """
    Check a theme list type.

    Returns:
        None if valid, else the error message
    """
    if coerce_enum(ListType, list_type) is None:
        return "Invalid list type"
    return None


def validate_theme_search(search_filter, query: str) -> Optional[str]:
    """
    Check a theme search filter/query pair.

    Returns:
        None if valid, else the error message
    """
    member = coerce_enum(SearchFilter, search_filter)
    if member is None:
        return "Invalid search filter"

    if member is SearchFilter.THEME_ID and not is_valid_id(query):
        return "Invalid themeID"
    if member is SearchFilter.USER_ID and not is_valid_id(query):
        return "Invalid userID"
    if member is SearchFilter.EMAIL and not is_valid_email(query):
        return "Invalid email address"
    if member is SearchFilter.HEX and not is_valid_hex(query):
        return "Invalid hex value. Must be in the format 'ABCDEF' or '0xABCDEF'"
    # TAG, TITLE and NONE take any term
    return None


def validate_comment_search(comment_filter, query: str) -> Optional[str]:
    """
    Check a comment filter/query pair.

    Returns:
        None if valid, else the error message
    """
    member = coerce_enum(CommentFilter, comment_filter)
    if member is None:
        return "Invalid comment search filter"

    if member is CommentFilter.BY_EMAIL and not is_valid_email(query):
        return "Invalid email address"
    if member is CommentFilter.BY_THEME_ID and not is_valid_id(query):
        return "Invalid themeID"
    return None
