"""JSON shapes emitted by the relay for each upstream item."""

from typing import List, Union

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AuthorItem(WireModel):
    author_id: str = Field("", alias="authorID")
    author_label: str = Field("", alias="authorLabel")


class SwatchItem(WireModel):
    hex_color: str = Field("", alias="swatchHexColor")
    color_mode: str = Field("", alias="swatchColorMode")
    channel1: str = Field("", alias="swatchChannel1")
    channel2: str = Field("", alias="swatchChannel2")
    channel3: str = Field("", alias="swatchChannel3")
    channel4: str = Field("", alias="swatchChannel4")
    index: str = Field("", alias="swatchIndex")


class SwatchList(WireModel):
    swatch: List[SwatchItem] = Field(default_factory=list)


class ThemeItem(WireModel):
    """One theme from the themes or search feed."""
    title: str = ""
    link: str = ""
    description: str = ""
    pub_date: str = Field("", alias="pubDate")
    theme_id: str = Field("", alias="themeID")
    theme_title: str = Field("", alias="themeTitle")
    theme_image: str = Field("", alias="themeImage")
    theme_author: AuthorItem = Field(default_factory=AuthorItem, alias="themeAuthor")
    theme_tags: str = Field("", alias="themeTags")
    theme_rating: float = Field(0.0, alias="themeRating")
    theme_download_count: int = Field(0, alias="themeDownloadCount")
    theme_created_at: str = Field("", alias="themeCreatedAt")
    theme_edited_at: str = Field("", alias="themeEditedAt")
    theme_swatches: SwatchList = Field(default_factory=SwatchList, alias="themeSwatches")


class CommentItem(WireModel):
    """One comment from the comments feed."""
    comment: str = ""
    author: str = ""
    posted_at: str = Field("", alias="postedAt")


class FeedResponse(WireModel):
    """Relay response body."""
    items: List[Union[ThemeItem, CommentItem]] = Field(default_factory=list)
