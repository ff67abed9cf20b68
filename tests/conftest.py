"""Shared fixtures for the ColorMunch tests."""

import httpx
import pytest

from colormunch.core.config import Settings

PROXY_URL = "http://relay.test/api/v1/relay"


def _swatch_item(hex_color="336699", index=0, mode="rgb"):
    return {
        "swatchHexColor": hex_color,
        "swatchColorMode": mode,
        "swatchChannel1": "0.2",
        "swatchChannel2": "0.4",
        "swatchChannel3": "0.6",
        "swatchChannel4": "0.0",
        "swatchIndex": str(index),
    }


def _theme_item(theme_id="1001", title="Blue Sky", tags="blue, sky, calm", swatches=None):
    if swatches is None:
        swatches = [_swatch_item("FFFFFF", 0), _swatch_item("000000", 1), _swatch_item("336699", 2)]
    return {
        "title": f"Theme Title: {title}",
        "link": f"http://kuler.adobe.com/#themeID/{theme_id}",
        "description": f"<img src='x.png' /> {title}",
        "pubDate": "Sat, 01 Mar 2014 10:00:00 PST",
        "themeID": theme_id,
        "themeTitle": title,
        "themeImage": f"http://kuler-api.adobe.com/kuler/themeImages/theme_{theme_id}.png",
        "themeAuthor": {"authorID": "42", "authorLabel": "ben"},
        "themeTags": tags,
        "themeRating": 4.5,
        "themeDownloadCount": 12,
        "themeCreatedAt": "20140301",
        "themeEditedAt": "20140315",
        "themeSwatches": {"swatch": swatches},
    }


def _comment_item(text="Lovely palette", author="sam", posted_at="03/01/2014"):
    return {"comment": text, "author": author, "postedAt": posted_at}


@pytest.fixture
def swatch_item():
    """Factory for relay swatch dicts."""
    return _swatch_item


@pytest.fixture
def theme_item():
    """Factory for relay theme dicts."""
    return _theme_item


@pytest.fixture
def comment_item():
    """Factory for relay comment dicts."""
    return _comment_item


@pytest.fixture
def settings():
    """Settings with immediate retries and a test relay url."""
    return Settings(
        relay_url=PROXY_URL,
        relay_max_attempts=5,
        relay_retry_backoff=0.0,
        relay_timeout_seconds=5.0,
        kuler_api_key="secret-key",
        allowed_domains="",
    )


@pytest.fixture
def relay_requests():
    """Every request seen by the fake relay, in order."""
    return []


@pytest.fixture
def fake_relay(relay_requests):
    """
    Build an httpx client whose transport plays the relay.

    ``responder(request)`` returns the JSON payload (or an httpx.Response, or
    raises). The request id is echoed like the real relay does.
    """
    def build(responder):
        async def handler(request: httpx.Request) -> httpx.Response:
            relay_requests.append(request)
            result = responder(request)
            if hasattr(result, "__await__"):
                result = await result
            if isinstance(result, httpx.Response):
                return result
            return httpx.Response(
                200,
                json=result,
                headers={"X-Request-ID": request.url.params.get("requestid", "")},
            )

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build


@pytest.fixture
def upstream_params():
    """Query parameters of the Kuler url carried inside a relay request."""
    def extract(request: httpx.Request) -> httpx.QueryParams:
        return httpx.URL(request.url.params["request_url"]).params

    return extract
