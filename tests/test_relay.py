"""
Tests for the relay endpoint and its XML conversion.

Run with: pytest tests/test_relay.py -v
"""

import httpx
import pytest
from fastapi.testclient import TestClient

THEMES_URL = "https://kuler-api.adobe.com/feeds/rss/get.cfm?listType=recent&startIndex=0&itemsPerPage=20"
COMMENTS_URL = "https://kuler-api.adobe.com/rss/comments.cfm?themeID=1001&startIndex=0&itemsPerPage=20"

THEMES_XML = """<rss xmlns:kuler="http://kuler.adobe.com/kuler/API/rss/" version="2.0">
<channel>
  <title>kuler highest rated themes</title>
  <item>
    <title>Theme Title: Blue Sky</title>
    <link>http://kuler.adobe.com/index.cfm#themeID/1001</link>
    <description>&lt;img src="http://kuler-api.adobe.com/kuler/themeImages/theme_1001.png" /&gt;
        Artist: ben&lt;br /&gt;
        ID: 1001</description>
    <pubDate>Sat, 01 Mar 2014 10:00:00 PST</pubDate>
    <kuler:themeItem>
      <kuler:themeID>1001</kuler:themeID>
      <kuler:themeTitle>Blue Sky</kuler:themeTitle>
      <kuler:themeImage>http://kuler-api.adobe.com/kuler/themeImages/theme_1001.png</kuler:themeImage>
      <kuler:themeAuthor>
        <kuler:authorID>42</kuler:authorID>
        <kuler:authorLabel>ben</kuler:authorLabel>
      </kuler:themeAuthor>
      <kuler:themeTags>blue,
        sky, calm</kuler:themeTags>
      <kuler:themeRating>4</kuler:themeRating>
      <kuler:themeDownLoadCount>12</kuler:themeDownLoadCount>
      <kuler:themeCreatedAt>20140301</kuler:themeCreatedAt>
      <kuler:themeEditedAt>20140315</kuler:themeEditedAt>
      <kuler:themeSwatches>
        <kuler:swatch>
          <kuler:swatchHexColor>FFFFFF</kuler:swatchHexColor>
          <kuler:swatchColorMode>rgb</kuler:swatchColorMode>
          <kuler:swatchChannel1>1.0</kuler:swatchChannel1>
          <kuler:swatchChannel2>1.0</kuler:swatchChannel2>
          <kuler:swatchChannel3>1.0</kuler:swatchChannel3>
          <kuler:swatchChannel4>0.0</kuler:swatchChannel4>
          <kuler:swatchIndex>0</kuler:swatchIndex>
        </kuler:swatch>
        <kuler:swatch>
          <kuler:swatchHexColor>336699</kuler:swatchHexColor>
          <kuler:swatchColorMode>rgb</kuler:swatchColorMode>
          <kuler:swatchChannel1>0.2</kuler:swatchChannel1>
          <kuler:swatchChannel2>0.4</kuler:swatchChannel2>
          <kuler:swatchChannel3>0.6</kuler:swatchChannel3>
          <kuler:swatchChannel4>0.0</kuler:swatchChannel4>
          <kuler:swatchIndex>1</kuler:swatchIndex>
        </kuler:swatch>
      </kuler:themeSwatches>
    </kuler:themeItem>
  </item>
  <item>
    <title>Theme Title: Nothing</title>
    <kuler:themeItem>
      <kuler:themeID>1002</kuler:themeID>
      <kuler:themeTitle>Nothing</kuler:themeTitle>
      <kuler:themeRating>n/a</kuler:themeRating>
      <kuler:themeSwatches></kuler:themeSwatches>
    </kuler:themeItem>
  </item>
</channel>
</rss>"""

COMMENTS_XML = """<rss xmlns:kuler="http://kuler.adobe.com/kuler/API/rss/" version="2.0">
<channel>
  <item>
    <title>Comment</title>
    <kuler:commentItem>
      <kuler:comment>Lovely palette</kuler:comment>
      <kuler:author>sam</kuler:author>
      <kuler:postedAt>03/01/2014</kuler:postedAt>
    </kuler:commentItem>
  </item>
</channel>
</rss>"""


@pytest.fixture
def upstream_calls():
    """Requests that reached the fake Kuler API."""
    return []


@pytest.fixture
def relay_app(upstream_calls):
    """
    Configure the relay app against a fake Kuler API.

    Returns a function taking the XML (or an exception to raise), the upstream
    status code and the referer allow-list.
    """
    from main import app
    from colormunch.core.config import Settings
    from colormunch.core.dependencies import get_relay_service, get_upstream_client
    from colormunch.services.relay_service import RelayService

    def configure(body=THEMES_XML, status_code=200, allowed_domains=""):
        def handler(request: httpx.Request) -> httpx.Response:
            upstream_calls.append(request)
            if isinstance(body, Exception):
                raise body
            return httpx.Response(status_code, text=body)

        upstream = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        settings = Settings(kuler_api_key="secret-key", allowed_domains=allowed_domains)

        app.dependency_overrides[get_upstream_client] = lambda: upstream
        app.dependency_overrides[get_relay_service] = lambda: RelayService(settings)
        return app

    yield configure
    app.dependency_overrides.clear()


# ============================================
# Relay endpoint Tests
# ============================================

class TestRelayEndpoint:
    """Tests for GET /api/v1/relay."""

    def test_themes_are_converted_to_json(self, relay_app, upstream_calls):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay", params={"request_url": THEMES_URL})

        assert response.status_code == 200
        items = response.json()["items"]
        assert len(items) == 2

        theme = items[0]
        assert theme["themeID"] == "1001"
        assert theme["themeTitle"] == "Blue Sky"
        assert theme["themeAuthor"] == {"authorID": "42", "authorLabel": "ben"}
        assert theme["themeTags"] == "blue, sky, calm"
        assert theme["themeRating"] == 4.0
        assert theme["themeDownloadCount"] == 12
        assert theme["pubDate"] == "Sat, 01 Mar 2014 10:00:00 PST"
        assert [s["swatchHexColor"] for s in theme["themeSwatches"]["swatch"]] == ["FFFFFF", "336699"]
        assert theme["themeSwatches"]["swatch"][1]["swatchChannel2"] == "0.4"

        empty = items[1]
        assert empty["themeSwatches"] == {"swatch": []}
        assert empty["themeRating"] == 0.0

    def test_api_key_is_appended_upstream(self, relay_app, upstream_calls):
        client = TestClient(relay_app())

        client.get("/api/v1/relay", params={"request_url": THEMES_URL})

        assert len(upstream_calls) == 1
        upstream = upstream_calls[0].url
        assert str(upstream).startswith("https://kuler-api.adobe.com/feeds/rss/get.cfm?")
        assert upstream.params["listType"] == "recent"
        assert upstream.params["itemsPerPage"] == "20"
        assert upstream.params["key"] == "secret-key"

    def test_comments_are_converted_to_json(self, relay_app):
        client = TestClient(relay_app(COMMENTS_XML))

        response = client.get("/api/v1/relay", params={"request_url": COMMENTS_URL})

        assert response.json() == {
            "items": [{"comment": "Lovely palette", "author": "sam", "postedAt": "03/01/2014"}]
        }

    @pytest.mark.parametrize("request_url", [
        "https://evil.test/feeds/rss/get.cfm?listType=recent",
        "https://kuler-api.adobe.com/feeds/rss/get.cfmx?listType=recent",
        "http://kuler-api.adobe.com/feeds/rss/get.cfm?listType=recent",
        "",
    ])
    def test_unknown_endpoint_is_refused(self, request_url, relay_app, upstream_calls):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay", params={"request_url": request_url})

        assert response.status_code == 200
        assert response.json() == []
        assert upstream_calls == []

    def test_missing_request_url_is_refused(self, relay_app, upstream_calls):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay")

        assert response.json() == []
        assert upstream_calls == []

    def test_endpoint_without_query_is_accepted(self, relay_app, upstream_calls):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay", params={"request_url": "https://kuler-api.adobe.com/feeds/rss/get.cfm"})

        assert len(response.json()["items"]) == 2
        assert upstream_calls[0].url.params["key"] == "secret-key"

    def test_referer_allow_list(self, relay_app, upstream_calls):
        client = TestClient(relay_app(allowed_domains="colormunch.example, Other.Example"))
        params = {"request_url": THEMES_URL}

        allowed = client.get("/api/v1/relay", params=params, headers={"Referer": "https://colormunch.example/gallery"})
        mixed_case = client.get("/api/v1/relay", params=params, headers={"Referer": "http://other.example:8080/"})
        foreign = client.get("/api/v1/relay", params=params, headers={"Referer": "https://evil.test/colormunch.example"})
        missing = client.get("/api/v1/relay", params=params)

        assert len(allowed.json()["items"]) == 2
        assert len(mixed_case.json()["items"]) == 2
        assert foreign.json() == []
        assert missing.json() == []
        assert len(upstream_calls) == 2

    def test_callback_wraps_payload(self, relay_app):
        client = TestClient(relay_app(COMMENTS_XML))

        response = client.get("/api/v1/relay", params={"request_url": COMMENTS_URL, "callback": "cm.handleFeed"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/javascript")
        assert response.text.startswith('cm.handleFeed({"items": [{"comment": "Lovely palette"')
        assert response.text.endswith(");")

    def test_callback_wraps_refusal(self, relay_app):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay", params={"request_url": "https://evil.test/", "callback": "cb"})

        assert response.text == "cb([]);"

    @pytest.mark.parametrize("callback", ["alert(1)", "a b", "1abc", "cb;evil", "ns..cb"])
    def test_invalid_callback_is_rejected(self, callback, relay_app, upstream_calls):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay", params={"request_url": THEMES_URL, "callback": callback})

        assert response.status_code == 400
        assert upstream_calls == []

    def test_request_id_is_echoed(self, relay_app):
        client = TestClient(relay_app())

        response = client.get("/api/v1/relay", params={"request_url": THEMES_URL, "requestid": "abc123"})
        refused = client.get("/api/v1/relay", params={"request_url": "nope", "requestid": "def456"})

        assert response.headers["X-Request-ID"] == "abc123"
        assert refused.headers["X-Request-ID"] == "def456"

    def test_upstream_error_status_is_bad_gateway(self, relay_app):
        client = TestClient(relay_app("Service Unavailable", status_code=503))

        response = client.get("/api/v1/relay", params={"request_url": THEMES_URL})

        assert response.status_code == 502
        assert "secret-key" not in response.text

    def test_upstream_transport_error_is_bad_gateway(self, relay_app):
        client = TestClient(relay_app(httpx.ConnectError("connection refused")))

        response = client.get("/api/v1/relay", params={"request_url": THEMES_URL})

        assert response.status_code == 502

    def test_malformed_xml_is_bad_gateway(self, relay_app):
        client = TestClient(relay_app("<rss><channel><item>"))

        response = client.get("/api/v1/relay", params={"request_url": THEMES_URL})

        assert response.status_code == 502
        assert response.json()["detail"].startswith("Invalid XML from upstream")


# ============================================
# RelayService Tests
# ============================================

class TestRelayService:
    """Tests for allow-listing and feed conversion."""

    @pytest.fixture
    def service(self):
        from colormunch.core.config import Settings
        from colormunch.services.relay_service import RelayService

        return RelayService(Settings(kuler_api_key="k 1", allowed_domains=""))

    def test_empty_allow_list_accepts_everyone(self, service):
        assert service.is_referer_allowed(None) is True
        assert service.is_referer_allowed("https://anywhere.test/") is True

    def test_resolve_endpoint(self, service):
        assert service.resolve_endpoint(THEMES_URL) == "https://kuler-api.adobe.com/feeds/rss/get.cfm"
        assert service.resolve_endpoint(COMMENTS_URL) == "https://kuler-api.adobe.com/rss/comments.cfm"
        assert service.resolve_endpoint("https://kuler-api.adobe.com/rss/search.cfm?searchQuery=tag:blue") == (
            "https://kuler-api.adobe.com/rss/search.cfm"
        )
        assert service.resolve_endpoint("https://kuler-api.adobe.com/rss/other.cfm?x=1") is None
        assert service.resolve_endpoint(None) is None

    def test_key_is_encoded(self, service):
        url = httpx.URL(service.build_upstream_url(THEMES_URL))

        assert url.params["key"] == "k 1"
        assert url.params["listType"] == "recent"

    def test_parse_feed_collapses_whitespace(self, service):
        items = service.parse_feed(THEMES_XML, service.settings.themes_api)

        assert items[0].description == (
            '<img src="http://kuler-api.adobe.com/kuler/themeImages/theme_1001.png" /> '
            "Artist: ben<br /> ID: 1001"
        )
        assert items[0].theme_tags == "blue, sky, calm"

    def test_parse_feed_handles_missing_pieces(self, service):
        items = service.parse_feed(THEMES_XML, service.settings.search_api)

        assert items[1].theme_id == "1002"
        assert items[1].theme_rating == 0.0
        assert items[1].theme_download_count == 0
        assert items[1].theme_author.author_label == ""
        assert items[1].theme_swatches.swatch == []

    def test_download_count_spellings(self, service):
        xml = THEMES_XML.replace("themeDownLoadCount", "themeDownloadCount")

        items = service.parse_feed(xml, service.settings.themes_api)

        assert items[0].theme_download_count == 12

    def test_empty_channel(self, service):
        xml = '<rss version="2.0"><channel><title>nothing</title></channel></rss>'

        assert service.parse_feed(xml, service.settings.themes_api) == []

    def test_comments_endpoint_yields_comment_items(self, service):
        from colormunch.schemas.feed import CommentItem

        items = service.parse_feed(COMMENTS_XML, service.settings.comments_api)

        assert items == [CommentItem(comment="Lovely palette", author="sam", posted_at="03/01/2014")]


# ============================================
# Health and end-to-end Tests
# ============================================

class TestHealth:
    def test_health(self, relay_app):
        client = TestClient(relay_app())

        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/api/v1/health").json()["status"] == "healthy"

    def test_root(self, relay_app):
        from colormunch import __version__

        client = TestClient(relay_app())

        assert client.get("/api/v1/").json()["version"] == __version__


class TestClientThroughRelay:
    """ColorMunch talking to the real relay app over an in-process transport."""

    @pytest.mark.asyncio
    async def test_load_themes_end_to_end(self, relay_app, settings, upstream_calls):
        from colormunch.services.client import ColorMunch

        app = relay_app()
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
            client = ColorMunch("http://testserver/api/v1/relay", http_client=http_client, settings=settings)

            detail = await client.load_themes()

        # the second item has no swatches
        assert detail.message == "Themes loaded and ready"
        assert client.theme_count == 1

        theme = client.get_theme_by_index(0)
        assert theme.id == "1001"
        assert theme.author == "ben"
        assert theme.tags == ("blue", "sky", "calm")
        assert theme.rating == 4.0
        assert [s.hex_color for s in theme.swatches] == ["FFFFFF", "336699"]
        assert theme.swatches[1].channels == (0.2, 0.4, 0.6, 0.0)
        assert upstream_calls[0].url.params["key"] == "secret-key"

    @pytest.mark.asyncio
    async def test_swatches_without_index_survive_the_round_trip(self, relay_app, settings):
        from colormunch.services.client import ColorMunch

        xml = THEMES_XML.replace(
            "<kuler:swatchIndex>0</kuler:swatchIndex>", "<kuler:swatchIndex></kuler:swatchIndex>"
        ).replace("<kuler:swatchIndex>1</kuler:swatchIndex>", "")
        app = relay_app(xml)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
            client = ColorMunch("http://testserver/api/v1/relay", http_client=http_client, settings=settings)

            detail = await client.load_themes()

        assert detail.message == "Themes loaded and ready"
        assert client.theme_count == 1
        assert [s.index for s in client.themes[0].swatches] == [0, 1]

    @pytest.mark.asyncio
    async def test_refused_request_fails_after_retries(self, relay_app, settings, upstream_calls):
        from colormunch.services.client import ColorMunch

        app = relay_app(allowed_domains="only.example")
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
            client = ColorMunch("http://testserver/api/v1/relay", http_client=http_client, settings=settings)

            detail = await client.load_themes()

        assert "failed after 5 attempts" in detail.message
        assert client.busy is False
        assert upstream_calls == []
