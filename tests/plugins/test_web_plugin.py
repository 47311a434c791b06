"""Tests for agentloop.plugins.web"""

import httpx
import pytest

from agentloop.plugins.web import WEB_CATEGORY, WebFetcher, create_web_plugin, extract_text, is_safe_url
from agentloop.tools.models import ToolFailure


ARTICLE = (
    "The harbour reopened on Monday after three weeks of repairs to the northern sea wall. "
    "Fishing crews returned at dawn, and the harbour master said traffic should be back to "
    "normal levels by the end of the month. Engineers will keep monitoring the wall through "
    "the winter storm season and publish a report on the repairs in the spring."
)

PAGE = f"""
<html>
  <head><title>Harbour News</title><style>body {{ color: red }}</style></head>
  <body>
    <script>var tracking = 1;</script>
    <article>
      <p>{ARTICLE}</p>
      <p>{ARTICLE}</p>
    </article>
  </body>
</html>
"""


def _plugin(handler):
    return create_web_plugin(WebFetcher(transport=httpx.MockTransport(handler)))


class TestExtractText:

    def test_title_and_text(self):
        title, text = extract_text(PAGE)

        assert title == "Harbour News"
        assert "The harbour reopened on Monday" in text
        assert "tracking" not in text
        assert "color" not in text

    def test_empty_document(self):
        _, text = extract_text("<html><body></body></html>")
        assert text == ""

    def test_private_hosts_blocked(self):
        assert not is_safe_url("http://localhost:8080/admin")
        assert not is_safe_url("http://192.168.1.1/")
        assert is_safe_url("https://example.com/")


class TestWebFetch:

    @pytest.mark.asyncio
    async def test_html_page(self):
        plugin = _plugin(lambda request: httpx.Response(
            200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"},
        ))

        result = await plugin.execute("web_fetch", {"url": "https://example.com", "_conversation_id": "c1"})

        assert result.is_success
        assert result.output.startswith("Title: Harbour News\n\n")
        assert "northern sea wall" in result.output

    @pytest.mark.asyncio
    async def test_nothing_extractable(self):
        plugin = _plugin(lambda request: httpx.Response(
            200, text="<html><body></body></html>", headers={"content-type": "text/html"},
        ))

        result = await plugin.execute("web_fetch", {"url": "https://example.com/app"})

        assert isinstance(result, ToolFailure)
        assert "could not extract meaningful content" in result.error

    @pytest.mark.asyncio
    async def test_private_url_rejected(self):
        result = await _plugin(lambda request: httpx.Response(200)).execute(
            "web_fetch", {"url": "http://127.0.0.1:9000/"},
        )
        assert result.error == "Cannot fetch internal or private network URLs"

    @pytest.mark.asyncio
    async def test_non_html_returned_verbatim(self):
        plugin = _plugin(lambda request: httpx.Response(
            200, text='{"ok": true}', headers={"content-type": "application/json"},
        ))

        result = await plugin.execute("web_fetch", {"url": "https://api.example.com/x"})

        assert result.output == '{"ok": true}'

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        plugin = _plugin(lambda request: httpx.Response(404, text="missing"))

        result = await plugin.execute("web_fetch", {"url": "https://example.com/missing"})

        assert isinstance(result, ToolFailure)
        assert result.error == "HTTP 404 fetching https://example.com/missing"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await _plugin(handler).execute("web_fetch", {"url": "https://down.example.com"})

        assert isinstance(result, ToolFailure)
        assert result.error.startswith("Failed to fetch https://down.example.com")

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self):
        result = await _plugin(lambda request: httpx.Response(200)).execute(
            "web_fetch", {"url": "file:///etc/passwd"},
        )
        assert result.error == "Unsupported URL scheme: file:///etc/passwd"

    def test_registered_on_demand(self, registry):
        registry.register_plugin(create_web_plugin().loaded())

        tool = registry.get_tool("web_fetch")
        assert tool.category == WEB_CATEGORY
        assert tool.definition.timeout_seconds == 45
        assert registry.get_tool_definitions(set()) == []
        assert tool.definition.parameters["required"] == ["url"]
