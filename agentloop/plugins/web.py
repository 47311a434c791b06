"""
Web plugin - fetch a page and return its readable text.

Uses trafilatura for article extraction, with httpx for async fetching.
Registered under the on-demand ``web`` category: the model has to call
``activate_tools(categories=["web"])`` before ``web_fetch`` becomes visible.

Usage:
    registry.register_plugin(create_web_plugin().loaded())
"""

import logging
import re
from typing import Annotated, Optional, Tuple

import httpx
import trafilatura

from ..tools.decorator import tool
from ..tools.models import ToolFailure
from ..tools.plugin import FunctionPlugin

logger = logging.getLogger(__name__)

WEB_CATEGORY = "web"
WEB_PLUGIN_ID = "web"

_USER_AGENT = "Mozilla/5.0 (compatible; agentloop/0.1)"

_BLOCKED_PATTERNS = re.compile(
    r"^https?://"
    r"(localhost|127\.|10\.|172\.(1[6-9]|2\d|3[01])\.|192\.168\.|0\.0\.0\.0|\[::1?\])",
    re.IGNORECASE,
)


def is_safe_url(url: str) -> bool:
    """False for loopback and private network hosts."""
    return not _BLOCKED_PATTERNS.match(url)


def extract_text(markup: str, url: Optional[str] = None) -> Tuple[str, str]:
    """Return (title, text) extracted from an HTML document; either may be empty."""
    text = trafilatura.extract(
        markup,
        url=url,
        include_tables=True,
        output_format="txt",
        favor_recall=True,
    )
    metadata = trafilatura.extract_metadata(markup, default_url=url)
    title = metadata.title if metadata is not None and metadata.title else ""
    return title, (text or "").strip()


class WebFetcher:
    """Thin httpx wrapper; *transport* lets tests plug in httpx.MockTransport."""

    def __init__(self, timeout: float = 20.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, url: str) -> Optional[str]:
        """Fetch *url*; None when an HTML page has no extractable text."""
        async with httpx.AsyncClient(
            transport=self.transport,
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if "html" not in content_type:
            return response.text
        title, text = extract_text(response.text, url)
        if not text:
            return None
        return f"Title: {title}\n\n{text}" if title else text


def create_web_plugin(fetcher: Optional[WebFetcher] = None) -> FunctionPlugin:
    fetcher = fetcher or WebFetcher()

    @tool(category=WEB_CATEGORY, timeout_seconds=45)
    async def web_fetch(url: Annotated[str, "The URL to fetch"]):
        """Fetch a web page and extract its text content."""
        if not url.startswith(("http://", "https://")):
            return ToolFailure(f"Unsupported URL scheme: {url}")
        if not is_safe_url(url):
            return ToolFailure("Cannot fetch internal or private network URLs")
        try:
            content = await fetcher.fetch(url)
        except httpx.HTTPStatusError as e:
            logger.warning(f"[Tool] web_fetch HTTP {e.response.status_code} for {url}")
            return ToolFailure(f"HTTP {e.response.status_code} fetching {url}", e)
        except httpx.HTTPError as e:
            logger.warning(f"[Tool] web_fetch failed for {url}: {e}")
            return ToolFailure(f"Failed to fetch {url}: {e}", e)
        if content is None:
            return ToolFailure(
                f"Fetched {url} but could not extract meaningful content. "
                "The page may require JavaScript or be behind a login."
            )
        return content

    return FunctionPlugin(
        WEB_PLUGIN_ID,
        "Web Fetch",
        "Fetch web page content",
        tools=[web_fetch],
        category=WEB_CATEGORY,
    )
