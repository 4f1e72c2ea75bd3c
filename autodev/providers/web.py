"""Web tool provider: page fetching and asset downloads."""

import asyncio
import logging
from pathlib import Path
from typing import Any

import httpx
from bs4 import BeautifulSoup

from autodev.providers.base import StdioToolServer, ToolHandler

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0

# Elements whose text is never page content
NOISE_TAGS = ("script", "style", "noscript", "template")


def extract_text(html: str, selector: str | None = None) -> str:
    """Extract readable text from HTML, optionally limited to a CSS selector."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in NOISE_TAGS:
        for element in soup.find_all(tag):
            element.decompose()

    if selector:
        return "\n".join(
            element.get_text(" ", strip=True) for element in soup.select(selector)
        )
    return soup.get_text("\n", strip=True)


class _HttpTool(ToolHandler):
    """Tool issuing HTTP requests through a shared client configuration."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(REQUEST_TIMEOUT),
            follow_redirects=True,
            transport=self._transport,
        )


class FetchPageTool(_HttpTool):
    name = "fetch_page"
    description = "Fetch and parse a web page"
    parameters = {
        "url": {"type": "string", "description": "URL to fetch"},
        "selector": {"type": "string", "description": "CSS selector to extract specific content"},
    }
    required = ("url",)

    async def handle(self, arguments: dict[str, Any]) -> str:
        url = arguments["url"]
        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()
        logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
        return extract_text(response.text, arguments.get("selector"))


class DownloadAssetTool(_HttpTool):
    name = "download_asset"
    description = "Download an asset (image, file) from a URL"
    parameters = {
        "url": {"type": "string", "description": "Asset URL"},
        "savePath": {"type": "string", "description": "Local path to save the asset"},
    }
    required = ("url", "savePath")

    async def handle(self, arguments: dict[str, Any]) -> str:
        url = arguments["url"]
        save_path = Path(arguments["savePath"])
        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()

        def _save() -> None:
            save_path.parent.mkdir(parents=True, exist_ok=True)
            save_path.write_bytes(response.content)

        await asyncio.to_thread(_save)
        return f"Asset downloaded to: {arguments['savePath']}"


def create_server(transport: httpx.AsyncBaseTransport | None = None) -> StdioToolServer:
    server = StdioToolServer("web-server")
    server.register(FetchPageTool(transport))
    server.register(DownloadAssetTool(transport))
    return server


def main() -> None:
    create_server().run()


if __name__ == "__main__":
    main()
