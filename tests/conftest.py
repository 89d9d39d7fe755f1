# tests/conftest.py
"""Shared fixtures for all tests."""
import io
import socket
from unittest.mock import MagicMock

import pytest

from qrvideo.services.page_renderer import PageRenderer, RenderedPage, SniffedExchange


# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)


class FakeRenderer(PageRenderer):
    """Renderer returning canned pages; raises for URLs it does not know."""

    def __init__(self, pages: dict[str, RenderedPage] | None = None):
        self.pages = pages or {}
        self.calls: list[str] = []

    async def render(self, url: str) -> RenderedPage:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        if isinstance(page, Exception):
            raise page
        return page


def make_page(
    url: str,
    html: str = "<html><body></body></html>",
    exchanges: list[SniffedExchange] | None = None,
    final_url: str | None = None,
    status: int | None = 200
) -> RenderedPage:
    """Helper to build a rendered page."""
    return RenderedPage(
        url=url,
        final_url=final_url or url,
        status=status,
        html=html,
        exchanges=exchanges or [],
    )


def make_response(status_code: int = 200, json_data=None, content: bytes = b"", text: str = ""):
    """Helper to create a mock httpx response."""
    response = MagicMock()
    response.status_code = status_code
    response.content = content
    response.text = text
    if isinstance(json_data, Exception):
        response.json = MagicMock(side_effect=json_data)
    else:
        response.json = MagicMock(return_value=json_data)
    return response


def make_stream_response(status_code: int = 200, chunks: list[bytes] | None = None, headers: dict | None = None):
    """Helper to create a mock for `async with client.stream(...) as response`."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}

    async def aiter_bytes():
        for chunk in chunks or []:
            yield chunk

    response.aiter_bytes = aiter_bytes

    stream = MagicMock()
    stream.__aenter__.return_value = response
    stream.__aexit__.return_value = False
    return stream


def fake_getaddrinfo(*addresses: str):
    """getaddrinfo replacement resolving every host to the given addresses."""
    def getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0)) for address in addresses]
    return getaddrinfo


def make_qr_png(data: str, box_size: int = 10, border: int = 4) -> bytes:
    """Render a real QR code to PNG bytes."""
    import qrcode

    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    image = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def public_dns(monkeypatch):
    """Resolve every hostname to a public address; tests never hit real DNS."""
    monkeypatch.setattr("qrvideo.services.url_safety.socket.getaddrinfo", fake_getaddrinfo("93.184.216.34"))


@pytest.fixture
def fake_renderer():
    """Empty fake renderer; tests fill `pages`."""
    return FakeRenderer()


@pytest.fixture
def qr_png():
    """PNG with a single QR code pointing at a product page."""
    return make_qr_png("https://shop.example.com/product?id=42")
