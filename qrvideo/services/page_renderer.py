"""
Page Renderer - loads a page in a headless browser, lets its JavaScript run
and records every network exchange it makes (network sniffing).
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from qrvideo.config import config
from qrvideo.services.url_safety import is_host_blocked
from qrvideo.services.video_patterns import find_video_url, is_direct_video_url

logger = logging.getLogger(__name__)

TEXTUAL_CONTENT_TYPES = ("json", "text", "javascript", "xml", "html")
SKIPPED_RESOURCE_TYPES = {"stylesheet", "font"}


def is_textual_content_type(content_type: str | None) -> bool:
    """Unknown content type counts as textual."""
    if not content_type:
        return True
    lower = content_type.lower()
    return any(kind in lower for kind in TEXTUAL_CONTENT_TYPES)


@dataclass(frozen=True)
class SniffedExchange:
    """One request/response observed while the page was running."""
    url: str
    content_type: str | None = None
    body: str | None = None  # Только для текстовых ответов


@dataclass
class RenderedPage:
    """What the renderer saw for one page load."""
    url: str
    final_url: str
    status: int | None
    html: str
    exchanges: list[SniffedExchange] = field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        # No main response (e.g. about:blank, served from cache) is not an HTTP failure
        return self.status is None or 200 <= self.status < 300


def sniff_exchange(exchange: SniffedExchange) -> str | None:
    """Video URL revealed by a single exchange: the request URL itself, or a link in a textual body."""
    if is_direct_video_url(exchange.url):
        return exchange.url

    if exchange.body is None or not is_textual_content_type(exchange.content_type):
        return None

    return find_video_url(exchange.body, exchange.url)


def sniff_video_url(exchanges: list[SniffedExchange]) -> str | None:
    """
    Replay exchanges in arrival order and return the best-known video URL.
    A later signal replaces an earlier one.
    """
    best = None
    for exchange in exchanges:
        found = sniff_exchange(exchange)
        if found:
            logger.debug(f"Sniffed video URL {found} from {exchange.url}")
            best = found
    return best


class PageRenderer(ABC):
    """Narrow rendering interface: one call per page load, resources released on return."""

    @abstractmethod
    async def render(self, url: str) -> RenderedPage:
        """
        Load and render a page.

        Raises:
            Exception: on navigation failure (timeouts, DNS, browser crash)
        """
        pass


class PlaywrightRenderer(PageRenderer):
    """Headless Chromium renderer built on Playwright."""

    def __init__(
        self,
        headless: bool | None = None,
        page_timeout_ms: int | None = None,
        js_wait_ms: int | None = None,
        background_js_wait_ms: int | None = None,
        body_timeout_ms: int | None = None,
        user_agent: str | None = None
    ):
        render_config = config.render
        self.headless = render_config.headless if headless is None else headless
        self.page_timeout_ms = page_timeout_ms or render_config.page_timeout_ms
        self.js_wait_ms = js_wait_ms or render_config.js_wait_ms
        self.background_js_wait_ms = background_js_wait_ms or render_config.background_js_wait_ms
        self.body_timeout_ms = body_timeout_ms or render_config.body_timeout_ms
        self.user_agent = user_agent or config.http.user_agent

    async def render(self, url: str) -> RenderedPage:
        pending: list[asyncio.Future] = []

        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=self.headless)
            try:
                context = await browser.new_context(
                    user_agent=self.user_agent,
                    java_script_enabled=True,
                )
                context.set_default_timeout(self.page_timeout_ms)
                await context.route("**/*", self._route_request)

                page = await context.new_page()
                page.on("pageerror", lambda error: logger.debug(f"Script error on {url}: {error}"))
                page.on("response", lambda response: pending.append(
                    asyncio.ensure_future(self._capture_response(response))
                ))
                page.on("requestfailed", lambda request: pending.append(
                    asyncio.ensure_future(self._capture_failed_request(request))
                ))

                response = await page.goto(url, wait_until="load", timeout=self.page_timeout_ms)
                await self._wait_for_scripts(page)

                exchanges = await self._collect_exchanges(pending)
                html = await page.content()

                logger.debug(f"Rendered {url} -> {page.url}, {len(exchanges)} exchanges")
                return RenderedPage(
                    url=url,
                    final_url=page.url or url,
                    status=response.status if response is not None else None,
                    html=html,
                    exchanges=exchanges,
                )
            finally:
                for task in pending:
                    if not task.done():
                        task.cancel()
                await browser.close()

    async def _wait_for_scripts(self, page) -> None:
        """Two bounded waits: scripts around load, then timers and background requests."""
        try:
            await page.wait_for_load_state("networkidle", timeout=self.js_wait_ms)
        except PlaywrightTimeoutError:
            logger.debug(f"Network did not go idle within {self.js_wait_ms}ms on {page.url}")
        await page.wait_for_timeout(self.background_js_wait_ms)

    async def _collect_exchanges(self, pending: list[asyncio.Future]) -> list[SniffedExchange]:
        """Exchanges whose body arrived within body_timeout_ms, in arrival order."""
        tasks = list(pending)
        if not tasks:
            return []

        done, not_done = await asyncio.wait(tasks, timeout=self.body_timeout_ms / 1000)
        if not_done:
            # Streaming responses (event-stream, long polling) never finish
            logger.debug(f"Dropped {len(not_done)} responses still loading after {self.body_timeout_ms}ms")

        exchanges = []
        for task in tasks:
            if task not in done or task.cancelled():
                continue
            if task.exception() is not None:
                logger.debug(f"Response capture failed: {task.exception()}")
                continue
            exchanges.append(task.result())
        return exchanges

    @staticmethod
    async def _route_request(route) -> None:
        request = route.request
        parsed = urlparse(request.url)
        if request.resource_type in SKIPPED_RESOURCE_TYPES:
            await route.abort()
        elif parsed.scheme in ("http", "https") and is_host_blocked(parsed.hostname):
            logger.warning(f"Blocked page request to internal host: {request.url}")
            await route.abort()
        else:
            await route.continue_()

    @staticmethod
    async def _capture_response(response) -> SniffedExchange:
        content_type = response.headers.get("content-type")
        body = None
        if is_textual_content_type(content_type) and not is_direct_video_url(response.url):
            try:
                body = await response.text()
            except PlaywrightError as e:
                # Redirects and aborted requests have no body
                logger.debug(f"No body for {response.url}: {e}")
        return SniffedExchange(url=response.url, content_type=content_type, body=body)

    @staticmethod
    async def _capture_failed_request(request) -> SniffedExchange:
        return SniffedExchange(url=request.url)
