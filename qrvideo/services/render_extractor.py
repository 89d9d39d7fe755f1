"""
Render Extractor - finds a video on a page that only assembles itself with JavaScript.
Sniffed network traffic first, rendered DOM second, then client-side redirects.
"""
import asyncio
import logging

import httpx

from qrvideo.config import config
from qrvideo.services.extraction_result import ExtractionResult, ExtractionStatus
from qrvideo.services.page_renderer import (
    PageRenderer,
    PlaywrightRenderer,
    RenderedPage,
    sniff_video_url,
)
from qrvideo.services.url_safety import is_url_safe
from qrvideo.services.video_patterns import (
    extract_follow_up_urls,
    find_video_url,
    looks_like_spa_shell,
)

logger = logging.getLogger(__name__)


class RenderExtractor:
    """Extracts a video URL by rendering the page in a headless browser."""

    def __init__(
        self,
        renderer: PageRenderer | None = None,
        max_follow_up_pages: int | None = None,
        validate_video_urls: bool | None = None,
        probe_timeout: float | None = None
    ):
        self.renderer = renderer or PlaywrightRenderer()
        self.max_follow_up_pages = (
            config.render.max_follow_up_pages if max_follow_up_pages is None else max_follow_up_pages
        )
        self.validate_video_urls = (
            config.render.validate_video_urls if validate_video_urls is None else validate_video_urls
        )
        self.probe_timeout = probe_timeout or config.http.probe_timeout

    async def extract(self, page_url: str) -> ExtractionResult:
        """
        Render a page and look for a video URL.

        Args:
            page_url: Absolute page URL

        Returns:
            SUCCESS with the video URL, FAILED for an HTTP error page,
            NEED_DYNAMIC_RENDER when rendering found nothing or crashed
        """
        try:
            page = await self.renderer.render(page_url)
        except Exception as e:
            logger.warning(f"Render failed for {page_url}: {e}")
            return ExtractionResult.failure(
                ExtractionStatus.NEED_DYNAMIC_RENDER,
                "页面渲染访问异常",
                target_url=page_url,
            )

        if not page.is_ok:
            return ExtractionResult.failure(
                ExtractionStatus.FAILED,
                f"页面访问失败: HTTP {page.status}",
                target_url=page_url,
            )

        video_url = await self.find_video(page)
        if video_url:
            return ExtractionResult.success(
                video_url=video_url,
                target_url=page.final_url,
                message="页面渲染提取成功",
            )

        last_page = page
        follow_ups = extract_follow_up_urls(page.html, page.final_url)
        follow_ups = [url for url in follow_ups if await self._is_safe(url)]
        for next_url in follow_ups[:self.max_follow_up_pages]:
            try:
                next_page = await self.renderer.render(next_url)
            except Exception as e:
                logger.debug(f"Follow-up page failed: {next_url}: {e}")
                continue
            if not next_page.is_ok:
                logger.debug(f"Follow-up page returned HTTP {next_page.status}: {next_url}")
                continue

            last_page = next_page
            next_video = await self.find_video(next_page)
            if next_video:
                return ExtractionResult.success(
                    video_url=next_video,
                    target_url=next_page.final_url,
                    message="跟随页面提取成功",
                )

        message = "渲染后仍未找到视频URL"
        if looks_like_spa_shell(last_page.html):
            message += "（页面疑似未完成渲染）"
        logger.info(f"No video found after rendering {page_url} (last page {last_page.final_url})")
        return ExtractionResult.failure(
            ExtractionStatus.NEED_DYNAMIC_RENDER,
            message,
            target_url=last_page.final_url,
        )

    async def find_video(self, page: RenderedPage) -> str | None:
        """Sniffed traffic wins; the rendered document is the fallback."""
        sniffed = sniff_video_url(page.exchanges)
        if sniffed:
            return sniffed

        video_url = find_video_url(page.html, page.final_url)
        if video_url and self.validate_video_urls:
            if not await self.soft_validate(video_url):
                # Probe failures never reject a candidate
                logger.info(f"Video URL HEAD check was negative, keeping it anyway: {video_url}")
        return video_url

    async def soft_validate(self, video_url: str) -> bool:
        """
        HEAD-check a video URL.

        Returns:
            False only for a definite 4xx/5xx answer; True when reachable or inconclusive
        """
        if not await self._is_safe(video_url):
            return True

        try:
            async with httpx.AsyncClient(timeout=self.probe_timeout) as client:
                response = await client.head(
                    video_url,
                    headers={"User-Agent": config.http.user_agent},
                    follow_redirects=True
                )
            return 200 <= response.status_code < 400
        except Exception as e:
            # Many origins reject HEAD requests
            logger.debug(f"Video URL HEAD check inconclusive for {video_url}: {e}")
            return True

    @staticmethod
    async def _is_safe(url: str) -> bool:
        is_safe, error = await asyncio.to_thread(is_url_safe, url)
        if not is_safe:
            logger.warning(f"Skipping internal URL {url}: {error}")
        return is_safe
