"""
Video Extractor - resolves a playable video URL from a photo of a QR code.

Per decoded URL, strategies run in order and the first success wins:
1. Direct link: the QR code itself is an .mp4/.m3u8 URL
2. Known platform API (SPA sites with a stable data endpoint)
3. Headless rendering with network sniffing and follow-up pages
Failures never raise: every path ends in an ExtractionResult.
"""
import asyncio
import logging

import httpx

from qrvideo.config import config, MAX_IMAGE_SIZE
from qrvideo.services.candidate_selector import is_weixin_url, select_candidate_urls
from qrvideo.services.extraction_result import (
    ExtractionResult,
    ExtractionStatus,
    rank_results,
)
from qrvideo.services.platform_registry import PlatformRegistry, default_registry
from qrvideo.services.qr_decoder import QRDecoder
from qrvideo.services.render_extractor import RenderExtractor
from qrvideo.services.url_safety import is_url_safe
from qrvideo.services.video_patterns import is_direct_video_url

logger = logging.getLogger(__name__)


class VideoExtractor:
    """Extracts video URLs from QR code images."""

    def __init__(
        self,
        decoder: QRDecoder | None = None,
        registry: PlatformRegistry | None = None,
        render_extractor: RenderExtractor | None = None,
        image_timeout: float | None = None
    ):
        self.decoder = decoder or QRDecoder()
        self.registry = registry or default_registry
        self.render_extractor = render_extractor or RenderExtractor()
        self.image_timeout = image_timeout or config.http.image_timeout

    async def extract(self, source_image_url: str | None) -> ExtractionResult:
        """
        Extract a video URL from a QR code image.

        Args:
            source_image_url: HTTP(S) URL of an image with one or more QR codes

        Returns:
            ExtractionResult; never raises
        """
        if not source_image_url or not source_image_url.strip():
            return ExtractionResult.skipped()

        try:
            return await self._extract(source_image_url.strip())
        except Exception as e:
            logger.error(f"Video extraction error for {source_image_url}: {e}", exc_info=True)
            return ExtractionResult.failure(ExtractionStatus.FAILED, "视频提取异常")

    async def _extract(self, source_image_url: str) -> ExtractionResult:
        payloads = await self.decode_image(source_image_url)
        if not payloads:
            return ExtractionResult.failure(ExtractionStatus.FAILED, "未识别到二维码")

        candidates = select_candidate_urls(payloads)
        if not candidates:
            return ExtractionResult.failure(ExtractionStatus.UNSUPPORTED, "二维码内容不是可访问的URL")

        logger.info(f"Trying {len(candidates)} candidate URL(s) from {source_image_url}")

        results = []
        for url in candidates:
            attempt = await self.extract_from_page_url(url)
            if attempt.is_success:
                logger.info(f"Video found for {url}: {attempt.video_url}")
                return attempt
            results.append(attempt)

        result = rank_results(results, fallback_target_url=candidates[0])

        # Только ссылки WeChat: это код подписки, а не страница товара
        if (result.status is ExtractionStatus.NEED_DYNAMIC_RENDER
                and all(is_weixin_url(url) for url in candidates)):
            return ExtractionResult.failure(
                ExtractionStatus.FAILED,
                "二维码为微信链接，未找到视频",
                target_url=result.target_url,
            )
        return result

    async def decode_image(self, image_url: str) -> list[str]:
        """Download an image and decode its QR codes. Empty list on any failure."""
        image_bytes = await self.download_image(image_url)
        if not image_bytes:
            return []
        return await asyncio.to_thread(self.decoder.decode, image_bytes)

    async def download_image(self, image_url: str) -> bytes | None:
        """Stream the image, giving up as soon as it exceeds MAX_IMAGE_SIZE."""
        try:
            async with httpx.AsyncClient(timeout=self.image_timeout) as client:
                async with client.stream(
                    "GET",
                    image_url,
                    headers={"User-Agent": config.http.user_agent},
                    follow_redirects=True
                ) as response:
                    if response.status_code != 200:
                        logger.warning(f"QR image download failed: {image_url}: HTTP {response.status_code}")
                        return None

                    declared = response.headers.get("content-length")
                    if declared and declared.isdigit() and int(declared) > MAX_IMAGE_SIZE:
                        logger.warning(f"QR image too large ({declared} bytes): {image_url}")
                        return None

                    chunks = []
                    size = 0
                    async for chunk in response.aiter_bytes():
                        size += len(chunk)
                        if size > MAX_IMAGE_SIZE:
                            logger.warning(f"QR image too large (>{MAX_IMAGE_SIZE} bytes): {image_url}")
                            return None
                        chunks.append(chunk)
        except httpx.HTTPError as e:
            logger.warning(f"QR image download failed: {image_url}: {e}")
            return None

        content = b"".join(chunks)
        if not content:
            logger.warning(f"QR image is empty: {image_url}")
            return None
        return content

    async def extract_from_page_url(self, page_url: str | None) -> ExtractionResult:
        """Run the strategy pipeline for one candidate URL."""
        if not page_url or not page_url.strip():
            return ExtractionResult.failure(ExtractionStatus.FAILED, "目标网址为空")

        url = page_url.strip()
        try:
            is_safe, error = await asyncio.to_thread(is_url_safe, url)
            if not is_safe:
                logger.warning(f"Blocked candidate URL {url}: {error}")
                return ExtractionResult.failure(ExtractionStatus.UNSUPPORTED, error, target_url=url)

            if is_direct_video_url(url):
                return ExtractionResult.success(
                    video_url=url,
                    target_url=url,
                    message="二维码为视频直链",
                )

            known = await self.registry.extract(url)
            if known is not None:
                return known

            return await self.render_extractor.extract(url)

        except Exception as e:
            logger.error(f"Extraction from {url} failed: {e}", exc_info=True)
            return ExtractionResult.failure(ExtractionStatus.FAILED, "提取异常", target_url=url)


async def extract(source_image_url: str | None) -> ExtractionResult:
    """Extract a video URL from a QR image with the default pipeline."""
    return await VideoExtractor().extract(source_image_url)
