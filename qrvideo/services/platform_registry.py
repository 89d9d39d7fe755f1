"""
Known platforms - sites with a stable data API that returns the video URL directly,
so the (slow) page rendering can be skipped.
"""
import logging
from dataclasses import dataclass
from typing import Callable

import httpx

from qrvideo.config import config
from qrvideo.services.extraction_result import ExtractionResult, ExtractionStatus
from qrvideo.services.video_patterns import extract_query_param, normalize_url

logger = logging.getLogger(__name__)


class PlatformResponseError(Exception):
    """Platform API answered, but without a usable video field."""


@dataclass(frozen=True)
class PlatformRule:
    """
    One known platform.

    matches: predicate over the page URL
    api_template: API URL with an `{id}` placeholder
    parse_response: reads the video URL from the decoded JSON body,
        raises PlatformResponseError when the payload has none
    failure_status: status reported for any failure of this platform
    """
    name: str
    label: str
    matches: Callable[[str], bool]
    api_template: str
    parse_response: Callable[[dict], str]
    failure_status: ExtractionStatus = ExtractionStatus.FAILED
    id_param: str = "id"

    def build_api_url(self, page_url: str) -> str | None:
        """API URL for this page, or None when the page carries no id."""
        item_id = extract_query_param(page_url, self.id_param)
        if not item_id:
            return None
        return self.api_template.format(id=item_id)


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _text_or_none(value) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_fwmall_response(payload: dict) -> str:
    """
    {"status": 1, "data": {"info": {"video_url_com": "...", "video_url": "..."}}}
    The compressed `video_url_com` is preferred.
    """
    if not isinstance(payload, dict) or _as_int(payload.get("status"), 0) != 1:
        raise PlatformResponseError("fwmall API返回异常")

    info = (payload.get("data") or {}).get("info") or {}
    video_url = _text_or_none(info.get("video_url_com")) or _text_or_none(info.get("video_url"))
    if not video_url:
        raise PlatformResponseError("fwmall API未返回视频字段")
    return video_url


def parse_hucheng_response(payload: dict) -> str:
    """{"code": 1, "data": {"list": [{"video_url": "...", "url": "..."}]}}"""
    if not isinstance(payload, dict) or _as_int(payload.get("code"), -1) != 1:
        msg = payload.get("msg", "") if isinstance(payload, dict) else ""
        raise PlatformResponseError(f"虎城API返回错误: {msg}")

    items = (payload.get("data") or {}).get("list")
    if not isinstance(items, list) or not items:
        raise PlatformResponseError("虎城视频列表为空")

    first = items[0] if isinstance(items[0], dict) else {}
    video_url = _text_or_none(first.get("video_url")) or _text_or_none(first.get("url"))
    if not video_url:
        raise PlatformResponseError("虎城API未返回视频字段")
    return video_url


FWMALL_RULE = PlatformRule(
    name="fwmall",
    label="fwmall",
    # https://v2.fwmall.com.cn/wxmall/default3/#/pages/goodsdetail?store_id=560&id=73886
    matches=lambda url: "fwmall.com.cn" in url and "goodsdetail" in url,
    api_template="https://v2.fwmall.com.cn/api/wxmall/goods/goodsDetail?productId={id}",
    parse_response=parse_fwmall_response,
    failure_status=ExtractionStatus.NEED_DYNAMIC_RENDER,
)

HUCHENG_RULE = PlatformRule(
    name="hucheng",
    label="虎城",
    # https://web.huchengfireworks.com/3qIEca/#/pages/media/index?id=217
    matches=lambda url: "huchengfireworks.com" in url,
    api_template="https://htglhy.huchengfireworks.com/addons/shopro/goods.goods/video_list?id={id}",
    parse_response=parse_hucheng_response,
    failure_status=ExtractionStatus.FAILED,
)


class PlatformRegistry:
    """Ordered registry of known platforms."""

    def __init__(self, rules: list[PlatformRule] | None = None, timeout: float | None = None):
        self._rules = list(rules) if rules is not None else [FWMALL_RULE, HUCHENG_RULE]
        self.timeout = timeout if timeout is not None else config.http.timeout

    @property
    def rules(self) -> list[PlatformRule]:
        return list(self._rules)

    def register(self, rule: PlatformRule) -> None:
        """Add a platform rule; rules are checked in registration order."""
        self._rules.append(rule)

    def find(self, page_url: str) -> tuple[PlatformRule, str] | None:
        """First rule claiming this page, with its API URL. None means 'not a known platform'."""
        for rule in self._rules:
            if not rule.matches(page_url):
                continue
            api_url = rule.build_api_url(page_url)
            if api_url:
                return rule, api_url
        return None

    async def extract(self, page_url: str) -> ExtractionResult | None:
        """
        Fetch the video URL through a known platform API.

        Returns:
            ExtractionResult for a claimed page, None if no rule claims it
        """
        found = self.find(page_url)
        if found is None:
            return None

        rule, api_url = found
        return await self._fetch(rule, api_url, page_url)

    async def _fetch(self, rule: PlatformRule, api_url: str, page_url: str) -> ExtractionResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    api_url,
                    headers={"User-Agent": config.http.user_agent},
                    follow_redirects=True
                )

            if not 200 <= response.status_code < 300:
                return ExtractionResult.failure(
                    rule.failure_status,
                    f"{rule.label} API请求失败: HTTP {response.status_code}",
                    target_url=page_url,
                )

            video_url = rule.parse_response(response.json())
            logger.info(f"{rule.name} API returned video for {page_url}")
            return ExtractionResult.success(
                video_url=normalize_url(video_url, page_url),
                target_url=page_url,
                message=f"{rule.label} API提取成功",
            )

        except PlatformResponseError as e:
            logger.info(f"{rule.name} API gave no video for {page_url}: {e}")
            return ExtractionResult.failure(rule.failure_status, str(e), target_url=page_url)
        except Exception as e:
            logger.warning(f"{rule.name} API extraction failed: api_url={api_url}, target_url={page_url}: {e}")
            return ExtractionResult.failure(
                rule.failure_status,
                f"{rule.label} API提取失败",
                target_url=page_url,
            )


default_registry = PlatformRegistry()
