"""
Video URL patterns - finds video links in HTML, JSON and JS text
and normalizes them into absolute URLs.
"""
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

# Object whose `video` field carries the link on the pages we know about
KNOWN_DATA_IDENTIFIER = "DATA"

_VIDEO_TAIL = r"\.(?:mp4|m3u8)(?:\?[^\"']*)?"

DIRECT_VIDEO_URL_PATTERN = re.compile(
    r"^https?://\S+\.(?:mp4|m3u8)(?:\?\S*)?$", re.IGNORECASE
)

JS_LOCATION_ASSIGN_PATTERN = re.compile(
    r"window\.location(?:\.href)?\s*=\s*['\"]([^'\"]+)['\"]", re.IGNORECASE
)

META_REFRESH_URL_PATTERN = re.compile(r"url\s*=\s*['\"]?([^'\";]+)", re.IGNORECASE)

# Ordered by priority, first match wins
VIDEO_URL_PATTERNS = [
    # DATA.video = "..."
    re.compile(
        rf"\b{KNOWN_DATA_IDENTIFIER}\b\s*\.\s*video\s*[:=]\s*[\"']([^\"']+{_VIDEO_TAIL})[\"']",
        re.IGNORECASE
    ),
    # var DATA = {... "video": "..."}
    re.compile(
        rf"(?:var\s+)?\b{KNOWN_DATA_IDENTIFIER}\b\s*=\s*\{{[\s\S]*?[\"']video[\"']\s*[:=]\s*"
        rf"[\"']([^\"']+{_VIDEO_TAIL})[\"']",
        re.IGNORECASE
    ),
    # "video": "..." anywhere
    re.compile(rf"[\"']video[\"']\s*[:=]\s*[\"']([^\"']+{_VIDEO_TAIL})[\"']", re.IGNORECASE),
    re.compile(rf"<source[^>]*src=[\"']([^\"']+{_VIDEO_TAIL})[\"'][^>]*>", re.IGNORECASE),
    re.compile(rf"<video[^>]*src=[\"']([^\"']+{_VIDEO_TAIL})[\"'][^>]*>", re.IGNORECASE),
    re.compile(r"(https?://[^\s\"'<>]+\.(?:mp4|m3u8)(?:\?[^\s\"'<>]*)?)", re.IGNORECASE),
    re.compile(r"(//[^\s\"'<>]+\.(?:mp4|m3u8)(?:\?[^\s\"'<>]*)?)", re.IGNORECASE),
]

_UNESCAPES = [
    ("\\/", "/"),
    ("\\u002f", "/"),
    ("\\u002F", "/"),
    ("\\u0026", "&"),
    ("\\u003d", "="),
    ("\\u003D", "="),
    ("\\u003f", "?"),
    ("\\u003F", "?"),
    ("\\u0025", "%"),
    ("&amp;", "&"),
]


def is_direct_video_url(url: str | None) -> bool:
    """Check if the URL itself points at an .mp4/.m3u8 file."""
    return bool(url) and DIRECT_VIDEO_URL_PATTERN.match(url.strip()) is not None


def unescape_url_candidate(candidate: str | None) -> str | None:
    """Undo JSON escapes (\\/, \\u002f, ...) and HTML entities (&amp;) in a matched URL."""
    if not candidate:
        return candidate

    url = candidate.strip()
    for escaped, plain in _UNESCAPES:
        url = url.replace(escaped, plain)
    return url


def normalize_url(candidate: str | None, base_url: str | None) -> str | None:
    """
    Make a candidate URL absolute.

    Protocol-relative URLs get the base page scheme (https if unknown),
    relative paths are resolved against the base page.
    """
    if not candidate or not candidate.strip():
        return None
    url = candidate.strip()

    if url.startswith("//"):
        scheme = "https"
        if base_url:
            scheme = urlparse(base_url).scheme or scheme
        return f"{scheme}:{url}"

    if url.startswith(("http://", "https://")):
        return url

    if not base_url:
        return url

    try:
        return urljoin(base_url, url)
    except ValueError:
        return url


def extract_query_param(url: str | None, key: str) -> str | None:
    """
    Read a query parameter from a URL.
    Also works for hash routes such as `#/pages/goodsdetail?store_id=1&id=2`.
    """
    if not url or not key:
        return None
    pattern = re.compile(rf"(^|[?&]){re.escape(key)}=([^&#]+)", re.IGNORECASE)
    match = pattern.search(url)
    return match.group(2) if match else None


def find_video_url(text: str | None, base_url: str | None = None) -> str | None:
    """Return the first video URL found by the ordered pattern list, normalized against base_url."""
    if not text:
        return None

    for pattern in VIDEO_URL_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        normalized = normalize_url(unescape_url_candidate(match.group(1)), base_url)
        if normalized:
            return normalized

    return None


def extract_follow_up_urls(html: str | None, base_url: str | None) -> list[str]:
    """
    Find client-side redirect targets in a rendered document:
    `window.location[.href] = "..."` assignments and `<meta http-equiv="refresh">`.
    """
    if not html:
        return []

    raw = [m.group(1) for m in JS_LOCATION_ASSIGN_PATTERN.finditer(html)]

    soup = BeautifulSoup(html, "html.parser")
    for meta in soup.find_all("meta", attrs={"http-equiv": re.compile(r"^refresh$", re.IGNORECASE)}):
        match = META_REFRESH_URL_PATTERN.search(meta.get("content") or "")
        if match:
            raw.append(match.group(1))

    urls = []
    for candidate in raw:
        normalized = normalize_url(candidate, base_url)
        if not normalized or not normalized.startswith(("http://", "https://")):
            continue
        if normalized != base_url and normalized not in urls:
            urls.append(normalized)
    return urls


def looks_like_spa_shell(html: str | None) -> bool:
    """An app container, several scripts and no video hints: the page was never assembled."""
    if not html:
        return False
    lower = html.lower()

    has_app_root = any(
        marker in lower for marker in ('id=app', 'id="app"', 'id=root', 'id="root"')
    )
    if not has_app_root:
        return False

    has_video_hints = any(hint in lower for hint in (".mp4", ".m3u8", "<video", "<source"))
    return lower.count("<script") >= 2 and not has_video_hints
