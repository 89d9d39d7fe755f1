"""
Candidate Selector - turns decoded QR payloads into an ordered list of URLs to try.
"""
WEIXIN_DOMAINS = ("weixin.qq.com", "mp.weixin.qq.com")


def is_http_url(content: str | None) -> bool:
    """Check if content is an absolute HTTP(S) URL."""
    return bool(content) and content.startswith(("http://", "https://"))


def is_weixin_url(url: str | None) -> bool:
    """WeChat URLs are usually 'follow our account' codes without any video behind them."""
    if not url:
        return False
    lower = url.lower()
    return any(domain in lower for domain in WEIXIN_DOMAINS)


def select_candidate_urls(payloads: list[str]) -> list[str]:
    """
    Filter decoded payloads to HTTP(S) URLs, deduplicate them and put
    non-WeChat URLs first. The relative order is otherwise preserved.
    """
    urls = []
    for content in payloads:
        if not content:
            continue
        trimmed = content.strip()
        if is_http_url(trimmed) and trimmed not in urls:
            urls.append(trimmed)

    # sorted() is stable: decode order survives inside each group
    return sorted(urls, key=is_weixin_url)
