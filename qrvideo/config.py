#qrvideo/config.py
"""
Configuration settings for the QR video extractor.
All values can be overridden with environment variables.
"""
import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class HttpConfig:
    """Plain HTTP calls: image download, platform APIs, HEAD checks."""
    timeout: float = 10.0
    image_timeout: float = 10.0
    probe_timeout: float = 5.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass
class RenderConfig:
    """Headless browser configuration."""
    headless: bool = True
    page_timeout_ms: int = 10000
    js_wait_ms: int = 8000  # Первая фаза ожидания: JS вокруг загрузки
    background_js_wait_ms: int = 3000  # Вторая фаза: таймеры и фоновые запросы
    body_timeout_ms: int = 2000  # Сколько ждать тела перехваченных ответов после ожидания JS
    max_follow_up_pages: int = 2
    validate_video_urls: bool = True


@dataclass
class WorkerConfig:
    """Background extraction worker pool."""
    concurrency: int = 2
    queue_size: int = 200


@dataclass
class Config:
    """Main configuration."""
    http: HttpConfig = field(default_factory=HttpConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    workers: WorkerConfig = field(default_factory=WorkerConfig)

    debug: bool = False


def load_config() -> Config:
    """Load configuration from environment variables."""
    http_config = HttpConfig(
        timeout=float(os.getenv("QRVIDEO_HTTP_TIMEOUT", "10")),
        image_timeout=float(os.getenv("QRVIDEO_IMAGE_TIMEOUT", "10")),
        probe_timeout=float(os.getenv("QRVIDEO_PROBE_TIMEOUT", "5")),
        user_agent=os.getenv("QRVIDEO_USER_AGENT", HttpConfig.user_agent),
    )

    render_config = RenderConfig(
        headless=_env_bool("QRVIDEO_HEADLESS", True),
        page_timeout_ms=int(os.getenv("QRVIDEO_PAGE_TIMEOUT_MS", "10000")),
        js_wait_ms=int(os.getenv("QRVIDEO_JS_WAIT_MS", "8000")),
        background_js_wait_ms=int(os.getenv("QRVIDEO_BACKGROUND_JS_WAIT_MS", "3000")),
        body_timeout_ms=int(os.getenv("QRVIDEO_BODY_TIMEOUT_MS", "2000")),
        max_follow_up_pages=int(os.getenv("QRVIDEO_MAX_FOLLOW_UP_PAGES", "2")),
        validate_video_urls=_env_bool("QRVIDEO_VALIDATE_VIDEO_URLS", True),
    )

    worker_config = WorkerConfig(
        concurrency=int(os.getenv("QRVIDEO_WORKERS", "2")),
        queue_size=int(os.getenv("QRVIDEO_QUEUE_SIZE", "200")),
    )

    return Config(
        http=http_config,
        render=render_config,
        workers=worker_config,
        debug=os.getenv("DEBUG", "false").lower() == "true",
    )


config = load_config()

# Decoder limits
QR_SCALE_THRESHOLD_PX: int = 640  # меньше: увеличиваем изображение
QR_SMALL_IMAGE_PX: int = 320  # меньше: увеличиваем в 3 раза
MAX_IMAGE_SIZE: int = 10 * 1024 * 1024  # 10MB
