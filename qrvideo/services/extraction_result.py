"""
ExtractionResult - unified result structure for every extraction stage.
"""
from dataclasses import dataclass
from enum import Enum


class ExtractionStatus(str, Enum):
    """Progress of a video extraction.

    SKIPPED -> (no attempt), RUNNING -> SUCCESS | NEED_DYNAMIC_RENDER | UNSUPPORTED | FAILED.
    """
    SKIPPED = "SKIPPED"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    NEED_DYNAMIC_RENDER = "NEED_DYNAMIC_RENDER"
    UNSUPPORTED = "UNSUPPORTED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not ExtractionStatus.RUNNING

    def can_transition_to(self, other: "ExtractionStatus") -> bool:
        """Check whether the state machine allows moving from this status to `other`."""
        if self is ExtractionStatus.RUNNING:
            return other in _RUNNING_OUTCOMES
        return False


_RUNNING_OUTCOMES = frozenset({
    ExtractionStatus.SUCCESS,
    ExtractionStatus.NEED_DYNAMIC_RENDER,
    ExtractionStatus.UNSUPPORTED,
    ExtractionStatus.FAILED,
})


@dataclass(frozen=True)
class ExtractionResult:
    """Result of extracting a video URL from a QR image or a page."""
    status: ExtractionStatus
    message: str  # Короткое описание для карточки товара
    video_url: str | None = None  # Только при SUCCESS
    target_url: str | None = None  # Страница, которую в итоге проверяли

    def __post_init__(self):
        if (self.video_url is not None) != (self.status is ExtractionStatus.SUCCESS):
            raise ValueError(
                f"video_url must be set if and only if status is SUCCESS "
                f"(status={self.status.value}, video_url={self.video_url!r})"
            )

    @property
    def is_success(self) -> bool:
        return self.status is ExtractionStatus.SUCCESS

    @classmethod
    def success(cls, video_url: str, target_url: str | None, message: str) -> "ExtractionResult":
        """Create a successful result."""
        return cls(
            status=ExtractionStatus.SUCCESS,
            message=message,
            video_url=video_url,
            target_url=target_url,
        )

    @classmethod
    def failure(
        cls,
        status: ExtractionStatus,
        message: str,
        target_url: str | None = None
    ) -> "ExtractionResult":
        """Create a non-success result."""
        return cls(status=status, message=message, target_url=target_url)

    @classmethod
    def skipped(cls, message: str = "缺少二维码图片") -> "ExtractionResult":
        return cls(status=ExtractionStatus.SKIPPED, message=message)


def pick_better(
    current: ExtractionResult | None,
    candidate: ExtractionResult | None
) -> ExtractionResult | None:
    """
    Choose the more informative of two failed results.

    NEED_DYNAMIC_RENDER wins over every other failure (a real page that needs a rule),
    then FAILED wins over UNSUPPORTED. Otherwise the earlier result is kept.
    """
    if candidate is None:
        return current
    if current is None:
        return candidate

    if (current.status is not ExtractionStatus.NEED_DYNAMIC_RENDER
            and candidate.status is ExtractionStatus.NEED_DYNAMIC_RENDER):
        return candidate

    if (current.status is ExtractionStatus.UNSUPPORTED
            and candidate.status is ExtractionStatus.FAILED):
        return candidate

    return current


def rank_results(
    results: list[ExtractionResult],
    fallback_target_url: str | None = None
) -> ExtractionResult:
    """
    Reduce per-candidate results to one.

    Returns the first success if any, otherwise the most informative failure.
    With no results at all, returns a generic FAILED pointing at `fallback_target_url`.
    """
    best = None
    for result in results:
        if result.is_success:
            return result
        best = pick_better(best, result)

    if best is not None:
        return best

    return ExtractionResult.failure(
        ExtractionStatus.FAILED,
        "所有二维码均未提取到视频",
        target_url=fallback_target_url,
    )
