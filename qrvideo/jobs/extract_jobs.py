"""Extraction jobs - runs video extraction off the request path on a bounded worker pool."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from qrvideo.config import config
from qrvideo.services.extraction_result import ExtractionResult, ExtractionStatus
from qrvideo.services.video_extractor import VideoExtractor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionJob:
    """One request to (re)extract the video of a catalog record."""
    record_id: int | str
    image_url: str | None
    reset_video_url: bool = False  # При обновлении товара старый video_url сбрасывается


@dataclass(frozen=True)
class ExtractionUpdate:
    """What the caller should persist for a record."""
    record_id: int | str
    status: ExtractionStatus
    message: str
    target_url: str | None = None
    video_url: str | None = None
    write_video_url: bool = False  # True: overwrite the stored video_url with `video_url` (possibly None)


ExtractionSink = Callable[[ExtractionUpdate], Awaitable[None]]


def build_update(job: ExtractionJob, result: ExtractionResult) -> ExtractionUpdate:
    """Map a result to a record update; the video URL is only written on success or on reset."""
    return ExtractionUpdate(
        record_id=job.record_id,
        status=result.status,
        message=result.message,
        target_url=result.target_url,
        video_url=result.video_url if result.is_success else None,
        write_video_url=result.is_success or job.reset_video_url,
    )


class VideoExtractJobRunner:
    """Очередь задач извлечения видео с ограниченным числом воркеров."""

    def __init__(
        self,
        sink: ExtractionSink,
        extractor: VideoExtractor | None = None,
        concurrency: int | None = None,
        queue_size: int | None = None
    ):
        self.sink = sink
        self.extractor = extractor or VideoExtractor()
        self.concurrency = concurrency or config.workers.concurrency
        self.queue_size = queue_size or config.workers.queue_size
        self._queue: asyncio.Queue | None = None
        self._workers: list[asyncio.Task] = []
        self._is_running = False

    @property
    def is_running(self) -> bool:
        return self._is_running

    def start(self) -> None:
        """Запустить воркеры."""
        if self._is_running:
            logger.warning("Extraction runner already running")
            return

        self._queue = asyncio.Queue(maxsize=self.queue_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"video-extract-{i}")
            for i in range(self.concurrency)
        ]
        self._is_running = True
        logger.info(f"Extraction runner started with {self.concurrency} workers")

    async def stop(self, wait: bool = True) -> None:
        """Остановить воркеры; при wait=True сначала дождаться очереди."""
        if not self._is_running:
            return

        if wait:
            await self._queue.join()

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)

        self._workers = []
        self._is_running = False
        logger.info("Extraction runner stopped")

    def submit(self, record_id: int | str, image_url: str | None, reset_video_url: bool = False) -> bool:
        """
        Queue an extraction job.

        Returns:
            False if the runner is stopped or the queue is full
        """
        if not self._is_running:
            logger.warning(f"Extraction runner is not running, job for record {record_id} dropped")
            return False

        try:
            self._queue.put_nowait(ExtractionJob(record_id, image_url, reset_video_url))
        except asyncio.QueueFull:
            logger.warning(f"Extraction queue is full ({self.queue_size}), job for record {record_id} rejected")
            return False
        return True

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.run_job(job)
            finally:
                self._queue.task_done()

    async def run_job(self, job: ExtractionJob) -> ExtractionResult:
        """Run one job and report its progress to the sink."""
        if not job.image_url or not job.image_url.strip():
            result = ExtractionResult.skipped()
            await self._report(job, result)
            return result

        await self._report(job, ExtractionResult(status=ExtractionStatus.RUNNING, message="开始解析"))

        try:
            result = await self.extractor.extract(job.image_url)
        except Exception as e:
            logger.error(f"Async extraction error for record {job.record_id}: {e}", exc_info=True)
            result = ExtractionResult.failure(ExtractionStatus.FAILED, "异步解析异常")

        await self._report(job, result)
        return result

    async def _report(self, job: ExtractionJob, result: ExtractionResult) -> None:
        try:
            await self.sink(build_update(job, result))
        except Exception as e:
            logger.error(f"Failed to store extraction result for record {job.record_id} "
                         f"(status={result.status.value}): {e}", exc_info=True)


_runner: Optional[VideoExtractJobRunner] = None


def get_runner() -> Optional[VideoExtractJobRunner]:
    """Получить текущий экземпляр очереди."""
    return _runner


def init_runner(sink: ExtractionSink, extractor: VideoExtractor | None = None) -> VideoExtractJobRunner:
    """Инициализировать очередь."""
    global _runner
    _runner = VideoExtractJobRunner(sink, extractor=extractor)
    return _runner
