# Jobs package
from qrvideo.jobs.extract_jobs import (
    ExtractionJob,
    ExtractionUpdate,
    VideoExtractJobRunner,
    build_update,
    init_runner,
    get_runner
)

__all__ = [
    "ExtractionJob",
    "ExtractionUpdate",
    "VideoExtractJobRunner",
    "build_update",
    "init_runner",
    "get_runner",
]
