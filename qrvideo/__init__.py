# QR video extractor
from qrvideo.services.extraction_result import ExtractionResult, ExtractionStatus
from qrvideo.services.video_extractor import VideoExtractor, extract

__all__ = [
    "ExtractionResult",
    "ExtractionStatus",
    "VideoExtractor",
    "extract",
]
