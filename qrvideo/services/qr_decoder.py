"""
QR Decoder - finds and decodes QR codes in arbitrary photos.
Uses OpenCV; tries an up-scaled copy and two binarizations before giving up.
"""
import logging

import cv2
import numpy as np

from qrvideo.config import QR_SCALE_THRESHOLD_PX, QR_SMALL_IMAGE_PX

logger = logging.getLogger(__name__)

# Neighbourhood size for adaptive thresholding, must be odd
ADAPTIVE_BLOCK_SIZE = 51
ADAPTIVE_OFFSET = 10


def suggest_scale_factor(width: int, height: int) -> int:
    """Upscale factor for small images: 1 (none), 2 or 3."""
    max_dim = max(width, height)
    if max_dim >= QR_SCALE_THRESHOLD_PX:
        return 1
    if max_dim < QR_SMALL_IMAGE_PX:
        return 3
    return 2


def build_decode_candidates(image: np.ndarray) -> list[np.ndarray]:
    """Original image plus a nearest-neighbour upscaled copy when it is small."""
    candidates = [image]

    height, width = image.shape[:2]
    factor = suggest_scale_factor(width, height)
    if factor > 1:
        scaled = cv2.resize(
            image,
            (width * factor, height * factor),
            interpolation=cv2.INTER_NEAREST
        )
        candidates.append(scaled)

    return candidates


def binarize(image: np.ndarray, adaptive: bool) -> np.ndarray:
    """Convert to a black/white bitmap using local (adaptive) or global (Otsu histogram) threshold."""
    gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if adaptive:
        return cv2.adaptiveThreshold(
            gray, 255,
            cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
            cv2.THRESH_BINARY,
            ADAPTIVE_BLOCK_SIZE,
            ADAPTIVE_OFFSET
        )
    _, bitmap = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
    return bitmap


def _unique(texts) -> list[str]:
    seen = []
    for text in texts:
        if not text:
            continue
        text = text.strip()
        if text and text not in seen:
            seen.append(text)
    return seen


def decode_bitmap(detector, bitmap: np.ndarray) -> list[str]:
    """Decode every QR symbol in a bitmap, falling back to single-symbol mode."""
    try:
        ok, decoded, _, _ = detector.detectAndDecodeMulti(bitmap)
    except cv2.error as e:
        logger.debug(f"Multi QR decode failed: {e}")
        ok, decoded = False, None

    if ok and decoded:
        texts = _unique(decoded)
        if texts:
            return texts

    try:
        text, _, _ = detector.detectAndDecode(bitmap)
    except cv2.error as e:
        logger.debug(f"Single QR decode failed: {e}")
        return []

    return _unique([text])


class QRDecoder:
    """Decodes QR codes from raw image bytes."""

    def __init__(self):
        self.detector = cv2.QRCodeDetector()

    def decode(self, image_bytes: bytes) -> list[str]:
        """
        Decode all QR codes in an image.

        Args:
            image_bytes: Raw image file content (JPEG, PNG, ...)

        Returns:
            Deduplicated decoded texts in detection order; empty if nothing was found.
        """
        if not image_bytes:
            return []

        try:
            image = cv2.imdecode(np.frombuffer(image_bytes, np.uint8), cv2.IMREAD_COLOR)
            if image is None:
                logger.warning("Image could not be decoded")
                return []

            for candidate in build_decode_candidates(image):
                for adaptive in (True, False):
                    texts = decode_bitmap(self.detector, binarize(candidate, adaptive))
                    if texts:
                        logger.info(
                            f"Decoded {len(texts)} QR code(s) "
                            f"({'adaptive' if adaptive else 'global'} threshold, "
                            f"{candidate.shape[1]}x{candidate.shape[0]})"
                        )
                        return texts

            logger.warning("No QR code found in image")
            return []

        except Exception as e:
            logger.error(f"QR decode error: {e}", exc_info=True)
            return []
