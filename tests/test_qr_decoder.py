# tests/test_qr_decoder.py
"""Tests for QR Decoder."""
from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from conftest import make_qr_png
from qrvideo.services.candidate_selector import select_candidate_urls
from qrvideo.services.qr_decoder import (
    QRDecoder,
    binarize,
    build_decode_candidates,
    decode_bitmap,
    suggest_scale_factor,
)


@pytest.fixture
def decoder():
    return QRDecoder()


class TestScaling:
    """Tests for upscaling of small images."""

    @pytest.mark.parametrize("width,height,factor", [
        (1024, 768, 1),
        (640, 100, 1),
        (639, 639, 2),
        (320, 200, 2),
        (319, 319, 3),
        (50, 80, 3),
    ])
    def test_suggest_scale_factor(self, width, height, factor):
        assert suggest_scale_factor(width, height) == factor

    def test_large_image_single_candidate(self):
        image = np.zeros((700, 800, 3), dtype=np.uint8)
        candidates = build_decode_candidates(image)
        assert len(candidates) == 1
        assert candidates[0] is image

    def test_small_image_upscaled(self):
        image = np.zeros((100, 200, 3), dtype=np.uint8)
        candidates = build_decode_candidates(image)
        assert len(candidates) == 2
        assert candidates[1].shape[:2] == (300, 600)


class TestBinarize:
    """Tests for binarize."""

    @pytest.mark.parametrize("adaptive", [True, False])
    def test_output_is_black_and_white(self, adaptive):
        rng = np.random.default_rng(0)
        image = rng.integers(0, 256, size=(120, 120, 3), dtype=np.uint8)

        bitmap = binarize(image, adaptive)

        assert bitmap.shape == (120, 120)
        assert set(np.unique(bitmap)) <= {0, 255}

    def test_grayscale_input(self):
        gray = np.full((60, 60), 128, dtype=np.uint8)
        assert binarize(gray, adaptive=False).shape == (60, 60)


class TestDecodeBitmap:
    """Tests for decode_bitmap with a stubbed detector."""

    def test_multi_results_deduplicated(self):
        detector = MagicMock()
        detector.detectAndDecodeMulti.return_value = (True, ("https://a.example.com", "", "https://a.example.com",
                                                             "https://b.example.com"), None, None)

        assert decode_bitmap(detector, np.zeros((10, 10), np.uint8)) == [
            "https://a.example.com",
            "https://b.example.com",
        ]
        detector.detectAndDecode.assert_not_called()

    def test_falls_back_to_single(self):
        detector = MagicMock()
        detector.detectAndDecodeMulti.return_value = (False, (), None, None)
        detector.detectAndDecode.return_value = ("https://single.example.com", None, None)

        assert decode_bitmap(detector, np.zeros((10, 10), np.uint8)) == ["https://single.example.com"]

    def test_opencv_errors(self):
        detector = MagicMock()
        detector.detectAndDecodeMulti.side_effect = cv2.error("multi")
        detector.detectAndDecode.side_effect = cv2.error("single")

        assert decode_bitmap(detector, np.zeros((10, 10), np.uint8)) == []


class TestQRDecoder:
    """Tests for QRDecoder.decode on real images."""

    def test_decode_png(self, decoder, qr_png):
        assert decoder.decode(qr_png) == ["https://shop.example.com/product?id=42"]

    def test_decode_is_repeatable(self, decoder):
        image = make_qr_png("https://cdn.example.com/v/1.mp4")
        assert decoder.decode(image) == decoder.decode(image) == ["https://cdn.example.com/v/1.mp4"]

    def test_decode_jpeg_photo(self, decoder, qr_png):
        """Test a lossy, grey-background re-encode still decodes."""
        image = cv2.imdecode(np.frombuffer(qr_png, np.uint8), cv2.IMREAD_COLOR)
        canvas = np.full((image.shape[0] + 200, image.shape[1] + 200, 3), 200, dtype=np.uint8)
        canvas[100:100 + image.shape[0], 100:100 + image.shape[1]] = image
        ok, encoded = cv2.imencode(".jpg", canvas, [cv2.IMWRITE_JPEG_QUALITY, 85])
        assert ok

        assert decoder.decode(encoded.tobytes()) == ["https://shop.example.com/product?id=42"]

    def test_blank_image(self, decoder):
        ok, encoded = cv2.imencode(".png", np.full((400, 400, 3), 255, dtype=np.uint8))
        assert ok
        assert decoder.decode(encoded.tobytes()) == []

    def test_not_an_image(self, decoder):
        assert decoder.decode(b"<html>not an image</html>") == []
        assert decoder.decode(b"") == []

    def test_small_code_upscaled(self, decoder):
        """Test a thumbnail-sized code decodes through the upscaled copy."""
        image_bytes = make_qr_png("https://s.example.com/1", box_size=2)
        image = cv2.imdecode(np.frombuffer(image_bytes, np.uint8), cv2.IMREAD_COLOR)
        assert max(image.shape[:2]) < 320
        assert len(build_decode_candidates(image)) == 2

        assert decoder.decode(image_bytes) == ["https://s.example.com/1"]

    def test_two_codes_in_one_photo(self, decoder):
        """Test both codes of a product card are decoded and the WeChat one is tried last."""
        weixin = "https://mp.weixin.qq.com/s/abc123"
        shop = "https://shop.example.com/item?id=7"
        left = cv2.imdecode(np.frombuffer(make_qr_png(weixin), np.uint8), cv2.IMREAD_COLOR)
        right = cv2.imdecode(np.frombuffer(make_qr_png(shop), np.uint8), cv2.IMREAD_COLOR)

        height = max(left.shape[0], right.shape[0])
        canvas = np.full((height + 100, left.shape[1] + right.shape[1] + 200, 3), 255, dtype=np.uint8)
        canvas[50:50 + left.shape[0], 50:50 + left.shape[1]] = left
        x = left.shape[1] + 150
        canvas[50:50 + right.shape[0], x:x + right.shape[1]] = right
        ok, encoded = cv2.imencode(".png", canvas)
        assert ok

        decoded = decoder.decode(encoded.tobytes())

        assert set(decoded) == {weixin, shop}
        assert select_candidate_urls(decoded) == [shop, weixin]
