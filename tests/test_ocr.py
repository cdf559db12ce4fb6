"""
Tests for local OCR preprocessing. Tesseract itself is mocked.
"""

import io
from unittest.mock import patch

import numpy as np
from PIL import Image, ImageDraw

from rendicion.services.ocr import OCRService


def _receipt_png():
    image = Image.new('RGB', (120, 40), (235, 230, 210))
    ImageDraw.Draw(image).rectangle([10, 10, 60, 25], fill=(90, 90, 90))
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


class TestOCRService:
    """Local OCR preprocessing and invocation."""

    def test_preprocess_binarizes(self):
        """Preprocessing yields a pure black and white image."""
        image = Image.open(io.BytesIO(_receipt_png()))
        processed = OCRService()._preprocess_image(image)

        pixels = np.array(processed)
        assert processed.mode == 'L'
        assert set(np.unique(pixels)) <= {0, 255}
        assert pixels[15, 30] == 0
        assert pixels[35, 100] == 255

    def test_unreadable_image_gives_empty_text(self):
        """Unreadable bytes give empty text."""
        assert OCRService().extract_text_from_image(b"not an image") == ""

    def test_runs_tesseract_in_spanish(self):
        """Tesseract runs with Spanish data and output is trimmed."""
        with patch('rendicion.services.ocr.pytesseract.image_to_string', return_value=" TOTAL 500 \n") as ocr:
            text = OCRService().extract_text_from_image(_receipt_png())

        assert text == "TOTAL 500"
        assert ocr.call_args.kwargs['lang'] == 'spa'
