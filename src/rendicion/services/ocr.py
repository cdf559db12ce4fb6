"""
Local OCR service for receipt photos (Tesseract, Spanish language data).
"""

import io
import logging

import cv2
import numpy as np
import pytesseract
from PIL import Image, ImageEnhance, UnidentifiedImageError

from rendicion.config import settings

logger = logging.getLogger(__name__)


class OCRService:
    """Service for extracting text from receipt images."""

    def __init__(self):
        """Initialize OCR service with Tesseract configuration."""
        pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD
        self.lang = settings.TESSERACT_LANG

    def extract_text_from_image(self, image_data: bytes) -> str:
        """
        Extract text from an image using Tesseract OCR.

        Args:
            image_data: Raw image bytes (JPEG, PNG, etc.)

        Returns:
            Extracted text, or "" on any failure
        """
        try:
            image = Image.open(io.BytesIO(image_data))
            image = self._preprocess_image(image)

            # Single uniform block of text suits narrow receipts
            custom_config = r'--oem 3 --psm 6'
            text = pytesseract.image_to_string(image, lang=self.lang, config=custom_config)

            logger.debug("Tesseract finished", extra={"chars": len(text)})
            return text.strip()

        except (UnidentifiedImageError, OSError, ValueError):
            logger.warning("Could not open receipt image", exc_info=True)
            return ""
        except pytesseract.TesseractError:
            logger.error("Tesseract failed", exc_info=True)
            return ""

    def _preprocess_image(self, image: Image.Image) -> Image.Image:
        """
        Grayscale, contrast boost and Otsu binarization.

        Args:
            image: PIL Image object

        Returns:
            Preprocessed image
        """
        if image.mode != 'RGB':
            image = image.convert('RGB')

        image = image.convert('L')

        # Faded thermal paper needs the extra contrast
        image = ImageEnhance.Contrast(image).enhance(2.0)

        gray = np.array(image)
        _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY | cv2.THRESH_OTSU)
        return Image.fromarray(binary)
