"""
OCR API router: scan a receipt photo or parse already-recognized text
into an expense draft.
"""

from fastapi import APIRouter, HTTPException, Depends
import base64
import logging

from rendicion.config import settings
from rendicion.models.expense import ScanRequest, ScanResponse, ParseRequest, ExpenseDraft
from rendicion.services.ai_scanner import (
    AIScanner,
    ScanError,
    split_image,
    BAD_IMAGE,
    RATE_LIMITED,
    TIMEOUT,
)
from rendicion.services.ocr import OCRService
from rendicion.services.pipeline import build_draft

router = APIRouter(prefix="/ocr", tags=["ocr"])
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    BAD_IMAGE: 400,
    RATE_LIMITED: 429,
    TIMEOUT: 504,
}


def get_scanner() -> AIScanner:
    return AIScanner()


def get_ocr_service() -> OCRService:
    return OCRService()


@router.post("/scan", response_model=ScanResponse)
def scan_receipt(
    request: ScanRequest,
    scanner: AIScanner = Depends(get_scanner),
    ocr: OCRService = Depends(get_ocr_service),
):
    """
    Scan a receipt photo and return an edit-ready draft.

    The engine defaults to settings.OCR_ENGINE: "gemini" asks the AI
    scanner for text plus a structured guess, "tesseract" runs local OCR.

    Args:
        request: Image as data URL or bare base64, optional engine

    Returns:
        success flag, recognized text, draft and a user-facing message
    """
    try:
        engine = (request.engine or settings.OCR_ENGINE).lower()

        if engine == "tesseract":
            try:
                _, payload = split_image(request.image)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))

            text = ocr.extract_text_from_image(base64.b64decode(payload))
            draft = build_draft(text)
            message = "Receipt read" if text else "Could not read the receipt. Try a clearer photo."
            return ScanResponse(success=True, raw_text=text, draft=draft, message=message)

        if engine != "gemini":
            raise HTTPException(status_code=400, detail=f"Unknown OCR engine: {engine}")

        result = scanner.scan(request.image)

        if isinstance(result, ScanError):
            logger.warning("Scan failed", extra={"kind": result.kind, "scan_message": result.message})
            raise HTTPException(
                status_code=ERROR_STATUS.get(result.kind, 500),
                detail={"kind": result.kind, "message": result.message},
            )

        draft = build_draft(result.raw_text, result.guess)
        return ScanResponse(
            success=True,
            raw_text=result.raw_text,
            draft=draft,
            message=result.message,
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error("Error scanning receipt", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error scanning receipt: {str(e)}")


@router.post("/parse", response_model=ExpenseDraft)
def parse_text(request: ParseRequest):
    """
    Run the draft pipeline over text that was already recognized.

    Args:
        request: Receipt text and an optional AI guess

    Returns:
        ExpenseDraft
    """
    return build_draft(request.text, request.guess)
