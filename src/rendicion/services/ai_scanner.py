"""
AI scan boundary: sends a receipt photo to Gemini and returns a tagged
result with the structured guess and the recognized text.

No exception crosses this boundary. Callers branch on ScanOk/ScanError.
"""

import re
import json
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Optional, Union, Tuple, Dict, Any

import requests
from pydantic import ValidationError

from rendicion.config import settings
from rendicion.models.expense import AIGuess
from rendicion.services.concepts import ConceptCatalog

logger = logging.getLogger(__name__)

DATA_URL = re.compile(r'^data:(image/[\w.+-]+);base64,', re.IGNORECASE)
FENCE_START = re.compile(r'^```(?:json)?\s*', re.IGNORECASE)
FENCE_END = re.compile(r'\s*```$')
JSON_BLOCK = re.compile(r'\{[\s\S]*\}')

# Error kinds reported by the boundary
NOT_CONFIGURED = 'not_configured'
BAD_IMAGE = 'bad_image'
FORBIDDEN = 'forbidden'
RATE_LIMITED = 'rate_limited'
TIMEOUT = 'timeout'
UPSTREAM = 'upstream'


@dataclass
class ScanOk:
    """Successful scan; the guess may be empty when the reply was unreadable."""
    guess: AIGuess
    raw_text: str = ""
    message: str = "Receipt read"


@dataclass
class ScanError:
    """Failed scan with a machine-readable kind."""
    kind: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


ScanResult = Union[ScanOk, ScanError]


def build_prompt(catalog: Optional[ConceptCatalog] = None) -> str:
    """Extraction prompt listing the active concepts the model may pick from."""
    catalog = catalog or ConceptCatalog()
    concept_lines = "\n".join(
        f"- {c.type_code}/{c.article_code}: {c.description}"
        for c in catalog.list_concepts()
    )
    return (
        "Analizá esta imagen de un ticket/factura/recibo/comprobante de pago de un "
        "viaje de camión entre Argentina, Chile y Uruguay.\n\n"
        "Devolvé ÚNICAMENTE un JSON válido (sin markdown) con estas claves:\n"
        "{\n"
        '  "importe": número decimal del TOTAL final a pagar, sin símbolo de moneda,\n'
        '  "fecha": fecha de emisión en formato YYYY-MM-DD o "",\n'
        '  "pais": "ARG", "CHL", "URY" o "" (CUIT/AFIP/IVA 21% = ARG, RUT/SII/IVA 19% = CHL, '
        'RUC/DGI/IVA 22% = URY),\n'
        '  "descripcion": nombre del comercio, máximo 120 caracteres, o "",\n'
        '  "tipoProducto": tipo de concepto de la lista, o "",\n'
        '  "codigoArticulo": artículo del concepto de la lista, o "",\n'
        '  "formalidad": "FORMAL" si es factura o comprobante fiscal, si no "INFORMAL",\n'
        '  "proveedor": razón social del emisor si se lee, o "",\n'
        '  "textoCompleto": todo el texto visible, preservando saltos de línea\n'
        "}\n\n"
        "Conceptos válidos (tipo/artículo):\n"
        f"{concept_lines}\n\n"
        "Reglas:\n"
        "- El importe es el total final, no subtotales ni IVA.\n"
        "- Si no estás seguro del concepto, dejá tipoProducto y codigoArticulo vacíos.\n"
        "- No inventes el proveedor."
    )


def split_image(image: str) -> Tuple[str, str]:
    """
    Split a data URL or bare base64 string into (mime_type, base64_payload).

    Raises:
        ValueError: If the payload is empty or not valid base64
    """
    image = (image or "").strip()
    match = DATA_URL.match(image)
    mime_type = match.group(1).lower() if match else 'image/jpeg'
    payload = image[match.end():] if match else image
    payload = re.sub(r'\s+', '', payload)

    if not payload:
        raise ValueError("No image data")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Image is not valid base64: {e}")

    return mime_type, payload


def parse_model_reply(reply: str) -> Optional[Dict[str, Any]]:
    """
    Read the JSON object out of the model reply.

    Strips markdown fences, then falls back to the first {...} block.
    Returns None when nothing parses.
    """
    text = FENCE_END.sub('', FENCE_START.sub('', (reply or "").strip()))

    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        logger.warning("Model reply is not plain JSON, looking for an object", extra={
            "reply_preview": text[:200]
        })

    block = JSON_BLOCK.search(text)
    if block:
        try:
            data = json.loads(block.group(0))
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            logger.warning("Could not parse JSON object in model reply", exc_info=True)

    return None


class AIScanner:
    """Client for the Gemini generateContent endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.api_url = api_url or settings.GEMINI_API_URL
        self.timeout = timeout or settings.AI_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def scan(self, image: str) -> ScanResult:
        """
        Scan a receipt photo.

        Args:
            image: Data URL or bare base64 image

        Returns:
            ScanOk with the guess and raw text, or ScanError
        """
        if not self.api_key:
            logger.error("GOOGLE_API_KEY is not configured")
            return ScanError(NOT_CONFIGURED, "AI scanning is not configured")

        try:
            mime_type, payload = split_image(image)
        except ValueError as e:
            return ScanError(BAD_IMAGE, str(e))

        if len(payload) * 3 / 4 > settings.MAX_UPLOAD_MB * 1024 * 1024:
            return ScanError(BAD_IMAGE, f"Image exceeds {settings.MAX_UPLOAD_MB} MB")

        body = {
            'contents': [{
                'parts': [
                    {'inlineData': {'mimeType': mime_type, 'data': payload}},
                    {'text': build_prompt()},
                ]
            }],
            'generationConfig': {
                'temperature': 0.1,
                'maxOutputTokens': 2048,
            },
        }

        logger.info("Sending receipt to AI scanner", extra={
            "mime_type": mime_type,
            "size_kb": len(payload) // 1024,
        })

        try:
            response = self.session.post(
                self.api_url,
                params={'key': self.api_key},
                json=body,
                timeout=self.timeout,
            )
        except requests.Timeout:
            logger.warning("AI scanner timed out", extra={"timeout": self.timeout})
            return ScanError(TIMEOUT, "The AI scanner did not answer in time")
        except requests.RequestException as e:
            logger.error("AI scanner request failed", exc_info=True)
            return ScanError(UPSTREAM, f"AI scanner unreachable: {e}")

        if response.status_code != 200:
            return self._error_for_status(response)

        try:
            reply = response.json()['candidates'][0]['content']['parts'][0]['text']
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("AI reply has no text part", extra={"status": response.status_code})
            reply = ""

        return self._to_result(reply or "")

    def _to_result(self, reply: str) -> ScanOk:
        if not reply.strip():
            return ScanOk(AIGuess(), "", "Could not read the receipt. Try a clearer photo.")

        data = parse_model_reply(reply)
        if data is None:
            return ScanOk(AIGuess(), reply, "Receipt read but fields could not be extracted.")

        try:
            guess = AIGuess.model_validate(data)
        except ValidationError:
            logger.warning("AI reply fields have unexpected types", exc_info=True)
            return ScanOk(AIGuess(), reply, "Receipt read but fields could not be extracted.")

        raw_text = guess.full_text or reply
        return ScanOk(guess, raw_text, "Receipt read")

    def _error_for_status(self, response: requests.Response) -> ScanError:
        try:
            details = response.json().get('error', {})
        except ValueError:
            details = {'message': response.text[:200]}
        if not isinstance(details, dict):
            details = {'message': str(details)}

        logger.error("AI scanner returned an error", extra={
            "status": response.status_code,
            "error": details.get('message'),
        })

        if response.status_code == 400:
            return ScanError(BAD_IMAGE, "The image could not be processed. Try another photo.", details)
        if response.status_code in (401, 403):
            return ScanError(FORBIDDEN, "AI API key lacks permission for the Generative Language API.", details)
        if response.status_code == 429:
            return ScanError(RATE_LIMITED, "Too many requests. Wait a moment and retry.", details)
        return ScanError(UPSTREAM, f"AI scanner error (HTTP {response.status_code})", details)
