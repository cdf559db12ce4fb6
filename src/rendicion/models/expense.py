"""
Pydantic models for scanned receipts and expense drafts.
"""

from pydantic import BaseModel, Field
from typing import Optional, Union, Dict, Any
from decimal import Decimal
from enum import Enum


class Country(str, Enum):
    """Countries a trip expense can be booked in."""
    ARG = "ARG"
    CHL = "CHL"
    URY = "URY"


class Formality(str, Enum):
    """Whether a receipt carries formal tax documentation."""
    FORMAL = "FORMAL"
    INFORMAL = "INFORMAL"


class AIGuess(BaseModel):
    """
    Structured guess returned by the upstream AI scan.

    Field aliases follow the JSON keys the model is prompted to emit.
    Nothing here is trusted until it goes through the pipeline.
    """
    amount: Optional[Union[str, float, int]] = Field(None, alias="importe")
    date: Optional[str] = Field(None, alias="fecha")
    country: Optional[str] = Field(None, alias="pais")
    description: Optional[str] = Field(None, alias="descripcion")
    type_code: Optional[str] = Field(None, alias="tipoProducto")
    article_code: Optional[Union[str, int]] = Field(None, alias="codigoArticulo")
    formality: Optional[str] = Field(None, alias="formalidad")
    provider: Optional[str] = Field(None, alias="proveedor")
    full_text: Optional[str] = Field(None, alias="textoCompleto")

    class Config:
        populate_by_name = True


class ExpenseDraft(BaseModel):
    """
    Edit-ready expense produced from one scanned receipt.

    Every field carries a usable default; a human confirms or edits the
    draft before it becomes a trip expense.
    """
    amount: Decimal = Decimal("0")
    date: str = ""  # YYYY-MM-DD or empty
    country: str = ""  # ARG, CHL, URY or empty
    description: str = Field("", max_length=120)
    type_code: str
    article_code: str
    formality: Formality = Formality.INFORMAL
    provider: str = ""
    step: int = 2
    raw_text: str = ""
    debug: Dict[str, Any] = Field(default_factory=dict)


class ParseRequest(BaseModel):
    """Request model for parsing already-recognized text."""
    text: str = ""
    guess: Optional[AIGuess] = None


class ScanRequest(BaseModel):
    """Request model for scanning a receipt photo."""
    image: str  # data URL or bare base64
    engine: Optional[str] = None  # overrides settings.OCR_ENGINE


class ScanResponse(BaseModel):
    """Response model for a receipt scan."""
    success: bool
    raw_text: str
    draft: ExpenseDraft
    message: str


class StepRequest(BaseModel):
    """Request model for accounting step classification."""
    country: str
    amount: Decimal


class StepResponse(BaseModel):
    """Response model for accounting step classification."""
    country: str
    amount: Decimal
    step: int
