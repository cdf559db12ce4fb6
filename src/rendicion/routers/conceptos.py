"""
Concept catalog API router.
"""

from fastapi import APIRouter

from rendicion.models.concept import ConceptList
from rendicion.services.concepts import ConceptCatalog

router = APIRouter(prefix="/conceptos", tags=["conceptos"])

catalog = ConceptCatalog()


@router.get("", response_model=ConceptList)
async def list_concepts():
    """All active concepts, most used first within each type."""
    concepts = catalog.list_concepts()
    return ConceptList(data=concepts, total=len(concepts))


@router.get("/tipos")
async def list_types():
    types = catalog.list_types()
    return {"data": types, "total": len(types)}


@router.get("/{tipo}", response_model=ConceptList)
async def concepts_for_type(tipo: str):
    """Active concepts for one type code (case-insensitive); unknown types list nothing."""
    concepts = catalog.concepts_for_type(tipo)
    return ConceptList(data=concepts, total=len(concepts))
