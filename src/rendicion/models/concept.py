"""
Pydantic models for the accounting concept catalog.
"""

from pydantic import BaseModel
from typing import List


class ConceptEntry(BaseModel):
    """One active accounting concept exported from the accounting system."""
    type_code: str  # e.g. TARIFA, COMBLU, HONPRO
    article_code: str  # e.g. 5, 10, 2
    description: str
    unit_of_measure: str  # UN or LT
    usage_frequency: int  # Historical uses in expense reports
    special_concept: str = ""  # e.g. VT-V001

    class Config:
        frozen = True

    @property
    def key(self) -> tuple:
        return (self.type_code, self.article_code)


class ConceptList(BaseModel):
    """Model for concept catalog responses."""
    data: List[ConceptEntry]
    total: int
