from pydantic import BaseModel, field_validator
from typing import List, Optional


class SearchRequest(BaseModel):
    node: Optional[str] = None
    sector: Optional[str] = None
    region: Optional[str] = None
    block: Optional[str] = None
    plot: Optional[str] = None

    @field_validator('node', 'sector', 'region', 'block', 'plot', mode='before')
    @classmethod
    def numbers_as_text(cls, v):
        # Sector and plot numbers are stored as text
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class SummaryRow(BaseModel):
    category: str
    area: float
    additionalCount: int
    basePlotCount: int
    percent: float


class SummaryTotals(BaseModel):
    area: float = 0.0
    additionalCount: int = 0
    basePlotCount: int = 0


class SummaryOverview(BaseModel):
    """Both dashboard charts for one filter selection"""
    use: List[SummaryRow]
    department: List[SummaryRow]
    useTotals: SummaryTotals
    departmentTotals: SummaryTotals


class EvidenceBundle(BaseModel):
    images: List[str] = []
    has_pdf: bool = False
    pdf_url: Optional[str] = None
    has_map: bool = False
    map_url: Optional[str] = None


class MessageResponse(BaseModel):
    message: str
