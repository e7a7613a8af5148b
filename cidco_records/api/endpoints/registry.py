"""
Registry lookup endpoints: dashboard summaries, the cascading location
pickers and plot search.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional

from cidco_records.core.database import get_db
from cidco_records.schemas.registry import SearchRequest, SummaryRow, SummaryOverview
from cidco_records.services.registry_service import RegistryService, RegistryFilter, SummaryGroup


router = APIRouter()


def summary_filter(
    region: Optional[str] = Query(None),
    node: Optional[str] = Query(None),
    sector: Optional[str] = Query(None),
) -> RegistryFilter:
    return RegistryFilter(region=region, node=node, sector=sector)


# ==========================================
# Summaries
# ==========================================

@router.get("/summary", response_model=List[SummaryRow])
async def plot_use_summary(
    filters: RegistryFilter = Depends(summary_filter),
    db: AsyncSession = Depends(get_db)
):
    """Invoice area and plot counts per plot use"""
    return await RegistryService(db).summary(SummaryGroup.PLOT_USE, filters)


@router.get("/summary/department", response_model=List[SummaryRow])
async def department_summary(
    filters: RegistryFilter = Depends(summary_filter),
    db: AsyncSession = Depends(get_db)
):
    """Invoice area and plot counts per department remark"""
    return await RegistryService(db).summary(SummaryGroup.DEPARTMENT, filters)


@router.get("/summary/overview", response_model=SummaryOverview)
async def summary_overview(
    filters: RegistryFilter = Depends(summary_filter),
    db: AsyncSession = Depends(get_db)
):
    """Both summaries with totals, plot uses arranged for display"""
    return await RegistryService(db).overview(filters)


# ==========================================
# Cascading location options
# ==========================================

@router.get("/regions", response_model=List[str])
async def list_regions(db: AsyncSession = Depends(get_db)):
    return await RegistryService(db).list_regions()


@router.get("/nodes", response_model=List[str])
async def list_nodes(
    region: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await RegistryService(db).list_nodes(region=region)


@router.get("/sectors", response_model=List[str])
async def list_sectors(
    node: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await RegistryService(db).list_sectors(node=node, region=region)


@router.get("/blocks", response_model=List[str])
async def list_blocks(
    node: Optional[str] = Query(None),
    sector: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await RegistryService(db).list_blocks(node=node, sector=sector, region=region)


@router.get("/plots", response_model=List[str])
async def list_plots(
    node: Optional[str] = Query(None),
    sector: Optional[str] = Query(None),
    block: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db)
):
    return await RegistryService(db).list_plots(node=node, sector=sector, block=block, region=region)


# ==========================================
# Search
# ==========================================

@router.post("/search", response_model=List[Dict[str, Any]])
async def search_plots(
    body: SearchRequest,
    db: AsyncSession = Depends(get_db)
):
    filters = RegistryFilter(
        region=body.region,
        node=body.node,
        sector=body.sector,
        block=body.block,
        plot=body.plot,
    )
    return await RegistryService(db).search(filters)
