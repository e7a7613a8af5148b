from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict

from cidco_records.api.deps import get_evidence_service
from cidco_records.core.database import get_db
from cidco_records.schemas.registry import MessageResponse
from cidco_records.services.evidence_service import EvidenceService
from cidco_records.services.registry_service import RegistryService


router = APIRouter()


@router.get("/record/{record_id}")
async def get_record(
    record_id: str,
    db: AsyncSession = Depends(get_db),
    evidence: EvidenceService = Depends(get_evidence_service)
) -> Dict[str, Any]:
    """
    One plot record with its scanned evidence.

    The stored pdf_url/map_url columns are replaced by freshly signed links;
    missing objects show up as has_pdf/has_map false and an empty image list.
    """
    record = await RegistryService(db).get_record(record_id)
    bundle = await evidence.resolve(record["ID"])
    record.update(bundle.model_dump())
    return record


@router.post("/record/update", response_model=MessageResponse)
async def update_record(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db)
):
    """Save edits from the record form"""
    message = await RegistryService(db).update_record(payload)
    return MessageResponse(message=message)
