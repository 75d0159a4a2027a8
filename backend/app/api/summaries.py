from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from starlette.concurrency import run_in_threadpool
from .deps import get_store, get_summary_service
from ..services.summary_generator import SummaryService
from ..stores.base import RecordStore
from ..core.security import CurrentUser, get_current_user
from ..core.permissions import PERM_VIEW_RECORDS, require_permission

router = APIRouter(prefix="/patients/{patient_id}/summaries", tags=["summaries"])


class SummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    patient_id: str
    summary_text: str
    generated_by: str
    created_at: datetime
    document_ids: List[str]


@router.post("", response_model=SummaryResponse, status_code=status.HTTP_201_CREATED)
async def generate_summary(
    patient_id: str,
    service: SummaryService = Depends(get_summary_service),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Generate a new summary; earlier summaries are kept as history."""
    return await run_in_threadpool(service.create_summary, patient_id, current_user.id)


@router.get("", response_model=List[SummaryResponse])
def list_summaries(
    patient_id: str,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    store.get_patient(patient_id)
    return store.list_summaries(patient_id)


@router.get("/latest", response_model=SummaryResponse)
def latest_summary(
    patient_id: str,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    store.get_patient(patient_id)
    summary = store.latest_summary(patient_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="No summary has been generated for this patient")
    return summary
