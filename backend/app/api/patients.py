from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from .deps import get_store
from ..models.records import NewPatient
from ..stores.base import RecordStore
from ..core.security import CurrentUser, get_current_user
from ..core.permissions import (
    PERM_CREATE_PATIENT,
    PERM_UPDATE_PATIENT,
    PERM_VIEW_RECORDS,
    require_permission,
)

router = APIRouter(prefix="/patients", tags=["patients"])


class PatientCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    date_of_birth: date
    medical_record_number: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class PatientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    first_name: str
    last_name: str
    date_of_birth: date
    medical_record_number: str
    email: Optional[str]
    phone: Optional[str]
    address: Optional[str]
    created_by: str
    created_at: datetime
    updated_at: datetime


@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    patient_in: PatientCreate,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_CREATE_PATIENT)
    return store.create_patient(NewPatient(**patient_in.model_dump()), created_by=current_user.id)


@router.get("", response_model=List[PatientResponse])
def list_patients(
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    return store.list_patients()


@router.get("/search", response_model=List[PatientResponse])
def search_patients(
    q: str = Query(..., min_length=1),
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Search patients by name, MRN or email."""
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    return store.search_patients(q)


@router.get("/{patient_id}", response_model=PatientResponse)
def get_patient(
    patient_id: str,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    return store.get_patient(patient_id)


@router.put("/{patient_id}", response_model=PatientResponse)
def update_patient(
    patient_id: str,
    patient_in: PatientCreate,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    require_permission(current_user.id, PERM_UPDATE_PATIENT)
    return store.update_patient(patient_id, NewPatient(**patient_in.model_dump()))


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_patient(
    patient_id: str,
    store: RecordStore = Depends(get_store),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Hard delete; only the user who registered the patient may do this."""
    store.delete_patient(patient_id, requested_by=current_user.id)
