"""Admin endpoints: blob storage usage."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from ..core.permissions import PERM_VIEW_RECORDS, require_permission
from ..core.security import CurrentUser, get_current_user
from ..services.blob_storage import BlobStorage
from .deps import get_blob_storage

router = APIRouter(prefix="/admin", tags=["admin"])


class StorageStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_files: int
    total_size: int
    container_name: str


@router.get("/storage-stats", response_model=StorageStatsResponse)
def get_storage_stats(
    blob_storage: BlobStorage = Depends(get_blob_storage),
    current_user: CurrentUser = Depends(get_current_user),
):
    """File count and total bytes in the document container."""
    require_permission(current_user.id, PERM_VIEW_RECORDS)
    return blob_storage.stats()
