"""
Ownership-based access rules.

Every authenticated user may read all patients, documents and summaries.
Destructive operations are restricted to the user who created the record,
mirroring the row-level security predicates of the relational schema.
"""
from .exceptions import PermissionDeniedError

# Permission constants
PERM_VIEW_RECORDS = "view_records"
PERM_CREATE_PATIENT = "create_patient"
PERM_UPDATE_PATIENT = "update_patient"
PERM_DELETE_PATIENT = "delete_patient"
PERM_UPLOAD_DOCUMENTS = "upload_documents"
PERM_DELETE_DOCUMENT = "delete_document"
PERM_GENERATE_SUMMARY = "generate_summary"

# Permissions that additionally require the user to own the record
OWNER_ONLY_PERMISSIONS = {
    PERM_DELETE_PATIENT,
    PERM_DELETE_DOCUMENT,
}

AUTHENTICATED_PERMISSIONS = {
    PERM_VIEW_RECORDS,
    PERM_CREATE_PATIENT,
    PERM_UPDATE_PATIENT,
    PERM_DELETE_PATIENT,
    PERM_UPLOAD_DOCUMENTS,
    PERM_DELETE_DOCUMENT,
    PERM_GENERATE_SUMMARY,
}


def has_permission(user_id: str, permission: str, owner_id: str = None) -> bool:
    """Check whether ``user_id`` may perform ``permission`` on a record owned by ``owner_id``."""
    if not user_id or permission not in AUTHENTICATED_PERMISSIONS:
        return False
    if permission in OWNER_ONLY_PERMISSIONS:
        return owner_id is not None and owner_id == user_id
    return True


def require_permission(user_id: str, permission: str, owner_id: str = None) -> None:
    if not has_permission(user_id, permission, owner_id):
        raise PermissionDeniedError(f"User is not allowed to {permission.replace('_', ' ')}")
