"""Build the configured record store. Called once at application start-up."""
from ..core.exceptions import ConfigurationError
from .base import RecordStore
from .sql_store import SQLRecordStore
from .table_store import TableRecordStore


def build_record_store(settings) -> RecordStore:
    backend = settings.DATA_BACKEND.strip().lower()

    if backend in {"sql", "sqlalchemy", "relational"}:
        return SQLRecordStore.from_url(settings.DATABASE_URL)

    if backend in {"table", "azure_table", "tables"}:
        return TableRecordStore.from_settings(settings)

    raise ConfigurationError(f"Unsupported data backend '{settings.DATA_BACKEND}'")
