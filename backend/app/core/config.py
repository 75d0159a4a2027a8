from pydantic_settings import BaseSettings
from typing import List, Optional


DEFAULT_ALLOWED_MIME_TYPES = [
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "image/jpeg",
    "image/png",
    "image/tiff",
    "image/bmp",
]


class Settings(BaseSettings):
    APP_NAME: str = "Khumalo Health Records"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Record store: "sql" (SQLAlchemy) or "table" (Azure Table Storage)
    DATA_BACKEND: str = "sql"
    DATABASE_URL: str = "sqlite:///./khumalo.db"
    AZURE_TABLE_NAME: str = "medicaldata"

    # Blob storage: "local" for development, "azure" for Azure Blob Storage
    BLOB_BACKEND: str = "local"
    LOCAL_STORAGE_ROOT: str = "./uploads"
    STORAGE_CONTAINER: str = "patient-documents"
    AZURE_STORAGE_ACCOUNT_NAME: Optional[str] = None
    AZURE_STORAGE_ACCOUNT_KEY: Optional[str] = None
    AZURE_STORAGE_CONNECTION_STRING: Optional[str] = None
    SAS_EXPIRY_MINUTES: int = 60

    # Remote summarization (Azure OpenAI)
    AZURE_OPENAI_ENDPOINT: Optional[str] = None
    AZURE_OPENAI_API_KEY: Optional[str] = None
    AZURE_OPENAI_DEPLOYMENT: Optional[str] = None
    AZURE_OPENAI_API_VERSION: str = "2025-04-01-preview"
    SUMMARY_MAX_TOKENS: int = 1500
    SUMMARY_TIMEOUT_SECONDS: float = 60.0

    # Upload validation
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024  # 50 MiB
    ALLOWED_MIME_TYPES: List[str] = DEFAULT_ALLOWED_MIME_TYPES
    MAX_FILES_PER_REQUEST: int = 20
    MAX_REQUEST_BYTES: int = 100 * 1024 * 1024  # upper bound on payload memory held by one upload request

    # Text extraction
    OCR_ENABLED: bool = True
    OCR_LANGUAGE: str = "eng"
    OCR_TIMEOUT_SECONDS: int = 120
    PROCESSED_TEXT_LIMIT: int = 1000  # chars of extracted text kept on the document row

    # Batch upload pacing
    UPLOAD_BATCH_SIZE: int = 5
    UPLOAD_BATCH_DELAY_MS: int = 100

    # Bearer tokens are issued by the external identity provider
    AUTH_SECRET_KEY: str = "change-me-in-production-use-provider-signing-key"
    AUTH_ALGORITHM: str = "HS256"
    AUTH_AUDIENCE: Optional[str] = None

    SEED_DEMO_DATA: bool = False

    class Config:
        env_file = ".env"

    @property
    def summarizer_configured(self) -> bool:
        return bool(
            self.AZURE_OPENAI_ENDPOINT
            and self.AZURE_OPENAI_API_KEY
            and self.AZURE_OPENAI_DEPLOYMENT
        )


settings = Settings()
