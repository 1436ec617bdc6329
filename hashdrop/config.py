from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Values may also be placed in a .env file next to the working directory.
    """

    app_name: str = "hashdrop"
    base_url: str = "http://localhost:8000"  # Used to build redirect URLs after a submission
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Database configuration (separate credentials, or a full DSN override)
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "hashdrop"
    database_user: str = "hashdrop"
    database_password: str = ""
    database_sslmode: str = "prefer"
    database_dsn: Optional[str] = None

    # Object storage
    storage_backend: str = "local"  # "local" or "s3"
    storage_local_path: str = "instance/objects"
    storage_bucket: str = "hashdrop-attachments"
    s3_region: Optional[str] = None
    s3_endpoint_url: Optional[str] = None  # For MinIO or other S3-compatible stores
    s3_multipart_threshold: int = 8 * 1024 * 1024
    s3_part_size: int = 8 * 1024 * 1024
    s3_max_concurrency: int = 10
    s3_wait_timeout_seconds: int = 60

    # Uploads
    max_upload_size: int = 32 * 1024 * 1024  # 32 MiB per request
    upload_concurrency: int = 1  # Attachments uploaded in parallel within one submission

    # CORS configuration
    cors_origins: str = "http://localhost:3000,http://localhost:8080"

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def database_url(self) -> str:
        """Construct database URL from separate credentials unless a DSN is given."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
            f"?sslmode={self.database_sslmode}"
        )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings():
    """Get cached settings instance."""
    try:
        return Settings()
    except Exception:
        print("\n" + "="*70)
        print("ERROR: Failed to load configuration!")
        print("="*70)
        print("\nInvalid environment variables.")
        print("\nThe service reads these variables (all optional):")
        print("  - BASE_URL (public URL used in redirect links)")
        print("  - DATABASE_HOST / DATABASE_PORT / DATABASE_NAME")
        print("  - DATABASE_USER / DATABASE_PASSWORD / DATABASE_SSLMODE")
        print("  - DATABASE_DSN (overrides the variables above)")
        print("  - STORAGE_BACKEND (local or s3) and STORAGE_BUCKET")
        print("  - S3_REGION / S3_ENDPOINT_URL")
        print("  - MAX_UPLOAD_SIZE (bytes, defaults to 32 MiB)")
        print("="*70)
        raise
