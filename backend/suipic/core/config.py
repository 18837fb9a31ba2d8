"""
Core configuration for Suipic application.
Loads settings from environment variables.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    APP_NAME: str = "Suipic"
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    # Database
    DATABASE_URL: str
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Identity provider (OIDC realm issuing the bearer tokens)
    IDP_URL: str = "http://localhost:8080"
    IDP_REALM: str = "suipic"
    IDP_JWKS_URL: str = ""  # Derived from issuer when empty
    IDP_AUDIENCE: Optional[str] = None
    IDP_ALGORITHMS: str = "RS256"
    JWKS_MIN_REFRESH_SECONDS: int = 300
    JWKS_FETCH_TIMEOUT_SECONDS: int = 10

    # Storage Provider
    STORAGE_PROVIDER: str = "s3"

    # S3 Compatible (Garage, MinIO, R2, AWS)
    S3_ENDPOINT_URL: str = "http://localhost:3900"
    S3_ACCESS_KEY_ID: str = ""
    S3_SECRET_ACCESS_KEY: str = ""
    S3_BUCKET_NAME: str = "suipic-images"
    S3_REGION_NAME: str = "garage"

    # Storage
    STORAGE_PATH_PREFIX: str = "images"
    MAX_FILE_SIZE_MB: int = 50

    # Image processing
    IMAGE_MAX_DIMENSION: int = 2048
    IMAGE_QUALITY: int = 80

    # Signed URLs
    SIGNED_URL_REDIRECT_TTL_SECONDS: int = 300  # 5 minutes, /file redirects
    SIGNED_URL_DETAIL_TTL_SECONDS: int = 3600  # 1 hour, detail view prefetch

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # First admin, created by `python -m suipic.seed`
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_IDENTITY_KEY: str = ""  # Pending (claimed by email at first sync) when empty

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def idp_issuer(self) -> str:
        """Issuer URL expected in the `iss` claim."""
        return f"{self.IDP_URL.rstrip('/')}/realms/{self.IDP_REALM}"

    @property
    def idp_jwks_url(self) -> str:
        """JWKS endpoint of the identity provider."""
        if self.IDP_JWKS_URL:
            return self.IDP_JWKS_URL
        return f"{self.idp_issuer}/protocol/openid-connect/certs"

    @property
    def idp_algorithms_list(self) -> List[str]:
        return [alg.strip() for alg in self.IDP_ALGORITHMS.split(",") if alg.strip()]

    @property
    def max_file_size_bytes(self) -> int:
        """Convert max file size to bytes."""
        return self.MAX_FILE_SIZE_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
