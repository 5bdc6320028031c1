"""
Configuration management for the Credzi backend.
Settings for the API, MongoDB, the Algorand node, Pinata and wallet signing.
"""

from typing import Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

ENVIRONMENTS = ("development", "staging", "production")


class Settings(BaseSettings):
    """Credzi settings, read from the environment or a .env file."""

    # Application
    APP_NAME: str = "Credzi Backend"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS and host checks, comma-separated in the environment
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    ALLOWED_HOSTS: List[str] = ["localhost", "127.0.0.1"]

    # Public URL of the frontend, used in verification links
    PUBLIC_BASE_URL: str = "http://localhost:3000"

    # MongoDB; MONGO_URI and MONGO_DB_NAME win when set
    MONGO_URI: Optional[str] = None
    MONGO_DB_NAME: Optional[str] = None
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "credzi"
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[str] = None

    # Algorand node
    ALGOD_SERVER: str = "https://testnet-api.algonode.cloud"
    ALGOD_TOKEN: str = ""
    # Header name for hosted nodes that expect the token outside X-Algo-API-Token
    ALGOD_API_KEY_HEADER: Optional[str] = None
    CONFIRMATION_WAIT_ROUNDS: int = 4
    CERTIFICATE_UNIT_NAME: str = "CERT"

    # IPFS (Pinata)
    PINATA_API_KEY: Optional[str] = None
    PINATA_SECRET_API_KEY: Optional[str] = None
    PINATA_JWT: Optional[str] = None  # preferred when present
    PINATA_PIN_JSON_URL: str = "https://api.pinata.cloud/pinning/pinJSONToIPFS"
    IPFS_GATEWAY_URL: str = "https://gateway.pinata.cloud/ipfs"
    IPFS_TIMEOUT_SECONDS: float = 30.0

    # Wallet signing requests; None waits until the wallet answers
    SIGNING_REQUEST_TIMEOUT_SECONDS: Optional[float] = None

    # Logging; production always renders JSON
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @field_validator("ALLOWED_ORIGINS", "ALLOWED_HOSTS", mode="before")
    @classmethod
    def split_comma_separated(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def check_environment(cls, v):
        if v not in ENVIRONMENTS:
            raise ValueError(f"ENVIRONMENT must be one of {', '.join(ENVIRONMENTS)}")
        return v

    @field_validator("LOG_FORMAT")
    @classmethod
    def check_log_format(cls, v):
        if v not in ("console", "json"):
            raise ValueError("LOG_FORMAT must be console or json")
        return v

    @field_validator("CONFIRMATION_WAIT_ROUNDS")
    @classmethod
    def check_wait_rounds(cls, v):
        if v < 1:
            raise ValueError("CONFIRMATION_WAIT_ROUNDS must be at least 1")
        return v

    def model_post_init(self, __context: Any) -> None:  # type: ignore[override]
        """Strip trailing slashes so URLs can be joined safely."""
        self.IPFS_GATEWAY_URL = self.IPFS_GATEWAY_URL.rstrip("/")
        self.PUBLIC_BASE_URL = self.PUBLIC_BASE_URL.rstrip("/")

    def get_effective_cors_origins(self) -> List[str]:
        """Configured origins plus the public frontend URL."""
        origins = list(self.ALLOWED_ORIGINS)
        if self.PUBLIC_BASE_URL not in origins:
            origins.append(self.PUBLIC_BASE_URL)
        return origins


settings = Settings()


def get_mongodb_url() -> str:
    """
    Connection string for MongoDB.

    MONGO_URI is used as is. Otherwise MONGODB_URL is used, with the
    configured username and password inserted when it carries no credentials.
    """
    if settings.MONGO_URI:
        return settings.MONGO_URI

    url = settings.MONGODB_URL
    scheme, _, rest = url.partition("://")
    if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD and "@" not in rest:
        return f"{scheme}://{settings.MONGODB_USERNAME}:{settings.MONGODB_PASSWORD}@{rest}"
    return url


def get_mongodb_database_name() -> str:
    return settings.MONGO_DB_NAME or settings.MONGODB_DATABASE


def is_production() -> bool:
    return settings.ENVIRONMENT == "production"
