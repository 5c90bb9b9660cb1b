from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Nuvei REST API Emulator"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: str = "*"
    CORS_CREDENTIALS: bool = False

    # ── Nuvei gateway settings ──
    # Used when the caller's env block carries no baseUrl
    NUVEI_BASE_URL: str = "https://ppp-test.nuvei.com"
    NUVEI_API_PATH: str = "/ppp/api/v1"
    NUVEI_HTTP_TIMEOUT: float = 30.0
    NUVEI_CHECKSUM_ALGORITHM: str = "SHA256"

    # Externally reachable origin for notification / return URLs.
    # Empty means "derive from the inbound request".
    PUBLIC_BASE_URL: str = ""

    WEBHOOK_STORE_CAPACITY: int = 100

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS == "*":
            return ["*"]
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["development", "staging", "production"]
        if v.lower() not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v.lower()

    @field_validator("NUVEI_CHECKSUM_ALGORITHM")
    @classmethod
    def validate_checksum_algorithm(cls, v: str) -> str:
        allowed = ["SHA256", "SHA1"]
        if v.upper() not in allowed:
            raise ValueError(f"NUVEI_CHECKSUM_ALGORITHM must be one of: {allowed}")
        return v.upper()

    @field_validator("WEBHOOK_STORE_CAPACITY")
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("WEBHOOK_STORE_CAPACITY must be positive")
        return v


settings = Settings()
