from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True)

    ENVIRONMENT: str = "development"

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8889

    # Token verification (HS256 shared secret issued by the auth service).
    # HS256 keys shorter than 256 bits are refused by jwcrypto.
    JWT_SECRET: str = Field(min_length=32)
    JWT_ALGORITHM: str = "HS256"

    # Identity keys: "user<id>" for admin panel users, "member<id>" for members
    ADMIN_IDENTITY_PREFIX: str = "user"
    MEMBER_IDENTITY_PREFIX: str = "member"

    # WebSocket connection tuning
    WS_SEND_QUEUE_SIZE: int = 256
    WS_ENQUEUE_TIMEOUT_SECONDS: float = 0.1
    WS_IDLE_TIMEOUT_SECONDS: float = 60
    WS_PING_INTERVAL_SECONDS: float = 30
    WS_WRITE_TIMEOUT_SECONDS: float = 10

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = "logs/errors.log"
    LOKI_ENABLED: bool = False
    LOKI_URL: str = "http://loki:3100"
    LOKI_VERSION: str = "1"


app_settings = Settings()
