from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    default_page_limit: int = Field(50, alias="DEFAULT_PAGE_LIMIT")
    max_page_limit: int = Field(200, alias="MAX_PAGE_LIMIT")

    # Human-facing identifiers; changing these after go-live breaks numbering continuity.
    receipt_prefix: str = Field("REC", alias="RECEIPT_PREFIX")
    invoice_prefix: str = Field("INV", alias="INVOICE_PREFIX")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
