from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Required
    google_api_key: str

    # Vision service
    gemini_model: str = "gemini-2.5-flash"
    vision_temperature: float = 0.0
    vision_output_mode: str = "structured"  # structured | text
    vision_timeout: int = 60
    vision_max_retries: int = 2

    # Shopify catalog export
    shopify_shop_domain: Optional[str] = None
    shopify_access_token: Optional[str] = None
    shopify_api_version: str = "2024-10"
    shopify_timeout: int = 30
    default_vendor: str = "AI Generated"
    default_product_type: str = "General"

    # Optional with defaults
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    max_file_size: int = 5242880  # 5MB
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
