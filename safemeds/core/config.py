from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI powers both the label reader and the safety check
    openai_api_key: str = ""
    vision_model: str = "gpt-4o-mini"
    reasoning_model: str = "o4-mini"
    # set to "" to use a non-reasoning model at low temperature
    reasoning_effort: Optional[str] = "medium"

    openfda_url: str = "https://api.fda.gov/drug/label.json"
    http_timeout: float = 20.0
    label_lookup_lenient: bool = False

    # Render / Prod: set DATABASE_URL in the dashboard
    database_url: str = "sqlite+aiosqlite:///./safemeds.db"
    database_echo: bool = False
    profile_storage_key: str = "safeMedsProfile"

    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

settings = Settings()
