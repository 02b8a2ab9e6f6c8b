from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    google_cloud_project: str = ""
    google_application_credentials: str = ""
    gemini_api_key: str = ""
    firestore_emulator_host: Optional[str] = None
    judge_model: str = "gemini-2.5-flash"
    generator_model: str = "gemini-2.5-flash"

    # Seed list size every generated game must carry
    answer_count: int = 200
    # Arbiter ranks above the seed list are allowed up to this ceiling
    max_judge_rank: int = 500
    judge_max_retries: int = 2
    # False: a miss is not recorded and the player may retry the round
    record_misses: bool = False

    # CORS origins; set ALLOWED_ORIGINS env var for production (JSON list)
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ]
    # Extra production origin (e.g. Cloud Run URL); appended to allowed_origins
    extra_origin: str = ""
    debug: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
    )


settings = Settings()
