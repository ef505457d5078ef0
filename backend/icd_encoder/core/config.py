"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Reference catalog (ICD_DATA_PATH overrides the bundled fixture)
    icd_data_path: str | None = None

    # Encoder output
    max_output_codes: int = 15
    min_candidate_score: float = 3.0
    index_fallback_limit: int = 5


settings = Settings()
