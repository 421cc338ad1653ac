"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Artifact data
    ARTIFACT_DATA_PATH: str = "src/data/artifacts.json"

    # 경험치: 전역 분모 + 길드 버프(%)
    ARTIFACT_XP_RATE: int = 350
    GUILD_BUFF_ARTIFACT_XP: int = 5

    # Encounter credit
    CREDIT_RADIUS: int = 3500

    # Inventory / scholar
    BACKPACK_SLOTS: int = 40
    SCHOLAR_SHOW_ALL: bool = True


settings = Settings()
