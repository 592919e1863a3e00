"""Engine configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "CHATONS_"}

    missing_data_default: str | None = "0"  # None keeps the @reference text
    warn_missing_data: bool = False
    max_dice: int = 100
    max_faces: int = 1000
    max_explosions: int = 100  # per dice group
    log_level: str = "WARNING"


settings = Settings()
