"""Configuration settings for the face recognition demo."""
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        MATCH_THRESHOLD: Maximum Euclidean distance for two embeddings to count as the same person;
            unset, the model service's recommended threshold applies
        RECOGNITION_INTERVAL_MS: Tick interval of the recognition loop in milliseconds
        RECOGNITION_COOLDOWN_SECONDS: Minimum gap between two logged recognitions of one identity
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
    )

    # Core Settings
    PROJECT_NAME: str = "Face Recognition Demo"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"

    # Face Recognition Settings
    MATCH_THRESHOLD: Optional[float] = None  # None uses the model service's calibrated threshold
    MAX_FACES_PER_FRAME: int = 5
    MODEL_NAME: str = "buffalo_l"
    MODEL_CACHE_DIR: str = ".model_cache"
    DETECTION_SIZE: int = 640
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)

    # Camera Settings
    CAMERA_INDEX: int = 0
    CAMERA_WIDTH: int = 640
    CAMERA_HEIGHT: int = 480
    RECOGNITION_INTERVAL_MS: int = 100
    SHOW_CONFIDENCE: bool = True

    # Storage Settings
    DATA_DIR: str = "data"
    USERS_KEY: str = "facerecog_users"
    RECOGNITIONS_KEY: str = "facerecog_recognitions"

    # Activity Settings
    RECOGNITION_LOCATION: str = "Main Entrance"
    RECOGNITION_COOLDOWN_SECONDS: float = 30.0
    AUTO_DELETE_OLD_RECORDS: bool = True
    RETENTION_DAYS: int = 90

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    @property
    def data_path(self) -> Path:
        """Directory holding the persisted JSON blobs."""
        return Path(self.DATA_DIR)

    @property
    def recognition_interval(self) -> float:
        """Recognition tick interval in seconds."""
        return self.RECOGNITION_INTERVAL_MS / 1000.0


settings = Settings()
