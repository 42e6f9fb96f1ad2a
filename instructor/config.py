"""
Configuration for the screen monitor.
"""
from pydantic import BaseModel, Field
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    MONITOR_INTERVAL: float = Field(float(os.getenv("MONITOR_INTERVAL", "5")), gt=0)
    FLASH_INTERVAL: float = Field(float(os.getenv("FLASH_INTERVAL", "0.4")), gt=0)
    NEEDS_HELP_THRESHOLD: int = Field(int(os.getenv("NEEDS_HELP_THRESHOLD", "5")), gt=0)
    LOG_CAPACITY: int = Field(int(os.getenv("LOG_CAPACITY", "1000")), gt=0)

    ASSET_DIR: str = os.getenv("ASSET_DIR", "assets")
    CASCADE_FILE: str = os.getenv("CASCADE_FILE", "haarcascade_frontalface_default.xml")
    CASCADE_URL: str = os.getenv(
        "CASCADE_URL",
        "https://raw.githubusercontent.com/opencv/opencv/master/data/haarcascades/"
        "haarcascade_frontalface_default.xml",
    )
    DOWNLOAD_TIMEOUT: float = Field(float(os.getenv("DOWNLOAD_TIMEOUT", "30")), gt=0)
    PRIMARY_MODEL_PATH: str = os.getenv("PRIMARY_MODEL_PATH", "assets/emotion_cnn.onnx")
    SECONDARY_MODEL_PATH: str = os.getenv("SECONDARY_MODEL_PATH", "assets/emotion-ferplus-8.onnx")

    # Cascade detector tuning
    SCALE_FACTOR: float = Field(float(os.getenv("SCALE_FACTOR", "1.1")), gt=1.0)
    MIN_NEIGHBORS: int = Field(int(os.getenv("MIN_NEIGHBORS", "5")), ge=0)
    MIN_FACE_SIZE: int = Field(int(os.getenv("MIN_FACE_SIZE", "30")), gt=0)
    MAX_FACE_SIZE: int = Field(int(os.getenv("MAX_FACE_SIZE", "500")), gt=0)
    MERGE_IOU: float = Field(float(os.getenv("MERGE_IOU", "0.3")), ge=0.0, le=1.0)

    MONITOR_INDEX: int = int(os.getenv("MONITOR_INDEX", "1"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize LOG_LEVEL: first word, upper-case, fall back to INFO
        parts = (self.LOG_LEVEL or "").split()
        level = parts[0].upper() if parts else "INFO"
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            level = "INFO"
        object.__setattr__(self, "LOG_LEVEL", level)

    @property
    def cascade_path(self) -> str:
        return os.path.join(self.ASSET_DIR, self.CASCADE_FILE)
