"""
Pydantic data models for monitor results and API IO.
"""
from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from typing import Literal

# Shared 7-label vocabulary of both emotion models
EMOTION_LABELS = ("Angry", "Disgust", "Fear", "Happy", "Sad", "Surprise", "Neutral")
POSITIVE_LABELS = ("Happy", "Neutral")

PROCEED_AHEAD = "Proceed Ahead"
NEEDS_HELP = "Needs Help"
UNCLASSIFIED = "Unclassified"

PRIMARY_MODEL = "CNN"
SECONDARY_MODEL = "FerPlus"

Classification = Literal["Proceed Ahead", "Needs Help", "Unclassified"]
RecordKind = Literal["Proceed Ahead", "Needs Help", "Unclassified", "N/A", "INFO", "ERROR"]
SessionState = Literal["Idle", "Initializing", "Active"]
StatusText = Literal["Initializing", "Monitoring", "Processing", "Stopped", "Error"]


class FaceRegion(BaseModel):
    """Axis-aligned face box plus the PNG-encoded crop of that box."""
    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    pixel_data: bytes = Field(repr=False)

    @property
    def area(self) -> int:
        return self.width * self.height


class EmotionVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    primary_label: str
    secondary_label: str
    fused_label: str
    model_used: str
    classification: Classification


class LogRecord(BaseModel):
    """One operator-visible log line. face_index 0 is reserved for system records."""
    model_config = ConfigDict(frozen=True)

    timestamp: str
    face_index: int = Field(ge=0)
    primary_label: str = ""
    secondary_label: str = ""
    model_used: str = ""
    fused_label: str = ""
    classification: RecordKind


class AlertStatus(BaseModel):
    active: bool = False
    flash_on: bool = False


class StatusSnapshot(BaseModel):
    state: SessionState
    status: StatusText
    face_count: int = 0
    alert_active: bool = False
    flash_on: bool = False
    needs_help_count: int = 0
    detailed_logging: bool = False
    log_size: int = 0
