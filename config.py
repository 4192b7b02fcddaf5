# config.py
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    # --- Metadata ---
    APP_NAME: str = "Speech Clarity Analyzer"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "On-device transcript and prosody analysis for spoken responses"

    # --- Logging ---
    LOG_LEVEL: str = Field("INFO")
    LOG_FILE: Optional[str] = Field(None)
    JSON_LOGS: bool = Field(False)

    # --- Capture ---
    SAMPLE_RATE: int = Field(16000, ge=8000, le=48000)
    FRAME_PERIOD_MS: int = Field(100, ge=10, le=1000, description="Frame sampling period")
    SILENCE_RMS_THRESHOLD: float = Field(0.01, ge=0.0, description="RMS noise floor")
    PITCH_MIN_HZ: float = Field(70.0, gt=0.0)
    PITCH_MAX_HZ: float = Field(400.0, gt=0.0)
    PREFILTER_HPF_HZ: float = Field(80.0, ge=0.0, description="High-pass cutoff before pitch, 0 disables")

    # --- Recognition ---
    RECOGNITION_LANGUAGE: str = Field("en-GB")
    RECOGNITION_MAX_RESTARTS: int = Field(
        20, ge=0, description="Consecutive engine restarts without results, 0 = unbounded"
    )

    # --- Scoring ---
    NEUTRAL_WORD_CONFIDENCE: int = Field(75, ge=0, le=100)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = AppSettings()
