# Path: config/settings.py
# Purpose: Provide typed application configuration models.
# Layer: config.
# Details: Centralizes settings for the chat endpoint, cropping, storage paths, and logging.

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_SYSTEM_PROMPT = "You are a Mathematics tutor. Provide a detailed, step-by-step solution with explanations."
DEFAULT_SOLUTION_PROMPT = "This image contains a math problem. Please analyze and provide a detailed explanation."


class ChatSettings(BaseModel):
    """Settings describing the chat-completion endpoint and the prompts sent to it."""

    endpoint: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        description="URL of the streaming chat-completion endpoint.",
    )
    model: str = Field(default="gpt-4o", description="Vision-capable model identifier.")
    solution_temperature: float = Field(default=0.2, description="Sampling temperature for image solutions.")
    chat_temperature: float = Field(default=0.7, description="Sampling temperature for follow-up chat turns.")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, description="System instruction for every request.")
    solution_prompt: str = Field(
        default=DEFAULT_SOLUTION_PROMPT,
        description="Text part sent next to the problem image in the user turn.",
    )
    user_prompt: str = Field(
        default="Help me solve this problem.",
        description="Visible user message appended after the problem image.",
    )
    api_key_env: str = Field(default="OPENAI_API_KEY", description="Environment variable holding the API key.")
    secrets_path: Path = Field(default=Path("secrets.json"), description="Fallback file holding the API key.")
    request_timeout: Optional[float] = Field(
        default=60.0, description="Transport timeout in seconds; None disables the timeout."
    )


class CropSettings(BaseModel):
    """Settings controlling crop rectangle behaviour and image encoding."""

    min_dimension: float = Field(default=100.0, description="Smallest allowed crop width/height in display units.")
    move_sensitivity: float = Field(default=0.25, description="Damping factor applied to whole-rect drags.")
    initial_width_ratio: float = Field(default=0.8, description="Initial crop width as a share of the bounds.")
    initial_height_ratio: float = Field(default=0.4, description="Initial crop height as a share of the bounds.")
    jpeg_quality: int = Field(default=80, description="JPEG quality used when encoding images for upload.")


class StorageSettings(BaseModel):
    """Settings controlling persistence paths."""

    database_path: Path = Field(default=Path("storage/db/solutions.sqlite3"), description="Path to the solution store.")
    transcript_cache_dir: Path = Field(default=Path("storage/transcripts"), description="Local transcript cache.")
    device_id_path: Path = Field(default=Path("storage/device_id"), description="File holding the per-install id.")


class AppSettings(BaseModel):
    """Top-level application settings shared across services and interfaces."""

    chat: ChatSettings = Field(default_factory=ChatSettings)
    crop: CropSettings = Field(default_factory=CropSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    log_level: str = Field(default="INFO", description="Verbosity level for application logs.")

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "AppSettings":
        """Instantiate settings, applying ``HOMEWORK_HELPER_*`` environment overrides when present."""

        env = os.environ if environ is None else environ
        settings = cls()
        if env.get("HOMEWORK_HELPER_LOG_LEVEL"):
            settings.log_level = env["HOMEWORK_HELPER_LOG_LEVEL"]
        if env.get("HOMEWORK_HELPER_ENDPOINT"):
            settings.chat.endpoint = env["HOMEWORK_HELPER_ENDPOINT"]
        if env.get("HOMEWORK_HELPER_MODEL"):
            settings.chat.model = env["HOMEWORK_HELPER_MODEL"]
        if env.get("HOMEWORK_HELPER_SECRETS"):
            settings.chat.secrets_path = Path(env["HOMEWORK_HELPER_SECRETS"])
        if env.get("HOMEWORK_HELPER_DATABASE"):
            settings.storage.database_path = Path(env["HOMEWORK_HELPER_DATABASE"])
        return settings


__all__ = ["AppSettings", "ChatSettings", "CropSettings", "StorageSettings"]
