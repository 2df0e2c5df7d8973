"""Handles all user-facing configuration actions."""

import json
import os

from genchat.globals import CONFIG_FILE

LANGUAGES = ("pt-BR", "en-US")


class Config:
    """User-facing configuration variables"""

    def __init__(self):
        # Any OpenAI-compatible endpoint works; Gemini exposes one
        self.models: list[dict] = [
            {
                "alias": "default",
                "name": "gemini-2.5-flash",
                "endpoint": "https://generativelanguage.googleapis.com/v1beta/openai/",
                "api_key": "stored",
            }
        ]
        # Default values
        self.active_model: str = "default"
        self.language: str = "pt-BR"
        self.title_model: str = "gemini-2.5-flash"
        self.image_model: str = "imagen-4.0-generate-001"
        self.video_model: str = "veo-2.0-generate-001"
        self.poll_interval: float = 10.0
        # None polls until the operation reports completion
        self.poll_timeout: float | None = None
        self.refresh_rate: int = 30
        self.rich_code_theme: str = "monokai"

    def active(self) -> dict:
        """Return the currently active model profile."""
        for m in self.models:
            if m["alias"] == self.active_model:
                return m
        return self.models[0]

    def save(self):
        """Saves any config changes to the config file."""
        with open(CONFIG_FILE, "w", encoding="utf-8") as f:
            json.dump(self.__dict__, f, indent=2)

    def load(self):
        """Loads the config file."""
        if not os.path.exists(CONFIG_FILE):
            self.save()
        with open(CONFIG_FILE, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, val in data.items():
            setattr(self, key, val)
        if self.language not in LANGUAGES:
            self.language = LANGUAGES[0]

    @property
    def endpoint(self) -> str:
        """Returns the API endpoint for the generation client"""
        return self.active()["endpoint"]

    @property
    def model_name(self) -> str:
        """Returns the chat model name for the generation client"""
        return self.active()["name"]

    @property
    def alias_name(self) -> str:
        """Returns the profile name"""
        return self.active()["alias"]
