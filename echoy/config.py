"""Handles all user-facing configuration."""

import json
import logging
import os

from echoy.globals import CONFIG_FILE, USER_NAME

logger = logging.getLogger(__name__)


class Config:
    """User-facing configuration variables"""

    def __init__(self):
        # Display names used in prompts
        self.user_name: str = USER_NAME
        self.assistant_name: str = "Echoy"
        # Generation backend
        self.provider: str = "openai"
        self.model: str = "gpt-4o-mini"
        self.endpoint: str = "https://api.openai.com/v1"
        self.max_tokens: int = 1000
        self.temperature: float = 0.7
        self.top_p: float = 0.5
        self.system_prompt: str = ""
        # Chat behaviour
        self.streaming: bool = True
        self.context_policy: str = "turn"  # turn | transcript
        self.partial_stream_policy: str = "discard"  # discard | persist
        self.thinking_interval: float = 0.3
        self.show_status: bool = True
        self.log_level: str = "ERROR"

    def save(self, path: str = ""):
        """Saves any config changes to the config file."""
        path = path or CONFIG_FILE
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.__dict__, f, indent=2)

    def load(self, path: str = ""):
        """Loads the config file, creating it on first run."""
        path = path or CONFIG_FILE
        if not os.path.exists(path):
            self.save(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for key, val in data.items():
            if not hasattr(self, key):
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            setattr(self, key, val)
