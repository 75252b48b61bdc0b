"""Configuration constants for the memory assistant."""

from __future__ import annotations

# Language model
AI_MODEL = "gpt-4o-mini"
API_TIMEOUT = 60.0  # seconds
CLASSIFICATION_TEMPERATURE = 0.0
EXTRACTION_TEMPERATURE = 0.0
RECALL_TEMPERATURE = 0.3

DEFAULT_PROVIDER = "openai"
PROVIDER_BASE_URLS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com/v1",
    "vllm": "http://localhost:1109/v1",
}

# Storage
STORAGE_KEY = "@memory_app:memories"
BACKUP_SUFFIX = ":backup"
DEFAULT_DB_PATH = "~/.pocketmem/memories.sqlite"

# Memory record defaults
MEMORY_TYPE = "Fact"
DEFAULT_EXPIRES = "Never"

# User-facing text
INITIAL_MESSAGE = 'Memory app ready.\nTry: "Remember my favorite food is pizza"'
EXTRACTION_HINT = 'Try: "Remember that <fact> is <value>"'
NOTHING_STORED_MESSAGE = "I don't have any memories stored yet."
SAVE_WARNING = "Warning: the change could not be saved and may not survive a restart."


__all__ = [
    "AI_MODEL",
    "API_TIMEOUT",
    "BACKUP_SUFFIX",
    "CLASSIFICATION_TEMPERATURE",
    "DEFAULT_DB_PATH",
    "DEFAULT_EXPIRES",
    "DEFAULT_PROVIDER",
    "EXTRACTION_HINT",
    "EXTRACTION_TEMPERATURE",
    "INITIAL_MESSAGE",
    "MEMORY_TYPE",
    "NOTHING_STORED_MESSAGE",
    "PROVIDER_BASE_URLS",
    "RECALL_TEMPERATURE",
    "SAVE_WARNING",
    "STORAGE_KEY",
]
