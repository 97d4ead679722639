import logging
import os
import threading
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Callable, Optional

import yaml

logger = logging.getLogger(__name__)

REASONING_EFFORTS = ("low", "medium", "high")
MAX_TOKENS_CAP = 8000

DEFAULT_CONFIG: dict = {
    "openai_api_key": None,
    "openai_model": "gpt-5-mini",
    "reasoning_effort": "low",
    "auto_moderation_enabled": False,
    "confidence_threshold": 0.7,
    "max_tokens": 800,
    "temperature": 0.1,
    "moderate_post_comments": True,
    "moderate_page_comments": True,
    "moderate_product_comments": False,
    "log_decisions": True,
    "store": "sqlite",  # "sqlite" or "memory"
    "store_path": ".modlens.db",
    "scheduler": "deferred",  # "deferred" (background thread) or "polling"
    "schedule_delay": 5,
    "retry_delay": 10,
    "sweep_interval": 120,
    "sweep_batch_size": 10,
    "sweep_pause": 1.0,
    "kick_cooldown": 60,
    "tick_cooldown": 8,
    "process_now_limit": 50,
    "api_base_url": "https://api.openai.com/v1",
    "max_retries": 2,
}


def load_config(config_path: str = ".modlens.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .modlens.yml in the current directory
      3. CLI argument overrides
    The API key falls back to OPENAI_API_KEY when neither sets it.
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    if not config.get("openai_api_key"):
        config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class ModerationConfig:
    """Typed snapshot of the options the pipeline reads.

    Components take one at construction and get a fresh one through
    refresh(); nothing reads the options file on every access.
    """

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-5-mini"
    reasoning_effort: str = "low"
    auto_moderation_enabled: bool = False
    confidence_threshold: float = 0.7
    max_tokens: int = 800
    temperature: float = 0.1
    moderate_post_comments: bool = True
    moderate_page_comments: bool = True
    moderate_product_comments: bool = False
    log_decisions: bool = True
    store: str = "sqlite"
    store_path: str = ".modlens.db"
    scheduler: str = "deferred"
    schedule_delay: float = 5
    retry_delay: float = 10
    sweep_interval: float = 120
    sweep_batch_size: int = 10
    sweep_pause: float = 1.0
    kick_cooldown: float = 60
    tick_cooldown: float = 8
    process_now_limit: int = 50
    api_base_url: str = "https://api.openai.com/v1"
    max_retries: int = 2

    @classmethod
    def from_dict(cls, data: dict) -> "ModerationConfig":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known and v is not None}

        for key in ("auto_moderation_enabled", "moderate_post_comments", "moderate_page_comments",
                    "moderate_product_comments", "log_decisions"):
            if key in values:
                values[key] = _as_bool(values[key])
        for key in ("confidence_threshold", "temperature", "schedule_delay", "retry_delay", "sweep_interval",
                    "sweep_pause", "kick_cooldown", "tick_cooldown"):
            if key in values:
                values[key] = float(values[key])
        for key in ("sweep_batch_size", "process_now_limit", "max_retries"):
            if key in values:
                values[key] = int(values[key])

        if "max_tokens" in values:
            values["max_tokens"] = min(MAX_TOKENS_CAP, int(values["max_tokens"]))
        if "reasoning_effort" in values:
            values["reasoning_effort"] = str(values["reasoning_effort"]).strip().lower()
        if values.get("reasoning_effort") not in REASONING_EFFORTS:
            values["reasoning_effort"] = "low"
        if values.get("scheduler", "deferred") not in ("deferred", "polling"):
            raise ValueError(f"Unknown scheduler: {values['scheduler']!r}. Choose 'deferred' or 'polling'.")
        if values.get("store", "sqlite") not in ("sqlite", "memory"):
            raise ValueError(f"Unknown store: {values['store']!r}. Choose 'sqlite' or 'memory'.")
        return cls(**values)

    @property
    def has_credentials(self) -> bool:
        return bool(self.openai_api_key)

    def moderates_document_type(self, doc_type: str) -> bool:
        """Per-content-type toggle. Unknown document types are never moderated."""
        toggles = {
            "post": self.moderate_post_comments,
            "page": self.moderate_page_comments,
            "product": self.moderate_product_comments,
        }
        return toggles.get(doc_type, False)


class OptionsStore:
    """The options file as a reloadable source of ModerationConfig snapshots.

    subscribe(key, callback) registers callback(new_config) for when that key
    changes across a reload(); the dispatcher uses it to start or stop the
    periodic sweep when auto_moderation_enabled flips.
    """

    def __init__(self, config_path: str = ".modlens.yml", cli_overrides: Optional[dict] = None):
        self._config_path = config_path
        self._cli_overrides = cli_overrides
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Callable[[ModerationConfig], None]]] = {}
        self._raw = load_config(config_path, cli_overrides)
        self._config = ModerationConfig.from_dict(self._raw)

    @property
    def config(self) -> ModerationConfig:
        return self._config

    def get(self, key: str, default=None):
        return self._raw.get(key, default)

    def subscribe(self, key: str, callback: Callable[[ModerationConfig], None]) -> None:
        self._subscribers.setdefault(key, []).append(callback)

    def reload(self) -> ModerationConfig:
        """Re-read the options file and notify subscribers of changed keys."""
        raw = load_config(self._config_path, self._cli_overrides)
        config = ModerationConfig.from_dict(raw)
        with self._lock:
            previous = self._raw
            self._raw = raw
            self._config = config

        changed = [key for key in self._subscribers if previous.get(key) != raw.get(key)]
        for key in changed:
            logger.debug("Option %s changed: %r -> %r", key, previous.get(key), raw.get(key))
            for callback in self._subscribers[key]:
                callback(config)
        return config
