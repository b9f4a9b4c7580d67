"""Application configuration.

Settings come from ~/.trackmybrain/config.json when present, overridden by
environment variables (which main loads from a .env file).
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".trackmybrain"
DEFAULT_CONFIG_PATH = DEFAULT_HOME / "config.json"
DEFAULT_MODEL = "llama-3.1-70b-versatile"
DEFAULT_EMBEDDING_MODEL = "nomic-embed-text-v1_5"
DEFAULT_VISION_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"


@dataclass
class AppConfig:
    """Configuration for the memory assistant.

    Attributes:
        data_dir: Directory holding the memory snapshot.
        model: Completion model name.
        embedding_model: Embedding model name.
        vision_model: Model used to analyze meal photos.
        top_k: Number of memories retrieved per question.
        max_context_chars: Optional cap on the retrieved context length.
        recent_limit: Default number of notes listed as recent.
        log_dir: Directory for the JSONL event log.
    """

    data_dir: Path | None = None
    model: str = DEFAULT_MODEL
    embedding_model: str = DEFAULT_EMBEDDING_MODEL
    vision_model: str = DEFAULT_VISION_MODEL
    top_k: int = 5
    max_context_chars: int | None = None
    recent_limit: int = 20
    log_dir: Path | None = None

    def __post_init__(self) -> None:
        """Validate config and set defaults."""
        if self.data_dir is None:
            self.data_dir = DEFAULT_HOME / "data"
        self.data_dir = Path(self.data_dir).expanduser()

        if self.log_dir is None:
            self.log_dir = DEFAULT_HOME / "logs"
        self.log_dir = Path(self.log_dir).expanduser()

        if self.top_k < 1:
            raise ValueError("top_k must be at least 1")
        if self.max_context_chars is not None and self.max_context_chars < 1:
            raise ValueError("max_context_chars must be at least 1")
        if self.recent_limit < 0:
            raise ValueError("recent_limit must be non-negative")


def _int_setting(raw: Any, name: str, default: int | None) -> int | None:
    """Parse an integer setting, keeping the default if it is unusable."""
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid %s=%r, using %r", name, raw, default)
        return default


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load AppConfig from a JSON file.

    The config file should have this structure:
    ```json
    {
      "data_dir": "~/.trackmybrain/data",
      "model": "llama-3.1-70b-versatile",
      "embedding_model": "nomic-embed-text-v1_5",
      "vision_model": "meta-llama/llama-4-scout-17b-16e-instruct",
      "retrieval": {"top_k": 5, "max_context_chars": 4000},
      "recent_limit": 20
    }
    ```

    Args:
        config_path: Path to config file. Uses DEFAULT_CONFIG_PATH if None.

    Returns:
        AppConfig instance with loaded values.
    """
    path = config_path or DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.debug("No config file at %s, using defaults", path)
        return AppConfig()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s: %s. Using defaults.", path, e)
        return AppConfig()
    except OSError as e:
        logger.warning("Cannot read %s: %s. Using defaults.", path, e)
        return AppConfig()

    if not isinstance(data, dict):
        logger.warning("Config in %s is not an object. Using defaults.", path)
        return AppConfig()

    return _parse_config(data)


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse config dictionary into AppConfig."""
    retrieval = data.get("retrieval", {})
    if not isinstance(retrieval, dict):
        retrieval = {}

    top_k = _int_setting(retrieval.get("top_k"), "top_k", 5)
    if top_k is None or top_k < 1:
        top_k = 5

    max_chars = _int_setting(retrieval.get("max_context_chars"), "max_context_chars", None)
    if max_chars is not None and max_chars < 1:
        max_chars = None

    recent_limit = _int_setting(data.get("recent_limit"), "recent_limit", 20)
    if recent_limit is None or recent_limit < 0:
        recent_limit = 20

    data_dir = data.get("data_dir")
    log_dir = data.get("log_dir")

    return AppConfig(
        data_dir=Path(data_dir) if isinstance(data_dir, str) else None,
        model=str(data.get("model") or DEFAULT_MODEL),
        embedding_model=str(data.get("embedding_model") or DEFAULT_EMBEDDING_MODEL),
        vision_model=str(data.get("vision_model") or DEFAULT_VISION_MODEL),
        top_k=top_k,
        max_context_chars=max_chars,
        recent_limit=recent_limit,
        log_dir=Path(log_dir) if isinstance(log_dir, str) else None,
    )


def save_config(config: AppConfig, config_path: Path | None = None) -> None:
    """Save AppConfig to a JSON file.

    Args:
        config: The config to save.
        config_path: Path to write to. Uses DEFAULT_CONFIG_PATH if None.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    retrieval: dict[str, Any] = {"top_k": config.top_k}
    if config.max_context_chars is not None:
        retrieval["max_context_chars"] = config.max_context_chars

    data: dict[str, Any] = {
        "data_dir": str(config.data_dir),
        "model": config.model,
        "embedding_model": config.embedding_model,
        "vision_model": config.vision_model,
        "retrieval": retrieval,
        "recent_limit": config.recent_limit,
        "log_dir": str(config.log_dir),
    }

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
    except OSError as e:
        logger.error("Failed to save config to %s: %s", path, e)
        raise


def config_from_env(base: AppConfig | None = None) -> AppConfig:
    """Apply environment variable overrides on top of a base config."""
    base = base or AppConfig()

    data_dir = os.getenv("TRACKMYBRAIN_DATA_DIR")
    log_dir = os.getenv("TRACKMYBRAIN_LOG_DIR")

    top_k = _int_setting(os.getenv("TRACKMYBRAIN_TOP_K"), "TRACKMYBRAIN_TOP_K", base.top_k)
    if top_k is None or top_k < 1:
        logger.warning("TRACKMYBRAIN_TOP_K must be at least 1, using %d", base.top_k)
        top_k = base.top_k

    max_chars = _int_setting(
        os.getenv("TRACKMYBRAIN_MAX_CONTEXT_CHARS"),
        "TRACKMYBRAIN_MAX_CONTEXT_CHARS",
        base.max_context_chars,
    )
    if max_chars is not None and max_chars < 1:
        logger.warning(
            "TRACKMYBRAIN_MAX_CONTEXT_CHARS must be at least 1, using %r", base.max_context_chars
        )
        max_chars = base.max_context_chars

    recent_limit = _int_setting(
        os.getenv("TRACKMYBRAIN_RECENT_LIMIT"), "TRACKMYBRAIN_RECENT_LIMIT", base.recent_limit
    )
    if recent_limit is None or recent_limit < 0:
        recent_limit = base.recent_limit

    return AppConfig(
        data_dir=Path(data_dir) if data_dir else base.data_dir,
        model=os.getenv("GROQ_MODEL") or base.model,
        embedding_model=os.getenv("GROQ_EMBEDDING_MODEL") or base.embedding_model,
        vision_model=os.getenv("GROQ_VISION_MODEL") or base.vision_model,
        top_k=top_k,
        max_context_chars=max_chars,
        recent_limit=recent_limit,
        log_dir=Path(log_dir) if log_dir else base.log_dir,
    )
