"""memkeep configuration management."""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from memkeep.exceptions import InvalidConfigError
from memkeep.ids import MAX_NODE_ID

logger = logging.getLogger(__name__)

LLM_PROVIDERS = ("openai", "qwen", "deepseek", "ollama", "anthropic")
EMBEDDER_PROVIDERS = ("fastembed", "openai", "qwen")
VECTOR_STORE_PROVIDERS = ("duckdb", "memory")

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Per-provider defaults used when loading from the environment
LLM_DEFAULTS = {
    "openai": ("gpt-4o-mini", None),
    "qwen": ("qwen-plus", "https://dashscope.aliyuncs.com/compatible-mode/v1"),
    "deepseek": ("deepseek-chat", "https://api.deepseek.com"),
    "ollama": ("llama3.1:70b", "http://localhost:11434"),
    "anthropic": ("claude-3-5-sonnet-20240620", "https://api.anthropic.com"),
}

EMBEDDER_DEFAULTS = {
    "fastembed": ("BAAI/bge-small-en-v1.5", None),
    "openai": ("text-embedding-3-small", "https://api.openai.com/v1"),
    "qwen": ("text-embedding-v4", "https://dashscope.aliyuncs.com/api/v1"),
}


class LLMConfig(BaseModel):
    """Text generation provider settings."""

    model_config = ConfigDict(str_strip_whitespace=True)

    provider: str = "openai"
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        if value not in LLM_PROVIDERS:
            raise ValueError(f"unknown LLM provider '{value}' (expected one of {', '.join(LLM_PROVIDERS)})")
        return value


class EmbedderConfig(BaseModel):
    """Embedding provider settings."""

    model_config = ConfigDict(str_strip_whitespace=True)

    provider: str = "fastembed"
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: Optional[str] = None
    dimensions: Optional[int] = Field(default=None, gt=0)
    timeout: float = Field(default=30.0, gt=0)
    parameters: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        if value not in EMBEDDER_PROVIDERS:
            raise ValueError(
                f"unknown embedding provider '{value}' (expected one of {', '.join(EMBEDDER_PROVIDERS)})"
            )
        return value


class VectorStoreConfig(BaseModel):
    """Vector store settings."""

    model_config = ConfigDict(str_strip_whitespace=True)

    provider: str = "duckdb"
    db_path: Optional[Path] = None  # None = XDG data dir
    collection_name: str = "memories"
    embedding_model_dims: int = Field(default=384, gt=0)

    @field_validator("provider")
    @classmethod
    def _known_provider(cls, value: str) -> str:
        if value not in VECTOR_STORE_PROVIDERS:
            raise ValueError(
                f"unknown vector store provider '{value}' (expected one of {', '.join(VECTOR_STORE_PROVIDERS)})"
            )
        return value

    @field_validator("collection_name")
    @classmethod
    def _safe_identifier(cls, value: str) -> str:
        if not _IDENTIFIER_RE.match(value):
            raise ValueError(f"collection_name must be a plain SQL identifier, got '{value}'")
        return value

    def resolved_db_path(self) -> Path:
        if self.db_path is not None:
            return Path(self.db_path)
        return get_data_dir() / "memories.duckdb"


class IntelligenceConfig(BaseModel):
    """Deduplication and forgetting-curve settings."""

    enabled: bool = False
    decay_rate: float = Field(default=0.1, gt=0)
    reinforcement_factor: float = Field(default=0.3, gt=0)
    duplicate_threshold: float = Field(default=0.95, gt=0, le=1)
    archive_threshold: float = Field(default=0.2, ge=0, le=1)


class Config(BaseModel):
    """memkeep configuration."""

    model_config = ConfigDict(extra="forbid")

    # Distinct per process when several processes write one collection
    node_id: int = Field(default=1, ge=0, le=MAX_NODE_ID)
    llm: Optional[LLMConfig] = None
    embedder: EmbedderConfig = Field(default_factory=EmbedderConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    intelligence: Optional[IntelligenceConfig] = None


def _xdg_home(variable: str, fallback: str) -> Path:
    value = os.environ.get(variable)
    base = Path(value) if value else Path.home() / fallback
    return base / "memkeep"


def get_data_dir() -> Path:
    """Directory for the default DuckDB file ($XDG_DATA_HOME/memkeep)."""
    return _xdg_home("XDG_DATA_HOME", ".local/share")


def get_config_path() -> Path:
    """Location of config.json ($XDG_CONFIG_HOME/memkeep, else ~/.config/memkeep)."""
    return _xdg_home("XDG_CONFIG_HOME", ".config") / "config.json"


def validate_config(data: Dict[str, Any]) -> Config:
    """Build a ``Config`` from raw data, raising ``InvalidConfigError`` on any problem."""
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise InvalidConfigError(str(e), op="validate_config") from e


def load_config(path: Optional[Path] = None) -> Config:
    """Load memkeep configuration from a JSON file.

    Args:
        path: Path to config.json file. If None, uses default path

    Returns:
        Config object. Returns default config if the file doesn't exist.

    Raises:
        InvalidConfigError: If the file cannot be parsed or fails validation
    """
    if path is None:
        path = get_config_path()

    if not path.exists():
        return Config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise InvalidConfigError(f"failed to read config at {path}: {e}", op="load_config") from e

    return validate_config(data)


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Save configuration to a JSON file.

    Args:
        config: Config object to save
        path: Path to config.json file. If None, uses default path

    Returns:
        Path the configuration was written to
    """
    if path is None:
        path = get_config_path()

    path.parent.mkdir(parents=True, exist_ok=True)

    # Exclude None values for cleaner output
    config_data = config.model_dump(exclude_none=True, mode="json")

    with open(path, "w", encoding="utf-8") as f:
        json.dump(config_data, f, indent=2)
    return path


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.environ.get(key)
    return value if value else default


def _env_float(key: str, default: float) -> float:
    raw = _env(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise InvalidConfigError(f"{key} must be a number, got '{raw}'", op="load_config_from_env") from e


def _env_int(key: str, default: Optional[int]) -> Optional[int]:
    raw = _env(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise InvalidConfigError(f"{key} must be an integer, got '{raw}'", op="load_config_from_env") from e


def load_config_from_env(env_file: Optional[Path] = None) -> Config:
    """Load configuration from environment variables.

    A ``.env`` file is loaded first (without overriding variables already set):
    ``env_file`` if given, otherwise the nearest ``.env`` found walking up from
    the working directory.

    Recognised variables:
        EMBEDDING_PROVIDER, EMBEDDING_API_KEY, EMBEDDING_MODEL, EMBEDDING_BASE_URL, EMBEDDING_DIMS
        VECTOR_STORE_PROVIDER, VECTOR_STORE_DB_PATH, VECTOR_STORE_COLLECTION,
        VECTOR_STORE_EMBEDDING_MODEL_DIMS
        LLM_PROVIDER, LLM_API_KEY, LLM_MODEL, LLM_BASE_URL
        INTELLIGENCE_ENABLED, INTELLIGENCE_DECAY_RATE, INTELLIGENCE_REINFORCEMENT_FACTOR,
        INTELLIGENCE_DUPLICATE_THRESHOLD, INTELLIGENCE_ARCHIVE_THRESHOLD
        MEMKEEP_NODE_ID

    Raises:
        InvalidConfigError: If a value is malformed or names an unknown provider
    """
    if env_file is not None:
        if not load_dotenv(env_file):
            raise InvalidConfigError(f"failed to load env file {env_file}", op="load_config_from_env")
    else:
        found = find_dotenv(usecwd=True)
        if found:
            logger.debug(f"Loading environment from {found}")
            load_dotenv(found)

    embedder_provider = _env("EMBEDDING_PROVIDER", "fastembed")
    default_model, default_base_url = EMBEDDER_DEFAULTS.get(embedder_provider, (None, None))
    dims = _env_int("EMBEDDING_DIMS", None)

    data: Dict[str, Any] = {
        "node_id": _env_int("MEMKEEP_NODE_ID", 1),
        "embedder": {
            "provider": embedder_provider,
            "api_key": _env("EMBEDDING_API_KEY"),
            "model": _env("EMBEDDING_MODEL", default_model),
            "base_url": _env("EMBEDDING_BASE_URL", default_base_url),
            "dimensions": dims,
        },
        "vector_store": {
            "provider": _env("VECTOR_STORE_PROVIDER", "duckdb"),
            "db_path": _env("VECTOR_STORE_DB_PATH"),
            "collection_name": _env("VECTOR_STORE_COLLECTION", "memories"),
            "embedding_model_dims": _env_int("VECTOR_STORE_EMBEDDING_MODEL_DIMS", dims or 384),
        },
    }

    llm_provider = _env("LLM_PROVIDER")
    if llm_provider:
        llm_model, llm_base_url = LLM_DEFAULTS.get(llm_provider, (None, None))
        data["llm"] = {
            "provider": llm_provider,
            "api_key": _env("LLM_API_KEY"),
            "model": _env("LLM_MODEL", llm_model),
            "base_url": _env("LLM_BASE_URL", llm_base_url),
        }

    if _env("INTELLIGENCE_ENABLED", "false").lower() == "true":
        data["intelligence"] = {
            "enabled": True,
            "decay_rate": _env_float("INTELLIGENCE_DECAY_RATE", 0.1),
            "reinforcement_factor": _env_float("INTELLIGENCE_REINFORCEMENT_FACTOR", 0.3),
            "duplicate_threshold": _env_float("INTELLIGENCE_DUPLICATE_THRESHOLD", 0.95),
            "archive_threshold": _env_float("INTELLIGENCE_ARCHIVE_THRESHOLD", 0.2),
        }

    return validate_config(data)
