"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from memkeep.config import (
    Config,
    IntelligenceConfig,
    VectorStoreConfig,
    get_config_path,
    load_config,
    load_config_from_env,
    save_config,
    validate_config,
)
from memkeep.exceptions import InvalidConfigError

ENV_VARS = [
    "EMBEDDING_PROVIDER",
    "EMBEDDING_API_KEY",
    "EMBEDDING_MODEL",
    "EMBEDDING_BASE_URL",
    "EMBEDDING_DIMS",
    "VECTOR_STORE_PROVIDER",
    "VECTOR_STORE_DB_PATH",
    "VECTOR_STORE_COLLECTION",
    "VECTOR_STORE_EMBEDDING_MODEL_DIMS",
    "LLM_PROVIDER",
    "LLM_API_KEY",
    "LLM_MODEL",
    "LLM_BASE_URL",
    "INTELLIGENCE_ENABLED",
    "INTELLIGENCE_DECAY_RATE",
    "INTELLIGENCE_REINFORCEMENT_FACTOR",
    "INTELLIGENCE_DUPLICATE_THRESHOLD",
    "INTELLIGENCE_ARCHIVE_THRESHOLD",
    "MEMKEEP_NODE_ID",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Empty memkeep environment, run from a directory without a .env file.

    Setting before deleting makes monkeypatch restore each variable on teardown,
    which also undoes anything load_dotenv wrote.
    """
    for var in ENV_VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestConfigModel:
    def test_defaults(self):
        config = Config()
        assert config.llm is None
        assert config.intelligence is None
        assert config.embedder.provider == "fastembed"
        assert config.vector_store.provider == "duckdb"
        assert config.vector_store.collection_name == "memories"
        assert config.vector_store.embedding_model_dims == 384

    def test_intelligence_defaults(self):
        intelligence = IntelligenceConfig()
        assert intelligence.enabled is False
        assert intelligence.duplicate_threshold == 0.95
        assert intelligence.decay_rate == 0.1
        assert intelligence.reinforcement_factor == 0.3
        assert intelligence.archive_threshold == 0.2

    @pytest.mark.parametrize(
        "data",
        [
            {"embedder": {"provider": "word2vec"}},
            {"vector_store": {"provider": "postgres"}},
            {"llm": {"provider": "mystery"}},
            {"vector_store": {"collection_name": "bad name"}},
            {"vector_store": {"embedding_model_dims": 0}},
            {"intelligence": {"duplicate_threshold": 1.5}},
            {"intelligence": {"decay_rate": 0}},
            {"unknown_section": {}},
        ],
    )
    def test_validation_errors(self, data):
        with pytest.raises(InvalidConfigError) as exc_info:
            validate_config(data)
        assert exc_info.value.op == "validate_config"

    def test_default_db_path_uses_xdg(self, isolated_xdg):
        path = VectorStoreConfig().resolved_db_path()
        assert path == isolated_xdg / "data" / "memkeep" / "memories.duckdb"

    def test_explicit_db_path(self, tmp_path):
        assert VectorStoreConfig(db_path=tmp_path / "x.duckdb").resolved_db_path() == tmp_path / "x.duckdb"


class TestConfigFile:
    def test_missing_file_returns_defaults(self, tmp_path):
        assert load_config(tmp_path / "nope.json") == Config()

    def test_round_trip(self, tmp_path):
        path = tmp_path / "sub" / "config.json"
        config = Config.model_validate(
            {
                "embedder": {"provider": "openai", "api_key": "sk", "dimensions": 1536},
                "vector_store": {"provider": "memory", "embedding_model_dims": 1536},
                "intelligence": {"enabled": True},
            }
        )

        written = save_config(config, path)

        assert written == path
        data = json.loads(path.read_text())
        assert "llm" not in data
        assert load_config(path) == config

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(InvalidConfigError, match="failed to read config"):
            load_config(path)

    def test_invalid_content(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"embedder": {"provider": "nope"}}))
        with pytest.raises(InvalidConfigError):
            load_config(path)

    def test_config_path_uses_xdg(self, isolated_xdg):
        assert get_config_path() == Path(isolated_xdg) / "config" / "memkeep" / "config.json"


class TestEnvConfig:
    def test_defaults_without_env(self, clean_env):
        config = load_config_from_env()
        assert config.embedder.provider == "fastembed"
        assert config.embedder.model == "BAAI/bge-small-en-v1.5"
        assert config.vector_store.embedding_model_dims == 384
        assert config.llm is None
        assert config.intelligence is None

    def test_full_env(self, clean_env):
        clean_env.setenv("EMBEDDING_PROVIDER", "qwen")
        clean_env.setenv("EMBEDDING_API_KEY", "dash-key")
        clean_env.setenv("EMBEDDING_DIMS", "1536")
        clean_env.setenv("VECTOR_STORE_PROVIDER", "memory")
        clean_env.setenv("VECTOR_STORE_COLLECTION", "agent_memories")
        clean_env.setenv("LLM_PROVIDER", "qwen")
        clean_env.setenv("LLM_API_KEY", "llm-key")
        clean_env.setenv("INTELLIGENCE_ENABLED", "true")
        clean_env.setenv("INTELLIGENCE_DUPLICATE_THRESHOLD", "0.9")

        config = load_config_from_env()

        assert config.embedder.provider == "qwen"
        assert config.embedder.model == "text-embedding-v4"
        assert config.embedder.base_url == "https://dashscope.aliyuncs.com/api/v1"
        assert config.embedder.dimensions == 1536
        assert config.vector_store.provider == "memory"
        assert config.vector_store.collection_name == "agent_memories"
        assert config.vector_store.embedding_model_dims == 1536
        assert config.llm.provider == "qwen"
        assert config.llm.model == "qwen-plus"
        assert config.llm.api_key == "llm-key"
        assert config.intelligence.enabled is True
        assert config.intelligence.duplicate_threshold == 0.9
        assert config.intelligence.decay_rate == 0.1

    def test_node_id(self, clean_env):
        assert load_config_from_env().node_id == 1
        clean_env.setenv("MEMKEEP_NODE_ID", "7")
        assert load_config_from_env().node_id == 7

    def test_node_id_out_of_range(self, clean_env):
        clean_env.setenv("MEMKEEP_NODE_ID", "1024")
        with pytest.raises(InvalidConfigError):
            load_config_from_env()

    def test_intelligence_disabled_unless_true(self, clean_env):
        clean_env.setenv("INTELLIGENCE_ENABLED", "yes")
        assert load_config_from_env().intelligence is None

    def test_bad_number(self, clean_env):
        clean_env.setenv("EMBEDDING_DIMS", "lots")
        with pytest.raises(InvalidConfigError, match="EMBEDDING_DIMS"):
            load_config_from_env()

    def test_unknown_provider(self, clean_env):
        clean_env.setenv("VECTOR_STORE_PROVIDER", "oceanbase")
        with pytest.raises(InvalidConfigError):
            load_config_from_env()

    def test_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("EMBEDDING_PROVIDER=openai\nEMBEDDING_API_KEY=sk-file\n")

        config = load_config_from_env(env_file)

        assert config.embedder.provider == "openai"
        assert config.embedder.api_key == "sk-file"
        assert config.embedder.base_url == "https://api.openai.com/v1"

    def test_dotenv_discovered_from_cwd(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("VECTOR_STORE_PROVIDER=memory\n")
        assert load_config_from_env().vector_store.provider == "memory"

    def test_existing_env_wins_over_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("VECTOR_STORE_PROVIDER=memory\n")
        clean_env.setenv("VECTOR_STORE_PROVIDER", "duckdb")
        assert load_config_from_env().vector_store.provider == "duckdb"

    def test_missing_env_file(self, clean_env, tmp_path):
        with pytest.raises(InvalidConfigError):
            load_config_from_env(tmp_path / "absent.env")
