"""Tests for the memkeep CLI."""

import json
from unittest.mock import patch

import pytest
from conftest import COFFEE_VECTORS, DIMS, FakeEmbedder
from typer.testing import CliRunner

from memkeep.cli import app
from memkeep.config import IntelligenceConfig, load_config
from memkeep.memory import MemoryClient
from memkeep.options import AddOptions
from memkeep.storage.memory_store import InMemoryVectorStore

runner = CliRunner()


class SurvivingStore(InMemoryVectorStore):
    """Keeps its entries when a CLI command closes the client."""

    def close(self) -> None:
        pass


@pytest.fixture
def cli_store():
    return SurvivingStore(dimensions=DIMS)


@pytest.fixture
def cli_client(cli_store):
    """Patch the CLI so every command gets a fresh client over the same store."""

    def factory(config_path=None):
        return MemoryClient(cli_store, FakeEmbedder(COFFEE_VECTORS), intelligence=IntelligenceConfig(enabled=True))

    with patch("memkeep.cli._get_client", side_effect=factory):
        yield factory


class BrokenCloseStore(InMemoryVectorStore):
    def close(self) -> None:
        raise RuntimeError("disk detached")


def seed(factory, content, user="u1", **kwargs):
    return factory().add(content, AddOptions(user_id=user, **kwargs))


class TestMemoryCommands:
    def test_add(self, cli_client, cli_store):
        result = runner.invoke(app, ["add", "User likes coffee", "--user", "u1", "--metadata", '{"topic": "drinks"}'])

        assert result.exit_code == 0
        assert "Stored memory" in result.stdout
        memories = list(cli_store._entries.values())
        assert len(memories) == 1
        assert memories[0].metadata == {"topic": "drinks"}

    def test_add_with_infer_merges(self, cli_client, cli_store):
        seed(cli_client, "User likes coffee")

        result = runner.invoke(app, ["add", "User loves coffee", "--user", "u1", "--infer"])

        assert result.exit_code == 0
        memories = list(cli_store._entries.values())
        assert len(memories) == 1
        assert memories[0].content == "User likes coffee User loves coffee"

    def test_add_requires_user(self, cli_client):
        result = runner.invoke(app, ["add", "User likes coffee"])
        assert result.exit_code != 0

    def test_add_invalid_metadata(self, cli_client):
        result = runner.invoke(app, ["add", "x", "--user", "u1", "--metadata", "[1, 2]"])
        assert result.exit_code == 1
        assert "JSON object" in result.stdout

    def test_search_json(self, cli_client):
        seed(cli_client, "User likes coffee")
        seed(cli_client, "User likes tea")

        result = runner.invoke(app, ["search", "coffee", "--user", "u1", "--limit", "1", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [m["content"] for m in data] == ["User likes coffee"]
        assert data[0]["score"] > 0.9

    def test_search_table(self, cli_client):
        seed(cli_client, "User likes coffee")
        result = runner.invoke(app, ["search", "coffee"])
        assert result.exit_code == 0
        assert "Search results" in result.stdout

    def test_search_no_results(self, cli_client):
        result = runner.invoke(app, ["search", "coffee", "--user", "nobody"])
        assert result.exit_code == 0
        assert "No memories found" in result.stdout

    def test_get(self, cli_client):
        memory = seed(cli_client, "User likes coffee")

        result = runner.invoke(app, ["get", str(memory.id)])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["id"] == memory.id

    def test_get_missing_exits_with_error(self, cli_client):
        result = runner.invoke(app, ["get", "12345"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_close_failure_exits_with_error(self):
        def factory(config_path=None):
            return MemoryClient(BrokenCloseStore(dimensions=DIMS), FakeEmbedder(COFFEE_VECTORS))

        with patch("memkeep.cli._get_client", side_effect=factory):
            result = runner.invoke(app, ["list"])

        assert result.exit_code == 1
        assert "disk detached" in result.stdout

    def test_update(self, cli_client, cli_store):
        memory = seed(cli_client, "User likes coffee")

        result = runner.invoke(app, ["update", str(memory.id), "User likes tea"])

        assert result.exit_code == 0
        assert cli_store.get(memory.id).content == "User likes tea"

    def test_delete(self, cli_client, cli_store):
        memory = seed(cli_client, "User likes coffee")

        result = runner.invoke(app, ["delete", str(memory.id)])

        assert result.exit_code == 0
        assert cli_store._entries == {}

    def test_list(self, cli_client):
        seed(cli_client, "first fact")
        seed(cli_client, "second fact", user="u2")

        result = runner.invoke(app, ["list", "--user", "u1", "--json"])

        assert result.exit_code == 0
        assert [m["content"] for m in json.loads(result.stdout)] == ["first fact"]

    def test_delete_all_with_confirmation(self, cli_client, cli_store):
        seed(cli_client, "first fact")

        aborted = runner.invoke(app, ["delete-all"], input="n\n")
        assert "Aborted" in aborted.stdout
        assert len(cli_store._entries) == 1

        result = runner.invoke(app, ["delete-all", "--user", "u1", "--yes"])
        assert result.exit_code == 0
        assert "Deleted 1 memories" in result.stdout
        assert cli_store._entries == {}

    def test_reinforce(self, cli_client, cli_store):
        memory = seed(cli_client, "User likes coffee")
        cli_store.update_retention(memory.id, 0.5, None)

        result = runner.invoke(app, ["reinforce", str(memory.id)])

        assert result.exit_code == 0
        assert "0.65" in result.stdout

    def test_retention(self, cli_client):
        seed(cli_client, "User likes coffee")

        result = runner.invoke(app, ["retention", "--user", "u1"])

        assert result.exit_code == 0
        assert "Retention" in result.stdout

    def test_version(self):
        from memkeep import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestConfigCommands:
    def test_init_and_show(self, isolated_xdg):
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 0
        assert "Configuration written" in result.stdout

        shown = runner.invoke(app, ["config", "show"])
        assert shown.exit_code == 0
        assert "fastembed" in shown.stdout
        assert "Intelligence disabled" in shown.stdout

    def test_init_refuses_overwrite(self, isolated_xdg):
        runner.invoke(app, ["config", "init"])
        result = runner.invoke(app, ["config", "init"])
        assert result.exit_code == 1
        assert "--force" in result.stdout

    def test_init_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("VECTOR_STORE_PROVIDER", "memory")
        monkeypatch.setenv("INTELLIGENCE_ENABLED", "true")
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "config.json"

        result = runner.invoke(app, ["config", "init", "--from-env", "--path", str(path)])

        assert result.exit_code == 0
        config = load_config(path)
        assert config.vector_store.provider == "memory"
        assert config.intelligence.enabled is True

    def test_show_missing_file(self, tmp_path):
        result = runner.invoke(app, ["config", "show", "--path", str(tmp_path / "none.json")])
        assert result.exit_code == 0
        assert "No configuration file" in result.stdout

    def test_show_invalid_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"embedder": {"provider": "nope"}}')

        result = runner.invoke(app, ["config", "show", "--path", str(path)])

        assert result.exit_code == 1
        assert "Failed to load configuration" in result.stdout


class TestClientFactory:
    def test_uses_config_file(self, tmp_path):
        from memkeep.cli import _get_client

        path = tmp_path / "config.json"
        path.write_text(json.dumps({"vector_store": {"provider": "memory"}}))

        client = _get_client(path)

        assert isinstance(client.store, InMemoryVectorStore)
        client.close()

    def test_falls_back_to_environment(self, isolated_xdg, monkeypatch):
        from memkeep.cli import _get_client

        monkeypatch.setenv("VECTOR_STORE_PROVIDER", "memory")
        monkeypatch.chdir(isolated_xdg)

        client = _get_client()

        assert isinstance(client.store, InMemoryVectorStore)
        client.close()
