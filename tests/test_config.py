"""
Tests for configuration loading and the settings the session reads from it.
"""

from datetime import timedelta

import pytest
import yaml

from zone_ops.config_loader import Config, load_config
from zone_processing.grouping import FieldMap
from zone_processing.session import ExplorerSession


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "grouping": {"zip_aliases": ["ZIP5", "Zip"]},
                "fields": {"female": "Girls", "grades": ["KG", "Grade_1"]},
                "engine": {"page_size": 25},
                "cache": {"path": "cache/features.sqlite", "max_age_hours": 2},
            }
        )
    )
    return path


class TestConfig:
    """Dot-notation lookups with built-in defaults."""

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("ZONE_EXPLORER_CONFIG", raising=False)
        config = Config()

        assert config.config_path is None
        assert config.get_zip_aliases() == ["Zip", "ZIP", "zipcode"]
        assert config.get_engine_setting("rank_top_n") == 10
        assert config.get_cache_max_age_hours() == 24
        assert config.get_cache_path() == tmp_path / "data" / "cache" / "zone_explorer.sqlite"

    def test_file_overrides_defaults(self, config_file):
        config = Config(config_file)

        assert config.get_zip_aliases() == ["ZIP5", "Zip"]
        assert config.get_engine_setting("page_size") == 25
        assert config.get_engine_setting("batch_size") == 1000
        assert config.get_field_name("female") == "Girls"
        assert config.get_field_name("male") == "Male"

    def test_paths_relative_to_config_file(self, config_file):
        config = Config(config_file)
        assert config.get_cache_path() == config_file.parent / "cache" / "features.sqlite"
        assert config.get_data_path(".shp") == config_file.parent / "data" / "TXelementary.shp"

    def test_environment_variable(self, config_file, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path.parent)
        monkeypatch.setenv("ZONE_EXPLORER_CONFIG", str(config_file))
        assert Config().config_path == config_file.resolve()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_unknown_key_returns_default(self, config_file):
        assert Config(config_file).get("engine.nope", "fallback") == "fallback"

    def test_invalid_aliases(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"grouping": {"zip_aliases": "Zip"}}))
        with pytest.raises(ValueError):
            Config(path).get_zip_aliases()


class TestSessionFromConfig:
    """Wiring config into a session."""

    def test_settings_applied(self, config_file):
        session = ExplorerSession.from_config(Config(config_file))

        assert session.aliases == ("ZIP5", "Zip")
        assert session.page_size == 25
        assert session.fields == FieldMap(female="Girls", grades=("KG", "Grade_1"))
        assert session.cache.max_age == timedelta(hours=2)

    def test_overrides(self, config_file):
        session = ExplorerSession.from_config(Config(config_file), cache=None, page_size=5)
        assert session.cache is None
        assert session.page_size == 5
