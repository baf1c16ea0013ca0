"""
End-to-end tests for the zone-explorer command line.
"""

import sys

import geopandas as gpd
import pytest
import yaml
from shapely.geometry import Point

from zone_ops import cli
from zone_ops.config_loader import Config
from zone_ops.feature_cache import FeatureCache


@pytest.fixture
def config_file(tmp_path):
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    gpd.GeoDataFrame(
        {
            "Zip": ["75001", "75001", "75002"],
            "district": ["Dallas ISD", "Dallas ISD", "Plano ISD"],
            "Female": [10, 3, 0],
            "Male": [5, 2, 0],
        },
        geometry=[Point(0, 0).buffer(1), Point(3, 0).buffer(1), Point(6, 0).buffer(1)],
        crs="EPSG:4326",
    ).to_file(data_dir / "TXelementary.shp", engine="pyogrio")

    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"cache": {"path": "cache/features.sqlite"}}))
    return path


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["zone-explorer", *argv])
    cli.main()


class TestCli:
    """Commands run against a temporary dataset and cache."""

    def test_load_fills_cache(self, monkeypatch, config_file):
        run_cli(monkeypatch, "--config", str(config_file), "load")

        cached = FeatureCache(Config(config_file).get_cache_path()).load()
        assert len(cached["features"]) == 3

    def test_commands_after_load(self, monkeypatch, config_file, capsys):
        run_cli(monkeypatch, "--config", str(config_file), "load")
        assert "Loaded 3 features with 2 ZIP codes" in capsys.readouterr().err

        run_cli(monkeypatch, "--config", str(config_file), "summary", "75001", "75002")
        output = capsys.readouterr().err
        assert "Selection: 75001, 75002" in output
        assert "Total Students: 20" in output
        assert "Female: 13" in output
        assert "Female:Male Ratio: 1.86" in output

        run_cli(monkeypatch, "--config", str(config_file), "summary", "75002")
        assert "Female:Male Ratio: N/A" in capsys.readouterr().err

        run_cli(monkeypatch, "--config", str(config_file), "rank", "total_students", "--top", "1")
        output = capsys.readouterr().err
        assert "Top 1 ZIP codes by total_students" in output
        assert "1. 75001  20" in output
        assert "75002" not in output.split("by total_students", 1)[1]

        run_cli(monkeypatch, "--config", str(config_file), "zips", "--search", "002")
        output = capsys.readouterr().err
        assert "1 of 2 ZIP codes" in output
        assert "75002 (0 students)" in output

        run_cli(monkeypatch, "--config", str(config_file), "search", "9999")
        assert "0 records match '9999' (page 0 of 0)" in capsys.readouterr().err

        run_cli(monkeypatch, "--config", str(config_file), "schema")
        assert "3 records," in capsys.readouterr().err

        run_cli(monkeypatch, "--config", str(config_file), "cache", "status")
        assert '"exists": true' in capsys.readouterr().err

    def test_search_with_filters(self, monkeypatch, config_file, capsys):
        run_cli(monkeypatch, "--config", str(config_file), "load")
        capsys.readouterr()

        run_cli(monkeypatch, "--config", str(config_file), "search", "--district", "Plano ISD")
        assert "1 records match district=Plano ISD (page 1 of 1)" in capsys.readouterr().err

        run_cli(
            monkeypatch, "--config", str(config_file),
            "search", "750", "--district", "Dallas ISD", "--zip", "75001",
        )
        assert "2 records match '750' and district=Dallas ISD and zip=75001" in capsys.readouterr().err

    def test_filters_command(self, monkeypatch, config_file, capsys):
        run_cli(monkeypatch, "--config", str(config_file), "load")
        capsys.readouterr()

        run_cli(monkeypatch, "--config", str(config_file), "filters")
        output = capsys.readouterr().err
        assert "Districts (2): Dallas ISD, Plano ISD" in output
        assert "ZIP codes (2): 75001, 75002" in output

    @pytest.mark.parametrize(
        "command",
        [["rank", "total_students", "--top", "0"], ["search", "750", "--page", "0"], ["search", "--page", "x"]],
    )
    def test_non_positive_numbers_rejected(self, monkeypatch, config_file, capsys, command):
        with pytest.raises(SystemExit) as excinfo:
            run_cli(monkeypatch, "--config", str(config_file), *command)
        assert excinfo.value.code == 2
        message = capsys.readouterr().err
        assert "positive integer" in message or "invalid positive_int value" in message

    def test_commands_need_cached_data(self, monkeypatch, config_file):
        with pytest.raises(SystemExit) as excinfo:
            run_cli(monkeypatch, "--config", str(config_file), "summary", "75001")
        assert excinfo.value.code == 1

    def test_load_missing_files(self, monkeypatch, config_file, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            run_cli(monkeypatch, "--config", str(config_file), "load", str(tmp_path / "nothing"))
        assert excinfo.value.code == 1

    def test_missing_config(self, monkeypatch, tmp_path):
        with pytest.raises(SystemExit) as excinfo:
            run_cli(monkeypatch, "--config", str(tmp_path / "missing.yaml"), "schema")
        assert excinfo.value.code == 1

    def test_cache_clear(self, monkeypatch, config_file):
        run_cli(monkeypatch, "--config", str(config_file), "load")
        run_cli(monkeypatch, "--config", str(config_file), "cache", "clear")
        assert FeatureCache(Config(config_file).get_cache_path()).load() is None
