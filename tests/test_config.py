"""Tests for configuration loading and persistence."""

from pathlib import Path

import pytest
import yaml

from recon_reporting.config import (
    ReportingConfig,
    generate_default_config,
    load_config,
    save_config,
)
from recon_reporting.utils.exceptions import ConfigurationError


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults_without_file(self):
        config = load_config(None)
        assert config.currency.symbol == "GHS "
        assert config.report.company_name == "Sample Logistics Ltd."
        assert config.dashboard.top_n == 5
        assert config.layout.margin == 14

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.config_file_path is None

    def test_partial_file_is_merged(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("report:\n  company_name: Acme Ltd\nlayout:\n  row_height: 9\n")
        config = load_config(path)
        assert config.report.company_name == "Acme Ltd"
        assert config.report.classification == "Protected"
        assert config.layout.row_height == 9
        assert config.layout.margin == 14
        assert config.config_file_path == str(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("report: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("preferences:\n  processing_mode: turbo\n")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_root_must_be_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            load_config(path)


class TestWriteConfig:
    """Tests for generating and saving configuration files."""

    def test_generated_file_loads_back(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"
        generate_default_config(path)
        assert path.read_text().startswith("# Reconciliation reporting configuration")
        assert load_config(path).export.csv_label == "ReconReport"

    def test_saved_preferences_persist(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = ReportingConfig()
        config.preferences.processing_mode = "precise"
        config.currency.symbol = "$"
        save_config(config, path)

        data = yaml.safe_load(path.read_text())
        assert "config_file_path" not in data
        reloaded = load_config(Path(path))
        assert reloaded.preferences.processing_mode == "precise"
        assert reloaded.currency.symbol == "$"
