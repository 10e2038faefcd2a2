"""Tests for configuration loading."""

from pathlib import Path

import pytest
import yaml

from ledger_recon.config import ReconConfig, generate_default_config, load_config
from ledger_recon.utils.exceptions import ConfigurationError


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self):
        config = load_config()

        assert config.matching.date_padding_days == 7
        assert config.matching.scoring.date_exact_points == 40
        assert config.matching.tiers.exact == 80
        assert config.session.balance_tolerance == 0.01
        assert config.config_file_path is None

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.yaml")
        assert config.config_file_path is None

    def test_deep_merge(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "matching:\n"
            "  date_padding_days: 3\n"
            "  scoring:\n"
            "    description_high_threshold: 0.9\n"
            "output:\n"
            "  sheets:\n"
            "    possible:\n"
            "      enabled: false\n"
        )

        config = load_config(path)

        assert config.matching.date_padding_days == 3
        assert config.matching.scoring.description_high_threshold == 0.9
        assert config.matching.scoring.date_exact_points == 40
        assert config.output.sheets.possible.enabled is False
        assert config.output.sheets.possible.name == "Possible Matches"
        assert config.config_file_path == str(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("matching:\n  date_padding_days: lots\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(path)


class TestGenerateDefaultConfig:
    """Tests for writing the starter configuration file."""

    def test_round_trips_to_defaults(self, tmp_path):
        path = tmp_path / "nested" / "config.yaml"

        generate_default_config(path)

        assert path.read_text().startswith("# Bank Statement to Ledger Reconciliation")
        data = yaml.safe_load(path.read_text())
        assert ReconConfig(**data) == ReconConfig()

    def test_generated_file_loads(self, tmp_path):
        path = Path(tmp_path) / "config.yaml"
        generate_default_config(path)

        assert load_config(path).matching.tiers.possible == 40
