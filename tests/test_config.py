"""Tests for pipeline configuration loading and validation."""

import json
from pathlib import Path

import pytest

from edflow.core.config import (
    FitSettings,
    PipelineConfig,
    Thresholds,
    load_config,
    save_config,
)
from edflow.core.entities import DurationType, Family
from edflow.core.errors import ConfigError

DEFAULT_CONFIG = Path(__file__).resolve().parents[1] / "config" / "default.yaml"


class TestDefaults:
    """Default values match the documented thresholds."""

    def test_threshold_defaults(self):
        """Floor 10 s, caps 4 h and 12 h."""
        t = Thresholds()

        assert t.min_duration == 10.0
        assert t.max_triage_queue == 14400.0
        assert t.max_service_queue == 43200.0

    def test_floor_override(self):
        """Per-duration floors replace the shared floor."""
        t = Thresholds(floor_overrides={"triage_queue": 0.0})

        assert t.floor(DurationType.TRIAGE_QUEUE) == 0.0
        assert t.floor(DurationType.SERVICE_DURATION) == 10.0

    def test_encodings(self):
        """Supplementary extract defaults to a legacy single-byte encoding."""
        config = PipelineConfig()

        assert config.primary_encoding == "utf-8"
        assert config.supplementary_encoding == "latin-1"

    def test_all_families_by_default(self):
        """Every family is a candidate unless configured otherwise."""
        assert FitSettings().family_list() == list(Family)


class TestValidation:
    """Invalid values raise ConfigError."""

    def test_negative_floor(self):
        with pytest.raises(ConfigError, match="non-negative"):
            PipelineConfig(thresholds=Thresholds(min_duration=-1))

    def test_unknown_floor_override(self):
        with pytest.raises(ConfigError, match="Unknown duration"):
            PipelineConfig(thresholds=Thresholds(floor_overrides={"boarding": 5}))

    def test_unknown_family(self):
        with pytest.raises(ConfigError, match="Unknown family"):
            PipelineConfig(fitting=FitSettings(families=["pareto"]))

    def test_unknown_override_family(self):
        with pytest.raises(ConfigError):
            PipelineConfig(
                fitting=FitSettings(overrides={"triage": {"triage_queue": "beta"}})
            )

    def test_unknown_criterion(self):
        with pytest.raises(ConfigError, match="criterion"):
            PipelineConfig(fitting=FitSettings(criterion="hqic"))

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="Unknown config keys"):
            PipelineConfig.from_dict({"thresholds": {}, "colour": "blue"})

    def test_unknown_section_key(self):
        with pytest.raises(ConfigError, match="Invalid config section"):
            PipelineConfig.from_dict({"thresholds": {"min_seconds": 5}})

    def test_non_numeric_threshold(self):
        with pytest.raises(ConfigError, match="must be a number"):
            PipelineConfig.from_dict({"thresholds": {"min_duration": "ten"}})

    def test_empty_family_list(self):
        with pytest.raises(ConfigError, match="at least one family"):
            PipelineConfig(fitting=FitSettings(families=[]))

    def test_cohorts_not_a_list(self):
        with pytest.raises(ConfigError, match="list of cohort"):
            PipelineConfig.from_dict({"cohorts": {"name": "triage"}})


class TestLoadSave:
    """YAML and JSON round trips."""

    def test_load_default_yaml(self):
        """Shipped config loads and resolves paths next to it."""
        config = load_config(DEFAULT_CONFIG)

        assert config.timestamp_format == "%Y-%m-%d %H:%M:%S"
        assert config.thresholds.max_service_queue == 43200.0
        assert config.primary_path.name == "visits.csv"
        assert config.primary_path.is_absolute()
        assert len(config.cohorts) == 6

    def test_yaml_round_trip(self, tmp_path):
        config = PipelineConfig(
            primary_path=tmp_path / "a.csv",
            thresholds=Thresholds(min_duration=5.0),
            fitting=FitSettings(families=["gamma", "weibull"], criterion="bic"),
        )
        path = tmp_path / "config.yaml"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded.thresholds.min_duration == 5.0
        assert loaded.fitting.family_list() == [Family.GAMMA, Family.WEIBULL]
        assert loaded.fitting.criterion == "bic"
        assert loaded.primary_path == tmp_path / "a.csv"

    def test_json_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"supplementary_encoding": "cp1252"}))

        config = load_config(path)

        assert config.supplementary_encoding == "cp1252"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("x = 1")

        with pytest.raises(ConfigError, match="Unsupported"):
            load_config(path)

    def test_unparseable_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("thresholds: [unclosed\n")

        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path)

    def test_unparseable_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{\"thresholds\": ")

        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path)
