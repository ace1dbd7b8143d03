"""End-to-end pipeline and command-line tests."""

from typing import Dict, List

import numpy as np
import pandas as pd
import pytest
import yaml

from edflow.__main__ import main
from edflow.core.entities import INTERARRIVAL
from edflow.core.errors import ConfigError, InputMalformedError, PipelineError
from edflow.fitting.selection import NO_FIT
from edflow.pipeline import run_pipeline
from edflow.results.export import (
    CLEANED_FILE,
    FIT_SUMMARY_FILE,
    INTERARRIVAL_FILE,
    PARAMETERS_FILE,
    load_parameters,
    read_interarrival,
)

from helpers import visit_row, write_extracts

LAYOUT = [
    ("ADULT", "SHORT_STAY"),
    ("ADULT", "TRAUMA"),
    ("ADULT", "CONSULT_1"),
    ("PAEDIATRIC", "RESPIRATORY"),
    ("PAEDIATRIC", "CONSULT"),
]


@pytest.fixture
def random_rows(rng) -> List[Dict]:
    """400 visits with gamma durations and exponential arrivals."""
    rows = []
    start = 0.0
    for i in range(400):
        start += float(np.round(rng.exponential(400.0)))
        steps = np.round(rng.gamma([2.0, 3.0, 1.5, 2.5], [300.0, 200.0, 900.0, 1500.0]))
        offsets = np.concatenate([[0.0], np.cumsum(steps)]).tolist()
        service, sub = LAYOUT[i % len(LAYOUT)]
        rows.append(visit_row(f"V{i:04d}", offsets, service, sub, start=start))
    return rows


@pytest.fixture
def config(tmp_path, random_rows):
    ids = [r["visit_id"] for r in random_rows]
    priorities = [{"visit_id": v, "priority": str(1 + i % 4)} for i, v in enumerate(ids)]
    return write_extracts(tmp_path, random_rows, priorities)


class TestRunPipeline:
    """Full run on synthetic extracts."""

    def test_outputs_written(self, config):
        result = run_pipeline(config)

        assert set(result.outputs) == {"cleaned", "interarrival", "fit_summary", "parameters"}
        for name in (CLEANED_FILE, INTERARRIVAL_FILE, FIT_SUMMARY_FILE, PARAMETERS_FILE):
            assert (config.output_dir / name).exists()

    def test_row_accounting(self, config, random_rows):
        result = run_pipeline(config)

        assert len(result.load.visits) == len(random_rows)
        assert result.summary.n_cleaned + result.summary.n_excluded == len(random_rows)
        cleaned = pd.read_csv(config.output_dir / CLEANED_FILE)
        assert len(cleaned) == result.summary.n_cleaned

    def test_interarrival_file(self, config):
        result = run_pipeline(config)

        gaps = read_interarrival(config.output_dir / INTERARRIVAL_FILE)
        distinct = result.load.visits["counter_exit"].dropna().nunique()

        assert len(gaps) == distinct - 1
        assert (gaps > 0).all()
        np.testing.assert_allclose(gaps, result.interarrival)

    def test_every_pair_has_a_selection(self, config):
        result = run_pipeline(config, write_outputs=False)

        pairs = {(s.cohort, s.variable) for s in result.selections}

        # 1 triage cohort and 5 populated clinical cohorts, 2 variables each
        assert len(pairs) == 6 * 2 + 1
        assert (INTERARRIVAL, INTERARRIVAL) in pairs
        assert result.outputs == {}

    def test_parameters_match_resolved_selections(self, config):
        result = run_pipeline(config)

        table = load_parameters(config.output_dir / PARAMETERS_FILE)

        for s in result.selections:
            if s.resolved:
                assert table[s.cohort][s.variable]["family"] == s.chosen.family.value
            else:
                assert s.variable not in table.get(s.cohort, {})

    def test_override_resolves_interarrival(self, config):
        config.fitting.overrides = {INTERARRIVAL: {INTERARRIVAL: "exponential"}}

        result = run_pipeline(config)
        table = load_parameters(config.output_dir / PARAMETERS_FILE)

        entry = table[INTERARRIVAL][INTERARRIVAL]
        assert entry["family"] == "exponential"
        assert entry["parameters"]["rate"] == pytest.approx(
            1 / result.interarrival.mean(), rel=1e-3
        )

    def test_empty_cohort_does_not_abort(self, config):
        """A cohort with no visits is reported, not fatal."""
        config.cohorts = [
            {"name": "triage", "variables": ["triage_queue"]},
            {"name": "obstetric", "service": "OBSTETRIC", "variables": ["service_duration"]},
        ]

        result = run_pipeline(config)

        status = {s.cohort: s.status for s in result.selections}
        assert status["obstetric"] == NO_FIT
        assert status["triage"] != NO_FIT
        assert result.summary.fit_failures
        assert "obstetric/service_duration: no converged fit" in result.summary.format()

    def test_summary_format(self, config):
        result = run_pipeline(config, write_outputs=False)

        text = result.summary.format()

        assert text.startswith("Run summary")
        assert f"Cleaned rows retained: {result.summary.n_cleaned}" in text
        assert "Selections:" in text


class TestFatalErrors:
    """Malformed input stops the run with the stage and file named."""

    def test_missing_supplementary(self, config, tmp_path):
        config.supplementary_path = tmp_path / "missing.csv"

        with pytest.raises(PipelineError) as info:
            run_pipeline(config)

        assert info.value.stage == "loader"
        assert "missing.csv" in str(info.value)
        assert not (config.output_dir / PARAMETERS_FILE).exists()

    def test_wrong_timestamp_format(self, config):
        config.timestamp_format = "%d/%m/%Y %H:%M"

        with pytest.raises(InputMalformedError):
            run_pipeline(config)

    def test_unknown_override_cohort(self, config):
        config.fitting.overrides = {"adult_truama": {"service_duration": "gamma"}}

        with pytest.raises(ConfigError, match="adult_truama"):
            run_pipeline(config)


class TestCommandLine:
    """``python -m edflow CONFIG``"""

    def _write_config(self, config, path, **extra):
        with open(path, "w") as f:
            yaml.safe_dump(
                {
                    "primary_path": str(config.primary_path),
                    "supplementary_path": str(config.supplementary_path),
                    "output_dir": str(config.output_dir),
                    "timestamp_format": config.timestamp_format,
                    **extra,
                },
                f,
            )
        return path

    def test_success(self, config, tmp_path):
        path = self._write_config(config, tmp_path / "run.yaml")
        out = tmp_path / "cli_output"

        code = main([str(path), "--output-dir", str(out)])

        assert code == 0
        assert (out / PARAMETERS_FILE).exists()

    def test_missing_config(self, tmp_path):
        assert main([str(tmp_path / "absent.yaml")]) == 2

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("thresholds:\n  min_duration: -5\n")

        assert main([str(path)]) == 2

    def test_malformed_input(self, config, tmp_path):
        config.primary_path.write_text("not,a,visit,table\n1,2,3,4\n")
        path = self._write_config(config, tmp_path / "run.yaml")

        assert main([str(path)]) == 1

    def test_unparseable_config(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("thresholds: [unclosed\n")

        assert main([str(path)]) == 2

    def test_non_numeric_threshold(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("thresholds:\n  min_duration: ten\n")

        assert main([str(path)]) == 2

    def test_invalid_cohort(self, config, tmp_path):
        path = self._write_config(
            config,
            tmp_path / "run.yaml",
            cohorts=[{"name": "x", "variables": ["x_ray_wait"]}],
        )

        assert main([str(path)]) == 2
        assert not (config.output_dir / PARAMETERS_FILE).exists()

    def test_misspelt_override(self, config, tmp_path):
        """An override for a pair that is never fitted stops the run."""
        path = self._write_config(
            config,
            tmp_path / "run.yaml",
            fitting={"overrides": {"adult_trauma": {"service_duraton": "gamma"}}},
        )

        assert main([str(path)]) == 2
        assert not (config.output_dir / PARAMETERS_FILE).exists()
