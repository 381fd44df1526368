"""Unit tests for the experiment configuration schema."""

import pytest

from emdforge.config.schema import (
    ExperimentConfig,
    FitConfig,
    GratingConfig,
    HeadMotionConfig,
    SweepConfig,
    expand_values,
)
from emdforge.core.conditions import SweepVariable
from emdforge.core.errors import InvalidParameterError


class TestExpandValues:
    """Test value-list expansion."""

    def test_scalar(self):
        assert expand_values(2, "x") == [2.0]

    def test_list(self):
        assert expand_values([1, 2.5], "x") == [1.0, 2.5]

    def test_logspace(self):
        assert expand_values({"logspace": [0, 2, 3]}, "x") == pytest.approx([1.0, 10.0, 100.0])

    def test_linspace(self):
        assert expand_values({"linspace": [0, 1, 5]}, "x") == pytest.approx(
            [0.0, 0.25, 0.5, 0.75, 1.0]
        )

    @pytest.mark.parametrize("spec", [
        {"geomspace": [1, 10, 3]},
        {"logspace": [1, 10]},
        {"logspace": [0, 1, 0]},
        [],
        ["fast"],
        "1, 2, 3",
        True,
    ])
    def test_rejects_malformed(self, spec):
        with pytest.raises(ValueError):
            expand_values(spec, "x")


class TestSweepConfig:
    """Test sweep selection and swept values."""

    def test_defaults(self):
        config = SweepConfig()
        assert config.test_frequency and config.test_amplitude and config.test_spatial_period
        assert len(config.frequencies) == 100
        assert config.frequencies[0] == pytest.approx(0.1)
        assert config.frequencies[-1] == pytest.approx(100.0)
        assert len(config.amplitudes) == 200
        assert config.amplitudes[-1] == pytest.approx(1000.0)
        assert len(config.spatial_periods) == 100
        for period in config.spatial_periods:
            assert (360.0 / period) == pytest.approx(round(360.0 / period))

    def test_spatial_frequencies_are_snapped(self):
        config = SweepConfig.from_dict({"spatial_frequencies": [0.05, 0.1, 0.0501]})
        assert config.spatial_periods == pytest.approx([20.0, 10.0, 20.0])

    def test_spatial_frequency_below_one_cycle(self):
        with pytest.raises(InvalidParameterError):
            SweepConfig.from_dict({"spatial_frequencies": [0.001]})

    def test_both_spatial_keys_rejected(self):
        with pytest.raises(ValueError, match="not both"):
            SweepConfig.from_dict({"spatial_frequencies": [0.05], "spatial_periods": [20]})

    def test_generated_lists(self):
        config = SweepConfig.from_dict({
            "frequencies": {"logspace": [0, 1, 2]},
            "amplitudes": 5,
        })
        assert config.frequencies == pytest.approx([1.0, 10.0])
        assert config.amplitudes == [5.0]

    def test_values_for(self):
        config = SweepConfig.from_dict({"amplitudes": [1, 2]})
        assert config.values_for(SweepVariable.AMPLITUDE) == [1.0, 2.0]
        assert config.is_enabled(SweepVariable.AMPLITUDE)

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown key"):
            SweepConfig.from_dict({"frequency_list": [1]})


class TestSections:
    """Test the smaller configuration sections."""

    def test_head_motion_lists(self):
        config = HeadMotionConfig.from_dict({"gains": 0.5, "phases": [0, 90]})
        assert config.gains == [0.5]
        assert config.phases == [0.0, 90.0]

    def test_fit_builds_fitter(self):
        fitter = FitConfig.from_dict({"r2_threshold": 0.8, "maxfev": 500}).build_fitter()
        assert fitter.r2_threshold == 0.8
        assert fitter.maxfev == 500

    def test_grating_builders(self):
        config = GratingConfig(n_samples=720)
        assert config.build_generator().generate(20.0).n_samples == 720
        assert config.build_highpass().cutoff == config.highpass_cutoff


class TestExperimentConfig:
    """Test the complete configuration."""

    def test_defaults(self):
        config = ExperimentConfig()
        assert config.array.n_detectors == 360
        assert config.simulation.duration == 10.0
        assert config.simulation.dt == 0.001
        assert config.enabled_experiments() == list(SweepVariable)
        assert config.validate() is config

    def test_from_dict(self, small_config_dict):
        config = ExperimentConfig.from_dict(small_config_dict)
        assert config.array.n_detectors == 60
        assert config.simulation.duration == 0.5
        assert config.enabled_experiments() == [SweepVariable.FREQUENCY]
        assert config.metadata == {"name": "unit"}
        assert config.execution.verbose is False

    def test_empty_document(self):
        assert ExperimentConfig.from_yaml("") == ExperimentConfig()

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration section"):
            ExperimentConfig.from_dict({"stimulus": {}})

    def test_unknown_key_in_section(self):
        with pytest.raises(ValueError, match="'array'"):
            ExperimentConfig.from_dict({"array": {"detectors": 10}})

    def test_yaml_round_trip(self, small_config_dict):
        config = ExperimentConfig.from_dict(small_config_dict)
        restored = ExperimentConfig.from_yaml(config.to_yaml())
        assert restored == config

    def test_from_file(self, tmp_path):
        path = tmp_path / "experiment.yml"
        path.write_text(
            "sweep:\n  test_amplitude: false\n  test_spatial_period: false\n"
            "  frequencies: [0.5, 5]\n",
            encoding="utf-8",
        )
        config = ExperimentConfig.from_file(path)
        assert config.enabled_experiments() == [SweepVariable.FREQUENCY]
        assert config.sweep.frequencies == [0.5, 5.0]

    def test_duplicate_key_in_file(self, tmp_path):
        path = tmp_path / "experiment.yml"
        path.write_text("fit:\n  maxfev: 10\n  maxfev: 20\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Duplicate key"):
            ExperimentConfig.from_file(path)

    def test_select_experiments(self, small_config_dict):
        config = ExperimentConfig.from_dict(small_config_dict)
        assert config.select_experiments(None) == [SweepVariable.FREQUENCY]
        assert config.select_experiments(["amplitude", "wave", "amplitude"]) == [
            SweepVariable.AMPLITUDE,
            SweepVariable.SPATIAL_PERIOD,
        ]
        with pytest.raises(ValueError):
            config.select_experiments(["contrast"])

    @pytest.mark.parametrize("section,values,match", [
        ("array", {"n_detectors": 0}, "n_detectors"),
        ("array", {"tau": 0.0}, "tau"),
        ("simulation", {"dt": 0.0}, "dt"),
        ("simulation", {"dtype": "float16"}, "dtype"),
        ("fit", {"transient_samples": -1}, "transient_samples"),
        ("fit", {"transient_samples": 200}, "fewer than 4"),
        ("fit", {"transient_seconds": -0.1}, "transient_seconds"),
        ("fit", {"transient_seconds": 0.49}, "transient_seconds"),
        ("fit", {"r2_threshold": 2.0}, "r2_threshold"),
        ("execution", {"workers": 0}, "workers"),
    ])
    def test_validate_rejects(self, small_config_dict, section, values, match):
        small_config_dict.setdefault(section, {}).update(values)
        config = ExperimentConfig.from_dict(small_config_dict)
        with pytest.raises(ValueError, match=match):
            config.validate()

    def test_example_configs_validate(self, examples_dir):
        paths = sorted(examples_dir.glob("*.yml"))
        assert paths
        for path in paths:
            config = ExperimentConfig.from_file(path).validate()
            assert config.enabled_experiments()
