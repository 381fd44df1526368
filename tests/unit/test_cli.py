"""Tests for the command-line interface."""

import signal

import pytest

from emdforge.cli import create_parser, main
from emdforge.core.sweep import SweepHarness
from emdforge.config.yaml_utils import dump_yaml

pytestmark = pytest.mark.filterwarnings("ignore::emdforge.core.errors.FitQualityWarning")


@pytest.fixture
def config_file(tmp_path, small_config_dict):
    path = tmp_path / "experiment.yml"
    path.write_text(dump_yaml(small_config_dict), encoding="utf-8")
    return path


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage: emdforge" in capsys.readouterr().out


def test_list_experiments(capsys):
    assert main(["list-experiments"]) == 0
    out = capsys.readouterr().out
    assert "Available experiments:" in out
    for name in ("frequency", "amplitude", "spatial_period"):
        assert f"  - {name}:" in out


def test_validate_valid(config_file, capsys):
    assert main(["validate", str(config_file)]) == 0
    out = capsys.readouterr().out
    assert "Configuration is valid" in out
    assert "Detectors: 60" in out
    assert "Experiments: frequency" in out


def test_validate_invalid(tmp_path, capsys):
    path = tmp_path / "bad.yml"
    path.write_text("simulation:\n  dt: -1\n", encoding="utf-8")
    assert main(["validate", str(path)]) == 1
    assert "dt must be positive" in capsys.readouterr().err


def test_validate_unknown_key(tmp_path, capsys):
    path = tmp_path / "typo.yml"
    path.write_text("sweep:\n  test_frequecy: true\n", encoding="utf-8")
    assert main(["validate", str(path)]) == 1
    assert "Unknown key" in capsys.readouterr().err


def test_validate_missing_file(tmp_path, capsys):
    assert main(["validate", str(tmp_path / "missing.yml")]) == 1
    assert "Config file not found" in capsys.readouterr().err


def test_plan(config_file, capsys):
    assert main(["plan", str(config_file)]) == 0
    out = capsys.readouterr().out
    assert "frequency: 3 values from 1 to 4 Hz" in out
    assert "Total conditions: 3" in out


def test_plan_selected_experiments(config_file, capsys):
    assert main(["plan", str(config_file), "--experiment", "amplitude",
                 "--experiment", "spatial_period"]) == 0
    out = capsys.readouterr().out
    assert "amplitude: 2 values" in out
    assert "spatial_period: 2 values" in out
    assert "Total conditions: 4" in out


def test_run_quiet(config_file, capsys):
    assert main(["run", str(config_file), "--quiet"]) == 0
    out = capsys.readouterr().out
    assert "frequency sweep (3 values)" in out
    assert "Testing frequency effects" not in out


def test_run_selected_experiment(config_file, capsys):
    assert main(["run", str(config_file), "--quiet", "--experiment", "amplitude",
                 "--workers", "2"]) == 0
    out = capsys.readouterr().out
    assert "amplitude sweep (2 values)" in out
    assert "frequency sweep" not in out


def test_run_verbose_from_config(tmp_path, small_config_dict, capsys):
    small_config_dict["execution"]["verbose"] = True
    path = tmp_path / "verbose.yml"
    path.write_text(dump_yaml(small_config_dict), encoding="utf-8")
    assert main(["run", str(path)]) == 0
    out = capsys.readouterr().out
    assert "Testing frequency effects" in out
    assert "frequency sweep (3 values)" in out


def test_run_nothing_enabled(tmp_path, small_config_dict, capsys):
    small_config_dict["sweep"]["test_frequency"] = False
    path = tmp_path / "empty.yml"
    path.write_text(dump_yaml(small_config_dict), encoding="utf-8")
    assert main(["run", str(path), "--quiet"]) == 1
    assert "No experiments enabled" in capsys.readouterr().err


def test_run_missing_file(tmp_path, capsys):
    assert main(["run", str(tmp_path / "missing.yml")]) == 1
    assert "Error running experiments" in capsys.readouterr().err


def test_invalid_experiment_choice(config_file):
    with pytest.raises(SystemExit):
        create_parser().parse_args(["run", str(config_file), "--experiment", "contrast"])


def test_interrupt_keeps_completed_sweeps(tmp_path, small_config_dict, monkeypatch, capsys):
    small_config_dict["sweep"]["test_amplitude"] = True
    path = tmp_path / "two.yml"
    path.write_text(dump_yaml(small_config_dict), encoding="utf-8")

    original = SweepHarness.run_sweep

    def run_then_interrupt(self, *args, **kwargs):
        result = original(self, *args, **kwargs)
        # Deliver Ctrl-C to whatever handler the CLI installed.
        signal.getsignal(signal.SIGINT)(signal.SIGINT, None)
        return result

    monkeypatch.setattr(SweepHarness, "run_sweep", run_then_interrupt)
    previous = signal.getsignal(signal.SIGINT)
    assert main(["run", str(path), "--quiet"]) == 1
    captured = capsys.readouterr()
    assert "frequency sweep (3 values)" in captured.out
    assert "amplitude sweep" not in captured.out
    assert "cancelled before completion" in captured.err
    assert signal.getsignal(signal.SIGINT) is previous
