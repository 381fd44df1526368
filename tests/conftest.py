"""
Test configuration and fixtures for the motion detector simulation.
"""
import os
import sys
from pathlib import Path

import pytest
import torch

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("OMP_NUM_THREADS", "1")
os.environ.setdefault("MKL_NUM_THREADS", "1")
os.environ.setdefault("NUMEXPR_NUM_THREADS", "1")

try:
    torch.set_num_threads(1)
except Exception:  # pragma: no cover - fallback when backend disallows
    pass

from emdforge.core.emd_array import EMDArray, EMDArrayConfig, SimulationConfig  # noqa: E402
from emdforge.filters.highpass import EdgeSafeFilter  # noqa: E402
from emdforge.stimuli.grating import GratingGenerator  # noqa: E402


def pytest_addoption(parser):
    parser.addoption(
        "--runslow", action="store_true", default=False, help="run tests marked slow"
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: full-size simulations (enable with --runslow)")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--runslow"):
        return
    skip_slow = pytest.mark.skip(reason="needs --runslow")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def small_simulation():
    """Short, coarse simulation for fast unit tests."""
    return SimulationConfig(duration=0.5, dt=0.005)


@pytest.fixture
def small_array_config():
    """60 detectors: 6 deg spacing samples a 20 deg grating at 10 phases."""
    return EMDArrayConfig(n_detectors=60, baseline_deg=1.0, tau=0.05)


@pytest.fixture
def small_array(small_array_config, small_simulation):
    """Detector array using the small configuration."""
    return EMDArray(small_array_config, small_simulation)


@pytest.fixture
def filtered_grating():
    """Default 20 deg grating after the spatial high-pass."""
    return EdgeSafeFilter().apply(GratingGenerator().generate(20.0))


@pytest.fixture
def small_config_dict():
    """Experiment configuration dict running a short frequency sweep."""
    return {
        "metadata": {"name": "unit"},
        "array": {"n_detectors": 60},
        "simulation": {"duration": 0.5, "dt": 0.005},
        "sweep": {
            "test_frequency": True,
            "test_amplitude": False,
            "test_spatial_period": False,
            "frequencies": [1.0, 2.0, 4.0],
            "amplitudes": [2.0, 5.0],
            "spatial_periods": [10.0, 20.0],
        },
        "execution": {"verbose": False},
    }


@pytest.fixture
def examples_dir():
    """Directory holding the example experiment configurations."""
    return ROOT / "examples" / "configs"
