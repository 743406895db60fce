"""
Shared fixtures: small synthetic label volumes and fast configs.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from labelmesh.config import ReconstructionConfig, SmoothingParams, DecimationParams
from labelmesh.volume import Volume


@pytest.fixture
def raw_config():
    """No smoothing, no decimation: pure marching cubes output."""
    return ReconstructionConfig(
        smoothing=SmoothingParams(enabled=False),
        decimation=DecimationParams(enabled=False),
    )


@pytest.fixture
def fast_config():
    """Full pipeline with few smoothing iterations."""
    return ReconstructionConfig(
        smoothing=SmoothingParams(iterations=5),
        decimation=DecimationParams(keep_fraction=0.9),
    )


@pytest.fixture
def scenario_a_volume():
    """Voxel values only from {0, 1, 3, 5}; three separated blocks."""
    data = np.zeros((20, 20, 20), dtype=np.int16)
    data[2:7, 2:7, 2:7] = 1
    data[10:16, 3:9, 3:9] = 3
    data[4:9, 12:17, 10:16] = 5
    return Volume(data=data, spacing=(1.0, 1.0, 1.0), origin=(-10.0, 5.0, 0.0))


@pytest.fixture
def empty_volume():
    """No voxel greater than 0."""
    return Volume(data=np.zeros((8, 8, 8), dtype=np.int16))


@pytest.fixture
def cube_volume():
    """Single label-7 block on an anisotropic grid."""
    data = np.zeros((12, 10, 9), dtype=np.uint8)
    data[2:7, 3:8, 1:6] = 7
    return Volume(data=data, spacing=(2.0, 1.0, 0.5), origin=(10.0, -4.0, 3.0))
