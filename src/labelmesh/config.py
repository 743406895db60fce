"""
Configuration and constants for label mesh reconstruction.

Pipeline per label (fixed order):
- binary threshold → marching cubes at iso_level → smoothing → decimation → tagging
- Smoothing and decimation are optional and parameterized here
- threads = 0 means automatic (cpu count, or 4 if undetectable)
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any
import json
from pathlib import Path


@dataclass
class SmoothingParams:
    """
    Windowed-sinc smoothing parameters.

    pass_band controls how much high-frequency detail survives:
    smaller = smoother. Coordinate normalization keeps repeated passes
    from shrinking the surface.
    """
    enabled: bool = True
    iterations: int = 20
    pass_band: float = 0.1
    feature_angle: float = 120.0
    boundary_smoothing: bool = False
    feature_edge_smoothing: bool = False
    normalize_coordinates: bool = True

    def validate(self) -> None:
        if self.iterations < 0:
            raise ValueError(f"smoothing iterations must be >= 0, got {self.iterations}")
        if not 0.0 < self.pass_band <= 2.0:
            raise ValueError(f"pass_band must be in (0, 2], got {self.pass_band}")
        if not 0.0 <= self.feature_angle <= 180.0:
            raise ValueError(f"feature_angle must be in [0, 180], got {self.feature_angle}")


@dataclass
class DecimationParams:
    """
    Topology-preserving decimation parameters.

    keep_fraction is the share of the original triangle count to retain
    (0.95 keeps ~95% of the triangles).
    """
    enabled: bool = True
    keep_fraction: float = 0.95
    preserve_topology: bool = True

    @property
    def target_reduction(self) -> float:
        return 1.0 - self.keep_fraction

    def validate(self) -> None:
        if not 0.0 < self.keep_fraction <= 1.0:
            raise ValueError(f"keep_fraction must be in (0, 1], got {self.keep_fraction}")


@dataclass
class ReconstructionConfig:
    """
    Global configuration for a mask → mesh build.

    Per-call configuration: pass a different instance to each build
    instead of mutating DEFAULT_CONFIG.
    """

    smoothing: SmoothingParams = field(default_factory=SmoothingParams)
    decimation: DecimationParams = field(default_factory=DecimationParams)

    # Worker threads (0 = automatic)
    threads: int = 0

    # Isosurface level on the binary (0/1) label volume
    iso_level: float = 0.5

    # Name of the per-triangle label attribute in attributed exports
    label_array_name: str = "Label"

    def validate(self) -> "ReconstructionConfig":
        """Check parameter ranges, raising ValueError on the first bad value."""
        if self.threads < 0:
            raise ValueError(f"threads must be >= 0, got {self.threads}")
        if not 0.0 < self.iso_level < 1.0:
            raise ValueError(f"iso_level must be in (0, 1), got {self.iso_level}")
        if not self.label_array_name:
            raise ValueError("label_array_name must not be empty")
        self.smoothing.validate()
        self.decimation.validate()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "smoothing": asdict(self.smoothing),
            "decimation": asdict(self.decimation),
            "threads": self.threads,
            "iso_level": self.iso_level,
            "label_array_name": self.label_array_name
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReconstructionConfig":
        data = dict(data)
        data["smoothing"] = SmoothingParams(**data.get("smoothing", {}))
        data["decimation"] = DecimationParams(**data.get("decimation", {}))
        return cls(**data)

    @classmethod
    def from_json(cls, path: Path) -> "ReconstructionConfig":
        """Load config from JSON file."""
        with open(path) as f:
            data = json.load(f)
        return cls.from_dict(data).validate()

    def save(self, path: Path) -> None:
        """Save config to JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


# Global default config
DEFAULT_CONFIG = ReconstructionConfig()
