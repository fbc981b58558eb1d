"""
config.py — Simulation Parameters
==================================
Everything the kernel needs to know before it allocates a single buffer.

The defaults describe a small smoke plume that runs comfortably in pure
Python/NumPy:

  - 32 × 32 cells, fluid density 0.1
  - timestep never larger than 0.005 s (it shrinks further when the flow is fast)
  - 15 frames per second of simulated time
  - up to 600 Gauss-Seidel sweeps per pressure solve, stopping at 1e-5
"""

import json
import math
import numbers
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .errors import InvalidConfigurationError


SOLVER_GAUSS_SEIDEL = "gauss_seidel"
SOLVER_JACOBI = "jacobi"
SOLVER_METHODS = (SOLVER_GAUSS_SEIDEL, SOLVER_JACOBI)


def _integral(label: str, value) -> int:
    """Accept ints and integral floats; anything else is a configuration error."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidConfigurationError(f"{label} must be an integer, got {value!r}")
    if not math.isfinite(value) or int(value) != value:
        raise InvalidConfigurationError(f"{label} must be an integer, got {value!r}")
    return int(value)


@dataclass
class SimulationConfig:
    """Configuration for a 2D MAC-grid fluid simulation."""
    width: int = 32
    height: int = 32
    density: float = 0.1
    timestep_cap: float = 0.005
    frame_duration: float = 1.0 / 15.0
    solver_iterations: int = 600
    tolerance: float = 1e-5
    epsilon: float = 1e-6   # guards 1/max_speed when the fluid is at rest
    solver_method: str = SOLVER_GAUSS_SEIDEL
    verbose: bool = False

    def __post_init__(self):
        self.width = _integral("Grid width", self.width)
        self.height = _integral("Grid height", self.height)
        self.solver_iterations = _integral("Solver iterations", self.solver_iterations)
        for name in ("density", "timestep_cap", "frame_duration", "tolerance", "epsilon"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidConfigurationError(
                    f"{name} must be a number, got {value!r}")
        if not isinstance(self.verbose, bool):
            raise InvalidConfigurationError(
                f"verbose must be true or false, got {self.verbose!r}")

        if self.width <= 0 or self.height <= 0:
            raise InvalidConfigurationError(
                f"Grid dimensions must be positive, got {self.width}x{self.height}")
        if not self.density > 0:
            raise InvalidConfigurationError(
                f"Fluid density must be positive, got {self.density}")
        if not self.timestep_cap > 0:
            raise InvalidConfigurationError(
                f"Timestep cap must be positive, got {self.timestep_cap}")
        if not self.frame_duration > 0:
            raise InvalidConfigurationError(
                f"Frame duration must be positive, got {self.frame_duration}")
        if self.solver_iterations < 1:
            raise InvalidConfigurationError(
                f"Solver needs at least one iteration, got {self.solver_iterations}")
        if not self.tolerance > 0:
            raise InvalidConfigurationError(
                f"Solver tolerance must be positive, got {self.tolerance}")
        if not self.epsilon > 0:
            raise InvalidConfigurationError(
                f"Epsilon must be positive, got {self.epsilon}")
        if self.solver_method not in SOLVER_METHODS:
            raise InvalidConfigurationError(
                f"Unknown solver method: {self.solver_method}. "
                f"Use one of {', '.join(SOLVER_METHODS)}.")

    @property
    def cell_size(self) -> float:
        """Uniform cell size; the shorter side of the domain has length 1."""
        return 1.0 / min(self.width, self.height)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationConfig":
        """Build a config from a plain dict, rejecting keys we don't know."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path) -> "SimulationConfig":
        with open(Path(path)) as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise InvalidConfigurationError(
                    f"Config file {path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise InvalidConfigurationError(
                f"Config file {path} must contain a JSON object")
        return cls.from_dict(data)

    def replace(self, **overrides) -> "SimulationConfig":
        """Copy with some fields changed; None values are ignored."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return SimulationConfig.from_dict(data)
