"""
fluid2d/ — 2D Incompressible Fluid Kernel
==========================================
Exports the interfaces drivers and renderers use.

Driver (main.py)         imports: FluidSimulation, SimulationConfig, InflowSource
Renderer / persistence   imports: Frame, FrameSink, TextFrameWriter, read_frames
"""

from .advect import advect_all, advect_field, bilinear_sample
from .config import SOLVER_GAUSS_SEIDEL, SOLVER_JACOBI, SimulationConfig
from .errors import FieldDataError, Fluid2DError, InvalidConfigurationError
from .grid import ScalarField, VelocityField
from .inflow import InflowSource
from .output import (Frame, FrameSink, MemorySink, NpyFrameWriter,
                     TextFrameWriter, parse_frames, read_frames)
from .simulation import FluidSimulation
from .solver import PressureSolver

__all__ = [
    "ScalarField", "VelocityField",
    "advect_all", "advect_field", "bilinear_sample",
    "PressureSolver", "SOLVER_GAUSS_SEIDEL", "SOLVER_JACOBI",
    "InflowSource",
    "FluidSimulation", "SimulationConfig",
    "Frame", "FrameSink", "MemorySink", "TextFrameWriter", "NpyFrameWriter",
    "parse_frames", "read_frames",
    "Fluid2DError", "InvalidConfigurationError", "FieldDataError",
]

__version__ = "0.1.0"
