"""Shared fixtures for the fluid2d tests."""

import numpy as np
import pytest

from fluid2d import FluidSimulation, SimulationConfig


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def small_config():
    """Tiny grid with exact binary timesteps, cheap enough for many substeps."""
    return SimulationConfig(width=4, height=4, density=1.0,
                            timestep_cap=0.125, frame_duration=0.5,
                            solver_iterations=2000)


@pytest.fixture
def sim4(small_config):
    return FluidSimulation(small_config)


def randomize_interior(velocity, rng, scale=1.0):
    """Random face velocities with the wall faces left at zero."""
    u = velocity.u.current
    v = velocity.v.current
    u[:, 1:-1] = rng.uniform(-scale, scale, size=u[:, 1:-1].shape)
    v[1:-1, :] = rng.uniform(-scale, scale, size=v[1:-1, :].shape)
