"""
simulation.py — Master Physics Loop
====================================
This is the complete simulation step that ties everything together.

Physics pipeline per substep:
  1. Apply inflow sources (density + velocity stamped into rectangles)
  2. Advect density, u and v into their NEXT buffers
  3. Flip the advected fields (the advected state becomes current)
  4. Build the pressure right-hand side from the new velocity
  5. Solve for pressure (Gauss-Seidel, bounded number of sweeps)
  6. Apply the pressure gradient; walls are set to zero flow

Timestep per substep:
  dt = min(timestep_cap, 1 / max(epsilon, max_speed))

A FRAME is as many substeps as it takes to cover `frame_duration` of simulated
time; the last substep is shortened so frames land exactly on the boundary.
The state at the end of a frame is packed into a Frame and handed to every
attached sink.
"""

import time
from typing import Optional

import numpy as np

from .advect import advect_all
from .config import SimulationConfig
from .grid import ScalarField, VelocityField
from .inflow import InflowSource
from .output import Frame, FrameSink
from .solver import PressureSolver


class FluidSimulation:
    """
    The complete 2D fluid simulation.

    Usage:
        sim = FluidSimulation(width=64, height=64)
        sim.add_source(InflowSource(0.45, 0.2, 0.1, 0.01, density=1.0, v=3.0))
        for frame in range(100):
            f = sim.advance_frame()
            density = f.density           # Hand to renderer
    """

    def __init__(self, config: Optional[SimulationConfig] = None, **overrides):
        """
        Args:
            config    : SimulationConfig; defaults are used when omitted
            overrides : Individual config fields (width=, height=, density=, ...)

        Invalid parameters raise InvalidConfigurationError before any field
        is allocated.
        """
        config = config if config is not None else SimulationConfig()
        if overrides:
            config = config.replace(**overrides)
        self.config = config

        self.width = config.width
        self.height = config.height
        self.cell_size = config.cell_size
        self.fluid_density = config.density

        # ── Fields ─────────────────────────────────────────────────────────
        self.density = ScalarField(self.width, self.height, 0.5, 0.5, self.cell_size)
        self.velocity = VelocityField(self.width, self.height, self.cell_size)
        self.solver = PressureSolver(
            self.velocity, self.fluid_density,
            tolerance=config.tolerance,
            method=config.solver_method,
            verbose=config.verbose,
        )

        self.sources: list[InflowSource] = []
        self.sinks: list[FrameSink] = []

        self.time = 0.0
        self.steps = 0
        self.frame = 0
        self.perf_log = []   # stores timing data per substep

    # ── Shortcuts ──────────────────────────────────────────────────────────
    @property
    def u(self) -> ScalarField:
        return self.velocity.u

    @property
    def v(self) -> ScalarField:
        return self.velocity.v

    @property
    def advected_fields(self) -> tuple[ScalarField, ScalarField, ScalarField]:
        return (self.density, self.velocity.u, self.velocity.v)

    # ── Inputs ─────────────────────────────────────────────────────────────
    def add_source(self, source: InflowSource):
        """Register a source that is applied at the start of every substep."""
        self.sources.append(source)

    def clear_sources(self):
        self.sources.clear()

    def add_inflow(self, x: float, y: float, w: float, h: float,
                   density: float, u: float, v: float):
        """Stamp density/u/v into the rectangle (x, y, w, h) once, right now."""
        InflowSource(x, y, w, h, density, u, v).apply(self.density, self.velocity)

    def attach_sink(self, sink: FrameSink):
        self.sinks.append(sink)

    def load_state(self, density=None, u=None, v=None):
        """
        Seed fields from external data.

        Every array is checked before any field is written, so a mismatched
        input never leaves the simulation partially filled.
        """
        pending = []
        for field, values in ((self.density, density), (self.u, u), (self.v, v)):
            if values is not None:
                pending.append((field, field.validate(values)))
        for field, data in pending:
            np.copyto(field.current, data)

    # ── Stepping ───────────────────────────────────────────────────────────
    def compute_timestep(self) -> float:
        """Largest stable dt for the current velocity, capped."""
        max_speed = self.velocity.max_speed()
        return min(self.config.timestep_cap, 1.0 / max(self.config.epsilon, max_speed))

    def step(self, dt: Optional[float] = None) -> dict:
        """
        Advance simulation by one substep.

        Args:
            dt : Timestep; computed from the current velocity when omitted

        Returns performance metrics dict for benchmarking.
        """
        t_total_start = time.perf_counter()
        if dt is None:
            dt = self.compute_timestep()

        # ── Step 1: Inflow ────────────────────────────────────────────────
        for source in self.sources:
            source.apply(self.density, self.velocity)

        # ── Steps 2-3: Advect into next buffers, then flip ────────────────
        t0 = time.perf_counter()
        advect_all(self.advected_fields, self.velocity, dt)
        t_advect = (time.perf_counter() - t0) * 1000

        # ── Steps 4-5: Pressure solve ─────────────────────────────────────
        self.solver.build_rhs()
        solve = self.solver.project(self.config.solver_iterations, dt)

        # ── Step 6: Pressure correction + solid walls ─────────────────────
        t0 = time.perf_counter()
        self.solver.apply_pressure(dt)
        t_pressure = (time.perf_counter() - t0) * 1000

        # ── Bookkeeping ───────────────────────────────────────────────────
        self.time += dt
        self.steps += 1
        t_total = (time.perf_counter() - t_total_start) * 1000

        metrics = {
            "step"             : self.steps,
            "time"             : self.time,
            "dt"               : dt,
            "total_ms"         : t_total,
            "advect_ms"        : t_advect,
            "project_ms"       : solve["time_ms"],
            "pressure_ms"      : t_pressure,
            "solver_iterations": solve["iterations"],
            "solver_residual"  : solve["residual"],
            "solver_converged" : solve["converged"],
            "divergence_max"   : float(np.abs(self.velocity.divergence()).max()),
            "density_total"    : float(self.density.current.sum()),
        }
        self.perf_log.append(metrics)
        return metrics

    def advance_frame(self) -> Frame:
        """
        Run substeps until one frame's worth of time has passed, then emit.

        Returns the Frame that was handed to the sinks.
        """
        t_start = time.perf_counter()
        remaining = self.config.frame_duration
        substeps = []
        while remaining > 0.0:
            dt = min(self.compute_timestep(), remaining)
            substeps.append(self.step(dt))
            remaining -= dt

        stats = {
            "substeps"         : len(substeps),
            "frame_ms"         : (time.perf_counter() - t_start) * 1000,
            "solver_iterations": sum(m["solver_iterations"] for m in substeps),
            "unconverged"      : sum(not m["solver_converged"] for m in substeps),
            "divergence_max"   : substeps[-1]["divergence_max"],
            "density_total"    : substeps[-1]["density_total"],
        }
        frame = self.make_frame(stats)
        self.frame += 1

        if self.config.verbose:
            print(f"[Simulation] Frame {frame.index:04d} | t={self.time:.4f} | "
                  f"{stats['substeps']} substeps | {stats['frame_ms']:.1f}ms | "
                  f"div_max={stats['divergence_max']:.5f}")

        for sink in self.sinks:
            sink.accept(frame)
        return frame

    def run(self, n_frames: int, sinks=()) -> list[dict]:
        """
        Simulate `n_frames` frames, handing each to `sinks` (and to any sinks
        already attached). Returns the per-frame stats.
        """
        extra = list(sinks)
        self.sinks.extend(extra)
        try:
            return [self.advance_frame().stats for _ in range(n_frames)]
        finally:
            for sink in extra:
                self.sinks.remove(sink)

    # ── Output ─────────────────────────────────────────────────────────────
    def make_frame(self, stats: Optional[dict] = None) -> Frame:
        """Pack the current state (cell-centered velocity + density) into a Frame."""
        uc, vc = self.velocity.cell_centered()
        return Frame(
            index=self.frame,
            time=self.time,
            velocity=np.stack([uc, vc], axis=-1),
            density=self.density.current.copy(),
            stats=dict(stats or {}),
        )

    def snapshot(self) -> dict:
        """Copies of the raw fields, including the staggered components."""
        return {
            "frame"     : self.frame,
            "time"      : self.time,
            "velocity_u": self.u.current.copy(),
            "velocity_v": self.v.current.copy(),
            "density"   : self.density.current.copy(),
            "pressure"  : self.solver.pressure.copy(),
            "divergence": self.velocity.divergence(),
        }

    def reset(self):
        """Zero out all fields and counters. Sources and sinks are kept."""
        for field in self.advected_fields:
            field.current[:] = 0.0
            field.next[:] = 0.0
        self.solver.reset()
        self.time = 0.0
        self.steps = 0
        self.frame = 0
        self.perf_log = []

    def status(self) -> str:
        """Current simulation state as a short text block."""
        d = self.density.current
        div = self.velocity.divergence()
        p = self.solver.pressure
        lines = [
            f"{'='*50}",
            f"  Frame: {self.frame}  |  t={self.time:.4f}  |  {self.width}x{self.height}",
            f"  Density   : max={d.max():.4f}, total={d.sum():.2f}",
            f"  Velocity  : max_magnitude={self.velocity.max_speed():.4f}",
            f"  Divergence: max={np.abs(div).max():.6f}, mean={np.abs(div).mean():.8f}",
            f"  Pressure  : max={p.max():.4f}, min={p.min():.4f}",
        ]
        if self.perf_log:
            last = self.perf_log[-1]
            lines.append(f"  Perf      : {last['total_ms']:.1f}ms/substep "
                         f"({last['solver_iterations']} solver iterations)")
        lines.append(f"{'='*50}")
        return "\n".join(lines)

    def print_status(self):
        """Pretty-print current simulation state."""
        print("\n" + self.status())
