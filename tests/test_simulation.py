"""
Tests for the orchestrating FluidSimulation: timestep selection, substep
pipeline, frame composition and sinks.
"""

import numpy as np
import pytest

from fluid2d import (FieldDataError, FluidSimulation, InflowSource,
                     InvalidConfigurationError, MemorySink, SimulationConfig)
from fluid2d.solver import DEFAULT_TOLERANCE


class TestConstruction:

    def test_cell_size_from_shorter_side(self):
        sim = FluidSimulation(width=8, height=4)
        assert sim.cell_size == 0.25
        assert sim.density.shape == (4, 8)
        assert sim.u.shape == (4, 9)
        assert sim.v.shape == (5, 8)

    @pytest.mark.parametrize("overrides", [
        {"width": 0},
        {"height": -3},
        {"density": 0.0},
        {"density": -1.0},
    ])
    def test_invalid_parameters_rejected(self, overrides):
        with pytest.raises(InvalidConfigurationError):
            FluidSimulation(**overrides)

    def test_pressure_starts_at_zero(self, sim4):
        assert np.all(sim4.solver.p == 0.0)


class TestTimestep:

    def test_at_rest_uses_cap(self, sim4):
        assert sim4.compute_timestep() == sim4.config.timestep_cap

    def test_fast_flow_shrinks_timestep(self, sim4):
        sim4.u.fill(400.0)
        assert sim4.compute_timestep() == pytest.approx(1.0 / 400.0)

    def test_single_fast_face_bounds_timestep(self, sim4):
        sim4.u.current[:, 1:-1] = [400.0, -400.0, 400.0]
        assert sim4.compute_timestep() == pytest.approx(1.0 / 400.0)

    def test_slow_flow_keeps_cap(self, sim4):
        sim4.u.fill(0.5)
        assert sim4.compute_timestep() == sim4.config.timestep_cap


class TestStep:

    def test_step_reports_metrics(self, sim4):
        metrics = sim4.step()
        for key in ("dt", "total_ms", "advect_ms", "project_ms", "solver_iterations",
                    "solver_residual", "solver_converged", "divergence_max",
                    "density_total"):
            assert key in metrics
        assert metrics["dt"] == sim4.config.timestep_cap
        assert sim4.steps == 1
        assert sim4.time == sim4.config.timestep_cap
        assert len(sim4.perf_log) == 1

    def test_sources_applied_every_step(self, sim4):
        sim4.add_source(InflowSource(0.4, 0.4, 0.25, 0.25, density=1.0))
        sim4.step()
        assert sim4.density.at(1, 1) == pytest.approx(1.0)
        sim4.density.fill(0.0)
        sim4.step()
        assert sim4.density.at(1, 1) == pytest.approx(1.0)

    def test_step_leaves_walls_closed_and_flow_divergence_free(self):
        sim = FluidSimulation(width=6, height=6, density=1.0,
                              timestep_cap=0.01, solver_iterations=5000)
        sim.add_source(InflowSource(0.3, 0.2, 0.4, 0.3, density=1.0, u=0.5, v=2.0))
        for _ in range(3):
            metrics = sim.step()
            assert metrics["solver_converged"]
            assert np.all(sim.velocity.boundary_values() == 0.0)
            div = sim.velocity.divergence()[1:-1, 1:-1]
            assert np.abs(div).max() < 10 * DEFAULT_TOLERANCE

    def test_add_inflow_is_immediate(self, sim4):
        sim4.add_inflow(0.4, 0.4, 0.25, 0.25, 1.0, 0.0, 0.0)
        assert sim4.density.at(1, 1) == 1.0
        assert sim4.sources == []


class TestFrames:

    def test_frame_covers_exact_duration(self, sim4):
        frame = sim4.advance_frame()
        assert frame.stats["substeps"] == 4
        assert sim4.time == 0.5
        assert frame.index == 0
        assert sim4.frame == 1

    def test_last_substep_is_shortened(self):
        sim = FluidSimulation(width=4, height=4, density=1.0,
                              timestep_cap=0.125, frame_duration=0.3)
        sim.advance_frame()
        dts = [m["dt"] for m in sim.perf_log]
        assert dts[:2] == [0.125, 0.125]
        assert dts[2] == pytest.approx(0.05)
        assert sum(dts) == pytest.approx(0.3)

    def test_frame_contents(self, sim4):
        sim4.density.add_inflow(0.4, 0.4, 0.65, 0.65, 1.0)
        frame = sim4.advance_frame()
        assert frame.velocity.shape == (4, 4, 2)
        assert frame.density.shape == (4, 4)
        assert (frame.width, frame.height) == (4, 4)
        # Frame holds copies, not views of the live buffers
        frame.density[:] = -1.0
        assert sim4.density.current.min() >= 0.0

    def test_frame_velocity_is_cell_centered(self, sim4):
        frame = sim4.make_frame()
        uc, vc = sim4.velocity.cell_centered()
        assert np.array_equal(frame.velocity[..., 0], uc)
        assert np.array_equal(frame.velocity[..., 1], vc)

    def test_sinks_receive_each_frame(self, sim4):
        attached = MemorySink()
        sim4.attach_sink(attached)
        extra = MemorySink()
        stats = sim4.run(3, sinks=[extra])

        assert len(stats) == 3
        assert [f.index for f in attached.frames] == [0, 1, 2]
        assert [f.index for f in extra.frames] == [0, 1, 2]
        # run() only borrows the extra sinks
        assert sim4.sinks == [attached]

    def test_zero_velocity_frame_keeps_density(self, sim4):
        sim4.density.add_inflow(0.4, 0.4, 0.65, 0.65, 1.0)
        frame = sim4.advance_frame()
        assert frame.density[1, 1] == pytest.approx(1.0)
        assert frame.density.sum() == pytest.approx(1.0)

    def test_verbose_frame_line(self, small_config, capsys):
        sim = FluidSimulation(small_config.replace(verbose=True))
        sim.advance_frame()
        assert "[Simulation] Frame 0000" in capsys.readouterr().out


class TestState:

    def test_load_state(self, sim4):
        sim4.load_state(density=np.ones(16), u=np.full((4, 5), 0.5))
        assert np.all(sim4.density.current == 1.0)
        assert np.all(sim4.u.current == 0.5)
        assert np.all(sim4.v.current == 0.0)

    def test_bad_data_leaves_every_field_untouched(self, sim4):
        with pytest.raises(FieldDataError):
            sim4.load_state(density=np.ones(16), u=np.ones(16))
        assert np.all(sim4.density.current == 0.0)
        assert np.all(sim4.u.current == 0.0)

    def test_snapshot_and_reset(self, sim4):
        sim4.add_source(InflowSource(0.25, 0.25, 0.5, 0.5, density=1.0, v=1.0))
        sim4.advance_frame()
        snap = sim4.snapshot()
        assert snap["velocity_u"].shape == (4, 5)
        assert snap["pressure"].shape == (4, 4)
        assert snap["density"].sum() > 0.0

        sim4.reset()
        assert sim4.time == 0.0 and sim4.frame == 0 and sim4.steps == 0
        assert np.all(sim4.density.current == 0.0)
        assert np.all(sim4.solver.p == 0.0)
        assert len(sim4.sources) == 1

    def test_status_text(self, sim4):
        sim4.step()
        text = sim4.status()
        assert "Frame: 0" in text
        assert "Divergence" in text


class TestConfigInteraction:

    def test_overrides_on_top_of_config(self, small_config):
        sim = FluidSimulation(small_config, width=6)
        assert sim.width == 6
        assert sim.height == 4
        assert sim.config.timestep_cap == small_config.timestep_cap

    def test_jacobi_simulation_runs(self, small_config):
        sim = FluidSimulation(small_config.replace(solver_method="jacobi",
                                                   solver_iterations=5000))
        sim.add_source(InflowSource(0.25, 0.25, 0.5, 0.5, density=1.0, v=1.0))
        frame = sim.advance_frame()
        assert np.all(np.isfinite(frame.velocity))
        assert sim.solver.method == "jacobi"

    def test_default_config(self):
        assert SimulationConfig().cell_size == 1.0 / 32
