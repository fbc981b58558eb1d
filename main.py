"""
main.py — Command Line Entry Point
===================================
Runs the 2D fluid kernel and writes its frames somewhere useful.

Usage:
    python main.py                              # 60 frames → frames.txt (default)
    python main.py --format npy --output out/   # .npy per frame + metadata.json
    python main.py --mode benchmark             # time each part of a substep
    python main.py --mode live                  # matplotlib window
    python main.py --mode data --runs 5         # randomized dataset runs
    python main.py --config sim.json --width 64 # config file + overrides
"""

import argparse
import sys

import numpy as np

from fluid2d import (Fluid2DError, FluidSimulation, InflowSource, NpyFrameWriter,
                     SimulationConfig, TextFrameWriter)


def default_source(config: SimulationConfig) -> InflowSource:
    """Smoke plume near the bottom center, blowing upward."""
    h = config.cell_size
    domain_w = config.width * h
    size = max(0.1, 2 * h)
    return InflowSource(0.5 * (domain_w - size), 0.2, size, max(0.01, 2 * h),
                        density=1.0, u=0.0, v=3.0)


def run_headless(config: SimulationConfig, frames: int, output: str, fmt: str):
    """Run without display and write every frame."""
    sim = FluidSimulation(config)
    sim.add_source(default_source(config))

    print(f"\nHeadless simulation | {config.width}x{config.height} | {frames} frames")
    print(f"{'─'*60}")

    if fmt == "npy":
        sink = NpyFrameWriter(output, metadata={"config": config.to_dict()})
    else:
        sink = TextFrameWriter(output, frames)

    frame_times = []
    with sink:
        for f in range(frames):
            frame = sim.advance_frame()
            sink.accept(frame)
            frame_times.append(frame.stats["frame_ms"])

            if f % 10 == 0:
                print(f"  Frame {f:03d} | {frame.stats['frame_ms']:7.1f}ms | "
                      f"{frame.stats['substeps']} substeps | "
                      f"div_max={frame.stats['divergence_max']:.5f} | "
                      f"density={frame.stats['density_total']:.1f}")

    print(f"\n{'─'*60}")
    if frame_times:
        print(f"  Average: {np.mean(frame_times):.1f}ms/frame")
    print(f"  Saved: {output}")


def run_benchmark(config: SimulationConfig, frames: int):
    """
    Detailed performance breakdown.
    Shows how long each part of a substep takes.
    """
    print(f"\n{'='*60}")
    print(f"  PHYSICS BENCHMARK | {config.width}x{config.height} | {frames} frames "
          f"| {config.solver_method}")
    print(f"{'='*60}")

    sim = FluidSimulation(config)
    sim.add_source(default_source(config))
    sim.run(frames)
    logs = sim.perf_log

    keys = ["advect_ms", "project_ms", "pressure_ms", "total_ms", "solver_iterations"]

    print(f"\n{'Step':<20} {'Mean':>9} {'Min':>9} {'Max':>9}")
    print(f"{'─'*50}")
    for k in keys:
        vals = [m[k] for m in logs]
        print(f"  {k:<18} {np.mean(vals):>9.1f} {np.min(vals):>9.1f} {np.max(vals):>9.1f}")

    unconverged = sum(not m["solver_converged"] for m in logs)
    print(f"\n{'─'*50}")
    print(f"  Substeps: {len(logs)} | unconverged solves: {unconverged}")


def run_live(config: SimulationConfig, frames: int):
    """Live matplotlib visualization."""
    from visualizer import FluidVisualizer

    print(f"Starting live simulation ({config.width}x{config.height})...")
    print("Close the window to exit.\n")

    sim = FluidSimulation(config)
    sim.add_source(default_source(config))
    viz = FluidVisualizer(sim)
    viz.run(fps=15, frames=frames)


def run_data_generation(config: SimulationConfig, output: str, n_runs: int,
                        frames: int, seed: int):
    """Randomized runs saved as .npy, one directory per run."""
    from data_pipeline import DatasetGenerator

    print(f"\nData generation mode")
    print(f"  {config.width}x{config.height}, {n_runs} runs, {frames} frames/run")
    print(f"  Saving to: {output}\n")

    gen = DatasetGenerator(output_dir=output, config=config)
    gen.generate_dataset(n_runs=n_runs, frames_per_run=frames, seed=seed)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="2D MAC-grid Fluid Simulation")
    parser.add_argument(
        "--mode", choices=["headless", "benchmark", "live", "data"],
        default="headless",
        help="Run mode (default: headless)"
    )
    parser.add_argument("--config", help="JSON file with SimulationConfig fields")
    parser.add_argument("--width",  type=int, help="Grid width in cells (default: 32)")
    parser.add_argument("--height", type=int, help="Grid height in cells (default: 32)")
    parser.add_argument("--density", type=float, help="Fluid density (default: 0.1)")
    parser.add_argument("--iterations", type=int, help="Pressure solver iteration budget")
    parser.add_argument("--timestep-cap", type=float, help="Largest allowed substep")
    parser.add_argument("--solver", choices=["gauss_seidel", "jacobi"],
                        help="Pressure iteration scheme")
    parser.add_argument("--frames", type=int, default=60, help="Number of frames")
    parser.add_argument("--output", default=None,
                        help="Output file (text) or directory (npy, data)")
    parser.add_argument("--format", choices=["text", "npy"], default="text",
                        help="Frame output format for headless mode")
    parser.add_argument("--runs", type=int, default=5, help="Number of data gen runs")
    parser.add_argument("--seed", type=int, default=42, help="Base seed for data gen")
    parser.add_argument("--verbose", action="store_true", default=None,
                        help="Print solver and frame progress")
    return parser


def build_config(args: argparse.Namespace) -> SimulationConfig:
    config = SimulationConfig.from_json(args.config) if args.config else SimulationConfig()
    return config.replace(
        width=args.width,
        height=args.height,
        density=args.density,
        solver_iterations=args.iterations,
        timestep_cap=args.timestep_cap,
        solver_method=args.solver,
        verbose=args.verbose,
    )


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)

        if args.mode == "headless":
            default_out = "frames" if args.format == "npy" else "frames.txt"
            run_headless(config, args.frames, args.output or default_out, args.format)
        elif args.mode == "benchmark":
            run_benchmark(config, args.frames)
        elif args.mode == "live":
            run_live(config, args.frames)
        elif args.mode == "data":
            run_data_generation(config, args.output or "data", args.runs,
                                args.frames, args.seed)
    except (Fluid2DError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
