"""
visualizer.py — Density + Velocity Viewer
==========================================
Renders the 2D density field with a quiver of cell-centered velocity on top.

Uses matplotlib FuncAnimation for real-time updates; each animation tick
advances the simulation by one frame.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from matplotlib.colors import LinearSegmentedColormap

# Custom smoke colormap: black → orange → white
SMOKE_COLORS = ["#000000", "#1a0a00", "#ff6a00", "#ffffff"]
smoke_cmap = LinearSegmentedColormap.from_list("smoke", SMOKE_COLORS)


class FluidVisualizer:
    """
    Real-time viewer of the fluid simulation.

    Usage (standalone):
        from fluid2d import FluidSimulation
        from visualizer import FluidVisualizer

        sim = FluidSimulation(width=64, height=64)
        viz = FluidVisualizer(sim)
        viz.run()  # Opens live window
    """

    def __init__(self, simulation, arrow_stride: int = None):
        """
        Args:
            simulation   : FluidSimulation instance
            arrow_stride : Draw one velocity arrow every N cells (auto if None)
        """
        self.sim = simulation
        self.stride = arrow_stride or max(1, min(simulation.width, simulation.height) // 16)
        self._setup_figure()

    def _setup_figure(self):
        """Initialize the matplotlib figure: density image + velocity arrows."""
        self.fig, self.ax = plt.subplots(figsize=(6, 6))
        self.fig.patch.set_facecolor('#0a0a0a')

        ax = self.ax
        ax.set_facecolor('#0a0a0a')
        ax.set_xticks([])
        ax.set_yticks([])
        for spine in ax.spines.values():
            spine.set_edgecolor('#333333')

        sim = self.sim
        extent = (0.0, sim.width * sim.cell_size, 0.0, sim.height * sim.cell_size)
        self.img = ax.imshow(
            sim.density.current, cmap=smoke_cmap,
            vmin=0, vmax=1.0,
            interpolation='bilinear',
            origin='lower',
            extent=extent,
            aspect='equal'
        )

        # Arrow anchors at (subsampled) cell centers
        s = self.stride
        xs = (np.arange(sim.width) + 0.5) * sim.cell_size
        ys = (np.arange(sim.height) + 0.5) * sim.cell_size
        X, Y = np.meshgrid(xs[::s], ys[::s])
        uc, vc = sim.velocity.cell_centered()
        self.quiver = ax.quiver(X, Y, uc[::s, ::s], vc[::s, ::s],
                                color='#4fa3ff', alpha=0.6, angles='xy')

        self.title_text = ax.set_title(
            "Fluid Sim — Frame 0", color='#cccccc', fontsize=10, fontfamily='monospace'
        )
        plt.tight_layout()

    def update(self, frame_num=None):
        """Called by FuncAnimation each frame. Steps sim and updates plots."""
        frame = self.sim.advance_frame()

        self.img.set_data(frame.density)
        s = self.stride
        self.quiver.set_UVC(frame.velocity[::s, ::s, 0], frame.velocity[::s, ::s, 1])

        self.title_text.set_text(
            f"Fluid Sim — Frame {frame.index} | t={frame.time:.2f}s | "
            f"{frame.stats['substeps']} substeps | "
            f"div_max={frame.stats['divergence_max']:.5f}"
        )
        return [self.img, self.quiver, self.title_text]

    def run(self, fps: int = 15, frames: int = 500):
        """
        Start the live animation window.

        Args:
            fps    : Target animation frame rate
            frames : Total frames to render
        """
        interval_ms = 1000 // fps
        self.anim = animation.FuncAnimation(
            self.fig,
            self.update,
            frames=frames,
            interval=interval_ms,
            blit=False,
            repeat=False
        )
        plt.show()

    def save_gif(self, path: str = "fluid_sim.gif", fps: int = 15, frames: int = 100):
        """Save animation as a GIF (for reports and demos)."""
        print(f"Rendering {frames} frames to {path}...")
        self.anim = animation.FuncAnimation(
            self.fig, self.update, frames=frames, interval=1000 // fps, blit=False
        )
        writer = animation.PillowWriter(fps=fps)
        self.anim.save(path, writer=writer)
        print(f"Saved: {path}")
