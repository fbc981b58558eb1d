"""
grid.py — MAC (Marker-and-Cell) Staggered Grid
================================================
The foundation of the entire simulation.

Layout on a width × height grid:
  - Density `d` lives at CELL CENTERS   → offset (0.5, 0.5), shape (W,   H)
  - Velocity `u` lives on VERTICAL faces → offset (0.0, 0.5), shape (W+1, H)
  - Velocity `v` lives on HORIZONTAL faces → offset (0.5, 0.0), shape (W, H+1)

Why staggered? Divergence of a cell is then just (right - left) + (top - bottom)
of the four faces around it, with no averaging. It also prevents the
"checkerboard" pressure instability of collocated grids.

Storage: every quantity is a ScalarField holding TWO numpy buffers of shape
(h, w). Row-major, so the flat index of sample (x, y) is x + y*w. One buffer is
"current" (read and written in place by inflow and pressure), the other is
"next" (written by advection). flip() swaps them by toggling an index.
"""

import math

import numpy as np

from .errors import FieldDataError


class ScalarField:
    """
    One fluid quantity (density, or one velocity component) on the MAC grid.

    Attributes are fixed at construction: the field's own width/height in
    samples, its fractional offset inside a cell and the shared cell size.
    """

    def __init__(self, width: int, height: int, x_offset: float, y_offset: float,
                 cell_size: float):
        """
        Args:
            width, height      : Number of samples along x and y for THIS field
            x_offset, y_offset : Fractional sample position inside a cell
            cell_size          : World-space size of one grid cell
        """
        self._width = width
        self._height = height
        self._offset = (x_offset, y_offset)
        self._cell_size = cell_size

        # Two fixed buffers + which one is current. Never reallocated.
        self._buffers = (
            np.zeros((height, width), dtype=np.float64),
            np.zeros((height, width), dtype=np.float64),
        )
        self._active = 0

    # ── Layout (read-only) ─────────────────────────────────────────────────
    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def offset(self) -> tuple[float, float]:
        return self._offset

    @property
    def cell_size(self) -> float:
        return self._cell_size

    @property
    def shape(self) -> tuple[int, int]:
        """numpy shape of each buffer: (rows, columns) = (height, width)."""
        return (self._height, self._width)

    # ── Buffers ────────────────────────────────────────────────────────────
    @property
    def current(self) -> np.ndarray:
        """The readable buffer. Writes through this view land in place."""
        return self._buffers[self._active]

    @property
    def next(self) -> np.ndarray:
        """The write-only buffer that becomes current after flip()."""
        return self._buffers[1 - self._active]

    def flip(self):
        """Swap current and next. O(1); no data is copied."""
        self._active = 1 - self._active

    def at(self, x: int, y: int) -> float:
        """Value of sample (x, y) in the current buffer. Caller clamps."""
        return self._buffers[self._active][y, x]

    sample = at

    def set(self, x: int, y: int, value: float):
        self._buffers[self._active][y, x] = value

    def set_next(self, x: int, y: int, value: float):
        self._buffers[1 - self._active][y, x] = value

    def fill(self, value: float):
        self.current[:] = value

    def validate(self, values) -> np.ndarray:
        """
        Check external data against this field's layout.

        Accepts either a flat sequence of width*height numbers in row-major
        order, or a (height, width) array. Returns it as a (height, width)
        float array; raises FieldDataError for anything else.
        """
        try:
            data = np.asarray(values, dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise FieldDataError(f"Field data is not numeric: {exc}") from exc
        if data.ndim == 1:
            if data.size != self._width * self._height:
                raise FieldDataError(
                    f"Expected {self._width * self._height} values for a "
                    f"{self._width}x{self._height} field, got {data.size}")
            return data.reshape(self.shape)
        if data.shape != self.shape:
            raise FieldDataError(
                f"Expected array of shape {self.shape}, got {data.shape}")
        return data

    def load(self, values):
        """Seed the current buffer. Bad data is rejected before anything is written."""
        np.copyto(self.current, self.validate(values))

    # ── Geometry ───────────────────────────────────────────────────────────
    def positions(self) -> tuple[np.ndarray, np.ndarray]:
        """
        World-space (x, y) coordinates of every sample, each shape (h, w).

        Sample (i, j) sits at ((i + ox) * cell_size, (j + oy) * cell_size).
        """
        ox, oy = self._offset
        xs = (np.arange(self._width, dtype=np.float64) + ox) * self._cell_size
        ys = (np.arange(self._height, dtype=np.float64) + oy) * self._cell_size
        return np.meshgrid(xs, ys, indexing='xy')

    def add_inflow(self, x0: float, y0: float, x1: float, y1: float, value: float):
        """
        Stamp `value` into the world-space rectangle [x0, x1) × [y0, y1).

        Corners are converted to this field's own indices with
        floor(world / cell_size - offset), then clamped to the grid. A cell is
        only overwritten if |value| is larger than what it already holds:
        maximum-magnitude stamp, so overlapping inflows never cancel and
        re-applying the same inflow changes nothing.
        """
        ox, oy = self._offset
        h = self._cell_size
        ix0 = math.floor(x0 / h - ox)
        iy0 = math.floor(y0 / h - oy)
        ix1 = math.floor(x1 / h - ox)
        iy1 = math.floor(y1 / h - oy)

        xa, xb = max(ix0, 0), min(ix1, self._width)
        ya, yb = max(iy0, 0), min(iy1, self._height)
        if xa >= xb or ya >= yb:
            return

        region = self.current[ya:yb, xa:xb]
        mask = np.abs(region) < abs(value)
        region[mask] = value

    def __repr__(self):
        return (f"ScalarField({self._width}x{self._height}, "
                f"offset={self._offset}, cell_size={self._cell_size:g})")


class VelocityField:
    """
    Staggered velocity: `u` on vertical faces, `v` on horizontal faces.

    `width`/`height` are the nominal (cell) dimensions of the simulation;
    u has one extra column and v one extra row.
    """

    def __init__(self, width: int, height: int, cell_size: float):
        self.width = width
        self.height = height
        self.cell_size = cell_size

        # ── u: x-component on x-faces → (W+1) × H ──────────────────────────
        self.u = ScalarField(width + 1, height, 0.0, 0.5, cell_size)
        # ── v: y-component on y-faces → W × (H+1) ──────────────────────────
        self.v = ScalarField(width, height + 1, 0.5, 0.0, cell_size)

    @property
    def components(self) -> tuple[ScalarField, ScalarField]:
        return (self.u, self.v)

    def flip(self):
        self.u.flip()
        self.v.flip()

    def cell_centered(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Interpolate face velocities to cell centers.
        Used for the emitted frames, the timestep bound and diagnostics.

        Returns (uc, vc), each of shape (height, width).
        """
        u = self.u.current
        v = self.v.current
        uc = 0.5 * (u[:, :-1] + u[:, 1:])
        vc = 0.5 * (v[:-1, :] + v[1:, :])
        return uc, vc

    def divergence(self) -> np.ndarray:
        """
        Discrete divergence per cell: (u_right - u_left + v_top - v_bottom) / h.

        For an incompressible fluid this should be ~0 everywhere after the
        pressure projection. Shape (height, width).
        """
        u = self.u.current
        v = self.v.current
        return ((u[:, 1:] - u[:, :-1]) + (v[1:, :] - v[:-1, :])) / self.cell_size

    def max_speed(self) -> float:
        """
        Largest velocity sample magnitude over all u and v faces.

        Taken on the staggered samples, not on cell-centred averages.
        """
        return float(max(np.abs(self.u.current).max(), np.abs(self.v.current).max()))

    def boundary_values(self) -> np.ndarray:
        """All samples lying on the domain walls, concatenated."""
        u = self.u.current
        v = self.v.current
        return np.concatenate([u[:, 0], u[:, -1], v[0, :], v[-1, :]])

    def __repr__(self):
        max_div = np.abs(self.divergence()).max()
        return (
            f"VelocityField({self.width}x{self.height}, h={self.cell_size:g})\n"
            f"  velocity  : max_magnitude={self.max_speed():.4f}\n"
            f"  divergence: max={max_div:.6f} (target: ~0)"
        )
