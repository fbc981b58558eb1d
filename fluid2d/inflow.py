"""
inflow.py — Inflow Sources
===========================
Seeds density and velocity into a rectangle of the domain every step.

A source is just a rectangle (in world units) plus three values: density,
horizontal velocity, vertical velocity. Each value is stamped into its own
field with ScalarField.add_inflow, so the rectangle maps to slightly different
indices on each staggered layout.

Stamping keeps the value with the LARGEST magnitude rather than adding, so a
source held on for many steps never accumulates, and two overlapping sources
don't cancel each other out.
"""

from dataclasses import dataclass

from .grid import ScalarField, VelocityField


@dataclass(frozen=True)
class InflowSource:
    """
    Rectangular emitter.

    Args:
        x, y    : Lower-left corner in world units (domain short side = 1.0)
        w, h    : Rectangle size in world units
        density : Density to stamp
        u, v    : Velocity components to stamp
    """
    x: float
    y: float
    w: float
    h: float
    density: float = 1.0
    u: float = 0.0
    v: float = 0.0

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.w, self.y + self.h)

    def apply(self, density: ScalarField, velocity: VelocityField):
        x0, y0, x1, y1 = self.bounds
        density.add_inflow(x0, y0, x1, y1, self.density)
        velocity.u.add_inflow(x0, y0, x1, y1, self.u)
        velocity.v.add_inflow(x0, y0, x1, y1, self.v)


def add_inflow(density: ScalarField, velocity: VelocityField,
               x: float, y: float, w: float, h: float,
               d: float, u: float, v: float):
    """One-off inflow without keeping a source object around."""
    InflowSource(x, y, w, h, d, u, v).apply(density, velocity)
