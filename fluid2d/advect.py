"""
advect.py — Semi-Lagrangian Advection
======================================
This is what makes fluid look like it's *actually flowing*.

The algorithm (per sample of the field being moved):
  1. Find the sample's world position from its index and the field's offset.
  2. Read the local velocity there. u and v live on different staggered
     layouts than the field, so each component is bilinearly resampled at
     that position in its own index space.
  3. Trace BACKWARD along the velocity by one timestep (dt).
     → "Where did the stuff at this sample come FROM?"
  4. Clamp the traced point to the box [0, W*h] × [0, H*h]. Walls are solid:
     nothing can be traced from outside, it sticks to the wall value instead.
  5. Bilinearly sample the field's CURRENT buffer at that point and write the
     result into its NEXT buffer.

Advection is never done in place: step 5 reads neighbours that other samples
would already have overwritten. All fields write to `next` first and are
flipped together at the end (advect_all).

Everything is vectorised over whole fields with numpy; the result is the same
as the per-sample loop described above.

Key reference: Jos Stam, "Stable Fluids" (SIGGRAPH 1999)
"""

import numpy as np

from .grid import ScalarField, VelocityField


def _axis_neighbors(coord: np.ndarray, size: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Neighbour pair and interpolation weight along ONE axis.

    Starts from the nearest sample. If the point lies below that sample's
    centre (negative fraction), the pair shifts left by one and the weight is
    measured from the new left neighbour; it is never just clamped to zero,
    which would make the interpolant jump at half-cell boundaries.

    Indices are clamped into [0, size) independently; the weight is not, so at
    the edges both neighbours collapse to the edge sample.

    Returns (left, right, weight) with weight in [0, 1).
    """
    nearest = np.rint(coord)
    frac = coord - nearest
    left = np.where(frac < 0.0, nearest - 1.0, nearest)
    weight = coord - left

    i0 = np.clip(left, 0, size - 1).astype(np.intp)
    i1 = np.clip(left + 1.0, 0, size - 1).astype(np.intp)
    return i0, i1, weight


def bilinear_sample(field: ScalarField, x, y) -> np.ndarray:
    """
    Bilinear interpolation of a field's current buffer at world positions.

    Args:
        field : Field to sample from (its own offset decides the index space)
        x, y  : World-space query positions (scalars or arrays, same shape)

    Returns:
        Interpolated values, same shape as x/y
    """
    ox, oy = field.offset
    h = field.cell_size
    gx = np.asarray(x, dtype=np.float64) / h - ox
    gy = np.asarray(y, dtype=np.float64) / h - oy

    # x and y are weighted separately; each uses its own distance.
    x0, x1, ax = _axis_neighbors(gx, field.width)
    y0, y1, ay = _axis_neighbors(gy, field.height)

    src = field.current
    c00 = src[y0, x0]
    c10 = src[y0, x1]
    c01 = src[y1, x0]
    c11 = src[y1, x1]

    # Lerp in x, then in y
    bottom = c00 * (1.0 - ax) + c10 * ax
    top = c01 * (1.0 - ax) + c11 * ax
    return bottom * (1.0 - ay) + top * ay


def velocity_at(velocity: VelocityField, x, y) -> tuple[np.ndarray, np.ndarray]:
    """Full velocity vector at world positions, from the staggered components."""
    return bilinear_sample(velocity.u, x, y), bilinear_sample(velocity.v, x, y)


def advect_field(field: ScalarField, velocity: VelocityField, dt: float):
    """
    Move one field through the velocity field by dt.

    Reads field.current and velocity.*.current; writes field.next only.
    The caller flips once every advected field has been written.
    """
    px, py = field.positions()

    # Velocity at each of this field's sample positions
    vx, vy = velocity_at(velocity, px, py)

    # Back-trace, then pin to the solid walls of the domain
    x_max = velocity.width * velocity.cell_size
    y_max = velocity.height * velocity.cell_size
    prev_x = np.clip(px - vx * dt, 0.0, x_max)
    prev_y = np.clip(py - vy * dt, 0.0, y_max)

    field.next[:] = bilinear_sample(field, prev_x, prev_y)


def advect_all(fields, velocity: VelocityField, dt: float):
    """
    Advect every field in `fields` (typically density, u, v), then flip them.

    All next-buffers are written from the pre-advection state before any flip,
    so the velocity components see the same source velocity as the density.
    """
    fields = list(fields)
    for field in fields:
        advect_field(field, velocity, dt)
    for field in fields:
        field.flip()
