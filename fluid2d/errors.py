"""
errors.py — Exception Types
===========================
Two things can go wrong that a caller is expected to handle:

  - InvalidConfigurationError : the simulation was asked for a grid or fluid
                                that cannot exist (zero width, negative density).
                                Raised before any buffer is allocated.
  - FieldDataError            : seeded data or a saved frame file does not have
                                the shape the grid needs.

Both subclass ValueError so plain `except ValueError` callers keep working.

Out-of-range grid indices are NOT covered here: those are programmer errors
and surface as whatever numpy raises.
"""


class Fluid2DError(Exception):
    """Base class for all errors raised by the fluid2d package."""


class InvalidConfigurationError(Fluid2DError, ValueError):
    """Simulation parameters are out of their valid range."""


class FieldDataError(Fluid2DError, ValueError):
    """Input data does not match the layout of the field it is meant for."""
