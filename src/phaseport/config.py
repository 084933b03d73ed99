"""
Global Configuration for Phaseport Package
==========================================

This module provides package-wide configuration settings that users can modify
to control solver defaults, validation behavior, and default plotting options.

Examples
--------
View current configuration:

>>> import phaseport
>>> print(phaseport.config)

Modify settings:

>>> phaseport.config.DEFAULT_TOLERANCE = 1e-8  # Stricter adaptive control
>>> phaseport.config.DEFAULT_NULLCLINE_RESOLUTION = 200  # Finer grid

Reset to defaults:

>>> phaseport.config.reset()

Temporarily modify settings:

>>> with phaseport.temp_config(DEFAULT_MAX_STEPS=500):
...     # Short runs for this block only
...     result = lorenz.integrate([1, 1, 1], cfg)

Notes
-----
Solver defaults are read when a SolverConfig is created, so changing them
does not affect configurations that already exist.
"""

from dataclasses import dataclass, field
from contextlib import contextmanager
from typing import Tuple


@dataclass
class PhaseportConfig:
    """
    Global configuration for Phaseport package.

    Attributes
    ----------
    DEFAULT_MAX_STEPS : int
        Cap on accepted steps per integration run.
        Default: 100000
    DEFAULT_TOLERANCE : float
        Local error tolerance for the adaptive RKF45 method.
        Default: 1e-6
    DEFAULT_MIN_STEP : float
        Smallest step the adaptive controller may choose.
        Default: 1e-10
    DEFAULT_MAX_STEP : float
        Largest step the adaptive controller may choose.
        Default: 1.0
    DEFAULT_SAFETY_FACTOR : float
        Safety factor applied to the RKF45 step-size update.
        Default: 0.9
    DEFAULT_AB_ORDER : int
        Order of the Adams-Bashforth method (2, 3 or 4).
        Default: 4
    DEFAULT_NULLCLINE_RESOLUTION : int
        Number of grid cells per axis for nullcline extraction.
        Default: 100
    DIVERGENCE_THRESHOLD : float
        States whose magnitude exceeds this value are treated as divergent,
        in addition to NaN/Inf. Default: inf (only non-finite values)
    STRICT_VALIDATION : bool
        If True, validation failures raise exceptions.
        If False, validation failures issue warnings.
        Default: True
    DEFAULT_PLOT_POINTS : int
        Maximum number of points drawn by the plotting helpers.
        Default: 2000
    DEFAULT_TRAJ_COLOR : str
        Default color for trajectory lines in plots.
        Default: 'red'
    DEFAULT_NULLCLINE_COLORS : tuple of str
        Colors for the first and second nullcline overlays.
        Default: ('royalblue', 'darkorange')
    """

    # Integration defaults
    DEFAULT_MAX_STEPS: int = 100000
    DEFAULT_TOLERANCE: float = 1e-6
    DEFAULT_MIN_STEP: float = 1e-10
    DEFAULT_MAX_STEP: float = 1.0
    DEFAULT_SAFETY_FACTOR: float = 0.9
    DEFAULT_AB_ORDER: int = 4
    DIVERGENCE_THRESHOLD: float = float('inf')

    # Contour extraction defaults
    DEFAULT_NULLCLINE_RESOLUTION: int = 100

    # Validation behavior
    STRICT_VALIDATION: bool = True

    # Plotting defaults
    DEFAULT_PLOT_POINTS: int = 2000
    DEFAULT_TRAJ_COLOR: str = 'red'
    DEFAULT_NULLCLINE_COLORS: Tuple[str, str] = field(
        default=('royalblue', 'darkorange'))

    def reset(self):
        """
        Reset all configuration values to package defaults.

        Examples
        --------
        >>> import phaseport
        >>> phaseport.config.DEFAULT_TOLERANCE = 1e-3  # Modify
        >>> phaseport.config.reset()  # Back to defaults
        >>> phaseport.config.DEFAULT_TOLERANCE
        1e-06
        """
        defaults = PhaseportConfig()
        for key in self.__dataclass_fields__:
            setattr(self, key, getattr(defaults, key))

    def __repr__(self):
        """Return formatted string showing all configuration values."""
        lines = ["PhaseportConfig:"]
        lines.append("  Integration:")
        lines.append(f"    DEFAULT_MAX_STEPS = {self.DEFAULT_MAX_STEPS}")
        lines.append(f"    DEFAULT_TOLERANCE = {self.DEFAULT_TOLERANCE}")
        lines.append(f"    DEFAULT_MIN_STEP = {self.DEFAULT_MIN_STEP}")
        lines.append(f"    DEFAULT_MAX_STEP = {self.DEFAULT_MAX_STEP}")
        lines.append(f"    DEFAULT_SAFETY_FACTOR = {self.DEFAULT_SAFETY_FACTOR}")
        lines.append(f"    DEFAULT_AB_ORDER = {self.DEFAULT_AB_ORDER}")
        lines.append(f"    DIVERGENCE_THRESHOLD = {self.DIVERGENCE_THRESHOLD}")
        lines.append("  Nullclines:")
        lines.append(f"    DEFAULT_NULLCLINE_RESOLUTION = "
                     f"{self.DEFAULT_NULLCLINE_RESOLUTION}")
        lines.append("  Behavior:")
        lines.append(f"    STRICT_VALIDATION = {self.STRICT_VALIDATION}")
        lines.append("  Plotting:")
        lines.append(f"    DEFAULT_PLOT_POINTS = {self.DEFAULT_PLOT_POINTS}")
        lines.append(f"    DEFAULT_TRAJ_COLOR = '{self.DEFAULT_TRAJ_COLOR}'")
        lines.append(f"    DEFAULT_NULLCLINE_COLORS = {self.DEFAULT_NULLCLINE_COLORS}")
        return "\n".join(lines)


# Global configuration instance
config = PhaseportConfig()


@contextmanager
def temp_config(**kwargs):
    """
    Context manager for temporarily modifying configuration values.

    Configuration is automatically restored when the context exits,
    even if an exception occurs.

    Parameters
    ----------
    **kwargs
        Configuration attributes to temporarily modify.

    Examples
    --------
    >>> import phaseport
    >>> with phaseport.temp_config(STRICT_VALIDATION=False):
    ...     # Missing parameters only warn inside this block
    ...     eq = phaseport.EquationDefinition.from_expressions(
    ...         ['a*x'], ['x'], {})
    >>> phaseport.config.STRICT_VALIDATION
    True

    Raises
    ------
    AttributeError
        If an invalid configuration attribute is specified.
    """
    for key in kwargs:
        if key not in config.__dataclass_fields__:
            raise AttributeError(
                f"PhaseportConfig has no attribute '{key}'. "
                f"Valid attributes: {list(config.__dataclass_fields__.keys())}"
            )

    old_values = {}
    for key, value in kwargs.items():
        old_values[key] = getattr(config, key)
        setattr(config, key, value)

    try:
        yield config
    finally:
        for key, value in old_values.items():
            setattr(config, key, value)
