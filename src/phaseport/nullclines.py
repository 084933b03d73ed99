'''Phase portrait toolkit
Nullcline extraction by grid sampling and marching squares'''

import logging
import numpy as np
from dataclasses import dataclass, field
from typing import Iterator, Mapping, Optional, Sequence, Tuple
from .config import config
from .expression import DerivativeFunction

logger = logging.getLogger(__name__)

Range = Tuple[float, float]


def _empty_curve() -> np.ndarray:
    return np.empty((0, 2), dtype=float)


@dataclass(frozen=True)
class NullclineResult:
    """
    Zero level sets of the two derivative components of a planar system.

    Attributes
    ----------
    first : np.ndarray
        Points (k, 2) where the first derivative vanishes
    second : np.ndarray
        Points (m, 2) where the second derivative vanishes

    Notes
    -----
    Curves are unordered point sets, not polylines. Iterating yields
    ``first`` then ``second`` so a result unpacks as ``n0, n1 = result``.
    """
    first: np.ndarray = field(default_factory=_empty_curve)
    second: np.ndarray = field(default_factory=_empty_curve)

    def __post_init__(self):
        for name in ('first', 'second'):
            points = np.array(getattr(self, name), dtype=float).reshape(-1, 2)
            points.flags.writeable = False
            object.__setattr__(self, name, points)

    def __iter__(self) -> Iterator[np.ndarray]:
        yield self.first
        yield self.second

    @property
    def is_empty(self) -> bool:
        return len(self.first) == 0 and len(self.second) == 0

    def __repr__(self):
        return (f"NullclineResult(first={len(self.first)} points, "
                f"second={len(self.second)} points)")


# ========== GRID SAMPLING ==========
def _check_range(name: str, bounds: Range) -> Range:
    lo, hi = (float(v) for v in bounds)
    if not (np.isfinite(lo) and np.isfinite(hi)) or lo >= hi:
        raise ValueError(f"{name} must be a finite (min, max) pair with min < max, "
                         f"got {bounds}")
    return lo, hi


def sample_grid(derivatives: Sequence[DerivativeFunction], xs: np.ndarray,
                ys: np.ndarray, params: Optional[Mapping[str, float]] = None,
                t: float = 0.0) -> np.ndarray:
    """
    Evaluate derivative components on every node of a rectangular grid.

    Parameters
    ----------
    derivatives : sequence of callables
        Derivative functions of a planar system
    xs, ys : np.ndarray
        Node coordinates along each axis
    params : mapping, optional
        Parameter values
    t : float, optional
        Time at which the field is frozen (default 0)

    Returns
    -------
    np.ndarray
        Array of shape (len(derivatives), len(xs), len(ys)); entry
        ``[k, i, j]`` is component k at (xs[i], ys[j]). A node where any
        component raises or is non-finite is NaN for every component.
    """
    params = params or {}
    n = len(derivatives)
    grid = np.full((n, len(xs), len(ys)), np.nan)
    invalid = 0
    for i, x in enumerate(xs):
        for j, y in enumerate(ys):
            state = (float(x), float(y))
            try:
                values = [f(t, state, params) for f in derivatives]
            except Exception as exc:
                logger.debug("Evaluation failed at (%g, %g): %s", x, y, exc)
                invalid += 1
                continue
            if all(np.isfinite(values)):
                grid[:, i, j] = values
            else:
                invalid += 1
    if invalid:
        logger.debug("%d of %d grid nodes are invalid", invalid, len(xs) * len(ys))
    return grid


# ========== MARCHING SQUARES ==========
def interpolate_zero(a1, a2, f1, f2):
    """
    Linear zero crossing between (a1, f1) and (a2, f2).

    Works element-wise on arrays. Returns the midpoint where f1 == f2.
    """
    a1, a2, f1, f2 = (np.asarray(v, dtype=float) for v in (a1, a2, f1, f2))
    denom = f2 - f1
    with np.errstate(divide='ignore', invalid='ignore'):
        crossing = a1 - f1 * (a2 - a1) / denom
    return np.where(denom == 0, 0.5 * (a1 + a2), crossing)


def _crossings(values: np.ndarray, X: np.ndarray, Y: np.ndarray,
               valid_h: np.ndarray, valid_v: np.ndarray) -> np.ndarray:
    """Zero crossings of one sampled component along every owned grid edge."""
    negative = values < 0

    # edges along x: node (i, j) to (i+1, j)
    change_h = valid_h & (negative[:-1, :] != negative[1:, :])
    xh = interpolate_zero(X[:-1, :][change_h], X[1:, :][change_h],
                          values[:-1, :][change_h], values[1:, :][change_h])
    yh = Y[:-1, :][change_h]

    # edges along y: node (i, j) to (i, j+1)
    change_v = valid_v & (negative[:, :-1] != negative[:, 1:])
    yv = interpolate_zero(Y[:, :-1][change_v], Y[:, 1:][change_v],
                          values[:, :-1][change_v], values[:, 1:][change_v])
    xv = X[:, :-1][change_v]

    points = np.column_stack((np.concatenate((xh, xv)), np.concatenate((yh, yv))))
    # a node that is exactly zero is reached from each of its crossing edges
    if len(points):
        points = np.unique(points, axis=0)
    return points


def compute_nullclines(f0: DerivativeFunction, f1: DerivativeFunction,
                       x_range: Range, y_range: Range,
                       resolution: Optional[int] = None,
                       params: Optional[Mapping[str, float]] = None,
                       t: float = 0.0) -> NullclineResult:
    """
    Locate the curves where each derivative of a planar system vanishes.

    The field is sampled on a (resolution+1) x (resolution+1) grid at time
    ``t``. For each cell whose four corners are valid, every edge with a
    sign change gets one linearly interpolated crossing point. Each cell
    owns its bottom and left edges; cells on the last row also own their
    top edge and cells on the last column their right edge, so every grid
    edge is examined exactly once.

    Parameters
    ----------
    f0, f1 : callable
        Derivative functions for the first and second variable
    x_range, y_range : tuple of float
        (min, max) extent of the grid along each axis
    resolution : int, optional
        Cells per axis (default: config.DEFAULT_NULLCLINE_RESOLUTION)
    params : mapping, optional
        Parameter values
    t : float, optional
        Time at which the field is evaluated (default 0)

    Returns
    -------
    NullclineResult
        Unordered point sets for f0 == 0 and f1 == 0

    Raises
    ------
    ValueError
        If a range is empty or resolution is not a positive integer

    Notes
    -----
    Saddle cells, where diagonal corners share a sign, are not
    disambiguated; each crossing edge still contributes its point.

    An edge crosses when ``f < 0`` holds at one end and not the other, so a
    node where f is exactly zero counts as non-negative. Such a node lies on
    the curve itself and is reported once, even though every adjacent edge
    with a negative neighbour interpolates to it.
    """
    if resolution is None:
        resolution = config.DEFAULT_NULLCLINE_RESOLUTION
    if int(resolution) != resolution or resolution < 1:
        raise ValueError(f"Resolution must be a positive integer, got {resolution}")
    resolution = int(resolution)
    x_lo, x_hi = _check_range("x_range", x_range)
    y_lo, y_hi = _check_range("y_range", y_range)

    xs = np.linspace(x_lo, x_hi, resolution + 1)
    ys = np.linspace(y_lo, y_hi, resolution + 1)
    X, Y = np.meshgrid(xs, ys, indexing='ij')
    grid = sample_grid((f0, f1), xs, ys, params, t)

    ok = np.all(np.isfinite(grid), axis=0)
    cells = ok[:-1, :-1] & ok[1:, :-1] & ok[:-1, 1:] & ok[1:, 1:]
    # edge ownership: last row/column of cells also owns the far edges
    valid_h = np.concatenate((cells, cells[:, -1:]), axis=1)
    valid_v = np.concatenate((cells, cells[-1:, :]), axis=0)

    curves = [_crossings(values, X, Y, valid_h, valid_v) for values in grid]
    logger.debug("Nullclines on %dx%d grid: %d and %d points",
                 resolution, resolution, len(curves[0]), len(curves[1]))
    return NullclineResult(curves[0], curves[1])


def system_nullclines(derivatives: Sequence[DerivativeFunction],
                      x_range: Range, y_range: Range,
                      resolution: Optional[int] = None,
                      params: Optional[Mapping[str, float]] = None,
                      t: float = 0.0) -> NullclineResult:
    """
    Nullclines for a whole system; empty unless it has exactly two equations.
    """
    if len(derivatives) != 2:
        logger.debug("Nullclines skipped for a %d-dimensional system", len(derivatives))
        return NullclineResult()
    return compute_nullclines(derivatives[0], derivatives[1], x_range, y_range,
                              resolution, params, t)
